"""
Crisis Detection Module

Maps a raw user message to zero or more pieces of crisis evidence.
Matching is evidence-accumulating: a message may carry evidence for
several categories, which the severity arbiter resolves afterwards.

IMPORTANT: This is a supplementary safety layer, not a replacement
for professional crisis intervention services.
"""

import logging
from typing import Optional

from crisis_core.safety.eating_detector import EatingConcernDetector, SmallTalkPolicy
from crisis_core.safety.models import MatchEvidence
from crisis_core.safety.patterns import (
    CRISIS_RULES,
    FALLBACK_RULE,
    REFUSAL_PATTERNS,
    normalize_text,
)

logger = logging.getLogger(__name__)


class CrisisDetector:
    """
    Lexical crisis classifier.

    Holds no per-call state: classifying the same text twice yields the
    same evidence in the same order.

    Usage:
        detector = CrisisDetector()
        evidence = detector.classify("I want to kill myself")
        for item in evidence:
            print(item.category, item.pattern_id)
    """

    def __init__(self, small_talk_policy: Optional[SmallTalkPolicy] = None):
        """
        Initialize Crisis Detector.

        Args:
            small_talk_policy: Suppression thresholds for benign food talk
        """
        self._eating = EatingConcernDetector(policy=small_talk_policy)
        logger.info(f"CrisisDetector initialized with patterns={len(CRISIS_RULES)}")

    def classify(self, text: str) -> list[MatchEvidence]:
        """
        Analyze text for crisis indicators.

        Never raises. Invalid or empty input yields no evidence; an
        internal error falls back to a broad keyword check that leans
        toward reporting a possible crisis.

        Args:
            text: User message to analyze

        Returns:
            List of MatchEvidence in rule-table order
        """
        if not isinstance(text, str) or not text.strip():
            return []

        try:
            return self._classify(text)
        except Exception as e:
            logger.error(f"Crisis classification failed, using fallback: {e}")
            return self._fallback(text)

    def _classify(self, text: str) -> list[MatchEvidence]:
        normalized = normalize_text(text)
        evidence: list[MatchEvidence] = []

        for rule in CRISIS_RULES:
            match = rule.search(normalized)
            if match:
                evidence.append(MatchEvidence(
                    category=rule.category,
                    pattern_id=rule.pattern_id,
                    matched_text=match.group(0),
                ))
                logger.debug(f"Crisis pattern matched: {rule.pattern_id}")

        evidence.extend(self._eating.assess(normalized).to_evidence())
        return evidence

    def _fallback(self, text: str) -> list[MatchEvidence]:
        try:
            match = FALLBACK_RULE.search(text.lower())
        except Exception:
            logger.exception("Crisis fallback check failed")
            return []
        if match is None:
            return []
        return [MatchEvidence(
            category=FALLBACK_RULE.category,
            pattern_id=FALLBACK_RULE.pattern_id,
            matched_text=match.group(0),
        )]

    def is_refusal(self, text: str) -> bool:
        """
        Check whether the user is declining offered crisis resources.

        Args:
            text: User message to check

        Returns:
            True if a refusal phrase is present
        """
        if not isinstance(text, str) or not text.strip():
            return False
        normalized = normalize_text(text)
        return any(pattern.search(normalized) for pattern in REFUSAL_PATTERNS)


# ==================================
# Singleton & Convenience Functions
# ==================================

_detector_instance: Optional[CrisisDetector] = None


def get_detector() -> CrisisDetector:
    """
    Get or create singleton CrisisDetector instance.

    Uses the small-talk policy from settings.

    Returns:
        CrisisDetector instance
    """
    global _detector_instance
    if _detector_instance is None:
        _detector_instance = CrisisDetector(small_talk_policy=SmallTalkPolicy.from_settings())
    return _detector_instance


def classify(text: str) -> list[MatchEvidence]:
    """
    Convenience function to classify a message.

    Args:
        text: User message to analyze

    Returns:
        List of MatchEvidence
    """
    return get_detector().classify(text)


def is_refusal(text: str) -> bool:
    """Convenience function for resource refusal detection."""
    return get_detector().is_refusal(text)
