"""
Eating Concern Detection

Weighted signal accumulation for eating-related concerns:
explicit phrases count 1.0, bare keywords 0.5 and contextual risk
markers 0.5. Benign food conversation can suppress weak scores, but an
explicit high-risk phrase always wins over small talk.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from crisis_core.config import settings
from crisis_core.safety.models import MatchEvidence
from crisis_core.safety.patterns import (
    EATING_CONTEXT_MARKERS,
    EATING_EXPLICIT_RULES,
    EATING_HIGH_RISK_RULE,
    EATING_KEYWORDS,
    EATING_MODERATE_RISK_RULE,
    EATING_PHRASE_RULES,
    FOOD_SMALL_TALK_PATTERNS,
    LOCAL_FOOD_CONTEXTS,
    normalize_text,
)

logger = logging.getLogger(__name__)

PHRASE_WEIGHT = 1.0
KEYWORD_WEIGHT = 0.5
MARKER_WEIGHT = 0.5


class EatingRisk(str, Enum):
    """Risk level produced by the scorer."""

    NONE = "none"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


_RISK_ORDER = [EatingRisk.NONE, EatingRisk.LOW, EatingRisk.MODERATE, EatingRisk.HIGH]


@dataclass(frozen=True)
class SmallTalkPolicy:
    """
    Suppression thresholds for benign food conversation.

    general_threshold: general food talk is treated as small talk while the
        score stays below this and no context marker is present.
    local_threshold: local food-culture talk (markets, restaurants) is
        treated as small talk while the score stays below this or no
        context marker is present.
    local_suppression: when False, local food talk gets no special
        treatment and the general threshold applies.
    report_floor: lowest risk that is emitted as evidence.
    """

    general_threshold: float = 1.5
    local_threshold: float = 2.5
    local_suppression: bool = True
    report_floor: EatingRisk = EatingRisk.MODERATE

    @classmethod
    def from_settings(cls) -> "SmallTalkPolicy":
        return cls(
            general_threshold=settings.small_talk_general_threshold,
            local_threshold=settings.small_talk_local_threshold,
            local_suppression=settings.small_talk_local_suppression,
        )


DEFAULT_SMALL_TALK_POLICY = SmallTalkPolicy()


@dataclass
class EatingConcernAssessment:
    """Scored view of one message."""

    score: float = 0.0
    risk: EatingRisk = EatingRisk.NONE
    explicit: list[MatchEvidence] = field(default_factory=list)
    phrases: list[MatchEvidence] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    context_markers: list[str] = field(default_factory=list)
    is_small_talk: bool = False
    is_local_food_talk: bool = False
    report_floor: EatingRisk = EatingRisk.MODERATE

    @property
    def has_explicit_phrase(self) -> bool:
        return bool(self.explicit)

    @property
    def is_concern(self) -> bool:
        """Whether this message is reported to the arbiter."""
        if self.has_explicit_phrase:
            return True
        return _RISK_ORDER.index(self.risk) >= _RISK_ORDER.index(self.report_floor)

    def to_evidence(self) -> list[MatchEvidence]:
        """Evidence for the arbiter; empty when the message is not a concern."""
        if not self.is_concern:
            return []

        evidence = [*self.explicit, *self.phrases]

        # Scores carried by keywords and markers still need an id the
        # arbiter can weigh.
        if not self.explicit and self.risk == EatingRisk.HIGH:
            evidence.append(self._synthetic(EATING_HIGH_RISK_RULE.pattern_id))
        elif not evidence:
            evidence.append(self._synthetic(EATING_MODERATE_RISK_RULE.pattern_id))

        return evidence

    def _synthetic(self, pattern_id: str) -> MatchEvidence:
        signals = self.keywords + self.context_markers
        return MatchEvidence(
            category=EATING_HIGH_RISK_RULE.category,
            pattern_id=pattern_id,
            matched_text=", ".join(signals) or f"score={self.score}",
        )


class EatingConcernDetector:
    """
    Scores eating-related risk in a message.

    Usage:
        detector = EatingConcernDetector()
        assessment = detector.assess("I haven't eaten in three days")
        assessment.risk  # EatingRisk.HIGH
    """

    def __init__(self, policy: Optional[SmallTalkPolicy] = None):
        self.policy = policy or DEFAULT_SMALL_TALK_POLICY

        self._keywords = [
            (keyword, anchored, re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE))
            for keyword, anchored in EATING_KEYWORDS
        ]
        self._markers = [
            (marker_id, re.compile(pattern, re.IGNORECASE))
            for marker_id, pattern in EATING_CONTEXT_MARKERS
        ]
        self._small_talk = [re.compile(p, re.IGNORECASE) for p in FOOD_SMALL_TALK_PATTERNS]
        self._local_food = [re.compile(p, re.IGNORECASE) for p in LOCAL_FOOD_CONTEXTS]

    def assess(self, text: str) -> EatingConcernAssessment:
        """
        Score a message.

        Args:
            text: Raw or normalized user message

        Returns:
            EatingConcernAssessment
        """
        text = normalize_text(text)
        result = EatingConcernAssessment(report_floor=self.policy.report_floor)

        for rule in EATING_EXPLICIT_RULES:
            match = rule.search(text)
            if match:
                result.explicit.append(
                    MatchEvidence(category=rule.category, pattern_id=rule.pattern_id, matched_text=match.group(0))
                )

        for rule in EATING_PHRASE_RULES:
            match = rule.search(text)
            if match:
                result.phrases.append(
                    MatchEvidence(category=rule.category, pattern_id=rule.pattern_id, matched_text=match.group(0))
                )

        anchored_keywords = []
        loose_keywords = []
        for keyword, anchored, regex in self._keywords:
            if regex.search(text):
                (anchored_keywords if anchored else loose_keywords).append(keyword)

        # Without any food or body signal there is nothing to score
        if not (result.explicit or result.phrases or anchored_keywords):
            return result

        result.keywords = anchored_keywords + loose_keywords
        result.context_markers = [
            marker_id for marker_id, regex in self._markers if regex.search(text)
        ]
        result.score = (
            PHRASE_WEIGHT * (len(result.explicit) + len(result.phrases))
            + KEYWORD_WEIGHT * len(result.keywords)
            + MARKER_WEIGHT * len(result.context_markers)
        )

        general_talk = any(p.search(text) for p in self._small_talk)
        local_talk = any(p.search(text) for p in self._local_food)
        result.is_local_food_talk = local_talk
        result.is_small_talk = self._is_small_talk(result, general_talk, local_talk)
        result.risk = self._risk(result, local_talk)

        if result.has_explicit_phrase:
            result.risk = EatingRisk.HIGH
        elif result.is_small_talk and result.risk == EatingRisk.LOW:
            result.risk = EatingRisk.NONE

        logger.debug(
            f"Eating assessment: score={result.score} risk={result.risk.value} "
            f"small_talk={result.is_small_talk} explicit={len(result.explicit)}"
        )
        return result

    def _is_small_talk(
        self,
        result: EatingConcernAssessment,
        general_talk: bool,
        local_talk: bool,
    ) -> bool:
        if not (general_talk or local_talk):
            return False
        markers = bool(result.context_markers)
        if local_talk and self.policy.local_suppression:
            return result.score < self.policy.local_threshold or not markers
        return result.score < self.policy.general_threshold and not markers

    def _risk(self, result: EatingConcernAssessment, local_talk: bool) -> EatingRisk:
        score = result.score
        markers = len(result.context_markers)

        if score >= 3 or (score >= 1.5 and markers >= 2):
            risk = EatingRisk.HIGH
        elif score >= 1.5 or (score >= 1 and markers >= 1):
            risk = EatingRisk.MODERATE
        elif score > 0:
            risk = EatingRisk.LOW
        else:
            risk = EatingRisk.NONE

        # Local food culture lowers one level unless the signal is strong
        if (
            local_talk
            and self.policy.local_suppression
            and risk != EatingRisk.HIGH
            and markers < 3
            and risk != EatingRisk.NONE
        ):
            risk = _RISK_ORDER[_RISK_ORDER.index(risk) - 1]

        return risk
