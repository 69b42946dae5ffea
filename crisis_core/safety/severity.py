"""
Severity Arbitration

Resolves classifier evidence into exactly one (CrisisType, Severity) pair.
The governing category is the highest-priority one present, not the one
with the most matches.
"""

import logging
from typing import Iterable, Optional

from crisis_core.safety.models import (
    CRISIS_PRIORITY,
    Arbitration,
    CrisisType,
    MatchEvidence,
    Severity,
)
from crisis_core.safety.patterns import lookup_rule

logger = logging.getLogger(__name__)

# Severity reached on an escalation phrase or enough distinct matches
CATEGORY_SEVERITY: dict[CrisisType, Severity] = {
    CrisisType.SUICIDE: Severity.CRITICAL,
    CrisisType.SELF_HARM: Severity.HIGH,
    CrisisType.EATING_DISORDER: Severity.HIGH,
    CrisisType.SUBSTANCE_USE: Severity.HIGH,
    CrisisType.GENERAL_CRISIS: Severity.HIGH,
}

ESCALATION_MATCH_COUNT = 3


def arbitrate(evidence: Iterable[MatchEvidence]) -> Optional[Arbitration]:
    """
    Choose the governing crisis type and severity.

    Args:
        evidence: Classifier output for one turn

    Returns:
        Arbitration, or None when there is no evidence
    """
    evidence = list(evidence or [])
    if not evidence:
        return None

    present = {item.category for item in evidence}
    # general_crisis sits last in the priority order, so it only governs
    # when no specific category matched
    crisis_type = next(t for t in CRISIS_PRIORITY if t in present)

    pattern_ids = {item.pattern_id for item in evidence if item.category == crisis_type}
    severity = _severity_for(crisis_type, pattern_ids)

    if len(present) > 1:
        logger.debug(
            f"Arbitrated {sorted(t.value for t in present)} -> {crisis_type.value}"
        )
    return Arbitration(crisis_type=crisis_type, severity=severity)


def _severity_for(crisis_type: CrisisType, pattern_ids: set[str]) -> Severity:
    rules = [lookup_rule(pattern_id) for pattern_id in pattern_ids]

    if any(rule is not None and rule.escalation for rule in rules):
        return CATEGORY_SEVERITY[crisis_type]
    if len(pattern_ids) >= ESCALATION_MATCH_COUNT:
        return CATEGORY_SEVERITY[crisis_type]
    if len(rules) == 1 and rules[0] is not None and rules[0].weak:
        return Severity.LOW
    return Severity.MODERATE
