"""Tests for severity arbitration."""

import pytest

from crisis_core.safety.models import (
    CRISIS_PRIORITY,
    CrisisType,
    MatchEvidence,
    PhrasingTier,
    Severity,
)
from crisis_core.safety.severity import CATEGORY_SEVERITY, arbitrate


def evidence(category: CrisisType, pattern_id: str, text: str = "match") -> MatchEvidence:
    return MatchEvidence(category=category, pattern_id=pattern_id, matched_text=text)


class TestArbitrate:
    """Test choosing one governing (type, severity) pair."""

    def test_no_evidence(self):
        """Test empty evidence yields no arbitration."""
        assert arbitrate([]) is None
        assert arbitrate(None) is None

    def test_priority_beats_match_count(self):
        """Test the highest-priority category governs regardless of count."""
        result = arbitrate([
            evidence(CrisisType.SUBSTANCE_USE, "substance.addicted"),
            evidence(CrisisType.SUBSTANCE_USE, "substance.withdrawal"),
            evidence(CrisisType.SUBSTANCE_USE, "substance.relapse"),
            evidence(CrisisType.SELF_HARM, "self_harm.hurt_myself"),
        ])

        assert result.crisis_type == CrisisType.SELF_HARM
        assert result.severity == Severity.MODERATE

    def test_suicide_escalation_is_critical(self):
        """Test an escalation phrase lifts suicide to critical."""
        result = arbitrate([evidence(CrisisType.SUICIDE, "suicide.kill_myself")])

        assert result == (CrisisType.SUICIDE, Severity.CRITICAL)

    def test_non_escalating_single_match(self):
        """Test one ordinary match is moderate."""
        result = arbitrate([evidence(CrisisType.SUICIDE, "suicide.mention")])

        assert result == (CrisisType.SUICIDE, Severity.MODERATE)

    def test_cardinality_escalates(self):
        """Test three distinct matches reach the category severity."""
        result = arbitrate([
            evidence(CrisisType.GENERAL_CRISIS, "general.cant_cope"),
            evidence(CrisisType.GENERAL_CRISIS, "general.giving_up"),
            evidence(CrisisType.GENERAL_CRISIS, "general.in_crisis"),
        ])

        assert result == (CrisisType.GENERAL_CRISIS, Severity.HIGH)

    def test_duplicate_pattern_ids_count_once(self):
        """Test repeated hits of one rule do not add up to escalation."""
        result = arbitrate([
            evidence(CrisisType.GENERAL_CRISIS, "general.cant_cope"),
            evidence(CrisisType.GENERAL_CRISIS, "general.cant_cope"),
            evidence(CrisisType.GENERAL_CRISIS, "general.cant_cope"),
        ])

        assert result.severity == Severity.MODERATE

    def test_weak_alone_is_low(self):
        """Test a weak rule on its own is low."""
        result = arbitrate([evidence(CrisisType.SELF_HARM, "self_harm.punish_body")])

        assert result == (CrisisType.SELF_HARM, Severity.LOW)

    def test_weak_with_other_match(self):
        """Test a weak rule alongside another match is moderate."""
        result = arbitrate([
            evidence(CrisisType.SELF_HARM, "self_harm.punish_body"),
            evidence(CrisisType.SELF_HARM, "self_harm.named"),
        ])

        assert result.severity == Severity.MODERATE

    def test_evidence_of_other_categories_ignored_for_severity(self):
        """Test severity only weighs the governing category's evidence."""
        result = arbitrate([
            evidence(CrisisType.SUICIDE, "suicide.mention"),
            evidence(CrisisType.SUBSTANCE_USE, "substance.overdose"),
        ])

        assert result == (CrisisType.SUICIDE, Severity.MODERATE)

    def test_eating_synthetic_evidence(self):
        """Test scorer evidence maps to moderate and high eating severity."""
        moderate = arbitrate([evidence(CrisisType.EATING_DISORDER, "eating.risk.moderate")])
        high = arbitrate([evidence(CrisisType.EATING_DISORDER, "eating.risk.high")])

        assert moderate.severity == Severity.MODERATE
        assert high.severity == Severity.HIGH

    def test_unknown_pattern_id(self):
        """Test evidence from an unknown rule is treated as ordinary."""
        result = arbitrate([evidence(CrisisType.SUBSTANCE_USE, "substance.retired_rule")])

        assert result == (CrisisType.SUBSTANCE_USE, Severity.MODERATE)

    @pytest.mark.parametrize("crisis_type", list(CrisisType))
    def test_every_category_has_table_severity(self, crisis_type):
        """Test the category table covers every crisis type."""
        assert crisis_type in CATEGORY_SEVERITY


class TestOrdering:
    """Test enum orderings used by arbitration."""

    def test_priority_order(self):
        """Test priority is suicide first and general crisis last."""
        assert CRISIS_PRIORITY[0] == CrisisType.SUICIDE
        assert CRISIS_PRIORITY[-1] == CrisisType.GENERAL_CRISIS

    def test_severity_order(self):
        """Test severities compare by rank, not by name."""
        assert Severity.LOW < Severity.MODERATE < Severity.HIGH < Severity.CRITICAL
        assert max([Severity.HIGH, Severity.CRITICAL, Severity.LOW]) == Severity.CRITICAL

    def test_tier_for_count(self):
        """Test phrasing tiers advance and cap at escalated."""
        assert PhrasingTier.for_count(0) == PhrasingTier.INITIAL
        assert PhrasingTier.for_count(1) == PhrasingTier.FOLLOWUP
        assert PhrasingTier.for_count(2) == PhrasingTier.ESCALATED
        assert PhrasingTier.for_count(7) == PhrasingTier.ESCALATED
