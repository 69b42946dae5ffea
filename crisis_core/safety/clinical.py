"""
Clinical context attached to crisis events for the reviewing clinician.

Lexical only. These notes support, never replace, clinical judgement.
"""

import re

from crisis_core.safety.models import CrisisType, Severity
from crisis_core.safety.patterns import normalize_text

# (regex, note) pairs appended to the clinical notes when present
CLINICAL_MARKERS: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\b(plan|method|means|how\s+to|when\s+to)\b"),
     "Patient mentions specific plans or methods"),
    (re.compile(r"\b(tonight|today|soon|now|ready)\b"),
     "Temporal urgency indicators present"),
    (re.compile(r"\b(alone|no\s+one|nobody|isolated)\b"),
     "Social isolation indicators"),
    (re.compile(r"\b(family|kids|children|responsibilit(y|ies))\b"),
     "Protective factors mentioned"),
]

# (regex, weight) pairs summed into a signed risk score
RISK_FACTORS: list[tuple[re.Pattern, int]] = [
    (re.compile(r"\b(plan|method|means)\b"), 3),
    (re.compile(r"\b(tonight|today|soon|now)\b"), 2),
    (re.compile(r"\b(alone|no\s+one|nobody)\b"), 2),
    (re.compile(r"\b(hopeless|worthless|burden|better\s+off)\b"), 2),
    (re.compile(r"\b(family|kids|children|pets?|job)\b"), -1),
    (re.compile(r"\b(help|support|therapy|counseling)\b"), -1),
]

RISK_LEVELS: list[tuple[int, str]] = [
    (5, "HIGH RISK - Immediate intervention required"),
    (3, "MODERATE RISK - Close monitoring needed"),
    (1, "ELEVATED RISK - Follow-up recommended"),
]
BASELINE_RISK = "BASELINE RISK - Standard crisis protocols"


def generate_clinical_notes(text: str, crisis_type: CrisisType, severity: Severity) -> str:
    """Summarize clinically relevant markers found in the message."""
    normalized = normalize_text(text or "")
    notes = [note for regex, note in CLINICAL_MARKERS if regex.search(normalized)]
    if severity >= Severity.HIGH and crisis_type == CrisisType.SUICIDE:
        notes.append("Explicit suicidal content at critical severity")
    return "; ".join(notes) if notes else "Standard crisis presentation"


def risk_score(text: str) -> int:
    normalized = normalize_text(text or "")
    return sum(weight for regex, weight in RISK_FACTORS if regex.search(normalized))


def assess_risk_level(text: str) -> str:
    """Map the signed risk score to a review label."""
    score = risk_score(text)
    for threshold, label in RISK_LEVELS:
        if score >= threshold:
            return label
    return BASELINE_RISK
