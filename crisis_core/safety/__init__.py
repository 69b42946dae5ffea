"""
Crisis Safety Module

Provides crisis classification, severity arbitration, clinical context,
the crisis event log and clinician notification.

The turn-level orchestrator lives in crisis_core.safety.pipeline.
"""

from crisis_core.safety.models import (
    # Enums
    CrisisType,
    Severity,
    PhrasingTier,
    NotificationStatus,
    AuditEventType,

    # Models
    MatchEvidence,
    Arbitration,
    Coordinates,
    LocationInfo,
    CrisisEvent,
    describe_location,
)

from crisis_core.safety.crisis_detector import (
    CrisisDetector,
    get_detector as get_crisis_detector,
    classify,
    is_refusal,
)

from crisis_core.safety.eating_detector import (
    EatingConcernDetector,
    EatingConcernAssessment,
    EatingRisk,
    SmallTalkPolicy,
)

from crisis_core.safety.severity import arbitrate

from crisis_core.safety.clinical import (
    generate_clinical_notes,
    assess_risk_level,
)

__all__ = [
    # Enums
    "CrisisType",
    "Severity",
    "PhrasingTier",
    "NotificationStatus",
    "AuditEventType",
    # Models
    "MatchEvidence",
    "Arbitration",
    "Coordinates",
    "LocationInfo",
    "CrisisEvent",
    "describe_location",
    # Classification
    "CrisisDetector",
    "get_crisis_detector",
    "classify",
    "is_refusal",
    "EatingConcernDetector",
    "EatingConcernAssessment",
    "EatingRisk",
    "SmallTalkPolicy",
    # Arbitration
    "arbitrate",
    # Clinical context
    "generate_clinical_notes",
    "assess_risk_level",
]
