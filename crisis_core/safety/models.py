"""
Crisis Core Data Models

Shared enums and value objects for detection, arbitration,
response composition, notification and the crisis event log.
"""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, NamedTuple, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


# ==================================
# Enums
# ==================================

class CrisisType(str, Enum):
    """Crisis categories, declared in descending arbitration priority."""

    SUICIDE = "suicide"
    SELF_HARM = "self_harm"
    EATING_DISORDER = "eating_disorder"
    SUBSTANCE_USE = "substance_use"
    GENERAL_CRISIS = "general_crisis"

    @property
    def label(self) -> str:
        """Human readable name used in alerts."""
        return self.value.replace("_", " ")


# Life-safety ranking, not match count
CRISIS_PRIORITY: tuple[CrisisType, ...] = tuple(CrisisType)

# Categories eligible for callback-number collection
HIGH_RISK_TYPES = frozenset({
    CrisisType.SUICIDE,
    CrisisType.SELF_HARM,
    CrisisType.GENERAL_CRISIS,
})


class Severity(str, Enum):
    """Severity of a crisis turn. Ordered: low < moderate < high < critical."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self.value]

    def __lt__(self, other):
        if isinstance(other, Severity):
            return self.rank < other.rank
        return NotImplemented

    def __le__(self, other):
        if isinstance(other, Severity):
            return self.rank <= other.rank
        return NotImplemented

    def __gt__(self, other):
        if isinstance(other, Severity):
            return self.rank > other.rank
        return NotImplemented

    def __ge__(self, other):
        if isinstance(other, Severity):
            return self.rank >= other.rank
        return NotImplemented


_SEVERITY_RANK = {"low": 0, "moderate": 1, "high": 2, "critical": 3}


class PhrasingTier(str, Enum):
    """Escalation tier of the base crisis script within a session."""

    INITIAL = "initial"
    FOLLOWUP = "followup"
    ESCALATED = "escalated"

    @classmethod
    def for_count(cls, previous_detections: int) -> "PhrasingTier":
        """Tier for a category already detected `previous_detections` times."""
        tiers = list(cls)
        return tiers[min(max(previous_detections, 0), len(tiers) - 1)]


class NotificationStatus(str, Enum):
    """Delivery state of the clinician notification for an event."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class AuditEventType(str, Enum):
    """Kinds of entries in the crisis event log."""

    CRISIS_DETECTED = "crisis_detected"
    PHONE_NUMBER_PROVIDED = "phone_number_provided"


# ==================================
# Detection Models
# ==================================

class MatchEvidence(BaseModel):
    """A single rule hit. Used for audit and explainability only."""

    model_config = ConfigDict(frozen=True)

    category: CrisisType
    pattern_id: str
    matched_text: str


class Arbitration(NamedTuple):
    """The single governing classification for a turn."""

    crisis_type: CrisisType
    severity: Severity


class Coordinates(NamedTuple):
    """Device position reported by the client."""

    latitude: float
    longitude: float


class LocationInfo(BaseModel):
    """Resolved place. Immutable once resolved for a turn."""

    model_config = ConfigDict(frozen=True)

    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None

    @property
    def is_sufficient(self) -> bool:
        """A location is usable for resources iff city or region is known."""
        return bool(self.city or self.region)

    def describe(self) -> str:
        """Short description for subjects, bodies and logs."""
        if self.city and self.region:
            return f"{self.city}, {self.region}"
        if self.city:
            return self.city
        if self.region:
            return self.region
        if self.country:
            return self.country
        return "Unknown location"


def describe_location(location: Optional[LocationInfo]) -> str:
    """Describe a possibly missing location."""
    if location is None:
        return "Unknown location"
    return location.describe()


# ==================================
# Crisis Event (audit entry)
# ==================================

@dataclass
class CrisisEvent:
    """
    One entry in the append-only crisis event log.

    Only `notification_status` may change after the event is appended;
    it is excluded from the integrity hash for that reason.
    """

    session_id: str
    user_text: str
    crisis_type: CrisisType
    severity: Severity
    response_text: str
    detection_method: str
    location: Optional[LocationInfo] = None
    notification_status: NotificationStatus = NotificationStatus.PENDING
    event_type: AuditEventType = AuditEventType.CRISIS_DETECTED

    # Clinical context attached for the reviewing clinician
    clinical_notes: str = ""
    risk_assessment: str = ""
    evidence: list[MatchEvidence] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=_utcnow)

    # Integrity
    previous_hash: Optional[str] = None
    event_hash: Optional[str] = None

    def compute_hash(self, previous_hash: str = "") -> str:
        """Compute hash for tamper detection."""
        data = {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "session_id": self.session_id,
            "user_text": self.user_text,
            "crisis_type": self.crisis_type.value,
            "severity": self.severity.value,
            "response_text": self.response_text,
            "detection_method": self.detection_method,
            "location": self.location.model_dump() if self.location else None,
            "previous_hash": previous_hash,
        }
        content = json.dumps(data, sort_keys=True)
        return hashlib.sha256(content.encode()).hexdigest()

    def to_dict(self) -> dict:
        """Convert to dictionary for storage/transmission."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "session_id": self.session_id,
            "user_text": self.user_text,
            "crisis_type": self.crisis_type.value,
            "severity": self.severity.value,
            "response_text": self.response_text,
            "detection_method": self.detection_method,
            "location": self.location.model_dump() if self.location else None,
            "notification_status": self.notification_status.value,
            "clinical_notes": self.clinical_notes,
            "risk_assessment": self.risk_assessment,
            "evidence": [e.model_dump(mode="json") for e in self.evidence],
            "details": self.details,
            "previous_hash": self.previous_hash,
            "event_hash": self.event_hash,
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "CrisisEvent":
        """Create from a stored dictionary."""
        location = data.get("location")
        return cls(
            id=data["id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            event_type=AuditEventType(data.get("event_type", "crisis_detected")),
            session_id=data["session_id"],
            user_text=data["user_text"],
            crisis_type=CrisisType(data["crisis_type"]),
            severity=Severity(data["severity"]),
            response_text=data["response_text"],
            detection_method=data["detection_method"],
            location=LocationInfo(**location) if location else None,
            notification_status=NotificationStatus(
                data.get("notification_status", "pending")
            ),
            clinical_notes=data.get("clinical_notes", ""),
            risk_assessment=data.get("risk_assessment", ""),
            evidence=[MatchEvidence(**e) for e in data.get("evidence", [])],
            details=data.get("details", {}),
            previous_hash=data.get("previous_hash"),
            event_hash=data.get("event_hash"),
        )
