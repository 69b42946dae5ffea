"""
Per-session crisis state.

Passed into and returned from each turn; never held as ambient globals.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from crisis_core.safety.models import CrisisType, LocationInfo, PhrasingTier

MAX_PHONE_REQUESTS = 3
MAX_REFUSAL_LEVEL = 3


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _object(value, name: str) -> dict:
    """A stored JSON object, or {} when absent."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"{name} must be an object, got {type(value).__name__}")
    return value


@dataclass
class PhoneRequestState:
    """Callback-number solicitation progress for one session."""

    request_count: int = 0
    persistence_level: int = 0
    has_provided_number: bool = False
    phone_number: Optional[str] = None
    last_request_time: Optional[datetime] = None

    @property
    def can_request(self) -> bool:
        return not self.has_provided_number and self.request_count < MAX_PHONE_REQUESTS

    def record_request(self) -> int:
        """Count a request and return the persistence level to phrase it with."""
        if not self.can_request:
            raise ValueError("phone request not allowed in current state")
        self.request_count += 1
        self.persistence_level = min(self.request_count - 1, 2)
        self.last_request_time = _utcnow()
        return self.persistence_level

    def record_number(self, phone_number: str) -> None:
        self.has_provided_number = True
        self.phone_number = phone_number

    def to_dict(self) -> dict:
        return {
            "request_count": self.request_count,
            "persistence_level": self.persistence_level,
            "has_provided_number": self.has_provided_number,
            "phone_number": self.phone_number,
            "last_request_time": self.last_request_time.isoformat() if self.last_request_time else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PhoneRequestState":
        request_count = min(int(data.get("request_count", 0)), MAX_PHONE_REQUESTS)
        return cls(
            request_count=request_count,
            persistence_level=min(max(request_count - 1, 0), 2),
            has_provided_number=bool(data.get("has_provided_number", False)),
            phone_number=data.get("phone_number"),
            last_request_time=_parse_time(data.get("last_request_time")),
        )


@dataclass
class RefusalHistory:
    """Declined-resource history, shared with the reviewing clinician."""

    refusal_count: int = 0
    level: int = 0
    last_refusal_time: Optional[datetime] = None
    crisis_type: Optional[CrisisType] = None

    def record(self, crisis_type: Optional[CrisisType]) -> int:
        """Count a refusal and return the response level (0-3)."""
        self.refusal_count += 1
        self.level = min(self.refusal_count - 1, MAX_REFUSAL_LEVEL)
        self.last_refusal_time = _utcnow()
        self.crisis_type = crisis_type
        return self.level

    def to_dict(self) -> dict:
        return {
            "refusal_count": self.refusal_count,
            "level": self.level,
            "last_refusal_time": self.last_refusal_time.isoformat() if self.last_refusal_time else None,
            "crisis_type": self.crisis_type.value if self.crisis_type else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RefusalHistory":
        crisis_type = data.get("crisis_type")
        return cls(
            refusal_count=int(data.get("refusal_count", 0)),
            level=int(data.get("level", 0)),
            last_refusal_time=_parse_time(data.get("last_refusal_time")),
            crisis_type=CrisisType(crisis_type) if crisis_type else None,
        )


@dataclass
class SessionState:
    """
    Everything the crisis core remembers about one client session.

    Single writer: turns for a session are processed strictly in arrival
    order, so the asked-once flag and escalation counters never regress.
    """

    session_id: str

    # Response coordinator
    asked_location: bool = False
    shared_local_resources: bool = False
    location: Optional[LocationInfo] = None
    escalation_counts: dict[str, int] = field(default_factory=dict)

    # Crisis history
    last_crisis_type: Optional[CrisisType] = None
    crisis_count: int = 0

    # Phone collection and refusals
    phone: PhoneRequestState = field(default_factory=PhoneRequestState)
    refusals: RefusalHistory = field(default_factory=RefusalHistory)

    # Metadata
    message_count: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def has_confirmed_crisis(self) -> bool:
        return self.crisis_count > 0

    def advance_tier(self, crisis_type: CrisisType) -> PhrasingTier:
        """Tier for this detection; advances the per-category counter."""
        previous = self.escalation_counts.get(crisis_type.value, 0)
        self.escalation_counts[crisis_type.value] = previous + 1
        return PhrasingTier.for_count(previous)

    def record_crisis(self, crisis_type: CrisisType) -> None:
        self.last_crisis_type = crisis_type
        self.crisis_count += 1

    def remember_location(self, location: Optional[LocationInfo]) -> None:
        if location is not None and location.is_sufficient:
            self.location = location

    def duration_text(self) -> str:
        """Elapsed session time, e.g. "12m 5s"."""
        elapsed = int((_utcnow() - self.created_at).total_seconds())
        minutes, seconds = divmod(max(elapsed, 0), 60)
        return f"{minutes}m {seconds}s"

    def to_json(self) -> str:
        """Convert to JSON string for Redis storage."""
        data = {
            "session_id": self.session_id,
            "asked_location": self.asked_location,
            "shared_local_resources": self.shared_local_resources,
            "location": self.location.model_dump() if self.location else None,
            "escalation_counts": self.escalation_counts,
            "last_crisis_type": self.last_crisis_type.value if self.last_crisis_type else None,
            "crisis_count": self.crisis_count,
            "phone": self.phone.to_dict(),
            "refusals": self.refusals.to_dict(),
            "message_count": self.message_count,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        return json.dumps(data)

    @classmethod
    def from_json(cls, json_str: str) -> "SessionState":
        """Create from JSON string.

        Raises:
            ValueError, KeyError, TypeError: on malformed state
        """
        data = _object(json.loads(json_str), "session state")
        location = _object(data.get("location"), "location")
        last_crisis_type = data.get("last_crisis_type")
        escalation_counts = {
            CrisisType(key).value: int(value)
            for key, value in _object(data.get("escalation_counts"), "escalation_counts").items()
        }
        return cls(
            session_id=data["session_id"],
            asked_location=bool(data.get("asked_location", False)),
            shared_local_resources=bool(data.get("shared_local_resources", False)),
            location=LocationInfo(**location) if location else None,
            escalation_counts=escalation_counts,
            last_crisis_type=CrisisType(last_crisis_type) if last_crisis_type else None,
            crisis_count=int(data.get("crisis_count", 0)),
            phone=PhoneRequestState.from_dict(_object(data.get("phone"), "phone")),
            refusals=RefusalHistory.from_dict(_object(data.get("refusals"), "refusals")),
            message_count=int(data.get("message_count", 0)),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return json.loads(self.to_json())
