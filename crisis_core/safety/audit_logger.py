"""
Crisis Event Log

Append-only, tamper-evident storage for crisis events. Every event is
hash-chained to its predecessor; only the notification status may be
updated after an event is appended.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timezone
from typing import Optional, Protocol

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crisis_core.infra.database import async_session_factory
from crisis_core.models.database import CrisisEventRecord
from crisis_core.safety.models import (
    AuditEventType,
    CrisisEvent,
    CrisisType,
    LocationInfo,
    MatchEvidence,
    NotificationStatus,
    Severity,
    describe_location,
)

logger = logging.getLogger(__name__)

GENESIS_HASH = "genesis"

_LOG_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MODERATE: logging.WARNING,
    Severity.HIGH: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}


@dataclass
class AuditSummary:
    """Summary of crisis events for reporting."""

    total_events: int
    events_by_type: dict[str, int]
    events_by_severity: dict[str, int]
    events_by_notification_status: dict[str, int]

    def to_dict(self) -> dict:
        return {
            "total_events": self.total_events,
            "events_by_type": self.events_by_type,
            "events_by_severity": self.events_by_severity,
            "events_by_notification_status": self.events_by_notification_status,
        }


class CrisisEventStore(Protocol):
    """Durable, append-only crisis event storage."""

    async def append(self, event: CrisisEvent) -> CrisisEvent: ...

    async def mark_status(self, event_id: str, status: NotificationStatus) -> bool: ...

    async def list_events(
        self,
        session_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[CrisisEvent]: ...

    async def get_summary(self) -> AuditSummary: ...

    async def verify_chain_integrity(self) -> tuple[bool, Optional[str]]: ...


def log_audit_line(event: CrisisEvent) -> None:
    """Emit the one-line CRISIS AUDIT record at the event's severity."""
    logger.log(
        _LOG_LEVELS.get(event.severity, logging.WARNING),
        f"CRISIS AUDIT: {event.event_type.value} | {event.crisis_type.value} | "
        f"severity={event.severity.value} | session={event.session_id} | "
        f"location={describe_location(event.location)}"
    )


def _verify_chain(events: list[CrisisEvent]) -> tuple[bool, Optional[str]]:
    previous_hash = GENESIS_HASH

    for i, event in enumerate(events):
        expected_hash = event.compute_hash(previous_hash)

        if event.event_hash != expected_hash:
            return False, f"Hash mismatch at event {i} (id={event.id})"

        if event.previous_hash != previous_hash:
            return False, f"Chain broken at event {i} (id={event.id})"

        previous_hash = event.event_hash

    return True, None


# ==================================
# In-memory store
# ==================================

class InMemoryCrisisEventStore:
    """
    Process-local crisis event log.

    Used in tests and as the degraded-mode store when no database is
    configured.

    Usage:
        store = InMemoryCrisisEventStore()
        await store.append(event)
        valid, error = await store.verify_chain_integrity()
    """

    def __init__(self):
        self._events: list[CrisisEvent] = []
        self._last_hash: str = GENESIS_HASH

    async def append(self, event: CrisisEvent) -> CrisisEvent:
        """Chain and store an event. Returns the stored event."""
        event.previous_hash = self._last_hash
        event.event_hash = event.compute_hash(self._last_hash)
        self._last_hash = event.event_hash

        self._events.append(event)
        log_audit_line(event)
        return event

    async def mark_status(self, event_id: str, status: NotificationStatus) -> bool:
        for event in self._events:
            if event.id == event_id:
                event.notification_status = status
                return True
        logger.error(f"Cannot mark unknown crisis event {event_id}")
        return False

    async def list_events(
        self,
        session_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[CrisisEvent]:
        """Events in append order, optionally for one session."""
        events = [
            e for e in self._events
            if session_id is None or e.session_id == session_id
        ]
        return events[:limit]

    async def get_summary(self) -> AuditSummary:
        events_by_type: dict[str, int] = {}
        events_by_severity: dict[str, int] = {}
        events_by_status: dict[str, int] = {}

        for event in self._events:
            events_by_type[event.crisis_type.value] = events_by_type.get(event.crisis_type.value, 0) + 1
            events_by_severity[event.severity.value] = events_by_severity.get(event.severity.value, 0) + 1
            status = event.notification_status.value
            events_by_status[status] = events_by_status.get(status, 0) + 1

        return AuditSummary(
            total_events=len(self._events),
            events_by_type=events_by_type,
            events_by_severity=events_by_severity,
            events_by_notification_status=events_by_status,
        )

    async def verify_chain_integrity(self) -> tuple[bool, Optional[str]]:
        """
        Verify the integrity of the hash chain.

        Returns:
            Tuple of (is_valid, error_message)
        """
        return _verify_chain(self._events)


# ==================================
# SQL store
# ==================================

class SqlCrisisEventStore:
    """
    Crisis event log in the `crisis_events` table.

    Appends are serialized so the hash chain follows insertion order.

    Usage:
        from crisis_core.infra.database import async_session_factory
        store = SqlCrisisEventStore(async_session_factory)
        await store.append(event)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._append_lock = asyncio.Lock()

    async def append(self, event: CrisisEvent) -> CrisisEvent:
        """Chain and insert an event. Returns the stored event."""
        async with self._append_lock:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(CrisisEventRecord.event_hash)
                    .order_by(CrisisEventRecord.sequence.desc())
                    .limit(1)
                )
                previous_hash = result.scalar_one_or_none() or GENESIS_HASH

                event.previous_hash = previous_hash
                event.event_hash = event.compute_hash(previous_hash)
                db.add(_to_record(event))
                await db.commit()

        log_audit_line(event)
        return event

    async def mark_status(self, event_id: str, status: NotificationStatus) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                update(CrisisEventRecord)
                .where(CrisisEventRecord.event_id == event_id)
                .values(notification_status=status.value)
            )
            await db.commit()

        if result.rowcount == 0:
            logger.error(f"Cannot mark unknown crisis event {event_id}")
            return False
        return True

    async def list_events(
        self,
        session_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[CrisisEvent]:
        """Events in append order, optionally for one session."""
        stmt = select(CrisisEventRecord).order_by(CrisisEventRecord.sequence)
        if session_id is not None:
            stmt = stmt.where(CrisisEventRecord.session_id == session_id)
        stmt = stmt.limit(limit)

        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return [_from_record(record) for record in result.scalars().all()]

    async def get_summary(self) -> AuditSummary:
        async with self._session_factory() as db:
            total = await db.scalar(select(func.count(CrisisEventRecord.sequence)))
            by_type = await self._count_by(db, CrisisEventRecord.crisis_type)
            by_severity = await self._count_by(db, CrisisEventRecord.severity)
            by_status = await self._count_by(db, CrisisEventRecord.notification_status)

        return AuditSummary(
            total_events=total or 0,
            events_by_type=by_type,
            events_by_severity=by_severity,
            events_by_notification_status=by_status,
        )

    async def verify_chain_integrity(self) -> tuple[bool, Optional[str]]:
        """
        Verify the integrity of the stored hash chain.

        Returns:
            Tuple of (is_valid, error_message)
        """
        async with self._session_factory() as db:
            result = await db.execute(
                select(CrisisEventRecord).order_by(CrisisEventRecord.sequence)
            )
            events = [_from_record(record) for record in result.scalars().all()]
        return _verify_chain(events)

    @staticmethod
    async def _count_by(db: AsyncSession, column) -> dict[str, int]:
        result = await db.execute(select(column, func.count()).group_by(column))
        return {value: count for value, count in result.all()}


def _to_record(event: CrisisEvent) -> CrisisEventRecord:
    return CrisisEventRecord(
        event_id=event.id,
        timestamp=event.timestamp,
        event_type=event.event_type.value,
        session_id=event.session_id,
        user_text=event.user_text,
        crisis_type=event.crisis_type.value,
        severity=event.severity.value,
        response_text=event.response_text,
        detection_method=event.detection_method,
        location=event.location.model_dump() if event.location else None,
        notification_status=event.notification_status.value,
        clinical_notes=event.clinical_notes,
        risk_assessment=event.risk_assessment,
        evidence=[e.model_dump(mode="json") for e in event.evidence],
        details=event.details,
        previous_hash=event.previous_hash,
        event_hash=event.event_hash,
    )


def _from_record(record: CrisisEventRecord) -> CrisisEvent:
    timestamp = record.timestamp
    # SQLite returns naive datetimes; events are always written in UTC
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)

    return CrisisEvent(
        id=record.event_id,
        timestamp=timestamp,
        event_type=AuditEventType(record.event_type),
        session_id=record.session_id,
        user_text=record.user_text,
        crisis_type=CrisisType(record.crisis_type),
        severity=Severity(record.severity),
        response_text=record.response_text,
        detection_method=record.detection_method,
        location=LocationInfo(**record.location) if record.location else None,
        notification_status=NotificationStatus(record.notification_status),
        clinical_notes=record.clinical_notes or "",
        risk_assessment=record.risk_assessment or "",
        evidence=[MatchEvidence(**e) for e in record.evidence or []],
        details=record.details or {},
        previous_hash=record.previous_hash,
        event_hash=record.event_hash,
    )


# ==================================
# Singleton
# ==================================

_store_instance: Optional[CrisisEventStore] = None


def get_event_store() -> CrisisEventStore:
    """
    Get or create the SQL-backed crisis event store.

    Returns:
        CrisisEventStore instance
    """
    global _store_instance
    if _store_instance is None:
        _store_instance = SqlCrisisEventStore(async_session_factory)
    return _store_instance
