"""
Database Models

SQLAlchemy ORM models for the crisis event log.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class CrisisEventRecord(Base):
    """
    Crisis Event model.

    Append-only, hash-chained log of crisis detections. Rows are never
    deleted; only notification_status is updated after insert.
    """

    __tablename__ = "crisis_events"
    __table_args__ = (
        Index("idx_crisis_session_time", "session_id", "timestamp"),
        Index("idx_crisis_type", "crisis_type"),
    )

    # Insertion order defines the hash chain
    sequence: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    session_id: Mapped[str] = mapped_column(String(100), nullable=False)

    user_text: Mapped[str] = mapped_column(Text, nullable=False)
    crisis_type: Mapped[str] = mapped_column(String(30), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    response_text: Mapped[str] = mapped_column(Text, nullable=False)
    detection_method: Mapped[str] = mapped_column(String(100), nullable=False)
    location: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    notification_status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)

    clinical_notes: Mapped[str] = mapped_column(Text, default="")
    risk_assessment: Mapped[str] = mapped_column(String(100), default="")
    evidence: Mapped[list] = mapped_column(JSON, default=list)
    details: Mapped[dict] = mapped_column(JSON, default=dict)

    previous_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    event_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<CrisisEventRecord(event_id={self.event_id}, crisis_type='{self.crisis_type}', "
            f"severity='{self.severity}', notification_status='{self.notification_status}')>"
        )
