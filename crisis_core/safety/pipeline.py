"""
Crisis Pipeline Orchestrator

Single entry point for one user turn:
classify -> arbitrate -> locate -> compose -> (background) record & notify.

Nothing raises past evaluate_turn; on total failure the caller still
gets a safety-oriented response.
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from typing import Optional

from crisis_core.core.location.resolver import is_location_sufficient
from crisis_core.core.phone.collector import (
    PHONE_ACKNOWLEDGMENT,
    PhoneNumberCollector,
    redact_phone_numbers,
)
from crisis_core.core.response.coordinator import ComposedResponse, ResponseCoordinator
from crisis_core.core.response.templates import REFUSAL_SCRIPTS, SAFETY_FALLBACK_RESPONSE
from crisis_core.core.session.manager import SessionStore, get_session_store
from crisis_core.core.session.models import SessionState
from crisis_core.infra.notifications import MailDraft
from crisis_core.safety.clinical import assess_risk_level, generate_clinical_notes
from crisis_core.safety.crisis_detector import CrisisDetector, get_detector
from crisis_core.safety.dispatcher import NotificationDispatcher, get_dispatcher
from crisis_core.safety.models import (
    Arbitration,
    AuditEventType,
    Coordinates,
    CrisisEvent,
    CrisisType,
    LocationInfo,
    MatchEvidence,
    Severity,
)
from crisis_core.safety.patterns import DETECTION_METHOD
from crisis_core.safety.severity import arbitrate

logger = logging.getLogger(__name__)

PHONE_DETECTION_METHOD = "phone_number_collection"
FALLBACK_DETECTION_METHOD = "pipeline_fallback"


@dataclass
class TurnResult:
    """Result of evaluating one user turn."""

    session_id: str
    response_text: Optional[str] = None
    crisis_detected: bool = False
    needs_location: bool = False
    has_local_resources: bool = False

    crisis_type: Optional[CrisisType] = None
    severity: Optional[Severity] = None
    evidence: list[MatchEvidence] = field(default_factory=list)

    phone_requested: bool = False
    phone_number_received: bool = False
    refusal_detected: bool = False

    # Clinician mail drafts for the client to open (failed notifications)
    mail_drafts: list[MailDraft] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "response_text": self.response_text,
            "crisis_detected": self.crisis_detected,
            "needs_location": self.needs_location,
            "has_local_resources": self.has_local_resources,
            "crisis_type": self.crisis_type.value if self.crisis_type else None,
            "severity": self.severity.value if self.severity else None,
            "evidence": [e.model_dump(mode="json") for e in self.evidence],
            "phone_requested": self.phone_requested,
            "phone_number_received": self.phone_number_received,
            "refusal_detected": self.refusal_detected,
            "mail_drafts": [draft.to_dict() for draft in self.mail_drafts],
        }


class CrisisPipeline:
    """
    Orchestrates the crisis components for one turn at a time per session.

    Turns for the same session are serialized in arrival order; turns
    for different sessions run independently.

    Usage:
        pipeline = CrisisPipeline()
        result = await pipeline.evaluate_turn("I want to kill myself", session_id)
        if result.response_text:
            send_to_user(result.response_text)
    """

    def __init__(
        self,
        detector: Optional[CrisisDetector] = None,
        coordinator: Optional[ResponseCoordinator] = None,
        sessions: Optional[SessionStore] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        phone_collector: Optional[PhoneNumberCollector] = None,
    ):
        self.detector = detector or get_detector()
        self.coordinator = coordinator or ResponseCoordinator()
        self.sessions = sessions or get_session_store()
        self.dispatcher = dispatcher or get_dispatcher()
        self.phone = phone_collector or PhoneNumberCollector()

        self._session_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

        logger.info("CrisisPipeline initialized")

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._session_locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._session_locks[session_id] = lock
        return lock

    async def evaluate_turn(
        self,
        text: str,
        session_id: str,
        coordinates: Optional[Coordinates] = None,
    ) -> TurnResult:
        """
        Evaluate one user message.

        Args:
            text: User message
            session_id: Opaque client session identifier
            coordinates: Device position, if the client shared one

        Returns:
            TurnResult; response_text is None for non-crisis turns
        """
        async with self._lock_for(session_id):
            recorded: list[CrisisEvent] = []
            try:
                result = await self._evaluate(text, session_id, coordinates, recorded)
            except Exception as e:
                logger.exception(f"Crisis pipeline failed for session {session_id}: {e}")
                result = self._fail_closed(text, session_id, recorded)

        result.mail_drafts = self.take_mail_drafts(session_id)
        return result

    def take_mail_drafts(self, session_id: str) -> list[MailDraft]:
        """Collect the clinician mail drafts queued for a session."""
        return self.dispatcher.mailto.take(session_id)

    def pending_mail_drafts(self, session_id: str) -> int:
        return self.dispatcher.mailto.pending(session_id)

    def _fail_closed(self, text: str, session_id: str, recorded: list[CrisisEvent]) -> TurnResult:
        """
        Safety response for a turn that failed part way through.

        The turn is still recorded as a crisis event unless one was
        already submitted; with no arbitrated detection it is recorded
        as general_crisis.
        """
        result = TurnResult(
            session_id=session_id,
            response_text=SAFETY_FALLBACK_RESPONSE,
            crisis_detected=True,
        )
        try:
            evidence = self.detector.classify(text)
            arbitration = arbitrate(evidence) or Arbitration(CrisisType.GENERAL_CRISIS, Severity.HIGH)
            result.crisis_type = arbitration.crisis_type
            result.severity = arbitration.severity
            result.evidence = evidence
            if recorded:
                return result

            event = CrisisEvent(
                session_id=session_id,
                user_text=redact_phone_numbers(text),
                crisis_type=arbitration.crisis_type,
                severity=arbitration.severity,
                response_text=SAFETY_FALLBACK_RESPONSE,
                detection_method=FALLBACK_DETECTION_METHOD,
                clinical_notes=generate_clinical_notes(text, arbitration.crisis_type, arbitration.severity),
                risk_assessment=assess_risk_level(text),
                evidence=list(evidence),
                details={"pipeline_error": True},
            )
            self.dispatcher.submit(self.dispatcher.record(event))
        except Exception as e:
            logger.critical(f"Could not record failed turn for session {session_id}: {e}")
        return result

    async def _evaluate(
        self,
        text: str,
        session_id: str,
        coordinates: Optional[Coordinates],
        recorded: list[CrisisEvent],
    ) -> TurnResult:
        session = await self.sessions.load(session_id)
        session.message_count += 1

        # ==================================
        # Step 1: Classification
        # ==================================
        evidence = self.detector.classify(text)
        arbitration = arbitrate(evidence)
        had_crisis = session.has_confirmed_crisis

        result = TurnResult(session_id=session_id, evidence=evidence)
        parts: list[str] = []

        text_location = self.coordinator.resolver.resolve_from_text(text)
        session.remember_location(text_location)
        location = text_location if is_location_sufficient(text_location) else session.location

        # ==================================
        # Step 2: Callback number (any turn once a crisis is active)
        # ==================================
        phone_number = None
        if arbitration is not None or had_crisis:
            phone_number = self.phone.receive(text, session.phone)

        # ==================================
        # Step 3: Compose
        # ==================================
        composed: Optional[ComposedResponse] = None
        phone_type: Optional[CrisisType] = None

        if arbitration is not None:
            composed = self.coordinator.compose(arbitration, session, location)
            session.record_crisis(arbitration.crisis_type)
            parts.append(composed.text)

            result.crisis_detected = True
            result.crisis_type = arbitration.crisis_type
            result.severity = arbitration.severity
            result.needs_location = composed.needs_location
            result.has_local_resources = composed.has_local_resources
            if not composed.inquiry_emitted:
                phone_type = arbitration.crisis_type

        elif had_crisis:
            if self.detector.is_refusal(text):
                level = session.refusals.record(session.last_crisis_type)
                parts.append(REFUSAL_SCRIPTS[level])
                result.refusal_detected = True
                phone_type = session.last_crisis_type
                logger.info(f"Resource refusal in session {session_id}: level={level}")

            elif self._is_location_reply(session, text_location):
                reply = self.coordinator.compose_location_reply(session.last_crisis_type, text_location)
                if reply:
                    parts.append(reply)
                    session.shared_local_resources = True
                    result.has_local_resources = True

        if phone_number:
            parts.append(PHONE_ACKNOWLEDGMENT)
            result.phone_number_received = True
        elif phone_type is not None and self.phone.should_request(phone_type, session.phone):
            parts.append(self.phone.request(session.phone))
            result.phone_requested = True

        result.response_text = "\n\n".join(parts) if parts else None

        # ==================================
        # Step 4: Background audit & notification
        # ==================================
        if arbitration is not None:
            event = self._crisis_event(
                text, session, arbitration, composed, result.response_text, location, evidence
            )
            self.dispatcher.submit(self.dispatcher.record(event))
            recorded.append(event)

        if phone_number:
            phone_event = self._phone_event(text, session, location)
            self.dispatcher.submit(self.dispatcher.record_phone_number(phone_event, phone_number))

        if arbitration is not None and not is_location_sufficient(location) and coordinates is not None:
            self.dispatcher.submit(self._lookup_device_location(session_id, coordinates))

        await self.sessions.save(session)
        return result

    @staticmethod
    def _is_location_reply(session: SessionState, text_location: Optional[LocationInfo]) -> bool:
        return (
            session.asked_location
            and not session.shared_local_resources
            and session.last_crisis_type is not None
            and is_location_sufficient(text_location)
        )

    def _details(self, session: SessionState) -> dict:
        return {
            "message_count": session.message_count,
            "session_duration": session.duration_text(),
            "refusal_history": session.refusals.to_dict(),
            "phone_request_count": session.phone.request_count,
        }

    def _crisis_event(
        self,
        text: str,
        session: SessionState,
        arbitration: Arbitration,
        composed: ComposedResponse,
        response_text: str,
        location: Optional[LocationInfo],
        evidence: list[MatchEvidence],
    ) -> CrisisEvent:
        details = self._details(session)
        details["tier"] = composed.tier.value
        details["inquiry_emitted"] = composed.inquiry_emitted
        return CrisisEvent(
            session_id=session.session_id,
            user_text=redact_phone_numbers(text),
            crisis_type=arbitration.crisis_type,
            severity=arbitration.severity,
            response_text=response_text,
            detection_method=DETECTION_METHOD,
            location=location,
            clinical_notes=generate_clinical_notes(text, arbitration.crisis_type, arbitration.severity),
            risk_assessment=assess_risk_level(text),
            evidence=list(evidence),
            details=details,
        )

    def _phone_event(
        self,
        text: str,
        session: SessionState,
        location: Optional[LocationInfo],
    ) -> CrisisEvent:
        return CrisisEvent(
            session_id=session.session_id,
            event_type=AuditEventType.PHONE_NUMBER_PROVIDED,
            user_text=redact_phone_numbers(text),
            crisis_type=session.last_crisis_type or CrisisType.GENERAL_CRISIS,
            severity=Severity.CRITICAL,
            response_text=PHONE_ACKNOWLEDGMENT,
            detection_method=PHONE_DETECTION_METHOD,
            location=location,
            details=self._details(session),
        )

    async def _lookup_device_location(self, session_id: str, coordinates: Coordinates) -> None:
        """Late device location: logged for audit, saved for the next turn."""
        location = await self.coordinator.resolver.resolve_from_device(coordinates)
        if not is_location_sufficient(location):
            return

        async with self._lock_for(session_id):
            session = await self.sessions.load(session_id)
            session.remember_location(location)
            await self.sessions.save(session)
        logger.warning(
            f"CRISIS AUDIT: device location for session {session_id}: {location.describe()}"
        )

    async def close(self) -> None:
        await self.dispatcher.close()
        await self.coordinator.resolver.close()


# ==================================
# Singleton
# ==================================

_pipeline_instance: Optional[CrisisPipeline] = None


def get_crisis_pipeline() -> CrisisPipeline:
    """
    Get or create singleton CrisisPipeline.

    Returns:
        CrisisPipeline instance
    """
    global _pipeline_instance
    if _pipeline_instance is None:
        _pipeline_instance = CrisisPipeline()
    return _pipeline_instance


async def evaluate_turn(
    text: str,
    session_id: str,
    coordinates: Optional[Coordinates] = None,
) -> TurnResult:
    """
    Convenience function to evaluate one turn.

    Args:
        text: User message
        session_id: Client session identifier
        coordinates: Optional device position

    Returns:
        TurnResult
    """
    return await get_crisis_pipeline().evaluate_turn(text, session_id, coordinates)
