"""
Turn API Endpoint.

Evaluates one user message for crisis content and returns the crisis
response, if any. Non-crisis turns return no text so the surrounding
conversation layer answers instead.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from crisis_core.core.session.manager import get_session_store
from crisis_core.infra.notifications import MailDraft
from crisis_core.safety.models import Coordinates
from crisis_core.safety.pipeline import get_crisis_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/turn", tags=["Turn"])


class TurnRequest(BaseModel):
    """User turn request."""

    message: str = Field(
        ...,
        min_length=1,
        max_length=4000,
        description="User's message",
        examples=["I don't want to be here anymore"],
    )
    session_id: Optional[str] = Field(
        default=None,
        description="Session ID kept stable for the browser tab",
        examples=["550e8400-e29b-41d4-a716-446655440000"],
    )
    latitude: Optional[float] = Field(
        default=None,
        ge=-90,
        le=90,
        description="Device latitude, if the user allowed location access",
    )
    longitude: Optional[float] = Field(
        default=None,
        ge=-180,
        le=180,
        description="Device longitude, if the user allowed location access",
    )


class MailDraftResponse(BaseModel):
    """Pre-filled clinician email for the client to open."""

    event_id: str
    subject: str
    url: str = Field(..., description="mailto: URL carrying recipient, subject and body")
    created_at: datetime


class TurnResponse(BaseModel):
    """Turn evaluation response."""

    response_text: Optional[str] = Field(
        default=None,
        description="Crisis response to show the user; null for non-crisis turns",
    )
    crisis_detected: bool = Field(
        ...,
        description="Whether this turn was classified as a crisis",
    )
    needs_location: bool = Field(
        ...,
        description="No usable location is known for this crisis turn",
    )
    has_local_resources: bool = Field(
        ...,
        description="Response includes region-specific resources",
    )
    session_id: str = Field(
        ...,
        description="Session ID for continuing the conversation",
    )
    crisis_type: Optional[str] = Field(
        default=None,
        description="Governing crisis category",
    )
    severity: Optional[str] = Field(
        default=None,
        description="Severity of the governing category",
    )
    mail_drafts: list[MailDraftResponse] = Field(
        default_factory=list,
        description="Clinician mail drafts to open on this device; non-empty only after the email provider failed",
    )


class SessionStatusResponse(BaseModel):
    """Crisis flags for a session."""

    session_id: str
    message_count: int
    crisis_count: int
    last_crisis_type: Optional[str] = None
    asked_location: bool
    shared_local_resources: bool
    location: Optional[str] = None
    escalation_counts: dict[str, int]
    phone_request_count: int
    has_provided_number: bool
    refusal_count: int
    pending_mail_drafts: int = 0


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    detail: Optional[str] = None


@router.post(
    "",
    response_model=TurnResponse,
    status_code=status.HTTP_200_OK,
    summary="Evaluate a user turn",
    description="Classify a message for crisis content and compose the crisis response.",
    responses={
        200: {"description": "Turn evaluated"},
        422: {"model": ErrorResponse, "description": "Invalid request"},
    },
)
async def evaluate(request: TurnRequest) -> TurnResponse:
    """
    Evaluate a single turn.

    The session_id should be preserved across requests so the location
    inquiry is not repeated and escalation tiers carry over.
    """
    session_id = request.session_id or str(uuid4())

    coordinates = None
    if request.latitude is not None and request.longitude is not None:
        coordinates = Coordinates(request.latitude, request.longitude)

    result = await get_crisis_pipeline().evaluate_turn(
        request.message,
        session_id,
        coordinates=coordinates,
    )

    return TurnResponse(
        response_text=result.response_text,
        crisis_detected=result.crisis_detected,
        needs_location=result.needs_location,
        has_local_resources=result.has_local_resources,
        session_id=session_id,
        crisis_type=result.crisis_type.value if result.crisis_type else None,
        severity=result.severity.value if result.severity else None,
        mail_drafts=[_draft_response(draft) for draft in result.mail_drafts],
    )


@router.get(
    "/session/{session_id}",
    response_model=SessionStatusResponse,
    summary="Get session crisis state",
    description="Retrieve the crisis flags of a session. The phone number itself is never returned.",
    responses={
        200: {"description": "Session state"},
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def get_session(session_id: str) -> SessionStatusResponse:
    """Get session crisis flags."""
    store = get_session_store()
    if not await store.exists(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )

    session = await store.load(session_id)
    return SessionStatusResponse(
        session_id=session.session_id,
        message_count=session.message_count,
        crisis_count=session.crisis_count,
        last_crisis_type=session.last_crisis_type.value if session.last_crisis_type else None,
        asked_location=session.asked_location,
        shared_local_resources=session.shared_local_resources,
        location=session.location.describe() if session.location else None,
        escalation_counts=session.escalation_counts,
        phone_request_count=session.phone.request_count,
        has_provided_number=session.phone.has_provided_number,
        refusal_count=session.refusals.refusal_count,
        pending_mail_drafts=get_crisis_pipeline().pending_mail_drafts(session_id),
    )


@router.get(
    "/session/{session_id}/mail-drafts",
    response_model=list[MailDraftResponse],
    summary="Collect pending clinician mail drafts",
    description=(
        "Return and clear the pre-filled clinician emails queued for a session "
        "after the email provider failed. The client opens each url in the "
        "device's mail app."
    ),
)
async def take_mail_drafts(session_id: str) -> list[MailDraftResponse]:
    """Drain the session's mail-draft outbox."""
    drafts = get_crisis_pipeline().take_mail_drafts(session_id)
    if drafts:
        logger.info(f"Handed {len(drafts)} mail draft(s) to the client for session {session_id}")
    return [_draft_response(draft) for draft in drafts]


def _draft_response(draft: MailDraft) -> MailDraftResponse:
    return MailDraftResponse(
        event_id=draft.event_id,
        subject=draft.subject,
        url=draft.url,
        created_at=draft.created_at,
    )
