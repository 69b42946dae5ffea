"""
Clinician Notification Channels

Primary: transactional-email provider (EmailJS-compatible REST API).
Fallback: a pre-filled mail draft queued for the chat client to open.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

import httpx

from crisis_core.config import get_settings

logger = logging.getLogger(__name__)

# Outbox bounds for drafts no client has collected
MAX_DRAFT_SESSIONS = 1_000
MAX_DRAFTS_PER_SESSION = 10


class NotificationDeliveryError(Exception):
    """Raised when the email provider did not accept a notification."""
    pass


class EmailNotificationClient:
    """
    HTTP client for the transactional-email provider.

    Usage:
        client = EmailNotificationClient()
        await client.send({"to": "team@example.org", "subject": "...", ...})
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        service_id: Optional[str] = None,
        template_id: Optional[str] = None,
        user_id: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            api_url: Provider send endpoint (defaults to settings)
            service_id: Provider service identifier
            template_id: Provider template identifier
            user_id: Provider public key
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        settings = get_settings()
        self.api_url = api_url or settings.notification_api_url
        self.service_id = service_id if service_id is not None else settings.notification_service_id
        self.template_id = template_id if template_id is not None else settings.notification_template_id
        self.user_id = user_id if user_id is not None else settings.notification_user_id
        self.timeout = timeout or settings.notification_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send(self, template_params: dict) -> None:
        """
        Send one notification. Not retried.

        Args:
            template_params: Values for the provider template

        Raises:
            NotificationDeliveryError: On transport error or non-2xx response
        """
        if not (self.service_id and self.template_id and self.user_id):
            raise NotificationDeliveryError("Email provider credentials are not configured")

        payload = {
            "service_id": self.service_id,
            "template_id": self.template_id,
            "user_id": self.user_id,
            "template_params": template_params,
        }

        try:
            client = await self._get_client()
            response = await client.post(self.api_url, json=payload)
        except httpx.HTTPError as e:
            raise NotificationDeliveryError(f"Email provider unreachable: {e}") from e

        if not response.is_success:
            raise NotificationDeliveryError(
                f"Email provider returned {response.status_code}: {response.text[:200]}"
            )
        logger.info(f"Clinician notification accepted ({response.status_code})")


@dataclass
class MailDraft:
    """A pre-filled clinician email waiting for a client to open it."""

    event_id: str
    session_id: str
    subject: str
    url: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "session_id": self.session_id,
            "subject": self.subject,
            "url": self.url,
            "created_at": self.created_at.isoformat(),
        }


class MailtoHandoff:
    """
    Out-of-band fallback: a pre-filled mailto draft queued for the client.

    The server has no mail client of its own, so drafts are held per
    session until the chat client collects them (with the next turn
    result or from the session's mail-draft route) and opens them on
    the user's device.

    Usage:
        handoff = MailtoHandoff("crisis-team@example.org")
        handoff.queue("session-1", event_id, "[URGENT] ...", "body text")
        drafts = handoff.take("session-1")
    """

    def __init__(
        self,
        recipient: Optional[str] = None,
        max_sessions: int = MAX_DRAFT_SESSIONS,
        max_per_session: int = MAX_DRAFTS_PER_SESSION,
    ):
        self.recipient = recipient or get_settings().clinician_email
        self._max_sessions = max_sessions
        self._max_per_session = max_per_session
        self._outbox: "OrderedDict[str, list[MailDraft]]" = OrderedDict()

    def build_url(self, subject: str, body: str) -> str:
        return f"mailto:{self.recipient}?subject={quote(subject)}&body={quote(body)}"

    def queue(self, session_id: str, event_id: str, subject: str, body: str) -> MailDraft:
        """Hold a draft until the session's client collects it."""
        draft = MailDraft(
            event_id=event_id,
            session_id=session_id,
            subject=subject,
            url=self.build_url(subject, body),
        )
        drafts = self._outbox.setdefault(session_id, [])
        drafts.append(draft)
        self._outbox.move_to_end(session_id)

        if len(drafts) > self._max_per_session:
            dropped = drafts.pop(0)
            logger.warning(f"Mail draft outbox full for session {session_id}, dropped draft for {dropped.event_id}")
        while len(self._outbox) > self._max_sessions:
            evicted, stale = self._outbox.popitem(last=False)
            logger.warning(f"Mail draft outbox full, dropped {len(stale)} uncollected draft(s) for session {evicted}")

        logger.warning(f"Crisis mail draft queued for session {session_id} (event {event_id})")
        return draft

    def take(self, session_id: str) -> list[MailDraft]:
        """Remove and return every draft queued for a session."""
        return self._outbox.pop(session_id, [])

    def pending(self, session_id: str) -> int:
        return len(self._outbox.get(session_id, []))
