"""
Audit & Notification Dispatcher

Persist first, then notify. The two steps are independent failure
domains: a failed notification never unwinds the stored event, and
nothing here raises to the caller.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from crisis_core.infra.notifications import (
    EmailNotificationClient,
    MailtoHandoff,
    NotificationDeliveryError,
)
from crisis_core.safety.alerts import CrisisAlert, build_crisis_alert, build_phone_alert
from crisis_core.safety.audit_logger import CrisisEventStore, get_event_store
from crisis_core.safety.models import CrisisEvent, NotificationStatus

logger = logging.getLogger(__name__)

EventCallback = Callable[[CrisisEvent], None]


class NotificationDispatcher:
    """
    Durable crisis recording with best-effort clinician notification.

    Sequence per event:
    1. Append to the crisis event store (own failure guard)
    2. One POST to the email provider, never retried
    3. On failure, queue a pre-filled draft for the session's client and
       mark the stored event failed

    Usage:
        dispatcher = NotificationDispatcher(store=InMemoryCrisisEventStore())
        dispatcher.submit(dispatcher.record(event))
        await dispatcher.drain()
    """

    def __init__(
        self,
        store: Optional[CrisisEventStore] = None,
        email_client: Optional[EmailNotificationClient] = None,
        mailto: Optional[MailtoHandoff] = None,
        on_event_recorded: Optional[EventCallback] = None,
    ):
        """
        Args:
            store: Crisis event store (SQL store if omitted)
            email_client: Provider client
            mailto: Mail-draft fallback
            on_event_recorded: Called once per event after its final status is known
        """
        self.store = store or get_event_store()
        self.email_client = email_client or EmailNotificationClient()
        self.mailto = mailto or MailtoHandoff()
        self.on_event_recorded = on_event_recorded
        self._pending: set[asyncio.Task] = set()

    async def record(self, event: CrisisEvent) -> CrisisEvent:
        """Persist and notify for a crisis detection. Never raises."""
        return await self._dispatch(event, build_crisis_alert(event))

    async def record_phone_number(self, event: CrisisEvent, phone_number: str) -> CrisisEvent:
        """Persist and notify for a provided callback number. Never raises."""
        return await self._dispatch(event, build_phone_alert(event, phone_number))

    async def _dispatch(self, event: CrisisEvent, alert: CrisisAlert) -> CrisisEvent:
        # Step 1: durability. Shielded so a superseded turn cannot cancel
        # a write that has already started.
        stored = True
        try:
            await asyncio.shield(self.store.append(event))
        except Exception as e:
            stored = False
            logger.critical(f"Failed to persist crisis event {event.id}: {e}")

        # Step 2: single notification attempt
        try:
            await self.email_client.send(alert.template_params)
            status = NotificationStatus.SENT
        except NotificationDeliveryError as e:
            logger.error(f"Clinician notification failed for {event.id}: {e}")
            status = NotificationStatus.FAILED
        except Exception as e:
            logger.error(f"Unexpected notification error for {event.id}: {e}")
            status = NotificationStatus.FAILED

        # Step 3: out-of-band fallback
        if status == NotificationStatus.FAILED:
            try:
                self.mailto.queue(event.session_id, event.id, alert.subject, alert.body)
            except Exception as e:
                logger.critical(
                    f"All notification channels failed for crisis event {event.id}: {e}"
                )

        event.notification_status = status
        if stored:
            try:
                await self.store.mark_status(event.id, status)
            except Exception as e:
                logger.error(f"Failed to update notification status for {event.id}: {e}")

        self._notify_recorded(event)
        return event

    def _notify_recorded(self, event: CrisisEvent) -> None:
        if self.on_event_recorded is None:
            return
        try:
            self.on_event_recorded(event)
        except Exception as e:
            logger.error(f"Crisis event callback failed: {e}")

    # ==================================
    # Background execution
    # ==================================

    def submit(self, job: Awaitable) -> asyncio.Task:
        """Run a dispatch job in the background and track it."""
        task = asyncio.ensure_future(job)
        self._pending.add(task)
        task.add_done_callback(self._job_done)
        return task

    def _job_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning("Crisis dispatch job was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Crisis dispatch job failed: {error}")

    async def drain(self) -> None:
        """Wait for every background job submitted so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending_jobs(self) -> int:
        return len(self._pending)

    async def close(self) -> None:
        await self.drain()
        await self.email_client.close()


# ==================================
# Singleton
# ==================================

_dispatcher_instance: Optional[NotificationDispatcher] = None


def get_dispatcher() -> NotificationDispatcher:
    """
    Get or create singleton NotificationDispatcher.

    Returns:
        NotificationDispatcher instance
    """
    global _dispatcher_instance
    if _dispatcher_instance is None:
        _dispatcher_instance = NotificationDispatcher()
    return _dispatcher_instance
