"""
Integration tests for the crisis pipeline.

Exercises the full turn flow with in-memory session and event stores and
a mocked email provider.
"""

import asyncio
import json

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from crisis_core.core.location.resolver import LocationResolver
from crisis_core.core.phone.collector import PHONE_ACKNOWLEDGMENT, PHONE_REQUESTS
from crisis_core.core.response.coordinator import ResponseCoordinator
from crisis_core.core.response.templates import (
    BASE_SCRIPTS,
    LOCATION_INQUIRIES,
    LOCATION_REPLY_INTRO,
    REFUSAL_SCRIPTS,
    SAFETY_FALLBACK_RESPONSE,
)
from crisis_core.core.session.manager import SessionStore
from crisis_core.infra.geocoding import GeocodingError
from crisis_core.infra.notifications import EmailNotificationClient, MailtoHandoff
from crisis_core.safety.audit_logger import InMemoryCrisisEventStore
from crisis_core.safety.crisis_detector import CrisisDetector
from crisis_core.safety.dispatcher import NotificationDispatcher
from crisis_core.safety.models import (
    AuditEventType,
    Coordinates,
    CrisisType,
    LocationInfo,
    NotificationStatus,
    PhrasingTier,
    Severity,
)
from crisis_core.safety.patterns import DETECTION_METHOD
from crisis_core.safety.pipeline import (
    FALLBACK_DETECTION_METHOD,
    PHONE_DETECTION_METHOD,
    CrisisPipeline,
)


def build_pipeline(store, sent, mailto, status_code=200, geocoder=None) -> CrisisPipeline:
    """Wire a pipeline with in-memory stores and a mocked provider."""
    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content)["template_params"])
        return httpx.Response(status_code)

    if geocoder is None:
        geocoder = MagicMock()
        geocoder.reverse = AsyncMock(side_effect=GeocodingError("offline"))
        geocoder.close = AsyncMock()

    dispatcher = NotificationDispatcher(
        store=store,
        email_client=EmailNotificationClient(
            api_url="https://mail.test/send",
            service_id="service",
            template_id="template",
            user_id="public-key",
            transport=httpx.MockTransport(handler),
        ),
        mailto=mailto,
    )
    return CrisisPipeline(
        detector=CrisisDetector(),
        coordinator=ResponseCoordinator(resolver=LocationResolver(geocoder=geocoder)),
        sessions=SessionStore(),
        dispatcher=dispatcher,
    )


@pytest.fixture(autouse=True)
def no_redis():
    """Keep session state in memory."""
    with patch("crisis_core.core.session.manager.get_redis", return_value=None):
        yield


@pytest.fixture
def store():
    """Create in-memory crisis event store."""
    return InMemoryCrisisEventStore()


@pytest.fixture
def sent():
    """Collect template params posted to the provider."""
    return []


@pytest.fixture
def mailto():
    """Create mail-draft outbox."""
    return MailtoHandoff("team@example.org")


@pytest.fixture
def pipeline(store, sent, mailto):
    """Create pipeline with a working provider."""
    return build_pipeline(store, sent, mailto)


class TestCrisisTurns:
    """Test single crisis turns end to end."""

    @pytest.mark.asyncio
    async def test_explicit_suicide(self, pipeline, store, sent):
        """Test explicit suicidal intent is critical and recorded."""
        result = await pipeline.evaluate_turn("I want to kill myself", "session-1")
        await pipeline.dispatcher.drain()

        assert result.crisis_detected
        assert result.crisis_type == CrisisType.SUICIDE
        assert result.severity == Severity.CRITICAL
        assert "988" in result.response_text
        assert result.needs_location
        assert not result.has_local_resources

        events = await store.list_events()
        assert len(events) == 1
        assert events[0].detection_method == DETECTION_METHOD
        assert events[0].notification_status == NotificationStatus.SENT
        assert events[0].response_text == result.response_text
        assert sent[0]["subject"] == (
            "[CRITICAL] SUICIDE CRISIS - Unknown location - Clinical Review Required"
        )

    @pytest.mark.asyncio
    async def test_eating_concern_not_small_talk(self, pipeline):
        """Test days without food is a high eating concern."""
        result = await pipeline.evaluate_turn(
            "I haven't eaten in three days and I'm scared", "session-1"
        )

        assert result.crisis_type == CrisisType.EATING_DISORDER
        assert result.severity == Severity.HIGH
        assert "1-800-931-2237" in result.response_text
        assert not result.phone_requested

    @pytest.mark.asyncio
    async def test_food_small_talk(self, pipeline, store):
        """Test benign food talk is not a crisis."""
        result = await pipeline.evaluate_turn(
            "I love the food at the West Side Market", "session-1"
        )
        await pipeline.dispatcher.drain()

        assert not result.crisis_detected
        assert not result.needs_location
        assert result.response_text is None
        assert await store.list_events() == []

    @pytest.mark.asyncio
    async def test_known_location_in_message(self, pipeline, store, sent):
        """Test a stated location gives local resources and no inquiry."""
        result = await pipeline.evaluate_turn(
            "I want to kill myself and I live in Akron", "session-1"
        )
        await pipeline.dispatcher.drain()

        assert result.has_local_resources
        assert not result.needs_location
        assert "Summit County Mobile Crisis" in result.response_text
        assert LOCATION_INQUIRIES[CrisisType.SUICIDE] not in result.response_text
        assert result.phone_requested

        events = await store.list_events()
        assert events[0].location.city == "Akron"
        assert "Akron, Summit County" in sent[0]["subject"]

    @pytest.mark.asyncio
    async def test_notification_failure(self, store, sent, mailto):
        """Test a failed provider call queues a mail draft for the client and marks failed."""
        pipeline = build_pipeline(store, sent, mailto, status_code=500)

        result = await pipeline.evaluate_turn("I want to kill myself", "session-1")
        await pipeline.dispatcher.drain()

        assert result.response_text
        events = await store.list_events()
        assert events[0].notification_status == NotificationStatus.FAILED
        drafts = pipeline.take_mail_drafts("session-1")
        assert [d.event_id for d in drafts] == [events[0].id]
        assert drafts[0].url.startswith("mailto:team@example.org")

    @pytest.mark.asyncio
    async def test_mail_draft_returned_with_next_turn(self, store, sent, mailto):
        """Test an uncollected mail draft is handed to the client on the next turn."""
        pipeline = build_pipeline(store, sent, mailto, status_code=500)

        await pipeline.evaluate_turn("I want to kill myself", "session-1")
        await pipeline.dispatcher.drain()
        second = await pipeline.evaluate_turn("where can I go", "session-1")

        assert len(second.mail_drafts) == 1
        assert second.to_dict()["mail_drafts"][0]["url"].startswith("mailto:")
        assert mailto.pending("session-1") == 0

    @pytest.mark.asyncio
    async def test_internal_failure_returns_safety_response(self, pipeline, store):
        """Test the caller always gets a safety response and the turn is recorded."""
        with patch.object(
            pipeline.coordinator, "compose", side_effect=RuntimeError("boom")
        ):
            result = await pipeline.evaluate_turn("I want to kill myself", "session-1")

        assert result.crisis_detected
        assert result.response_text == SAFETY_FALLBACK_RESPONSE
        await pipeline.dispatcher.drain()
        events = await store.list_events()
        assert len(events) == 1
        assert events[0].crisis_type == CrisisType.SUICIDE
        assert events[0].detection_method == FALLBACK_DETECTION_METHOD
        assert events[0].response_text == SAFETY_FALLBACK_RESPONSE

    @pytest.mark.asyncio
    async def test_internal_failure_without_detection_records_general_crisis(self, pipeline, store):
        """Test a failed turn with no arbitrated detection is recorded as general crisis."""
        with patch.object(pipeline.sessions, "load", side_effect=AttributeError("corrupt")):
            result = await pipeline.evaluate_turn("hello there", "session-1")
        await pipeline.dispatcher.drain()

        assert result.response_text == SAFETY_FALLBACK_RESPONSE
        assert result.crisis_type == CrisisType.GENERAL_CRISIS
        events = await store.list_events()
        assert [e.crisis_type for e in events] == [CrisisType.GENERAL_CRISIS]
        assert events[0].details == {"pipeline_error": True}

    @pytest.mark.asyncio
    async def test_failure_after_recording_not_duplicated(self, pipeline, store):
        """Test a turn failing after its event was submitted records it once."""
        with patch.object(pipeline.sessions, "save", side_effect=RuntimeError("store down")):
            result = await pipeline.evaluate_turn("I want to kill myself", "session-1")
        await pipeline.dispatcher.drain()

        assert result.response_text == SAFETY_FALLBACK_RESPONSE
        events = await store.list_events()
        assert len(events) == 1
        assert events[0].detection_method == DETECTION_METHOD


class TestSessionFlow:
    """Test behavior across turns of one session."""

    @pytest.mark.asyncio
    async def test_tier_escalation(self, pipeline, store):
        """Test repeated suicide turns escalate without resetting."""
        first = await pipeline.evaluate_turn("I want to kill myself", "session-1")
        second = await pipeline.evaluate_turn("I still want to kill myself", "session-1")
        await pipeline.dispatcher.drain()

        assert first.response_text.startswith(
            BASE_SCRIPTS[CrisisType.SUICIDE][PhrasingTier.INITIAL]
        )
        assert second.response_text.startswith(
            BASE_SCRIPTS[CrisisType.SUICIDE][PhrasingTier.FOLLOWUP]
        )
        events = await store.list_events(session_id="session-1")
        assert [e.details["tier"] for e in events] == ["initial", "followup"]

    @pytest.mark.asyncio
    async def test_location_inquiry_once(self, pipeline):
        """Test the inquiry appears on the first crisis turn only."""
        inquiry = LOCATION_INQUIRIES[CrisisType.SUICIDE]

        first = await pipeline.evaluate_turn("I want to kill myself", "session-1")
        second = await pipeline.evaluate_turn("I want to end my life", "session-1")

        assert inquiry in first.response_text
        assert inquiry not in second.response_text
        assert second.needs_location

    @pytest.mark.asyncio
    async def test_phone_request_follows_inquiry_turn(self, pipeline):
        """Test one request per turn: inquiry first, phone request next."""
        first = await pipeline.evaluate_turn("I want to kill myself", "session-1")
        second = await pipeline.evaluate_turn("I want to kill myself", "session-1")

        assert not first.phone_requested
        assert second.phone_requested
        assert second.response_text.endswith(PHONE_REQUESTS[0])

    @pytest.mark.asyncio
    async def test_phone_number_after_two_requests(self, pipeline, store, sent):
        """Test a number after two requests is PROVIDED and alerted once."""
        await pipeline.evaluate_turn("I want to kill myself", "session-1")
        await pipeline.evaluate_turn("I want to kill myself", "session-1")
        await pipeline.evaluate_turn("I still want to die", "session-1")

        session = await pipeline.sessions.load("session-1")
        assert session.phone.request_count == 2

        result = await pipeline.evaluate_turn("ok, it's 555-123-4567", "session-1")
        assert result.phone_number_received
        assert result.response_text == PHONE_ACKNOWLEDGMENT

        later = await pipeline.evaluate_turn("I want to kill myself", "session-1")
        again = await pipeline.evaluate_turn("call 555-987-6543 instead", "session-1")
        await pipeline.dispatcher.drain()

        assert not later.phone_requested
        assert not again.phone_number_received

        phone_events = [
            e for e in await store.list_events()
            if e.event_type == AuditEventType.PHONE_NUMBER_PROVIDED
        ]
        assert len(phone_events) == 1
        assert phone_events[0].severity == Severity.CRITICAL
        assert phone_events[0].detection_method == PHONE_DETECTION_METHOD
        phone_alerts = [p for p in sent if "phone_number" in p]
        assert [p["phone_number"] for p in phone_alerts] == ["(555) 123-4567"]

        session = await pipeline.sessions.load("session-1")
        assert session.phone.has_provided_number
        assert session.phone.request_count == 2

    @pytest.mark.asyncio
    async def test_phone_requests_capped(self, pipeline):
        """Test no more than three phone requests in a session."""
        results = [
            await pipeline.evaluate_turn("I want to kill myself", "session-1")
            for _ in range(6)
        ]

        assert sum(r.phone_requested for r in results) == 3

    @pytest.mark.asyncio
    async def test_phone_number_never_stored_in_events(self, pipeline, store):
        """Test event log text is redacted."""
        await pipeline.evaluate_turn(
            "I want to kill myself, call me at 555-123-4567", "session-1"
        )
        await pipeline.dispatcher.drain()

        events = await store.list_events()
        assert len(events) == 2
        for event in events:
            assert "555-123-4567" not in event.user_text
            assert "[PHONE]" in event.user_text

    @pytest.mark.asyncio
    async def test_location_reply(self, pipeline):
        """Test a location given after the inquiry returns local resources."""
        await pipeline.evaluate_turn("I want to kill myself", "session-1")

        reply = await pipeline.evaluate_turn("I'm in Cleveland", "session-1")

        assert not reply.crisis_detected
        assert reply.has_local_resources
        assert reply.response_text.startswith(
            LOCATION_REPLY_INTRO.format(place="Cleveland, Cuyahoga County")
        )

        later = await pipeline.evaluate_turn("I want to kill myself", "session-1")
        assert later.has_local_resources
        assert not later.needs_location

    @pytest.mark.asyncio
    async def test_refusal(self, pipeline, store):
        """Test a refusal after a crisis gets a refusal script."""
        await pipeline.evaluate_turn("I want to kill myself", "session-1")

        result = await pipeline.evaluate_turn("I won't call a hotline", "session-1")
        await pipeline.dispatcher.drain()

        assert result.refusal_detected
        assert not result.crisis_detected
        assert result.response_text.startswith(REFUSAL_SCRIPTS[0])
        assert result.phone_requested

        session = await pipeline.sessions.load("session-1")
        assert session.refusals.refusal_count == 1
        assert len(await store.list_events()) == 1

    @pytest.mark.asyncio
    async def test_refusal_without_crisis(self, pipeline):
        """Test refusal phrasing in a quiet session is left to the caller."""
        result = await pipeline.evaluate_turn("I won't call a hotline", "session-1")

        assert result.response_text is None
        assert not result.refusal_detected

    @pytest.mark.asyncio
    async def test_sessions_isolated(self, pipeline):
        """Test one session's flags never leak into another."""
        await pipeline.evaluate_turn("I want to kill myself", "session-1")

        other = await pipeline.evaluate_turn("I want to kill myself", "session-2")

        assert LOCATION_INQUIRIES[CrisisType.SUICIDE] in other.response_text
        assert other.response_text.startswith(
            BASE_SCRIPTS[CrisisType.SUICIDE][PhrasingTier.INITIAL]
        )

    @pytest.mark.asyncio
    async def test_concurrent_turns_serialized(self, pipeline):
        """Test simultaneous turns in a session are processed in order."""
        first, second = await asyncio.gather(
            pipeline.evaluate_turn("I want to kill myself", "session-1"),
            pipeline.evaluate_turn("I want to kill myself", "session-1"),
        )

        inquiry = LOCATION_INQUIRIES[CrisisType.SUICIDE]
        assert inquiry in first.response_text
        assert inquiry not in second.response_text
        session = await pipeline.sessions.load("session-1")
        assert session.escalation_counts == {"suicide": 2}
        assert session.message_count == 2


class TestDeviceLocation:
    """Test late device geolocation."""

    @pytest.mark.asyncio
    async def test_late_location_applies_next_turn(self, store, sent, mailto):
        """Test a device location resolved after a turn is used on the next."""
        geocoder = MagicMock()
        geocoder.reverse = AsyncMock(
            return_value=LocationInfo(city="Akron", region="Summit County", lat=41.08, lon=-81.52)
        )
        geocoder.close = AsyncMock()
        pipeline = build_pipeline(store, sent, mailto, geocoder=geocoder)

        first = await pipeline.evaluate_turn(
            "I want to kill myself", "session-1", coordinates=Coordinates(41.08, -81.52)
        )
        await pipeline.dispatcher.drain()

        assert first.needs_location
        geocoder.reverse.assert_awaited_once_with(41.08, -81.52)
        saved = await pipeline.sessions.load("session-1")
        assert saved.location.city == "Akron"
        assert saved.message_count == 1

        second = await pipeline.evaluate_turn("I want to kill myself", "session-1")

        assert second.has_local_resources
        assert "Summit County Mobile Crisis" in second.response_text

    @pytest.mark.asyncio
    async def test_failed_lookup_keeps_asking(self, pipeline):
        """Test an unavailable device location leaves the session without one."""
        await pipeline.evaluate_turn(
            "I want to kill myself", "session-1", coordinates=Coordinates(41.0, -81.0)
        )
        await pipeline.dispatcher.drain()

        second = await pipeline.evaluate_turn("I want to kill myself", "session-1")

        assert second.needs_location
        assert not second.has_local_resources
