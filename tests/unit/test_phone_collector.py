"""Tests for callback phone-number collection."""

import pytest

from crisis_core.core.phone.collector import (
    PHONE_REQUESTS,
    PhoneCollectionState,
    PhoneNumberCollector,
    extract_phone_number,
    format_phone_number,
    redact_phone_numbers,
)
from crisis_core.core.session.models import PhoneRequestState
from crisis_core.safety.models import CrisisType


class TestPhoneExtraction:
    """Test permissive US phone extraction."""

    @pytest.mark.parametrize("text", [
        "555-123-4567",
        "(555) 123-4567",
        "(555)123-4567",
        "555.123.4567",
        "555 123 4567",
        "5551234567",
        "1-555-123-4567",
        "you can reach me at 555-123-4567 after six",
    ])
    def test_formats(self, text):
        """Test common formats reduce to ten digits."""
        assert extract_phone_number(text) == "5551234567"

    @pytest.mark.parametrize("text", [
        "",
        None,
        "I'm 23 and it's been 3 days",
        "order 123456789012",
        "call 555-1234",
    ])
    def test_no_number(self, text):
        """Test text without a full number yields None."""
        assert extract_phone_number(text) is None

    def test_format(self):
        """Test ten digits are formatted for alerts."""
        assert format_phone_number("5551234567") == "(555) 123-4567"
        assert format_phone_number("12345") == "12345"

    def test_redact(self):
        """Test numbers are replaced before logging."""
        assert redact_phone_numbers("call me at 555-123-4567") == "call me at [PHONE]"
        assert redact_phone_numbers("no number here") == "no number here"


class TestPhoneNumberCollector:
    """Test the collection state machine."""

    @pytest.fixture
    def collector(self):
        """Create collector."""
        return PhoneNumberCollector()

    @pytest.fixture
    def phone(self):
        """Create fresh request state."""
        return PhoneRequestState()

    def test_initial_state(self, collector, phone):
        """Test a new session has not been asked."""
        assert collector.state_of(phone) == PhoneCollectionState.NOT_REQUESTED

    @pytest.mark.parametrize("crisis_type", [
        CrisisType.SUICIDE,
        CrisisType.SELF_HARM,
        CrisisType.GENERAL_CRISIS,
    ])
    def test_high_risk_types_eligible(self, collector, phone, crisis_type):
        """Test high-risk categories may request a number."""
        assert collector.should_request(crisis_type, phone)

    @pytest.mark.parametrize("crisis_type", [
        CrisisType.EATING_DISORDER,
        CrisisType.SUBSTANCE_USE,
        None,
    ])
    def test_other_types_not_eligible(self, collector, phone, crisis_type):
        """Test other categories never request a number."""
        assert not collector.should_request(crisis_type, phone)

    def test_persistence_levels(self, collector, phone):
        """Test each request escalates phrasing up to three asks."""
        texts = [collector.request(phone) for _ in range(3)]

        assert texts == PHONE_REQUESTS
        assert phone.request_count == 3
        assert phone.persistence_level == 2
        assert phone.last_request_time is not None
        assert collector.state_of(phone) == PhoneCollectionState.EXHAUSTED

    def test_no_fourth_request(self, collector, phone):
        """Test the fourth request is refused."""
        for _ in range(3):
            collector.request(phone)

        assert not collector.should_request(CrisisType.SUICIDE, phone)
        with pytest.raises(ValueError):
            collector.request(phone)
        assert phone.request_count == 3

    def test_persistence_invariant(self, collector, phone):
        """Test persistence level tracks the request count."""
        for expected_count in range(1, 4):
            collector.request(phone)
            assert phone.request_count == expected_count
            assert phone.persistence_level == min(expected_count - 1, 2)

    def test_receive_after_requests(self, collector, phone):
        """Test a number after two requests completes collection."""
        collector.request(phone)
        collector.request(phone)

        number = collector.receive("sure, it's (555) 123-4567", phone)

        assert number == "5551234567"
        assert phone.phone_number == "5551234567"
        assert collector.state_of(phone) == PhoneCollectionState.PROVIDED
        assert not collector.should_request(CrisisType.SUICIDE, phone)

    def test_receive_without_request(self, collector, phone):
        """Test a volunteered number is accepted from any state."""
        assert collector.receive("my number is 555 123 4567", phone) == "5551234567"
        assert collector.state_of(phone) == PhoneCollectionState.PROVIDED

    def test_receive_after_exhausted(self, collector, phone):
        """Test a number after three asks is still accepted."""
        for _ in range(3):
            collector.request(phone)

        assert collector.receive("5551234567", phone) == "5551234567"
        assert collector.state_of(phone) == PhoneCollectionState.PROVIDED

    def test_provided_is_terminal(self, collector, phone):
        """Test a second number is ignored and no request follows."""
        collector.receive("555-123-4567", phone)

        assert collector.receive("555-987-6543", phone) is None
        assert phone.phone_number == "5551234567"
        with pytest.raises(ValueError):
            collector.request(phone)

    def test_receive_no_number(self, collector, phone):
        """Test text without a number leaves the state unchanged."""
        assert collector.receive("I'd rather not", phone) is None
        assert collector.state_of(phone) == PhoneCollectionState.NOT_REQUESTED
