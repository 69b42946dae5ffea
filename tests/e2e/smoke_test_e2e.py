"""
E2E smoke tests for a running Roger crisis core.

Notifications go to whatever provider the instance is configured with,
so point it at a test template first. Not collected by a plain `pytest`
run; call the file explicitly:

    CRISIS_CORE_URL=http://localhost:8000 pytest tests/e2e/smoke_test_e2e.py -v

Redis is optional on the instance; sessions fall back to memory.
"""

import os

import httpx
import pytest

BASE_URL = os.getenv("CRISIS_CORE_URL", "http://localhost:8000").rstrip("/")
TIMEOUT = float(os.getenv("E2E_TIMEOUT", "30"))


class TurnClient:
    """One chat tab: keeps the session id the service hands back."""

    def __init__(self, http: httpx.Client):
        self.http = http
        self.session_id = None

    def send(self, message: str) -> dict:
        body = {"message": message}
        if self.session_id is not None:
            body["session_id"] = self.session_id

        response = self.http.post("/turn", json=body)
        response.raise_for_status()
        data = response.json()
        self.session_id = data["session_id"]
        return data


@pytest.fixture
def http():
    """HTTP client bound to the instance under test."""
    with httpx.Client(base_url=BASE_URL, timeout=TIMEOUT) as c:
        yield c


@pytest.fixture
def client(http):
    """Fresh chat tab."""
    return TurnClient(http)


class TestHealthCheck:
    """Verify the service is up and can record crisis events."""

    def test_health_endpoint(self, http):
        """Check /health returns 200."""
        response = http.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready_endpoint(self, http):
        """Check the crisis event log is writable."""
        response = http.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "ok"


class TestCrisis:
    """Crisis turns carry the 988 Lifeline."""

    @pytest.mark.parametrize(
        "crisis_message",
        [
            "I want to kill myself",
            "I want to end my life",
            "I'm going to hurt myself tonight",
        ],
    )
    def test_crisis_gets_988_response(self, client, crisis_message):
        """Crisis messages must include the 988 Lifeline."""
        response = client.send(crisis_message)

        assert response["crisis_detected"] is True
        assert "988" in response["response_text"]

    def test_explicit_intent_is_critical(self, client):
        """Explicit suicidal intent is critical."""
        response = client.send("I want to kill myself")

        assert response["crisis_type"] == "suicide"
        assert response["severity"] == "critical"
        assert response["needs_location"] is True


class TestEatingConcern:
    """Eating concerns route to NEDA."""

    def test_restriction_detected(self, client):
        """Days without food is a high eating concern."""
        response = client.send("I haven't eaten in three days and I'm scared")

        assert response["crisis_type"] == "eating_disorder"
        assert response["severity"] == "high"
        assert "1-800-931-2237" in response["response_text"]


class TestSmallTalk:
    """Benign messages are left to the conversation layer."""

    @pytest.mark.parametrize(
        "message",
        [
            "I love the food at the West Side Market",
            "What's your favorite restaurant in Tremont?",
            "Hi, how are you?",
        ],
    )
    def test_no_crisis(self, client, message):
        """Small talk gets no crisis response."""
        response = client.send(message)

        assert response["crisis_detected"] is False
        assert response["response_text"] is None
        assert response["needs_location"] is False


class TestSessionContinuity:
    """Per-session crisis state survives between turns."""

    def test_inquiry_not_repeated(self, client):
        """The location inquiry appears on the first crisis turn only."""
        r1 = client.send("I want to kill myself")
        r2 = client.send("I want to kill myself")

        assert r1["session_id"] == r2["session_id"]
        assert "area or city" in r1["response_text"]
        assert "area or city" not in r2["response_text"]
        assert r1["response_text"] != r2["response_text"]

    def test_session_status(self, client, http):
        """Session flags are readable after a crisis turn."""
        client.send("I want to kill myself")

        response = http.get(f"/turn/session/{client.session_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["asked_location"] is True
        assert data["escalation_counts"] == {"suicide": 1}


class TestLocationReply:
    """Location supplied after the inquiry."""

    def test_local_resources_after_inquiry(self, client):
        """Naming a city after the inquiry returns local resources."""
        client.send("I want to kill myself")
        response = client.send("I'm in Akron")

        assert response["has_local_resources"] is True
        assert "Summit County" in response["response_text"]
