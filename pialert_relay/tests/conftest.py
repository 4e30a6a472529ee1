"""Pytest configuration and fixtures."""
import pytest
from fastapi.testclient import TestClient

from pialert_relay.config import Settings
from pialert_relay.controller import RelayController
from pialert_relay.devices import SimulatedOutputDevice
from pialert_relay.history import PollHistory
from pialert_relay.models import AlertSnapshot, FailingTarget, Success
from pialert_relay.server.app import create_app


def alert_success(*targets):
    """Success outcome; alert is raised when any (name, failures, threshold) target is given."""
    failing = [FailingTarget(name=n, failures=f, threshold=t) for n, f, t in targets]
    return Success(snapshot=AlertSnapshot(alert=bool(failing), failing_count=len(failing),
                                          failing_targets=failing))


class StubAlertClient:
    """AlertClient stand-in returning queued outcomes, then repeating the last one."""

    def __init__(self, *outcomes, timeout=5.0):
        self.outcomes = list(outcomes) or [alert_success()]
        self.timeout = timeout
        self.calls = 0
        self.closed = False

    def poll(self):
        self.calls += 1
        if len(self.outcomes) > 1:
            return self.outcomes.pop(0)
        return self.outcomes[0]

    def close(self):
        self.closed = True


@pytest.fixture
def device():
    return SimulatedOutputDevice()


@pytest.fixture
def history():
    return PollHistory(capacity=50)


@pytest.fixture
def controller(device, history):
    return RelayController(device, history, api_url="http://pialert.test/api/v1/alert-status",
                           poll_interval_ms=30000)


@pytest.fixture
def settings():
    return Settings(PIALERT_API_KEY="TEST_KEY", PIALERT_API_URL="http://pialert.test/api/v1/alert-status",
                    POLL_INTERVAL=60000, RELAY_SIMULATE=True)


@pytest.fixture
def stub_client():
    return StubAlertClient(alert_success(("db", 3, 3)))


@pytest.fixture
def app(settings, device, stub_client):
    return create_app(settings, device=device, client=stub_client)


@pytest.fixture
def client(app):
    """FastAPI test client (lifespan not started, so no background polling)."""
    return TestClient(app)


@pytest.fixture
def make_success():
    return alert_success


@pytest.fixture
def make_client():
    return StubAlertClient
