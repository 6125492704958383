"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
import uuid
from datetime import timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from cmi5_runtime.config import setup_logging  # noqa: E402
from cmi5_runtime.core.durations import utc_now  # noqa: E402
from cmi5_runtime.core.errors import TransportError  # noqa: E402
from cmi5_runtime.core.launch import (  # noqa: E402
    LaunchContext,
    LaunchData,
    LaunchMode,
    LaunchParameters,
    MoveOnCriteria,
)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Route loguru output to stderr at DEBUG for test runs."""
    setup_logging("DEBUG")


class FakeTransport:
    """In-memory Transport that records every call."""

    def __init__(self, launch_data=None, learner_preferences=None, auth_token="dGVzdDp0b2tlbg=="):
        self.launch_data = launch_data if launch_data is not None else {
            "contextTemplate": {},
            "launchMode": "Normal",
            "moveOn": "CompletedAndPassed",
        }
        self.learner_preferences = learner_preferences if learner_preferences is not None else {}
        self.auth_token = auth_token
        self.authorized_with = None
        self.fetch_calls = []
        self.state_requests = []
        self.profile_requests = []
        self.sent = []
        self.send_count = 0
        self.fail_on_send = set()

    async def fetch_auth_token(self, fetch_url):
        self.fetch_calls.append(fetch_url)
        return self.auth_token

    def authorize(self, auth_token):
        self.authorized_with = auth_token

    async def get_state(self, agent, activity_id, state_id, registration):
        self.state_requests.append((agent, activity_id, state_id, registration))
        if isinstance(self.launch_data, Exception):
            raise self.launch_data
        return self.launch_data

    async def get_agent_profile(self, agent, profile_id):
        self.profile_requests.append((agent, profile_id))
        if isinstance(self.learner_preferences, Exception):
            raise self.learner_preferences
        return self.learner_preferences

    async def send_statement(self, statement):
        if len(self.sent) in self.fail_on_send:
            raise TransportError("LRS rejected statement", status_code=400)
        self.sent.append(statement)
        self.send_count += 1
        return [f"lrs-{self.send_count}"]

    @property
    def sent_verbs(self):
        return [s.verb["display"]["en-US"] for s in self.sent]


@pytest.fixture
def launch_parameters():
    """Launch parameters for a single registration."""
    return LaunchParameters(
        fetch="http://fake-fetch.lms.example.com/fetch",
        endpoint="http://fake-lrs.example.com/xapi/",
        actor={"objectType": "Agent", "mbox": "mailto:learner@example.com"},
        activity_id=f"https://example.com/au/{uuid.uuid4()}",
        registration=str(uuid.uuid4()),
    )


@pytest.fixture
def launch_data():
    return LaunchData(
        context_template={},
        launch_mode=LaunchMode.NORMAL,
        move_on=MoveOnCriteria.COMPLETED_AND_PASSED,
    )


@pytest.fixture
def make_context(launch_parameters, launch_data):
    """Factory for launch contexts; keyword overrides apply to LaunchData."""

    def _make(seconds_ago=0, **launch_data_overrides):
        data = launch_data.model_copy(update=launch_data_overrides) if launch_data_overrides else launch_data
        return LaunchContext(
            initialized_date=utc_now() - timedelta(seconds=seconds_ago),
            launch_parameters=launch_parameters,
            launch_data=data,
        )

    return _make


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def make_transport():
    """FakeTransport factory for tests that need custom launch data or preferences."""
    return FakeTransport
