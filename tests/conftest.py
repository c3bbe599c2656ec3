"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import random
import sys

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tests.test_fixtures import (  # noqa: E402
    FakeCredentialStore,
    FakeRecordStore,
    FakeRemote,
    FakeTokenRefresher,
    GatedSleep,
    InMemoryRedis,
    RecordingSleep,
)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings(tmp_path):
    """
    Settings for an isolated gateway.

    File-backed cache under tmp_path, short cooldown, no timeline
    population on start.
    """
    from feedgate.core.config.settings import Settings

    return Settings(
        AGENT_ID="agent-1",
        CREDENTIAL_IDENTITY="bot",
        CACHE_BACKEND="file",
        CACHE_DIRECTORY=str(tmp_path / "cache"),
        RATE_LIMIT_WINDOW_SECONDS=60,
        RATE_LIMIT_MARGIN_SECONDS=1,
        POPULATE_TIMELINE_ON_START=False,
        REMOTE_CLIENT_ID="client-id",
    )


# ============================================================================
# Collaborator Fakes
# ============================================================================


@pytest.fixture
def in_memory_redis():
    """Dict-backed stand-in for RedisClient."""
    return InMemoryRedis()


@pytest.fixture
def credential_store():
    return FakeCredentialStore()


@pytest.fixture
def token_refresher():
    return FakeTokenRefresher()


@pytest.fixture
def fake_remote():
    return FakeRemote()


@pytest.fixture
def record_store():
    return FakeRecordStore()


# ============================================================================
# Timing Fixtures
# ============================================================================


@pytest.fixture
def recording_sleep():
    """Sleep replacement that records delays without waiting."""
    return RecordingSleep()


@pytest.fixture
def gated_sleep():
    """Sleep replacement that blocks until its gate is set."""
    return GatedSleep()


@pytest.fixture
def seeded_rng():
    """Deterministic jitter source."""
    return random.Random(1234)
