"""Pytest configuration and fixtures."""

import pytest

from sms4dev.auth.authenticator import Authenticator
from sms4dev.auth.store import CredentialStore
from sms4dev.common.settings import Settings

# 2024-01-01T00:00:00Z
FIXED_NOW = 1704067200.0


class FrozenClock:
    """Controllable wall clock for freshness tests."""

    def __init__(self, now: float = FIXED_NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        access_key_id="SMS4DEV_KEY_EXAMPLE",
        access_key_secret="SMS4DEV_SECRET_EXAMPLE",
        access_keys={"K1": "S1"},
        dev_mode=True,
        timestamp_tolerance_seconds=900,
        expose_calculated_signature=False,
        allow_insecure_keys=False,
    )


@pytest.fixture
def clock() -> FrozenClock:
    """Clock pinned to FIXED_NOW."""
    return FrozenClock()


@pytest.fixture
def store() -> CredentialStore:
    """Store holding the K1/S1 credential."""
    return CredentialStore({"K1": "S1"})


@pytest.fixture
def authenticator(store: CredentialStore, clock: FrozenClock) -> Authenticator:
    """Authenticator over the test store and frozen clock."""
    return Authenticator(store, timestamp_tolerance_seconds=900, clock=clock)
