"""Shared pytest fixtures for test suite."""

import os

# Settings are validated at import time; provide test values before any chatguard import.
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("MODERATION_LOG_ASYNC", "false")
os.environ.setdefault("USER_STATUS_CACHE_TTL_SECONDS", "0")

import pytest  # noqa: E402

# =============================================================================
# Clock Fixture
# =============================================================================


class FakeClock:
    """Monotonic clock the tests can advance by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Cached Singleton Reset
# =============================================================================


@pytest.fixture(autouse=True)
def reset_moderation_singletons():
    """Drop process-wide clients between tests."""
    from chatguard.core.cache import reset_cache_client
    from chatguard.core.database import reset_supabase
    from chatguard.services.moderation_service import get_moderation_service

    get_moderation_service.cache_clear()
    reset_supabase()
    reset_cache_client()
    yield
    get_moderation_service.cache_clear()
    reset_supabase()
    reset_cache_client()
