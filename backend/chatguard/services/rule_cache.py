"""
In-memory cache of active moderation rules.

Features:
- Snapshot of active rules with a TTL (5 minutes by default)
- Single-flight refresh: one worker thread, at most one fetch in flight
- The caller that triggers a refresh waits at most refresh_timeout seconds;
  concurrent callers are served the current snapshot without waiting
- Keeps the previous snapshot when a refresh fails, and backs off before
  trying again
- Never-fetched cache returns an empty rule list (fail-open)
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional

from pydantic import ValidationError
from supabase import Client

from chatguard.core.constants import (
    RULE_CACHE_TTL_SECONDS,
    RULE_REFRESH_RETRY_SECONDS,
    RULE_REFRESH_TIMEOUT_SECONDS,
    RULES_TABLE,
)
from chatguard.core.database import get_supabase
from chatguard.models.moderation import ModerationRule

logger = logging.getLogger(__name__)


class RuleCache:
    """Active rule snapshot owned by one moderation engine instance."""

    def __init__(
        self,
        supabase: Optional[Client] = None,
        ttl_seconds: float = RULE_CACHE_TTL_SECONDS,
        refresh_timeout: float = RULE_REFRESH_TIMEOUT_SECONDS,
        retry_after_failure: float = RULE_REFRESH_RETRY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._supabase = supabase
        self.ttl_seconds = ttl_seconds
        self.refresh_timeout = refresh_timeout
        self.retry_after_failure = retry_after_failure
        self._clock = clock

        self._rules: tuple[ModerationRule, ...] = ()
        self._fetched_at: Optional[float] = None
        self._retry_at: Optional[float] = None
        self._lock = threading.Lock()
        self._inflight: Optional[Future] = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rule-cache")

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    def get_active_rules(self, context: Optional[str] = None) -> list[ModerationRule]:
        """
        Get active rules, refreshing the snapshot when it is stale.

        Args:
            context: Applicability tag (e.g. "chat"). None returns every rule.

        Returns:
            Rules in store order. Rules without context tags match any context.
        """
        rules = self._snapshot()
        if context is None:
            return list(rules)
        return [rule for rule in rules if rule.applies_to(context)]

    def invalidate(self) -> None:
        """Force the next lookup to refresh from the store."""
        with self._lock:
            self._fetched_at = None
            self._retry_at = None

    def refresh(self) -> list[ModerationRule]:
        """Refresh now and wait (bounded) for the result."""
        self.invalidate()
        return self.get_active_rules()

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    @property
    def is_fresh(self) -> bool:
        return self._is_fresh(self._clock())

    @property
    def cached_count(self) -> int:
        return len(self._rules)

    def _is_fresh(self, now: float) -> bool:
        if self._fetched_at is None:
            return False
        return now - self._fetched_at < self.ttl_seconds

    def _snapshot(self) -> tuple[ModerationRule, ...]:
        now = self._clock()
        if self._is_fresh(now):
            return self._rules

        future = self._start_refresh(now)
        if future is None:
            # Refresh already running or backing off: serve what we have
            return self._rules

        try:
            future.result(timeout=self.refresh_timeout)
        except FutureTimeoutError:
            logger.warning(
                "Rule refresh exceeded %.1fs, serving %d cached rules",
                self.refresh_timeout,
                len(self._rules),
            )
        return self._rules

    def _start_refresh(self, now: float) -> Optional[Future]:
        """Submit a refresh unless one is in flight. Returns None if not started."""
        with self._lock:
            if self._inflight is not None and not self._inflight.done():
                return None
            if self._retry_at is not None and now < self._retry_at:
                return None
            self._inflight = self._executor.submit(self._refresh)
            return self._inflight

    def _refresh(self) -> bool:
        """Fetch and swap in a new snapshot. Failures keep the old one."""
        try:
            rules = self._fetch_rules()
        except Exception:
            with self._lock:
                self._retry_at = self._clock() + self.retry_after_failure
            logger.warning(
                "Failed to refresh moderation rules, keeping %d cached rules",
                len(self._rules),
                exc_info=True,
            )
            return False

        with self._lock:
            self._rules = tuple(rules)
            self._fetched_at = self._clock()
            self._retry_at = None
        logger.info("Moderation rules refreshed: %d active", len(rules))
        return True

    def _fetch_rules(self) -> list[ModerationRule]:
        """Load every active rule from the rule store."""
        result = (
            self.supabase.table(RULES_TABLE)
            .select("*")
            .eq("is_active", True)
            .order("created_at")
            .execute()
        )
        return [rule for rule in map(self._parse_rule, result.data or []) if rule is not None]

    @staticmethod
    def _parse_rule(row: dict[str, Any]) -> Optional[ModerationRule]:
        try:
            return ModerationRule(**row)
        except ValidationError as e:
            logger.warning("Skipping malformed moderation rule %s: %s", row.get("id"), e)
            return None
