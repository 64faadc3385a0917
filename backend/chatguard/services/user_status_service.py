"""
Per-user moderation status.

Handles:
- Posting gate (effective ban computed at read time, default-open)
- Violation/warning counters with optimistic concurrency
- Moderator ban / shadow-ban writes and the status listing

Rows are created lazily on the first violation or moderator action; a
missing row means the user has no history and may post. Promoting a user to
banned or shadow-banned from their counters is an external policy and is
never done here.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from postgrest.exceptions import APIError
from pydantic import ValidationError
from supabase import Client

from chatguard.core.cache import ModerationCacheKeys, cache_delete, cache_get, cache_set
from chatguard.core.config import get_settings
from chatguard.core.constants import (
    DEFAULT_PAGE_SIZE,
    UNIQUE_VIOLATION_CODE,
    USER_STATUS_TABLE,
    VIOLATION_WRITE_MAX_ATTEMPTS,
)
from chatguard.core.database import get_supabase
from chatguard.models.moderation import (
    REVIEW_SCORE_THRESHOLD,
    PostingStatus,
    StatusFilter,
    StoreUnavailableError,
    UserModerationStatus,
)

logger = logging.getLogger(__name__)

STATUS_COLUMNS = (
    "user_id, is_banned, banned_until, is_shadow_banned, violation_count, "
    "warning_count, last_violation_at, ban_reason, moderator_id"
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UserStatusTracker:
    """Reads and writes user_moderation_status rows."""

    def __init__(
        self,
        supabase: Optional[Client] = None,
        cache_ttl: Optional[int] = None,
        max_attempts: int = VIOLATION_WRITE_MAX_ATTEMPTS,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._supabase = supabase
        self.cache_ttl = (
            cache_ttl if cache_ttl is not None else get_settings().user_status_cache_ttl_seconds
        )
        self.max_attempts = max_attempts
        self._now = now

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    # =========================================================================
    # Reads
    # =========================================================================

    def get_status(self, user_id: str) -> Optional[UserModerationStatus]:
        """
        Get a user's stored moderation status.

        Returns:
            UserModerationStatus, or None if the user has no row

        Raises:
            StoreUnavailableError: If the store cannot be read or the row is malformed
        """
        key = ModerationCacheKeys.user_status(user_id)
        if self.cache_ttl > 0:
            cached = cache_get(key)
            if isinstance(cached, dict):
                return self._parse(cached.get("row"))
            if cached is not None:
                logger.warning("Ignoring malformed status cache entry for user=%s", user_id)

        row = self._read_row(user_id)
        if self.cache_ttl > 0:
            cache_set(key, {"row": row}, ttl=self.cache_ttl)
        return self._parse(row)

    def can_post(self, user_id: str) -> PostingStatus:
        """
        Check whether a user may post.

        Shadow-banned users can post; hiding their content from others is the
        caller's job. Store failures fall back to allowing the post so a
        database outage does not lock everyone out of chat.
        """
        try:
            status = self.get_status(user_id)
        except StoreUnavailableError:
            logger.warning(
                "Moderation status unavailable for user=%s, allowing post", user_id, exc_info=True
            )
            return PostingStatus()

        if status is None:
            return PostingStatus()

        is_banned = status.is_ban_active(self._now())
        return PostingStatus(
            can_post=not is_banned,
            is_banned=is_banned,
            is_shadow_banned=status.is_shadow_banned,
        )

    # =========================================================================
    # Writes
    # =========================================================================

    def record_violation(self, user_id: str, severity_score: int) -> None:
        """
        Count one violation for a user.

        Always increments violation_count and stamps last_violation_at;
        increments warning_count only for sub-high scores. Concurrent writers
        are detected by comparing on the violation_count that was read, and
        the read-modify-write is retried.

        Raises:
            StoreUnavailableError: If the store fails or conflicts persist
        """
        is_warning = severity_score < REVIEW_SCORE_THRESHOLD

        for attempt in range(1, self.max_attempts + 1):
            now_iso = self._now().isoformat()
            row = self._read_row(user_id)

            if row is None:
                written = self._insert_first_violation(user_id, is_warning, now_iso)
            else:
                written = self._increment_violation(row, is_warning, now_iso)

            if written:
                self._invalidate(user_id)
                logger.info(
                    "Violation recorded: user=%s score=%d warning=%s",
                    user_id,
                    severity_score,
                    is_warning,
                    extra={"user_id": user_id, "severity_score": severity_score},
                )
                return

            logger.debug(
                "Violation write conflict for user=%s (attempt %d/%d)",
                user_id,
                attempt,
                self.max_attempts,
            )

        raise StoreUnavailableError(
            f"Violation count for user {user_id} kept conflicting after "
            f"{self.max_attempts} attempts"
        )

    def set_status(
        self,
        user_id: str,
        is_banned: bool = False,
        is_shadow_banned: bool = False,
        banned_until: Optional[datetime] = None,
        ban_reason: Optional[str] = None,
        moderator_id: Optional[str] = None,
    ) -> UserModerationStatus:
        """
        Apply a moderator's ban / shadow-ban decision.

        Updates the existing row, leaving its counters untouched, or creates
        the row with zero counters. A row created concurrently between the
        read and the insert is updated instead.

        Raises:
            StoreUnavailableError: If the write fails
        """
        fields: dict[str, Any] = {
            "is_banned": is_banned,
            "is_shadow_banned": is_shadow_banned,
            "banned_until": banned_until.isoformat() if banned_until else None,
            "ban_reason": ban_reason,
            "moderator_id": moderator_id,
            "updated_at": self._now().isoformat(),
        }

        if self._read_row(user_id) is None:
            stored = self._insert_status(user_id, fields)
        else:
            stored = self._update_status(user_id, fields)

        self._invalidate(user_id)
        logger.info(
            "Moderation status set: user=%s banned=%s shadow_banned=%s until=%s by=%s",
            user_id,
            is_banned,
            is_shadow_banned,
            banned_until,
            moderator_id,
            extra={"user_id": user_id, "moderator_id": moderator_id},
        )
        return self._parse(stored) or UserModerationStatus(user_id=user_id)

    def list_statuses(
        self,
        status_filter: Optional[StatusFilter] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[UserModerationStatus]:
        """
        List status rows for the moderator dashboard, most recent violation first.

        Rows that never had a violation sort last.

        Raises:
            StoreUnavailableError: If the store cannot be read or a row is malformed
        """
        try:
            query = self.supabase.table(USER_STATUS_TABLE).select(STATUS_COLUMNS)
            if status_filter == StatusFilter.BANNED:
                query = query.eq("is_banned", True)
            elif status_filter == StatusFilter.SHADOW_BANNED:
                query = query.eq("is_shadow_banned", True)
            elif status_filter == StatusFilter.VIOLATIONS:
                query = query.gt("violation_count", 0)
            result = (
                query.order("last_violation_at", desc=True, nullsfirst=False)
                .range(offset, offset + limit - 1)
                .execute()
            )
        except Exception as e:
            raise StoreUnavailableError("Could not list moderation statuses") from e

        return [self._parse(row) for row in result.data or []]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _read_row(self, user_id: str) -> Optional[dict[str, Any]]:
        try:
            result = (
                self.supabase.table(USER_STATUS_TABLE)
                .select(STATUS_COLUMNS)
                .eq("user_id", user_id)
                .execute()
            )
        except Exception as e:
            raise StoreUnavailableError(f"Could not read moderation status for {user_id}") from e
        return result.data[0] if result.data else None

    def _insert_first_violation(self, user_id: str, is_warning: bool, now_iso: str) -> bool:
        """Create the row. Returns False if another writer created it first."""
        try:
            self.supabase.table(USER_STATUS_TABLE).insert(
                {
                    "user_id": user_id,
                    "violation_count": 1,
                    "warning_count": 1 if is_warning else 0,
                    "last_violation_at": now_iso,
                }
            ).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION_CODE:
                return False
            raise StoreUnavailableError(f"Could not create moderation status for {user_id}") from e
        except Exception as e:
            raise StoreUnavailableError(f"Could not create moderation status for {user_id}") from e
        return True

    def _increment_violation(self, row: dict[str, Any], is_warning: bool, now_iso: str) -> bool:
        """Compare-and-set on violation_count. Returns False if the row moved."""
        user_id = row["user_id"]
        stored_count = row.get("violation_count")
        violation_count = stored_count or 0
        warning_count = row.get("warning_count") or 0
        try:
            query = (
                self.supabase.table(USER_STATUS_TABLE)
                .update(
                    {
                        "violation_count": violation_count + 1,
                        "warning_count": warning_count + (1 if is_warning else 0),
                        "last_violation_at": now_iso,
                    }
                )
                .eq("user_id", user_id)
            )
            if stored_count is None:
                query = query.is_("violation_count", "null")
            else:
                query = query.eq("violation_count", stored_count)
            result = query.execute()
        except Exception as e:
            raise StoreUnavailableError(f"Could not update moderation status for {user_id}") from e
        return bool(result.data)

    def _insert_status(self, user_id: str, fields: dict[str, Any]) -> Optional[dict[str, Any]]:
        row = {"user_id": user_id, **fields, "violation_count": 0, "warning_count": 0}
        try:
            result = self.supabase.table(USER_STATUS_TABLE).insert(row).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION_CODE:
                return self._update_status(user_id, fields)
            raise StoreUnavailableError(f"Could not create moderation status for {user_id}") from e
        except Exception as e:
            raise StoreUnavailableError(f"Could not create moderation status for {user_id}") from e
        return result.data[0] if result.data else row

    def _update_status(self, user_id: str, fields: dict[str, Any]) -> Optional[dict[str, Any]]:
        try:
            result = (
                self.supabase.table(USER_STATUS_TABLE)
                .update(fields)
                .eq("user_id", user_id)
                .execute()
            )
        except Exception as e:
            raise StoreUnavailableError(f"Could not update moderation status for {user_id}") from e
        return result.data[0] if result.data else None

    def _invalidate(self, user_id: str) -> None:
        if self.cache_ttl > 0:
            cache_delete(ModerationCacheKeys.user_status(user_id))

    @staticmethod
    def _parse(row: Optional[dict[str, Any]]) -> Optional[UserModerationStatus]:
        if not row:
            return None
        if not isinstance(row, dict):
            raise StoreUnavailableError(f"Malformed moderation status row: {row!r}")
        try:
            return UserModerationStatus(**row)
        except ValidationError as e:
            raise StoreUnavailableError(f"Malformed moderation status row: {e}") from e
