"""
Audit log of moderation decisions.

Each pass with at least one matched rule produces one moderation_logs row.
Delivery is best-effort: by default the row is handed to a Celery task so the
chat path never waits on the database, and every failure is logged and
dropped. A decision already returned to the caller is never affected.
"""

import logging
from typing import Any, Optional

from supabase import Client

from chatguard.core.config import get_settings
from chatguard.core.constants import LOGS_TABLE, PLACEHOLDER_CONTENT_ID
from chatguard.core.database import get_supabase
from chatguard.models.moderation import MatchedRule, ModerationAction

logger = logging.getLogger(__name__)


def content_type_for(context: str) -> str:
    """Map a filtering context to the content_type stored in the log."""
    return "chat_message" if context == "chat" else context


class ModerationLogger:
    """Writes moderation decisions to the log sink."""

    def __init__(self, supabase: Optional[Client] = None, dispatch_async: Optional[bool] = None):
        self._supabase = supabase
        self.dispatch_async = (
            dispatch_async if dispatch_async is not None else get_settings().moderation_log_async
        )

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    @staticmethod
    def build_record(
        original: str,
        filtered: str,
        matched_rules: list[MatchedRule],
        action: ModerationAction,
        score: int,
        context: str,
        user_id: str,
    ) -> dict[str, Any]:
        return {
            "content_type": content_type_for(context),
            "content_id": PLACEHOLDER_CONTENT_ID,
            "user_id": user_id,
            "original_content": original,
            "filtered_content": filtered,
            "matched_rules": [rule.id for rule in matched_rules],
            "action_taken": action.value,
            "severity_score": score,
            "is_auto_moderated": True,
        }

    def log_decision(
        self,
        original: str,
        filtered: str,
        matched_rules: list[MatchedRule],
        action: ModerationAction,
        score: int,
        context: str,
        user_id: str,
    ) -> None:
        """Record one filtering decision. Never raises."""
        record = self.build_record(
            original, filtered, matched_rules, action, score, context, user_id
        )
        if self.dispatch_async:
            self._enqueue(record)
        else:
            self.write(record)

    def write(self, record: dict[str, Any]) -> bool:
        """Insert a record inline. Returns False (after logging) on failure."""
        try:
            self.insert_record(record)
        except Exception:
            logger.warning(
                "Failed to write moderation log: user=%s action=%s",
                record.get("user_id"),
                record.get("action_taken"),
                exc_info=True,
            )
            return False
        return True

    def insert_record(self, record: dict[str, Any]) -> None:
        """Insert a record, raising on store errors (used by the retrying task)."""
        self.supabase.table(LOGS_TABLE).insert(record).execute()

    def _enqueue(self, record: dict[str, Any]) -> None:
        from chatguard.tasks.moderation_tasks import write_moderation_log

        try:
            write_moderation_log.delay(record)
        except Exception:
            logger.warning(
                "Failed to enqueue moderation log: user=%s action=%s",
                record.get("user_id"),
                record.get("action_taken"),
                exc_info=True,
            )
