"""
User reports for manual review.

Handles:
- Queueing reports of content the rules did not catch
- Listing the review queue for moderators
"""

import logging
from typing import Optional

from supabase import Client

from chatguard.core.constants import DEFAULT_PAGE_SIZE, REPORT_QUEUE_TABLE
from chatguard.core.database import get_supabase
from chatguard.models.moderation import (
    FlaggedContentReport,
    ReportStatus,
    Severity,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)


class ContentReporter:
    """Service for the flagged content review queue."""

    def __init__(self, supabase: Optional[Client] = None) -> None:
        self._supabase = supabase

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    def report_content(
        self,
        content_type: str,
        content_id: str,
        content_text: str,
        user_id: str,
        reporter_id: str,
        reason: str,
    ) -> bool:
        """
        Queue a report for manual review.

        Returns:
            True if queued, False on any store failure (caller may retry)
        """
        row = {
            "content_type": content_type,
            "content_id": content_id,
            "user_id": user_id,
            "content_text": content_text,
            "flag_reason": reason,
            "severity": Severity.MEDIUM.value,
            "reporter_id": reporter_id,
            "status": ReportStatus.PENDING.value,
        }
        try:
            self.supabase.table(REPORT_QUEUE_TABLE).insert(row).execute()
        except Exception:
            logger.warning(
                "Failed to queue report: reporter=%s reported=%s content=%s/%s",
                reporter_id,
                user_id,
                content_type,
                content_id,
                exc_info=True,
            )
            return False

        logger.info(
            "Content reported: reporter=%s reported=%s content=%s/%s",
            reporter_id,
            user_id,
            content_type,
            content_id,
        )
        return True

    def get_reports(
        self,
        status: ReportStatus = ReportStatus.PENDING,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[FlaggedContentReport]:
        """
        List queued reports, newest first.

        Raises:
            StoreUnavailableError: If the queue cannot be read
        """
        try:
            result = (
                self.supabase.table(REPORT_QUEUE_TABLE)
                .select("*")
                .eq("status", status.value)
                .order("created_at", desc=True)
                .range(offset, offset + limit - 1)
                .execute()
            )
        except Exception as e:
            raise StoreUnavailableError("Could not read the report queue") from e

        return [FlaggedContentReport(**row) for row in result.data or []]
