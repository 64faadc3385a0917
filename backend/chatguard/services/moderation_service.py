"""
Moderation engine facade used by chat and comment ingestion.

Handles:
- Filtering content against the cached rule set and logging the decision
- Posting gate (ban / shadow-ban status)
- User reports for manual review
- Violation bookkeeping and moderator status writes
- Moderator rule management

One instance per process (get_moderation_service) so the rule cache is
shared by every request. Failure modes degrade toward letting the message
through: stale rules on a failed refresh, default-open status reads, and
best-effort decision logs.
"""

import logging
from datetime import datetime
from functools import lru_cache
from typing import Optional

from supabase import Client

from chatguard.core.config import get_settings
from chatguard.core.constants import DEFAULT_CONTEXT, DEFAULT_PAGE_SIZE
from chatguard.models.moderation import (
    CreateRuleRequest,
    FlaggedContentReport,
    ModerationResult,
    ModerationRule,
    PostingStatus,
    ReportStatus,
    ScreenMessageResponse,
    StatusFilter,
    UserModerationStatus,
)
from chatguard.services.content_filter import ContentFilter
from chatguard.services.moderation_logger import ModerationLogger
from chatguard.services.report_service import ContentReporter
from chatguard.services.rule_cache import RuleCache
from chatguard.services.rule_matcher import RuleMatcher
from chatguard.services.rule_store import RuleStore
from chatguard.services.user_status_service import UserStatusTracker

logger = logging.getLogger(__name__)


class ModerationService:
    """Content moderation engine."""

    def __init__(
        self,
        supabase: Optional[Client] = None,
        rule_cache: Optional[RuleCache] = None,
        content_filter: Optional[ContentFilter] = None,
        decision_logger: Optional[ModerationLogger] = None,
        status_tracker: Optional[UserStatusTracker] = None,
        reporter: Optional[ContentReporter] = None,
        rule_store: Optional[RuleStore] = None,
    ) -> None:
        self.rule_cache = rule_cache or RuleCache(supabase=supabase)
        self.content_filter = content_filter or ContentFilter(RuleMatcher())
        self.decision_logger = decision_logger or ModerationLogger(supabase=supabase)
        self.status_tracker = status_tracker or UserStatusTracker(supabase=supabase)
        self.reporter = reporter or ContentReporter(supabase=supabase)
        self.rule_store = rule_store or RuleStore(supabase=supabase)

    # =========================================================================
    # Filtering
    # =========================================================================

    def filter_content(
        self,
        content: str,
        context: str = DEFAULT_CONTEXT,
        user_id: Optional[str] = None,
    ) -> ModerationResult:
        """
        Filter content through the active moderation rules.

        Args:
            content: Text to moderate
            context: Applicability tag ("chat", "comments", "username", ...)
            user_id: Author, required for the decision to be logged

        Returns:
            ModerationResult. Blocked results carry the original text and
            must not be delivered.
        """
        if not content or not content.strip():
            return self.content_filter.run(content, [])

        rules = self.rule_cache.get_active_rules(context)
        result = self.content_filter.run(content, rules)

        if result.matched_rules and user_id:
            self.decision_logger.log_decision(
                original=content,
                filtered=result.filtered_content,
                matched_rules=result.matched_rules,
                action=result.action_taken,
                score=result.severity_score,
                context=context,
                user_id=user_id,
            )
            logger.info(
                "Content moderated: user=%s context=%s action=%s score=%d rules=%d",
                user_id,
                context,
                result.action_taken.value,
                result.severity_score,
                len(result.matched_rules),
                extra={
                    "user_id": user_id,
                    "context": context,
                    "action": result.action_taken,
                    "severity_score": result.severity_score,
                    "matched_rules": [rule.id for rule in result.matched_rules],
                },
            )

        return result

    def screen_message(
        self, user_id: str, content: str, context: str = DEFAULT_CONTEXT
    ) -> ScreenMessageResponse:
        """
        Gate on posting status, then filter.

        Content from users who cannot post is not filtered or logged.
        """
        posting = self.check_user_moderation_status(user_id)
        if not posting.can_post:
            return ScreenMessageResponse(posting=posting, result=None)
        return ScreenMessageResponse(
            posting=posting,
            result=self.filter_content(content, context=context, user_id=user_id),
        )

    def refresh_rules(self) -> int:
        """Drop the cached snapshot and reload. Returns the active rule count."""
        return len(self.rule_cache.refresh())

    def list_rules(self, context: Optional[str] = None, active: bool = True) -> list[ModerationRule]:
        return self.rule_store.list_rules(context=context, active=active)

    def create_rule(self, request: CreateRuleRequest) -> ModerationRule:
        """
        Store a new rule and drop the cached snapshot so the next pass sees it.

        Raises:
            RuleCompilationError: If the pattern does not compile
            StoreUnavailableError: If the insert fails
        """
        rule = self.rule_store.create_rule(request)
        self.rule_cache.invalidate()
        return rule

    # =========================================================================
    # User status
    # =========================================================================

    def check_user_moderation_status(self, user_id: str) -> PostingStatus:
        """Check whether a user may post (default-open on missing row or store failure)."""
        return self.status_tracker.can_post(user_id)

    def update_user_violation_count(self, user_id: str, severity_score: int) -> None:
        """
        Count a violation for a user.

        Raises:
            StoreUnavailableError: If the write fails, so the caller can retry
        """
        self.status_tracker.record_violation(user_id, severity_score)

    def set_user_status(
        self,
        user_id: str,
        is_banned: bool = False,
        is_shadow_banned: bool = False,
        banned_until: Optional[datetime] = None,
        ban_reason: Optional[str] = None,
        moderator_id: Optional[str] = None,
    ) -> UserModerationStatus:
        """Apply a moderator decision. Raises StoreUnavailableError on failure."""
        return self.status_tracker.set_status(
            user_id,
            is_banned=is_banned,
            is_shadow_banned=is_shadow_banned,
            banned_until=banned_until,
            ban_reason=ban_reason,
            moderator_id=moderator_id,
        )

    def list_user_statuses(
        self,
        status_filter: Optional[StatusFilter] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[UserModerationStatus]:
        return self.status_tracker.list_statuses(
            status_filter=status_filter, limit=limit, offset=offset
        )

    # =========================================================================
    # Reports
    # =========================================================================

    def report_content(
        self,
        content_type: str,
        content_id: str,
        content_text: str,
        user_id: str,
        reporter_id: str,
        reason: str,
    ) -> bool:
        """Queue a user report for manual review. Returns False on store failure."""
        return self.reporter.report_content(
            content_type=content_type,
            content_id=content_id,
            content_text=content_text,
            user_id=user_id,
            reporter_id=reporter_id,
            reason=reason,
        )

    def get_reports(
        self,
        status: ReportStatus = ReportStatus.PENDING,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[FlaggedContentReport]:
        return self.reporter.get_reports(status=status, limit=limit, offset=offset)


@lru_cache
def get_moderation_service() -> ModerationService:
    """Process-wide moderation engine (owns the rule cache)."""
    settings = get_settings()
    return ModerationService(
        rule_cache=RuleCache(
            ttl_seconds=settings.rule_cache_ttl_seconds,
            refresh_timeout=settings.rule_refresh_timeout_seconds,
        )
    )
