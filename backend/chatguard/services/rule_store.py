"""
Moderator access to the moderation_rules table.

Handles:
- Listing rules by context and active flag
- Creating rules, with the pattern compiled before the row is written

The filtering path never reads through here; it uses RuleCache.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError
from supabase import Client

from chatguard.core.constants import RULES_TABLE
from chatguard.core.database import get_supabase
from chatguard.models.moderation import (
    CreateRuleRequest,
    ModerationRule,
    StoreUnavailableError,
)
from chatguard.services.rule_matcher import RuleMatcher

logger = logging.getLogger(__name__)


class RuleStore:
    """Service for reading and writing moderation rules."""

    def __init__(
        self, supabase: Optional[Client] = None, matcher: Optional[RuleMatcher] = None
    ) -> None:
        self._supabase = supabase
        self.matcher = matcher or RuleMatcher()

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    def list_rules(self, context: Optional[str] = None, active: bool = True) -> list[ModerationRule]:
        """
        List rules, newest first.

        Args:
            context: Only rules tagged with this context. Untagged rules are
                not included when a context is given.
            active: List active (default) or deactivated rules

        Raises:
            StoreUnavailableError: If the rule store cannot be read
        """
        try:
            query = self.supabase.table(RULES_TABLE).select("*").eq("is_active", active)
            if context:
                query = query.contains("context", [context])
            result = query.order("created_at", desc=True).execute()
        except Exception as e:
            raise StoreUnavailableError("Could not read moderation rules") from e

        rules = []
        for row in result.data or []:
            try:
                rules.append(ModerationRule(**row))
            except ValidationError as e:
                logger.warning("Skipping malformed moderation rule %s: %s", row.get("id"), e)
        return rules

    def create_rule(self, request: CreateRuleRequest) -> ModerationRule:
        """
        Store a new active rule.

        Raises:
            RuleCompilationError: If the pattern does not compile
            StoreUnavailableError: If the insert fails
        """
        self.matcher.validate_pattern(request.pattern)

        row: dict[str, Any] = {
            "rule_type": request.rule_type.value,
            "pattern": request.pattern,
            "severity": request.severity.value,
            "action": request.action.value,
            "replacement_text": request.replacement_text,
            "context": request.context,
            "description": request.description,
            "created_by": request.created_by,
            "is_active": True,
        }
        try:
            result = self.supabase.table(RULES_TABLE).insert(row).execute()
        except Exception as e:
            raise StoreUnavailableError("Could not create moderation rule") from e

        if not result.data:
            raise StoreUnavailableError("Rule insert returned no row")

        rule = ModerationRule(**result.data[0])
        logger.info(
            "Moderation rule created: id=%s type=%s action=%s severity=%s by=%s",
            rule.id,
            rule.rule_type.value,
            rule.action.value,
            rule.severity.value,
            request.created_by,
            extra={"rule_id": rule.id, "action": rule.action},
        )
        return rule
