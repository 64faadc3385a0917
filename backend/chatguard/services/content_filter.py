"""
Filtering pass over the active rule snapshot.

Handles:
- Severity scoring (fixed weights summed across matched rules)
- Verdict resolution: blocked > modified > flagged > allowed
- Running redaction for replace rules

A pass is pure computation over its inputs. It never touches the store and
keeps no state between calls, so it can run concurrently across messages.
"""

import logging
from typing import Optional

from chatguard.models.moderation import (
    REVIEW_SCORE_THRESHOLD,
    MatchedRule,
    ModerationAction,
    ModerationResult,
    ModerationRule,
    RuleAction,
    Severity,
)
from chatguard.services.rule_matcher import RuleMatcher

logger = logging.getLogger(__name__)


class SeverityAccumulator:
    """Sums severity weights for one pass."""

    def __init__(self) -> None:
        self.score = 0

    def add(self, severity: Severity) -> int:
        self.score += severity.weight
        return self.score

    @property
    def exceeds_review_threshold(self) -> bool:
        return self.score >= REVIEW_SCORE_THRESHOLD


class ActionResolver:
    """
    Collects rule actions for one pass and resolves the final verdict.

    Block is sticky. Flag and shadow_ban signal identically at the message
    level; the difference only matters for user-status escalation.
    """

    def __init__(self, original: str) -> None:
        self.original = original
        self.filtered_content = original
        self.should_block = False
        self.should_flag = False
        self.modified = False

    def apply(self, action: RuleAction, rewritten: Optional[str] = None) -> None:
        """Record the side effect of one matched rule."""
        if action == RuleAction.BLOCK:
            self.should_block = True
        elif action in (RuleAction.FLAG, RuleAction.SHADOW_BAN):
            self.should_flag = True
        elif action == RuleAction.REPLACE:
            if rewritten is not None:
                self.filtered_content = rewritten
                self.modified = True
        else:
            raise ValueError(f"Unhandled rule action: {action}")

    def resolve(self) -> ModerationAction:
        if self.should_block:
            return ModerationAction.BLOCKED
        if self.modified:
            return ModerationAction.MODIFIED
        if self.should_flag:
            return ModerationAction.FLAGGED
        return ModerationAction.ALLOWED

    def output_content(self, action: ModerationAction) -> str:
        """Blocked and flagged messages carry the original text; only modified ones redact."""
        if action == ModerationAction.MODIFIED:
            return self.filtered_content
        return self.original


class ContentFilter:
    """Runs one piece of content through an ordered list of rules."""

    def __init__(self, matcher: Optional[RuleMatcher] = None) -> None:
        self.matcher = matcher or RuleMatcher()

    def run(self, content: str, rules: list[ModerationRule]) -> ModerationResult:
        """
        Evaluate content against rules in order.

        Args:
            content: Text to moderate
            rules: Active rules for the content's context, in evaluation order

        Returns:
            ModerationResult for this pass
        """
        if not content or not content.strip():
            return ModerationResult(
                is_allowed=True,
                filtered_content=content,
                action_taken=ModerationAction.ALLOWED,
            )

        matched_rules: list[MatchedRule] = []
        accumulator = SeverityAccumulator()
        resolver = ActionResolver(content)

        for rule in rules:
            outcome = self.matcher.match(content, rule)
            if outcome.error is not None:
                logger.error(
                    "Skipping rule %s: %s", rule.id, outcome.error, extra={"rule_id": rule.id}
                )
                continue
            if not outcome.matched:
                continue

            matched_rules.append(MatchedRule.from_rule(rule))
            accumulator.add(rule.severity)

            rewritten = None
            if rule.action == RuleAction.REPLACE:
                # Later replace rules see earlier substitutions
                rewritten = self.matcher.rewrite(resolver.filtered_content, rule)
            resolver.apply(rule.action, rewritten)

        action = resolver.resolve()
        return ModerationResult(
            is_allowed=action != ModerationAction.BLOCKED,
            filtered_content=resolver.output_content(action),
            matched_rules=matched_rules,
            severity_score=accumulator.score,
            requires_manual_review=resolver.should_flag or accumulator.exceeds_review_threshold,
            action_taken=action,
        )
