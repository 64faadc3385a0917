"""Unit tests for the filtering pass (SeverityAccumulator, ActionResolver, ContentFilter).

Tests:
- SeverityAccumulator - fixed weights, review threshold
- ActionResolver - verdict precedence, output content
- ContentFilter.run() - end-to-end verdicts, scoring, replace chaining, broken rules
"""

from typing import Optional

import pytest

from chatguard.models.moderation import (
    ModerationAction,
    ModerationRule,
    RuleAction,
    Severity,
)
from chatguard.services.content_filter import ActionResolver, ContentFilter, SeverityAccumulator


def _make_rule(
    rule_id: str,
    pattern: str,
    severity: str = "medium",
    action: str = "block",
    replacement_text: Optional[str] = None,
) -> ModerationRule:
    return ModerationRule(
        id=rule_id,
        rule_type="banned_word",
        pattern=pattern,
        severity=severity,
        action=action,
        replacement_text=replacement_text,
    )


@pytest.fixture
def content_filter() -> ContentFilter:
    return ContentFilter()


# =============================================================================
# TestSeverityAccumulator
# =============================================================================


class TestSeverityAccumulator:
    """Tests for SeverityAccumulator."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "severity,weight",
        [
            (Severity.LOW, 1),
            (Severity.MEDIUM, 5),
            (Severity.HIGH, 10),
            (Severity.CRITICAL, 20),
        ],
    )
    def test_weights(self, severity, weight) -> None:
        accumulator = SeverityAccumulator()
        assert accumulator.add(severity) == weight

    @pytest.mark.unit
    def test_sums_across_rules(self) -> None:
        accumulator = SeverityAccumulator()
        accumulator.add(Severity.LOW)
        accumulator.add(Severity.CRITICAL)
        assert accumulator.score == 21

    @pytest.mark.unit
    def test_review_threshold_is_inclusive(self) -> None:
        accumulator = SeverityAccumulator()
        accumulator.add(Severity.MEDIUM)
        assert accumulator.exceeds_review_threshold is False
        accumulator.add(Severity.MEDIUM)
        assert accumulator.exceeds_review_threshold is True


# =============================================================================
# TestActionResolver
# =============================================================================


class TestActionResolver:
    """Tests for ActionResolver."""

    @pytest.mark.unit
    def test_nothing_applied_is_allowed(self) -> None:
        resolver = ActionResolver("hello")
        assert resolver.resolve() == ModerationAction.ALLOWED

    @pytest.mark.unit
    def test_block_wins_over_replace_and_flag(self) -> None:
        resolver = ActionResolver("hello")
        resolver.apply(RuleAction.REPLACE, "h***o")
        resolver.apply(RuleAction.FLAG)
        resolver.apply(RuleAction.BLOCK)
        assert resolver.resolve() == ModerationAction.BLOCKED

    @pytest.mark.unit
    def test_modified_wins_over_flagged(self) -> None:
        resolver = ActionResolver("hello")
        resolver.apply(RuleAction.FLAG)
        resolver.apply(RuleAction.REPLACE, "h***o")
        assert resolver.resolve() == ModerationAction.MODIFIED

    @pytest.mark.unit
    def test_shadow_ban_signals_like_flag(self) -> None:
        resolver = ActionResolver("hello")
        resolver.apply(RuleAction.SHADOW_BAN)
        assert resolver.should_flag is True
        assert resolver.resolve() == ModerationAction.FLAGGED

    @pytest.mark.unit
    def test_output_is_original_unless_modified(self) -> None:
        resolver = ActionResolver("hello")
        resolver.apply(RuleAction.REPLACE, "h***o")
        assert resolver.output_content(ModerationAction.BLOCKED) == "hello"
        assert resolver.output_content(ModerationAction.MODIFIED) == "h***o"


# =============================================================================
# TestContentFilterRun
# =============================================================================


class TestContentFilterRun:
    """Tests for ContentFilter.run()."""

    @pytest.mark.unit
    def test_blocked_banned_word(self, content_filter) -> None:
        """A medium block rule blocks the message with score 5."""
        rules = [_make_rule("r-spam", r"\bspam\b", severity="medium", action="block")]

        result = content_filter.run("this is spam", rules)

        assert result.is_allowed is False
        assert result.action_taken == ModerationAction.BLOCKED
        assert result.severity_score == 5
        assert result.filtered_content == "this is spam"
        assert [rule.id for rule in result.matched_rules] == ["r-spam"]

    @pytest.mark.unit
    def test_replaced_word(self, content_filter) -> None:
        """A low replace rule redacts the match and allows the message."""
        rules = [
            _make_rule("r-darn", r"\bdarn\b", severity="low", action="replace", replacement_text="***")
        ]

        result = content_filter.run("oh darn it", rules)

        assert result.is_allowed is True
        assert result.action_taken == ModerationAction.MODIFIED
        assert result.filtered_content == "oh *** it"
        assert result.severity_score == 1
        assert result.requires_manual_review is False

    @pytest.mark.unit
    def test_no_rules_allows(self, content_filter) -> None:
        result = content_filter.run("anything at all", [])

        assert result.is_allowed is True
        assert result.action_taken == ModerationAction.ALLOWED
        assert result.matched_rules == []
        assert result.severity_score == 0
        assert result.filtered_content == "anything at all"

    @pytest.mark.unit
    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_blank_content_short_circuits(self, content_filter, content) -> None:
        """Blank input is allowed unchanged without evaluating rules."""
        rules = [_make_rule("r-any", ".*", action="block")]

        result = content_filter.run(content, rules)

        assert result.is_allowed is True
        assert result.filtered_content == content
        assert result.matched_rules == []

    @pytest.mark.unit
    def test_block_beats_replace(self, content_filter) -> None:
        """Blocked messages carry the original text even when a replace rule also matched."""
        rules = [
            _make_rule("r-replace", "darn", severity="low", action="replace"),
            _make_rule("r-block", "spam", severity="medium", action="block"),
        ]

        result = content_filter.run("darn spam", rules)

        assert result.action_taken == ModerationAction.BLOCKED
        assert result.is_allowed is False
        assert result.filtered_content == "darn spam"
        assert result.severity_score == 6

    @pytest.mark.unit
    def test_low_plus_critical_scores_21(self, content_filter) -> None:
        rules = [
            _make_rule("r-low", "meh", severity="low", action="flag"),
            _make_rule("r-crit", "awful", severity="critical", action="flag"),
        ]

        result = content_filter.run("meh, awful", rules)

        assert result.severity_score == 21
        assert result.requires_manual_review is True
        assert result.action_taken == ModerationAction.FLAGGED
        assert result.is_allowed is True

    @pytest.mark.unit
    def test_high_replace_needs_review(self, content_filter) -> None:
        """Review is required at score >= 10 even without a flag rule."""
        rules = [_make_rule("r-high", "nasty", severity="high", action="replace")]

        result = content_filter.run("so nasty", rules)

        assert result.action_taken == ModerationAction.MODIFIED
        assert result.severity_score == 10
        assert result.requires_manual_review is True

    @pytest.mark.unit
    def test_flag_keeps_original_content(self, content_filter) -> None:
        rules = [_make_rule("r-flag", "sketchy", severity="low", action="flag")]

        result = content_filter.run("sketchy link", rules)

        assert result.action_taken == ModerationAction.FLAGGED
        assert result.filtered_content == "sketchy link"
        assert result.requires_manual_review is True

    @pytest.mark.unit
    def test_shadow_ban_rule_is_flagged(self, content_filter) -> None:
        rules = [_make_rule("r-shadow", "buy followers", severity="medium", action="shadow_ban")]

        result = content_filter.run("buy followers here", rules)

        assert result.action_taken == ModerationAction.FLAGGED
        assert result.is_allowed is True
        assert result.requires_manual_review is True

    @pytest.mark.unit
    def test_replace_rules_chain(self, content_filter) -> None:
        """Later replace rules operate on the output of earlier ones."""
        rules = [
            _make_rule("r-1", "darn", severity="low", action="replace", replacement_text="heck"),
            _make_rule("r-2", "heck|darn", severity="low", action="replace", replacement_text="#"),
        ]

        result = content_filter.run("darn it", rules)

        assert result.filtered_content == "# it"
        assert result.severity_score == 2
        assert [rule.id for rule in result.matched_rules] == ["r-1", "r-2"]

    @pytest.mark.unit
    def test_replacement_cannot_trigger_later_rule(self, content_filter) -> None:
        """Text introduced by a replacement is not matched by later rules."""
        rules = [
            _make_rule("r-1", "darn", severity="low", action="replace", replacement_text="spam"),
            _make_rule("r-2", "spam", severity="medium", action="block"),
        ]

        result = content_filter.run("darn", rules)

        assert result.action_taken == ModerationAction.MODIFIED
        assert result.filtered_content == "spam"
        assert [rule.id for rule in result.matched_rules] == ["r-1"]

    @pytest.mark.unit
    def test_matches_are_against_original(self, content_filter) -> None:
        """A replacement cannot hide a later rule's match in the original text."""
        rules = [
            _make_rule("r-replace", "spam", severity="low", action="replace"),
            _make_rule("r-block", "spam", severity="medium", action="block"),
        ]

        result = content_filter.run("spam", rules)

        assert result.action_taken == ModerationAction.BLOCKED
        assert len(result.matched_rules) == 2

    @pytest.mark.unit
    def test_broken_rule_is_skipped(self, content_filter, caplog) -> None:
        """An invalid pattern is logged and the pass continues."""
        rules = [
            _make_rule("r-broken", "[oops", action="block"),
            _make_rule("r-ok", "spam", severity="low", action="flag"),
        ]

        with caplog.at_level("ERROR", logger="chatguard.services.content_filter"):
            result = content_filter.run("spam [oops", rules)

        assert [rule.id for rule in result.matched_rules] == ["r-ok"]
        assert result.action_taken == ModerationAction.FLAGGED
        assert "r-broken" in caplog.text

    @pytest.mark.unit
    def test_matched_rules_in_rule_order(self, content_filter) -> None:
        rules = [
            _make_rule("r-b", "b", severity="low", action="flag"),
            _make_rule("r-a", "a", severity="low", action="flag"),
        ]

        result = content_filter.run("a b", rules)

        assert [rule.id for rule in result.matched_rules] == ["r-b", "r-a"]

    @pytest.mark.unit
    def test_idempotent(self, content_filter) -> None:
        """Same content and rules always produce the same result."""
        rules = [
            _make_rule("r-1", "darn", severity="low", action="replace"),
            _make_rule("r-2", "sketchy", severity="high", action="flag"),
        ]

        first = content_filter.run("darn sketchy", rules)
        second = content_filter.run("darn sketchy", rules)

        assert first == second
