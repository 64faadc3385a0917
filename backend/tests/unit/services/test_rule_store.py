"""Unit tests for RuleStore.

Tests:
- list_rules() - active flag, context filter, ordering, malformed rows, store failure
- create_rule() - pattern compile check, inserted row, store failure
"""

from unittest.mock import MagicMock

import pytest

from chatguard.models.moderation import (
    CreateRuleRequest,
    RuleAction,
    RuleCompilationError,
    Severity,
    StoreUnavailableError,
)
from chatguard.services.rule_store import RuleStore


@pytest.fixture
def mock_supabase() -> MagicMock:
    return MagicMock()


@pytest.fixture
def rules_table(mock_supabase) -> MagicMock:
    return mock_supabase.table.return_value


@pytest.fixture
def store(mock_supabase) -> RuleStore:
    return RuleStore(supabase=mock_supabase)


def _rule_row(rule_id: str = "r-1", **overrides) -> dict:
    row = {
        "id": rule_id,
        "rule_type": "banned_word",
        "pattern": "spam",
        "severity": "medium",
        "action": "flag",
        "replacement_text": None,
        "context": ["chat"],
        "is_active": True,
        "description": None,
    }
    row.update(overrides)
    return row


# =============================================================================
# TestListRules
# =============================================================================


class TestListRules:
    """Tests for list_rules()."""

    @pytest.mark.unit
    def test_active_rules_newest_first(self, store, rules_table) -> None:
        query = rules_table.select.return_value.eq.return_value
        query.order.return_value.execute.return_value.data = [_rule_row("r-2"), _rule_row("r-1")]

        rules = store.list_rules()

        assert [r.id for r in rules] == ["r-2", "r-1"]
        rules_table.select.return_value.eq.assert_called_once_with("is_active", True)
        query.order.assert_called_once_with("created_at", desc=True)
        query.contains.assert_not_called()

    @pytest.mark.unit
    def test_context_filter(self, store, rules_table) -> None:
        query = rules_table.select.return_value.eq.return_value
        query.contains.return_value.order.return_value.execute.return_value.data = []

        store.list_rules(context="username", active=False)

        rules_table.select.return_value.eq.assert_called_once_with("is_active", False)
        query.contains.assert_called_once_with("context", ["username"])

    @pytest.mark.unit
    def test_skips_malformed_rows(self, store, rules_table, caplog) -> None:
        query = rules_table.select.return_value.eq.return_value
        query.order.return_value.execute.return_value.data = [
            _rule_row("r-ok"),
            _rule_row("r-bad", severity="extreme"),
        ]

        rules = store.list_rules()

        assert [r.id for r in rules] == ["r-ok"]
        assert "r-bad" in caplog.text

    @pytest.mark.unit
    def test_read_failure_raises(self, store, rules_table) -> None:
        rules_table.select.side_effect = Exception("timeout")

        with pytest.raises(StoreUnavailableError):
            store.list_rules()


# =============================================================================
# TestCreateRule
# =============================================================================


class TestCreateRule:
    """Tests for create_rule()."""

    @pytest.mark.unit
    def test_inserts_active_rule(self, store, rules_table) -> None:
        rules_table.insert.return_value.execute.return_value.data = [
            _rule_row(
                "r-new",
                rule_type="regex_pattern",
                pattern=r"free\s+money",
                severity="high",
                action="block",
                context=None,
            )
        ]
        request = CreateRuleRequest(
            rule_type="regex_pattern",
            pattern=r"free\s+money",
            severity="high",
            action="block",
            created_by="mod-1",
        )

        rule = store.create_rule(request)

        row = rules_table.insert.call_args[0][0]
        assert row["rule_type"] == "regex_pattern"
        assert row["pattern"] == r"free\s+money"
        assert row["severity"] == "high"
        assert row["action"] == "block"
        assert row["created_by"] == "mod-1"
        assert row["is_active"] is True
        assert rule.id == "r-new"
        assert rule.severity == Severity.HIGH
        assert rule.action == RuleAction.BLOCK

    @pytest.mark.unit
    def test_word_rules_are_compile_checked_too(self, store, rules_table) -> None:
        """Every rule type is matched as a regex, so every type is checked."""
        request = CreateRuleRequest(rule_type="banned_phrase", pattern="free (money")

        with pytest.raises(RuleCompilationError) as exc_info:
            store.create_rule(request)

        assert exc_info.value.pattern == "free (money"
        rules_table.insert.assert_not_called()

    @pytest.mark.unit
    def test_insert_failure_raises(self, store, rules_table) -> None:
        rules_table.insert.return_value.execute.side_effect = Exception("timeout")

        with pytest.raises(StoreUnavailableError):
            store.create_rule(CreateRuleRequest(rule_type="banned_word", pattern="spam"))

    @pytest.mark.unit
    def test_empty_insert_result_raises(self, store, rules_table) -> None:
        rules_table.insert.return_value.execute.return_value.data = []

        with pytest.raises(StoreUnavailableError):
            store.create_rule(CreateRuleRequest(rule_type="banned_word", pattern="spam"))
