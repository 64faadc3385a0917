"""
Single-rule matching.

Every rule type is compiled as a case-insensitive regular expression.
Compiled patterns are memoised per pattern string; a pattern that fails to
compile is reported on the outcome instead of raised, so one broken rule
never aborts a filtering pass.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from chatguard.core.constants import COMPILED_PATTERN_CACHE_SIZE
from chatguard.models.moderation import ModerationRule, RuleCompilationError


@dataclass(frozen=True)
class MatchOutcome:
    """Result of evaluating one rule against one piece of text."""

    matched: bool
    error: Optional[RuleCompilationError] = None


@lru_cache(maxsize=COMPILED_PATTERN_CACHE_SIZE)
def _compile(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE)


class RuleMatcher:
    """Evaluates text against one moderation rule at a time."""

    def compile(self, rule: ModerationRule) -> re.Pattern:
        """
        Compile a rule's pattern.

        Raises:
            RuleCompilationError: If the pattern is not a valid regex
        """
        try:
            return _compile(rule.pattern)
        except re.error as e:
            raise RuleCompilationError(rule.id, rule.pattern, str(e)) from e

    def validate_pattern(self, pattern: str) -> None:
        """
        Check that a pattern compiles before it is stored.

        Raises:
            RuleCompilationError: If the pattern is not a valid regex
        """
        try:
            _compile(pattern)
        except re.error as e:
            raise RuleCompilationError(None, pattern, str(e)) from e

    def match(self, text: str, rule: ModerationRule) -> MatchOutcome:
        """
        Check whether the rule's pattern occurs anywhere in text.

        Only searches; replace rules are applied separately with rewrite().
        """
        try:
            compiled = self.compile(rule)
        except RuleCompilationError as e:
            return MatchOutcome(matched=False, error=e)

        return MatchOutcome(matched=compiled.search(text) is not None)

    def rewrite(self, text: str, rule: ModerationRule) -> str:
        """
        Replace every occurrence of the rule's pattern in text.

        Raises:
            RuleCompilationError: If the pattern is not a valid regex
        """
        return self._substitute(self.compile(rule), text, rule.replacement)

    @staticmethod
    def _substitute(compiled: re.Pattern, text: str, replacement: str) -> str:
        # Callable replacement: rule text is inserted literally, no backreferences
        return compiled.sub(lambda _: replacement, text)
