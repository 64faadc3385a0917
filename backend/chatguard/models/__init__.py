"""Pydantic models for the moderation service."""

from chatguard.models.moderation import (
    SEVERITY_WEIGHTS,
    MatchedRule,
    ModerationAction,
    ModerationError,
    ModerationResult,
    ModerationRule,
    PostingStatus,
    RuleAction,
    RuleCompilationError,
    RuleType,
    Severity,
    StoreUnavailableError,
    UserModerationStatus,
)

__all__ = [
    "SEVERITY_WEIGHTS",
    "MatchedRule",
    "ModerationAction",
    "ModerationError",
    "ModerationResult",
    "ModerationRule",
    "PostingStatus",
    "RuleAction",
    "RuleCompilationError",
    "RuleType",
    "Severity",
    "StoreUnavailableError",
    "UserModerationStatus",
]
