"""
Content moderation models.

Rules, per-pass results, per-user status rows and review-queue reports.
Rule type, severity and action are closed enumerations: a stored value
outside them fails validation instead of silently matching nothing.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chatguard.core.constants import (
    CONTEXT_MAX_LENGTH,
    DEFAULT_CONTEXT,
    DEFAULT_REPLACEMENT_TEXT,
    MESSAGE_MAX_LENGTH,
    REPORT_CONTENT_TYPES,
    REPORT_REASON_MAX_LENGTH,
    RULE_PATTERN_MAX_LENGTH,
)

# ===========================================
# Enums
# ===========================================


class RuleType(str, Enum):
    """How a rule's pattern was authored. All types are matched as regexes."""

    BANNED_WORD = "banned_word"
    BANNED_PHRASE = "banned_phrase"
    REGEX_PATTERN = "regex_pattern"
    SPAM_PATTERN = "spam_pattern"


class Severity(str, Enum):
    """Severity tier of a rule."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def weight(self) -> int:
        return SEVERITY_WEIGHTS[self]


class RuleAction(str, Enum):
    """Side effect requested by a rule when it matches."""

    FLAG = "flag"
    BLOCK = "block"
    SHADOW_BAN = "shadow_ban"
    REPLACE = "replace"


class ModerationAction(str, Enum):
    """Final verdict of one filtering pass."""

    ALLOWED = "allowed"
    FLAGGED = "flagged"
    BLOCKED = "blocked"
    MODIFIED = "modified"


class ReportStatus(str, Enum):
    """Review state of a flagged content report."""

    PENDING = "pending"
    REVIEWED = "reviewed"
    DISMISSED = "dismissed"


class StatusFilter(str, Enum):
    """Moderator dashboard filter over user status rows."""

    BANNED = "banned"
    SHADOW_BANNED = "shadow_banned"
    VIOLATIONS = "violations"


# System-wide severity weights (not configurable per rule)
SEVERITY_WEIGHTS = {
    Severity.LOW: 1,
    Severity.MEDIUM: 5,
    Severity.HIGH: 10,
    Severity.CRITICAL: 20,
}

# Scores at or above the high weight always go to manual review
REVIEW_SCORE_THRESHOLD = SEVERITY_WEIGHTS[Severity.HIGH]


# ===========================================
# Domain Models
# ===========================================


class ModerationRule(BaseModel):
    """An active moderation rule as stored in moderation_rules."""

    model_config = ConfigDict(frozen=True)

    id: str
    rule_type: RuleType
    pattern: str
    severity: Severity
    action: RuleAction
    replacement_text: Optional[str] = None
    context: Optional[list[str]] = None
    is_active: bool = True
    description: Optional[str] = None

    @property
    def replacement(self) -> str:
        """Text substituted for matches of a replace rule."""
        return self.replacement_text or DEFAULT_REPLACEMENT_TEXT

    def applies_to(self, context: str) -> bool:
        """A rule without context tags applies everywhere."""
        return not self.context or context in self.context


class MatchedRule(BaseModel):
    """A rule that matched during a filtering pass."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: RuleType
    severity: Severity
    action: RuleAction

    @classmethod
    def from_rule(cls, rule: ModerationRule) -> "MatchedRule":
        return cls(id=rule.id, type=rule.rule_type, severity=rule.severity, action=rule.action)


class ModerationResult(BaseModel):
    """Outcome of one filtering pass."""

    model_config = ConfigDict(frozen=True)

    is_allowed: bool
    filtered_content: str
    matched_rules: list[MatchedRule] = Field(default_factory=list)
    severity_score: int = 0
    requires_manual_review: bool = False
    action_taken: ModerationAction = ModerationAction.ALLOWED


class UserModerationStatus(BaseModel):
    """Per-user moderation state (user_moderation_status row)."""

    user_id: str
    is_banned: bool = False
    banned_until: Optional[datetime] = None
    is_shadow_banned: bool = False
    violation_count: int = 0
    warning_count: int = 0
    last_violation_at: Optional[datetime] = None
    ban_reason: Optional[str] = None
    moderator_id: Optional[str] = None

    @field_validator("violation_count", "warning_count", mode="before")
    @classmethod
    def null_count_is_zero(cls, value: Optional[int]) -> int:
        return 0 if value is None else value

    @field_validator("banned_until", "last_violation_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_ban_active(self, now: datetime) -> bool:
        """A ban whose banned_until has passed is expired without an unban write."""
        return self.is_banned and (self.banned_until is None or self.banned_until > now)


class PostingStatus(BaseModel):
    """Whether a user may post right now."""

    can_post: bool = True
    is_banned: bool = False
    is_shadow_banned: bool = False


class FlaggedContentReport(BaseModel):
    """A user-initiated report waiting in flagged_content_queue."""

    id: Optional[str] = None
    content_type: str
    content_id: str
    user_id: Optional[str] = None
    reporter_id: Optional[str] = None
    content_text: str
    flag_reason: str
    severity: Severity = Severity.MEDIUM
    status: ReportStatus = ReportStatus.PENDING
    created_at: Optional[datetime] = None


# ===========================================
# Request Models
# ===========================================


class FilterContentRequest(BaseModel):
    """Content to run through the filter."""

    content: str = Field(..., max_length=MESSAGE_MAX_LENGTH)
    context: str = Field(DEFAULT_CONTEXT, min_length=1, max_length=CONTEXT_MAX_LENGTH)
    user_id: Optional[str] = None


class ScreenMessageRequest(BaseModel):
    """A message from a known user, gated on posting status before filtering."""

    user_id: str
    content: str = Field(..., max_length=MESSAGE_MAX_LENGTH)
    context: str = Field(DEFAULT_CONTEXT, min_length=1, max_length=CONTEXT_MAX_LENGTH)


class RecordViolationRequest(BaseModel):
    """Severity score of the pass that produced the violation."""

    severity_score: int = Field(..., ge=0)


class CreateRuleRequest(BaseModel):
    """New moderation rule. The pattern must compile before it is stored."""

    rule_type: RuleType
    pattern: str = Field(..., min_length=1, max_length=RULE_PATTERN_MAX_LENGTH)
    severity: Severity = Severity.MEDIUM
    action: RuleAction = RuleAction.FLAG
    replacement_text: Optional[str] = Field(None, max_length=RULE_PATTERN_MAX_LENGTH)
    context: Optional[list[str]] = None
    description: Optional[str] = Field(None, max_length=REPORT_REASON_MAX_LENGTH)
    created_by: Optional[str] = None


class UpdateUserStatusRequest(BaseModel):
    """Moderator ban / shadow-ban decision."""

    is_banned: bool = False
    is_shadow_banned: bool = False
    banned_until: Optional[datetime] = None
    ban_reason: Optional[str] = Field(None, max_length=REPORT_REASON_MAX_LENGTH)
    moderator_id: Optional[str] = None


class ReportContentRequest(BaseModel):
    """User report of content the rules did not catch."""

    content_type: str
    content_id: str
    content_text: str = Field(..., min_length=1)
    user_id: str
    reporter_id: str
    reason: str = Field(..., min_length=1, max_length=REPORT_REASON_MAX_LENGTH)

    @field_validator("content_type")
    @classmethod
    def validate_content_type(cls, value: str) -> str:
        if value not in REPORT_CONTENT_TYPES:
            raise ValueError(f"content_type must be one of: {', '.join(REPORT_CONTENT_TYPES)}")
        return value


# ===========================================
# Response Models
# ===========================================


class ScreenMessageResponse(BaseModel):
    """Posting gate plus filter verdict. result is None when the user cannot post."""

    posting: PostingStatus
    result: Optional[ModerationResult] = None


class ReportContentResponse(BaseModel):
    """Acknowledgement for a queued report."""

    success: bool = True


class ReportQueueResponse(BaseModel):
    """A page of the review queue."""

    reports: list[FlaggedContentReport]
    count: int


class RuleListResponse(BaseModel):
    """Rules matching a moderator query."""

    rules: list[ModerationRule]
    count: int


class UserStatusListResponse(BaseModel):
    """A page of user status rows."""

    users: list[UserModerationStatus]
    count: int


class RuleRefreshResponse(BaseModel):
    """Active rule count after a forced refresh."""

    active_rules: int


# ===========================================
# Exception Classes
# ===========================================


class ModerationError(Exception):
    """Base exception for moderation errors."""

    pass


class RuleCompilationError(ModerationError):
    """A stored rule's pattern is not a valid regular expression."""

    def __init__(self, rule_id: Optional[str], pattern: str, reason: str):
        self.rule_id = rule_id
        self.pattern = pattern
        self.reason = reason
        prefix = f"Rule {rule_id} has an invalid pattern" if rule_id else "Invalid pattern"
        super().__init__(f"{prefix} {pattern!r}: {reason}")


class StoreUnavailableError(ModerationError):
    """The backing store could not be read or written."""

    pass
