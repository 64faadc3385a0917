"""
Moderation router for the chat/comment ingestion layer.

Endpoints:
- POST /filter: Run content through the active rules
- POST /screen: Posting gate, then filter
- GET /users/{user_id}/status: Whether a user may post
- PUT /users/{user_id}/status: Moderator ban / shadow-ban decision
- POST /users/{user_id}/violations: Count a violation
- POST /reports: Queue a user report for manual review
- GET /reports: Review queue
- GET /users: Moderator status listing
- GET /rules: List rules by context and active flag
- POST /rules: Create a rule (pattern must compile)
- POST /rules/refresh: Reload the rule cache now

Handlers are plain functions: the engine blocks on store and cache I/O and
must run in the threadpool, never on the event loop.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from chatguard.core.constants import CONTEXT_MAX_LENGTH, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from chatguard.core.rate_limit import limiter
from chatguard.models.moderation import (
    CreateRuleRequest,
    FilterContentRequest,
    ModerationResult,
    ModerationRule,
    PostingStatus,
    RecordViolationRequest,
    ReportContentRequest,
    ReportContentResponse,
    ReportQueueResponse,
    ReportStatus,
    RuleCompilationError,
    RuleListResponse,
    RuleRefreshResponse,
    ScreenMessageRequest,
    ScreenMessageResponse,
    StatusFilter,
    UpdateUserStatusRequest,
    UserModerationStatus,
    UserStatusListResponse,
)
from chatguard.services.moderation_service import ModerationService, get_moderation_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/filter", response_model=ModerationResult)
def filter_content(
    body: FilterContentRequest,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> ModerationResult:
    """Filter content through the moderation rules."""
    return moderation_service.filter_content(body.content, body.context, body.user_id)


@router.post("/screen", response_model=ScreenMessageResponse)
def screen_message(
    body: ScreenMessageRequest,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> ScreenMessageResponse:
    """Check the author's posting status, then filter their message."""
    return moderation_service.screen_message(body.user_id, body.content, body.context)


@router.get("/users/{user_id}/status", response_model=PostingStatus)
def get_user_status(
    user_id: str,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> PostingStatus:
    """Whether a user may post right now."""
    return moderation_service.check_user_moderation_status(user_id)


@router.put("/users/{user_id}/status", response_model=UserModerationStatus)
def update_user_status(
    user_id: str,
    body: UpdateUserStatusRequest,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> UserModerationStatus:
    """Apply a moderator's ban / shadow-ban decision."""
    return moderation_service.set_user_status(
        user_id,
        is_banned=body.is_banned,
        is_shadow_banned=body.is_shadow_banned,
        banned_until=body.banned_until,
        ban_reason=body.ban_reason,
        moderator_id=body.moderator_id,
    )


@router.post("/users/{user_id}/violations", status_code=204)
def record_violation(
    user_id: str,
    body: RecordViolationRequest,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> None:
    """Count a violation. Store failures surface as 503 so the caller can retry."""
    moderation_service.update_user_violation_count(user_id, body.severity_score)


@router.post("/reports", response_model=ReportContentResponse)
@limiter.limit("5/minute")
def report_content(
    request: Request,
    report_request: ReportContentRequest,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> ReportContentResponse:
    """Queue a user report for manual review."""
    if report_request.reporter_id == report_request.user_id:
        raise HTTPException(status_code=400, detail="Cannot report your own content")

    queued = moderation_service.report_content(
        content_type=report_request.content_type,
        content_id=report_request.content_id,
        content_text=report_request.content_text,
        user_id=report_request.user_id,
        reporter_id=report_request.reporter_id,
        reason=report_request.reason,
    )
    if not queued:
        raise HTTPException(status_code=503, detail="Report could not be queued, try again")
    return ReportContentResponse(success=True)


@router.get("/reports", response_model=ReportQueueResponse)
def get_reports(
    status: ReportStatus = ReportStatus.PENDING,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> ReportQueueResponse:
    """List the review queue, newest first."""
    reports = moderation_service.get_reports(status=status, limit=limit, offset=offset)
    return ReportQueueResponse(reports=reports, count=len(reports))


@router.post("/rules/refresh", response_model=RuleRefreshResponse)
def refresh_rules(
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> RuleRefreshResponse:
    """Reload the rule cache without waiting for the TTL."""
    count = moderation_service.refresh_rules()
    logger.info("Rule cache refreshed on request: %d active rules", count)
    return RuleRefreshResponse(active_rules=count)


@router.get("/users", response_model=UserStatusListResponse)
def list_user_statuses(
    status_filter: Optional[StatusFilter] = Query(None, alias="filter"),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> UserStatusListResponse:
    """List user status rows, most recent violation first."""
    users = moderation_service.list_user_statuses(
        status_filter=status_filter, limit=limit, offset=offset
    )
    return UserStatusListResponse(users=users, count=len(users))


@router.get("/rules", response_model=RuleListResponse)
def list_rules(
    context: Optional[str] = Query(None, min_length=1, max_length=CONTEXT_MAX_LENGTH),
    active: bool = True,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> RuleListResponse:
    """List rules, newest first."""
    rules = moderation_service.list_rules(context=context, active=active)
    return RuleListResponse(rules=rules, count=len(rules))


@router.post("/rules", response_model=ModerationRule, status_code=201)
def create_rule(
    body: CreateRuleRequest,
    moderation_service: ModerationService = Depends(get_moderation_service),
) -> ModerationRule:
    """Create an active rule. Patterns that do not compile are rejected."""
    try:
        return moderation_service.create_rule(body)
    except RuleCompilationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid regex pattern: {e.reason}")
