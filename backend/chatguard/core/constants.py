"""
Application constants for the moderation engine.

Centralizes timing values, table names and limits used across the service.
"""

# Rule cache
RULE_CACHE_TTL_SECONDS = 300  # 5 minutes
RULE_REFRESH_TIMEOUT_SECONDS = 2.0  # Max wait for the caller that triggers a refresh
RULE_REFRESH_RETRY_SECONDS = 30  # Back-off after a failed refresh

# Rule matching
DEFAULT_REPLACEMENT_TEXT = "***"
DEFAULT_CONTEXT = "chat"
COMPILED_PATTERN_CACHE_SIZE = 1024
RULE_PATTERN_MAX_LENGTH = 500

# User status
USER_STATUS_CACHE_TTL_SECONDS = 30
VIOLATION_WRITE_MAX_ATTEMPTS = 3  # Optimistic read-modify-write retries

# Decision logging
PLACEHOLDER_CONTENT_ID = "00000000-0000-0000-0000-000000000000"
LOG_TASK_MAX_RETRIES = 3
LOG_TASK_RETRY_DELAY_SECONDS = 10

# Content length limits
MESSAGE_MAX_LENGTH = 500
REPORT_REASON_MAX_LENGTH = 1000
CONTEXT_MAX_LENGTH = 50

# Review queue pagination
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

# Supabase tables
RULES_TABLE = "moderation_rules"
LOGS_TABLE = "moderation_logs"
USER_STATUS_TABLE = "user_moderation_status"
REPORT_QUEUE_TABLE = "flagged_content_queue"

# Report content types accepted by the review queue
REPORT_CONTENT_TYPES = ["chat_message", "comment", "username", "interaction", "poll", "quiz"]

# Postgres unique_violation (concurrent lazy insert of a status row)
UNIQUE_VIOLATION_CODE = "23505"
