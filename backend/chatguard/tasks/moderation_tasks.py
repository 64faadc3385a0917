"""
Celery tasks for moderation bookkeeping.

Handles:
- Writing moderation decision logs off the chat path
"""

import logging

from chatguard.core.celery_app import celery_app
from chatguard.core.constants import LOG_TASK_MAX_RETRIES, LOG_TASK_RETRY_DELAY_SECONDS
from chatguard.services.moderation_logger import ModerationLogger

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=LOG_TASK_MAX_RETRIES,
    default_retry_delay=LOG_TASK_RETRY_DELAY_SECONDS,
)
def write_moderation_log(self, record: dict) -> dict:
    """
    Insert one moderation_logs row.

    Retries store failures; after the last retry the record is dropped
    (the moderation verdict was returned long ago).
    """
    try:
        ModerationLogger(dispatch_async=False).insert_record(record)
    except Exception as exc:
        logger.error(
            "Moderation log write failed: user=%s action=%s attempt=%d: %s",
            record.get("user_id"),
            record.get("action_taken"),
            self.request.retries + 1,
            exc,
        )
        raise self.retry(exc=exc)

    return {"written": True, "user_id": record.get("user_id")}
