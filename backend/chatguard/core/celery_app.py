"""
Celery application configuration for the moderation service.

Handles background work that must not sit on the chat path:
- Moderation decision log writes (retried on store failures)
"""

from celery import Celery

from chatguard.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "chatguard",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "chatguard.tasks.moderation_tasks",
    ],
)

celery_app.conf.update(
    # Task serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Task execution
    task_time_limit=60,
    task_soft_time_limit=45,
    task_ignore_result=True,  # Log writes are fire-and-forget
    # Broker: fail fast when Redis is down so enqueueing never stalls a message
    broker_connection_timeout=1,
    broker_transport_options={"max_retries": 1, "interval_start": 0, "interval_step": 0.2},
    # Worker
    worker_prefetch_multiplier=4,
    worker_concurrency=4,
)
