"""Background tasks for the moderation service."""

from chatguard.tasks.moderation_tasks import write_moderation_log

__all__ = ["write_moderation_log"]
