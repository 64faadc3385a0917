"""Moderation engine services."""

from chatguard.services.moderation_service import ModerationService, get_moderation_service

__all__ = [
    "ModerationService",
    "get_moderation_service",
]
