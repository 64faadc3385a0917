from fastapi import APIRouter

from chatguard.core.cache import cache_ping
from chatguard.services.moderation_service import get_moderation_service

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "chatguard-api"}


@router.get("/health/redis")
def redis_health_check():
    """Redis health check endpoint."""
    try:
        cache_ping()
        return {"status": "healthy", "service": "redis"}
    except Exception as e:
        return {"status": "unhealthy", "service": "redis", "error": str(e)}


@router.get("/health/rules")
def rules_health_check():
    """Rule cache freshness (never triggers a refresh)."""
    rule_cache = get_moderation_service().rule_cache
    return {
        "status": "fresh" if rule_cache.is_fresh else "stale",
        "service": "rule-cache",
        "cached_rules": rule_cache.cached_count,
    }


@router.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Welcome to the ChatGuard moderation API", "docs": "/docs"}
