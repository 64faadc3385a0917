import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from chatguard.core.config import get_settings
from chatguard.core.exceptions import register_exception_handlers
from chatguard.core.logging_config import setup_logging
from chatguard.core.middleware import CorrelationIDMiddleware
from chatguard.core.rate_limit import limiter, rate_limit_exceeded_handler
from chatguard.routers import health, moderation
from chatguard.services.moderation_service import get_moderation_service

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    logger.info("Starting %s...", settings.app_name)
    engine = get_moderation_service()
    logger.info("Rule cache warmed: %d active rules", engine.refresh_rules())
    yield
    logger.info("Shutting down %s...", settings.app_name)
    engine.rule_cache.close()


app = FastAPI(
    title=settings.app_name,
    description="Content moderation engine for live chat and comments",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Correlation IDs for log tracing
app.add_middleware(CorrelationIDMiddleware)

# Rate limiting (slowapi + Redis)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Global exception handlers (domain exceptions -> HTTP responses)
register_exception_handlers(app)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(
    moderation.router, prefix=f"{settings.api_prefix}/moderation", tags=["Moderation"]
)
