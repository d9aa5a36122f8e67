import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from feelsy.core.config import get_settings
from feelsy.core.exceptions import register_exception_handlers
from feelsy.core.logging_config import setup_logging
from feelsy.core.middleware import (
    CorrelationIDMiddleware,
    JWTValidationMiddleware,
    RequestLoggingMiddleware,
)
from feelsy.core.posthog import init_posthog, shutdown_posthog
from feelsy.core.rate_limit import limiter, rate_limit_exceeded_handler
from feelsy.core.redis import close_redis, init_redis
from feelsy.routers import feels, health

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    setup_logging()
    logger.info("Starting %s...", settings.app_name)
    await init_redis()
    logger.info("Redis connection initialized")
    init_posthog()
    yield
    logger.info("Shutting down %s...", settings.app_name)
    shutdown_posthog()
    await close_redis()
    logger.info("Redis connection closed")


app = FastAPI(
    title=settings.app_name,
    description="Daily mood and energy check-ins with streaks, badges and friends",
    version="0.1.0",
    lifespan=lifespan,
)

# Middleware runs in reverse order of registration: correlation ID is set
# first so every later log line carries it.
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(JWTValidationMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIDMiddleware)

# Rate limiting (slowapi + Redis)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Global exception handlers (domain exceptions -> HTTP responses)
register_exception_handlers(app)

app.include_router(health.router, tags=["Health"])
app.include_router(feels.router, prefix=f"{settings.api_prefix}/feels", tags=["Feels"])
