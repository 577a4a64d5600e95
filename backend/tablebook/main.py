"""
Table Booking API - Main Application Entry Point

A restaurant table reservation service demonstrating:
- Double-booking prevention through a partial unique index on the slot key
- Email-verified accounts with JWT access tokens and Redis-backed logout
- Structured logging with request correlation
- Prometheus metrics for admissions, conflicts and logins
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tablebook.core.config import get_settings
from tablebook.core.logging import setup_logging, get_logger
from tablebook.core.metrics import metrics_endpoint
from tablebook.api.router import api_router
from tablebook.api.errors import setup_exception_handlers
from tablebook.api.middleware import RequestLoggingMiddleware
from tablebook.db.session import build_engine, build_session_factory
from tablebook.infrastructure.redis_client import connect_redis, close_redis, get_token_store_status
from tablebook.services.mailer_factory import build_mailer

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Process-lifetime resources: database engine, session factory, Redis
    client and mailer are created here and handed to requests via app.state.
    """
    setup_logging(settings)
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    engine = build_engine(settings)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.mailer = build_mailer(settings)

    app.state.redis = await connect_redis(settings)
    if app.state.redis:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Logout will not revoke tokens")

    yield

    await close_redis(app.state.redis)
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Restaurant table reservations with concurrency-safe slot admission",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)
setup_exception_handlers(app)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    token_store = await get_token_store_status(getattr(app.state, "redis", None))
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "token_store": token_store,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "tables": settings.TABLE_AMOUNT,
        "opening_hours": f"{settings.OPENING_HOUR:02d}:00-{settings.CLOSING_HOUR:02d}:00",
    }
