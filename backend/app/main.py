import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import Engine

# Configure structured JSON logging as early as possible so every subsequent
# log record (including import-time warnings) uses the JSON formatter.
from app.config import Settings, settings as default_settings
from app.logging_config import RequestIdMiddleware, configure_logging

configure_logging(level=default_settings.log_level)

from app.api import entities, keys, movies, system  # noqa: E402
from app.database import engine as default_engine, init_db, make_session_factory  # noqa: E402
from app.errors import register_exception_handlers  # noqa: E402
from app.services.api_key_service import ApiKeyService  # noqa: E402
from app.services.authenticator import ApiKeyAuthenticator  # noqa: E402
from app.services.key_store import KeyStore  # noqa: E402
from app.services.rate_limiter import RateLimiter  # noqa: E402
from app.services.usage_logger import UsageLogger  # noqa: E402

logger = logging.getLogger(__name__)


def create_app(engine: Engine | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the application and its long-lived collaborators.

    This is the only place the session factory, key store and the API key
    services are constructed; handlers reach them through ``app.state``.
    Tests pass their own ``engine`` (usually in-memory SQLite).
    """
    settings = settings or default_settings
    engine = engine or default_engine

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application starting up")
        init_db(engine)
        logger.info("Database initialised", extra={"dialect": engine.dialect.name})
        yield
        logger.info("Application shutting down")

    app = FastAPI(title=settings.api_title, version=settings.api_version, lifespan=lifespan)

    session_factory = make_session_factory(engine)
    key_store = KeyStore(session_factory)
    rate_limiter = RateLimiter(key_store, window_seconds=settings.rate_limit_window_seconds)

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.key_store = key_store
    app.state.authenticator = ApiKeyAuthenticator(key_store, rate_limiter)
    app.state.usage_logger = UsageLogger(key_store)
    app.state.api_key_service = ApiKeyService(key_store, settings.default_rate_limit)

    # Request ID middleware must be added BEFORE CORS so every response carries
    # the X-Request-ID header (including preflight OPTIONS responses).
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["*"],
        allow_headers=["*", settings.api_key_header, "X-Request-ID"],
        expose_headers=["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"],
    )

    register_exception_handlers(app)

    # Public
    app.include_router(system.router)
    app.include_router(keys.router)
    # Protected: every route below depends on require_api_key
    app.include_router(movies.router)
    for router in entities.routers:
        app.include_router(router)

    return app


app = create_app()
