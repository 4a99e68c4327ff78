"""FastAPI dependency functions shared across routers.

The long-lived collaborators (settings, session factory, key store,
authenticator, usage logger, issuance service) are built once by
``app.main.create_app`` and stored on ``app.state``. The functions here only
read them back for the current request.

API key authentication
----------------------
``require_api_key`` guards every protected router. On success it:

* stores an ``ApiKeyContext`` on ``request.state.api_key`` and returns it,
* adds ``X-RateLimit-Limit`` / ``X-RateLimit-Remaining`` response headers
  when the usage count is known,
* schedules the ``last_used_at`` update and the usage row as background
  tasks. The same task list is kept on ``request.state.usage_tasks`` so the
  exception handlers still run it when the endpoint itself fails.
"""

from collections.abc import Iterator

from fastapi import BackgroundTasks, Request, Response
from sqlalchemy.orm import Session

from app.config import Settings
from app.services.api_key_service import ApiKeyService
from app.services.authenticator import ApiKeyAuthenticator, ApiKeyContext
from app.services.key_store import KeyStore
from app.services.usage_logger import UsageLogger


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_key_store(request: Request) -> KeyStore:
    return request.app.state.key_store


def get_api_key_service(request: Request) -> ApiKeyService:
    return request.app.state.api_key_service


def get_db(request: Request) -> Iterator[Session]:
    """Yield a session from the application's session factory."""
    db: Session = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def require_api_key(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
) -> ApiKeyContext:
    """Authenticate the ``X-API-Key`` header or raise 401/403/429/500.

    Usage::

        router = APIRouter(dependencies=[Depends(require_api_key)])

        @router.get("/thing")
        def endpoint(api_key: ApiKeyContext = Depends(require_api_key)):
            ...
    """
    settings: Settings = request.app.state.settings
    authenticator: ApiKeyAuthenticator = request.app.state.authenticator
    usage_logger: UsageLogger = request.app.state.usage_logger

    raw_key = request.headers.get(settings.api_key_header)
    context, status = authenticator.authenticate(raw_key)

    if status.remaining is not None:
        response.headers["X-RateLimit-Limit"] = str(status.limit)
        response.headers["X-RateLimit-Remaining"] = str(status.remaining)

    background_tasks.add_task(usage_logger.touch, context.api_key_id)
    background_tasks.add_task(
        usage_logger.record,
        context.api_key_id,
        request.url.path,
        request.method,
        request.client.host if request.client else None,
        request.headers.get("user-agent"),
    )
    request.state.usage_tasks = background_tasks
    request.state.api_key = context
    return context
