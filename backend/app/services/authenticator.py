"""API key authentication decision.

``ApiKeyAuthenticator.authenticate`` runs the checks in a fixed order and
either returns the caller's identity or raises an ``ApiError`` carrying the
HTTP status to send:

1. no key presented            -> 401
2. hash not found              -> 401  (lookup failure -> 500)
3. key revoked                 -> 403
4. key expired                 -> 403
5. rate limit exhausted        -> 429

Revoked and expired keys are rejected before the rate check so they never
consume quota. Recording usage is left to the caller, after the decision.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from app.errors import (
    AuthenticationError,
    AuthorizationError,
    DependencyError,
    QuotaExceededError,
)
from app.services.api_key_service import hash_key
from app.services.key_store import KeyStore
from app.services.rate_limiter import RateLimiter, RateLimitStatus
from app.utils.datetime import as_naive_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiKeyContext:
    """Identity attached to an authenticated request. Read-only downstream."""

    api_key_id: int
    name: str
    email: str | None
    rate_limit: int


class ApiKeyAuthenticator:
    def __init__(self, store: KeyStore, rate_limiter: RateLimiter) -> None:
        self._store = store
        self._rate_limiter = rate_limiter

    def authenticate(self, raw_key: str | None) -> tuple[ApiKeyContext, RateLimitStatus]:
        if not raw_key or not raw_key.strip():
            raise AuthenticationError("API key is required. Include X-API-Key header.")

        try:
            api_key = self._store.find_by_hash(hash_key(raw_key))
        except SQLAlchemyError as exc:
            logger.exception("API key lookup failed")
            raise DependencyError("Authentication failed") from exc

        if api_key is None:
            logger.warning("Invalid API key presented")
            raise AuthenticationError("Invalid API key")

        if not api_key.is_active:
            logger.warning("Revoked API key used", extra={"api_key_id": api_key.id})
            raise AuthorizationError("API key has been revoked")

        if api_key.expires_at is not None and as_naive_utc(api_key.expires_at) <= utcnow():
            logger.warning("Expired API key used", extra={"api_key_id": api_key.id})
            raise AuthorizationError("API key has expired")

        status = self._rate_limiter.evaluate(api_key.id, api_key.rate_limit)
        if not status.allowed:
            raise QuotaExceededError(
                headers={
                    "Retry-After": str(self._rate_limiter.window_seconds),
                    "X-RateLimit-Limit": str(status.limit),
                    "X-RateLimit-Remaining": "0",
                }
            )

        logger.debug("API key authenticated", extra={"api_key_id": api_key.id})
        context = ApiKeyContext(
            api_key_id=api_key.id,
            name=api_key.name,
            email=api_key.email,
            rate_limit=api_key.rate_limit,
        )
        return context, status
