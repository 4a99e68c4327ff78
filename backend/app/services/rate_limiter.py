"""Per-key sliding-window rate limiter backed by the usage audit log.

There is no separate counter: a request is allowed when the number of
``api_key_usage`` rows for the key in the trailing window is below the key's
``rate_limit``. The window slides with the clock, it is not a calendar bucket.

If the count query fails the limiter fails open and allows the request.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError

from app.services.key_store import KeyStore
from app.utils.datetime import utcnow

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 3600


@dataclass(frozen=True)
class RateLimitStatus:
    """Outcome of one rate-limit evaluation.

    ``used`` and ``remaining`` are ``None`` when the count could not be read.
    ``remaining`` accounts for the current request.
    """

    allowed: bool
    limit: int
    used: int | None
    remaining: int | None


class RateLimiter:
    def __init__(self, store: KeyStore, window_seconds: int = DEFAULT_WINDOW_SECONDS) -> None:
        self._store = store
        self._window = timedelta(seconds=window_seconds)

    @property
    def window_seconds(self) -> int:
        return int(self._window.total_seconds())

    def evaluate(self, api_key_id: int, limit: int) -> RateLimitStatus:
        since = utcnow() - self._window
        try:
            used = self._store.count_usage_since(api_key_id, since)
        except SQLAlchemyError:
            logger.warning(
                "Rate limit check failed, allowing request",
                exc_info=True,
                extra={"api_key_id": api_key_id},
            )
            return RateLimitStatus(allowed=True, limit=limit, used=None, remaining=None)

        allowed = used < limit
        if not allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={"api_key_id": api_key_id, "rate_limit": limit, "current_count": used},
            )
        return RateLimitStatus(
            allowed=allowed,
            limit=limit,
            used=used,
            remaining=max(0, limit - used - 1),
        )

    def check(self, api_key_id: int, limit: int) -> bool:
        """Return True when ``api_key_id`` may make another request."""
        return self.evaluate(api_key_id, limit).allowed
