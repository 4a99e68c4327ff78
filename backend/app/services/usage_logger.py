"""Best-effort recording of authenticated calls.

Both operations run after the authentication decision, as background tasks
scheduled on the response. Store failures are logged and swallowed here: a
failed audit write must never turn an allowed request into an error.
"""

import logging

from app.services.key_store import KeyStore

logger = logging.getLogger(__name__)


class UsageLogger:
    def __init__(self, store: KeyStore) -> None:
        self._store = store

    def record(
        self,
        api_key_id: int,
        endpoint: str,
        method: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        """Append one usage row for ``api_key_id``."""
        try:
            self._store.insert_usage(
                api_key_id,
                endpoint,
                method,
                ip_address=ip_address or None,
                user_agent=user_agent or None,
            )
        except Exception:
            logger.exception(
                "Failed to log API key usage",
                extra={"api_key_id": api_key_id, "endpoint": endpoint, "method": method},
            )

    def touch(self, api_key_id: int) -> None:
        """Update ``last_used_at`` for ``api_key_id``."""
        try:
            self._store.touch_last_used(api_key_id)
        except Exception:
            logger.exception("Failed to update last_used_at", extra={"api_key_id": api_key_id})
