"""Key store: the narrow data-access surface of the API key subsystem.

The authentication path needs exactly five operations against the database:
lookup by hash, insert a key, bump ``last_used_at``, append a usage row, and
count usage rows inside a window. ``get_by_id`` backs the key info endpoint.

Each call opens its own short-lived session from the factory handed in by the
composition root, so instances hold no per-request state and can be shared
across threads. Database errors propagate as ``SQLAlchemyError``; callers
decide whether a failure is fatal or best-effort.
"""

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import sessionmaker

from app.models.api_key import ApiKey
from app.models.api_key_usage import ApiKeyUsage
from app.utils.datetime import utcnow


class KeyStore:
    """Persistence operations for ``ApiKey`` and ``ApiKeyUsage`` rows."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def find_by_hash(self, key_hash: str) -> ApiKey | None:
        """Return the key whose stored hash equals ``key_hash``, detached."""
        db = self._session_factory()
        try:
            api_key = db.execute(
                select(ApiKey).where(ApiKey.key_hash == key_hash)
            ).scalar_one_or_none()
            if api_key is not None:
                db.expunge(api_key)
            return api_key
        finally:
            db.close()

    def get_by_id(self, api_key_id: int) -> ApiKey | None:
        db = self._session_factory()
        try:
            api_key = db.get(ApiKey, api_key_id)
            if api_key is not None:
                db.expunge(api_key)
            return api_key
        finally:
            db.close()

    def insert_key(
        self,
        key_hash: str,
        name: str,
        email: str | None,
        rate_limit: int,
    ) -> ApiKey:
        """Insert a new active key and return it with ``id``/``created_at`` loaded."""
        db = self._session_factory()
        try:
            api_key = ApiKey(
                key_hash=key_hash,
                name=name,
                email=email,
                rate_limit=rate_limit,
                is_active=True,
            )
            db.add(api_key)
            db.commit()
            db.refresh(api_key)
            db.expunge(api_key)
            return api_key
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def touch_last_used(self, api_key_id: int, when: datetime | None = None) -> None:
        db = self._session_factory()
        try:
            db.execute(
                update(ApiKey)
                .where(ApiKey.id == api_key_id)
                .values(last_used_at=when or utcnow())
            )
            db.commit()
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def insert_usage(
        self,
        api_key_id: int,
        endpoint: str,
        method: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        db = self._session_factory()
        try:
            db.add(
                ApiKeyUsage(
                    api_key_id=api_key_id,
                    endpoint=endpoint,
                    method=method,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    requested_at=utcnow(),
                )
            )
            db.commit()
        finally:
            db.close()

    def count_usage_since(self, api_key_id: int, since: datetime) -> int:
        """Count usage rows for a key with ``requested_at`` strictly after ``since``."""
        db = self._session_factory()
        try:
            count = db.execute(
                select(func.count(ApiKeyUsage.id)).where(
                    ApiKeyUsage.api_key_id == api_key_id,
                    ApiKeyUsage.requested_at > since,
                )
            ).scalar_one()
            return int(count)
        finally:
            db.close()
