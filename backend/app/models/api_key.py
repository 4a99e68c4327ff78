from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base

DEFAULT_RATE_LIMIT = 1000


class ApiKey(Base):
    """API key for programmatic access to the protected /api/* endpoints.

    The raw key is never stored. Only the SHA-256 hash is persisted, so a
    given plaintext maps to at most one row. Revocation flips ``is_active``;
    rows are never deleted.
    """

    __tablename__ = "api_keys"
    __table_args__ = (CheckConstraint("rate_limit > 0", name="check_rate_limit_positive"),)

    id: Mapped[int] = mapped_column("api_key_id", Integer, primary_key=True)
    key_hash: Mapped[str] = mapped_column("api_key", String(64), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255), default=None)
    # Requests allowed per rolling hour
    rate_limit: Mapped[int] = mapped_column(Integer, default=DEFAULT_RATE_LIMIT)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime, default=None)
