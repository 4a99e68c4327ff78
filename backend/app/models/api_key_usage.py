from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.utils.datetime import utcnow


class ApiKeyUsage(Base):
    """Append-only audit row, one per authenticated request.

    Also the source of truth for rate limiting: the limiter counts rows for a
    key inside the trailing window.
    """

    __tablename__ = "api_key_usage"
    __table_args__ = (Index("idx_api_key_usage_key_time", "api_key_id", "requested_at"),)

    id: Mapped[int] = mapped_column("usage_id", Integer, primary_key=True)
    api_key_id: Mapped[int] = mapped_column(Integer, ForeignKey("api_keys.api_key_id"))
    endpoint: Mapped[str] = mapped_column(String(500))
    method: Mapped[str] = mapped_column(String(10))
    ip_address: Mapped[str | None] = mapped_column(String(45), default=None)
    user_agent: Mapped[str | None] = mapped_column(String(1000), default=None)
    requested_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
