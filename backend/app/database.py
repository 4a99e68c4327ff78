from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.config import settings
from app.models import Base


def build_engine(url: str) -> Engine:
    """Create an engine for ``url``; SQLite connections may cross threads."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = build_engine(settings.database_url)


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, class_=Session, expire_on_commit=False)


def init_db(bind: Engine | None = None) -> None:
    """Create all tables."""
    Base.metadata.create_all(bind or engine)
