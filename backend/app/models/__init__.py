from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# Import all models so that Base.metadata.create_all picks them up.
from app.models.api_key import ApiKey  # noqa: E402, F401
from app.models.api_key_usage import ApiKeyUsage  # noqa: E402, F401
from app.models.catalog import (  # noqa: E402, F401
    Actor,
    Collection,
    Director,
    Genre,
    Movie,
    MovieActor,
    Producer,
    Studio,
)
