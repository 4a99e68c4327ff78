"""Movie catalog models.

Entity tables expose a uniform ``id`` / ``name`` pair in Python while keeping
the ``<entity>_id`` / ``<entity>_name`` column names of the catalog schema.
"""

from datetime import date

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base


def _junction(name: str, other_table: str, other_pk: str) -> Table:
    return Table(
        name,
        Base.metadata,
        Column("movie_id", ForeignKey("movies.movie_id", ondelete="CASCADE"), primary_key=True),
        Column(other_pk, ForeignKey(f"{other_table}.{other_pk}", ondelete="CASCADE"), primary_key=True),
    )


movie_genres = _junction("movie_genres", "genres", "genre_id")
movie_studios = _junction("movie_studios", "studios", "studio_id")
movie_directors = _junction("movie_directors", "directors", "director_id")
movie_producers = _junction("movie_producers", "producers", "producer_id")


class Collection(Base):
    __tablename__ = "collections"

    id: Mapped[int] = mapped_column("collection_id", Integer, primary_key=True)
    name: Mapped[str] = mapped_column("collection_name", String(255), unique=True)

    movies: Mapped[list["Movie"]] = relationship(back_populates="collection")


class Genre(Base):
    __tablename__ = "genres"

    id: Mapped[int] = mapped_column("genre_id", Integer, primary_key=True)
    name: Mapped[str] = mapped_column("genre_name", String(100), unique=True)


class Studio(Base):
    __tablename__ = "studios"

    id: Mapped[int] = mapped_column("studio_id", Integer, primary_key=True)
    name: Mapped[str] = mapped_column("studio_name", String(255), unique=True, index=True)
    logo_url: Mapped[str | None] = mapped_column(String(500), default=None)
    country: Mapped[str | None] = mapped_column(String(5), default=None)


class Director(Base):
    __tablename__ = "directors"

    id: Mapped[int] = mapped_column("director_id", Integer, primary_key=True)
    name: Mapped[str] = mapped_column("director_name", String(255), unique=True)


class Producer(Base):
    __tablename__ = "producers"

    id: Mapped[int] = mapped_column("producer_id", Integer, primary_key=True)
    name: Mapped[str] = mapped_column("producer_name", String(255), unique=True)


class Actor(Base):
    __tablename__ = "actors"

    id: Mapped[int] = mapped_column("actor_id", Integer, primary_key=True)
    name: Mapped[str] = mapped_column("actor_name", String(255), unique=True, index=True)
    profile_url: Mapped[str | None] = mapped_column(String(500), default=None)


class MovieActor(Base):
    """Cast entry: an actor's billing position and role in one movie."""

    __tablename__ = "movie_actors"
    __table_args__ = (
        CheckConstraint("actor_order >= 1 AND actor_order <= 10", name="check_actor_order"),
    )

    movie_id: Mapped[int] = mapped_column(
        ForeignKey("movies.movie_id", ondelete="CASCADE"), primary_key=True
    )
    actor_id: Mapped[int] = mapped_column(
        ForeignKey("actors.actor_id", ondelete="CASCADE"), primary_key=True
    )
    actor_order: Mapped[int] = mapped_column(Integer, primary_key=True)
    character_name: Mapped[str | None] = mapped_column(String(500), default=None)

    actor: Mapped[Actor] = relationship(lazy="joined")


class Movie(Base):
    __tablename__ = "movies"
    __table_args__ = (
        CheckConstraint("runtime_minutes > 0", name="check_runtime"),
        CheckConstraint("budget >= 0", name="check_budget"),
        CheckConstraint("revenue >= 0", name="check_revenue"),
    )

    id: Mapped[int] = mapped_column("movie_id", Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(500), index=True)
    original_title: Mapped[str | None] = mapped_column(String(500), default=None)
    release_date: Mapped[date | None] = mapped_column(Date, default=None, index=True)
    runtime_minutes: Mapped[int | None] = mapped_column(Integer, default=None)
    overview: Mapped[str | None] = mapped_column(Text, default=None)
    budget: Mapped[int | None] = mapped_column(BigInteger, default=None)
    revenue: Mapped[int | None] = mapped_column(BigInteger, default=None)
    mpa_rating: Mapped[str | None] = mapped_column(String(10), default=None)
    collection_id: Mapped[int | None] = mapped_column(
        ForeignKey("collections.collection_id"), default=None, index=True
    )
    poster_url: Mapped[str | None] = mapped_column(String(500), default=None)
    backdrop_url: Mapped[str | None] = mapped_column(String(500), default=None)

    collection: Mapped[Collection | None] = relationship(back_populates="movies")
    genres: Mapped[list[Genre]] = relationship(secondary=movie_genres)
    studios: Mapped[list[Studio]] = relationship(secondary=movie_studios)
    directors: Mapped[list[Director]] = relationship(secondary=movie_directors)
    producers: Mapped[list[Producer]] = relationship(secondary=movie_producers)
    cast: Mapped[list[MovieActor]] = relationship(
        order_by=MovieActor.actor_order, cascade="all, delete-orphan"
    )
