"""Catalog service: queries and writes for movies and related entities.

Keeps DB operations isolated from the API layer. All list queries return
``(rows, total)`` so routers can build pagination metadata.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy import ColumnElement, extract, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.models.catalog import (
    Actor,
    Collection,
    Director,
    Genre,
    Movie,
    MovieActor,
    Producer,
    Studio,
)

logger = logging.getLogger(__name__)

MAX_CAST = 10
LINK_FIELDS = ("genres", "directors", "producers", "studios", "cast")


@dataclass
class MovieFilters:
    """Optional filters for ``CatalogService.list_movies``. ``None`` means unset."""

    title: str | None = None
    year: int | None = None
    genre: str | None = None
    rating: str | None = None
    actor: str | None = None
    director: str | None = None
    studio: str | None = None
    collection: str | None = None
    min_budget: int | None = None
    max_budget: int | None = None
    min_revenue: int | None = None
    max_revenue: int | None = None
    start_date: date | None = None
    end_date: date | None = None


@dataclass
class BulkItemResult:
    title: str | None
    success: bool
    movie_id: int | None = None
    error: str | None = None


@dataclass(frozen=True)
class EntityKind:
    """How to query one related entity type (directors, actors, ...)."""

    label: str
    model: type
    # Movie-side condition selecting movies linked to entity rows matching ``cond``
    movies_where: Callable[[ColumnElement[bool]], ColumnElement[bool]]
    oldest_first: bool = False
    # Extra columns returned alongside id/name
    detail_fields: tuple[str, ...] = ()


def _contains(column, text: str) -> ColumnElement[bool]:
    return column.icontains(text, autoescape=True)


DIRECTORS = EntityKind("director", Director, lambda cond: Movie.directors.any(cond))
ACTORS = EntityKind(
    "actor",
    Actor,
    lambda cond: Movie.cast.any(MovieActor.actor.has(cond)),
    detail_fields=("profile_url",),
)
STUDIOS = EntityKind(
    "studio",
    Studio,
    lambda cond: Movie.studios.any(cond),
    detail_fields=("logo_url", "country"),
)
COLLECTIONS = EntityKind(
    "collection", Collection, lambda cond: Movie.collection.has(cond), oldest_first=True
)

ENTITY_KINDS = {"directors": DIRECTORS, "actors": ACTORS, "studios": STUDIOS, "collections": COLLECTIONS}


def _movie_conditions(filters: MovieFilters) -> list[ColumnElement[bool]]:
    conds: list[ColumnElement[bool]] = []
    if filters.title:
        conds.append(_contains(Movie.title, filters.title))
    if filters.year is not None:
        conds.append(extract("year", Movie.release_date) == filters.year)
    if filters.genre:
        conds.append(Movie.genres.any(func.lower(Genre.name) == filters.genre.lower()))
    if filters.rating:
        conds.append(Movie.mpa_rating == filters.rating)
    if filters.actor:
        conds.append(ACTORS.movies_where(_contains(Actor.name, filters.actor)))
    if filters.director:
        conds.append(DIRECTORS.movies_where(_contains(Director.name, filters.director)))
    if filters.studio:
        conds.append(STUDIOS.movies_where(_contains(Studio.name, filters.studio)))
    if filters.collection:
        conds.append(COLLECTIONS.movies_where(_contains(Collection.name, filters.collection)))
    if filters.min_budget is not None:
        conds.append(Movie.budget >= filters.min_budget)
    if filters.max_budget is not None:
        conds.append(Movie.budget <= filters.max_budget)
    if filters.min_revenue is not None:
        conds.append(Movie.revenue >= filters.min_revenue)
    if filters.max_revenue is not None:
        conds.append(Movie.revenue <= filters.max_revenue)
    if filters.start_date is not None:
        conds.append(Movie.release_date >= filters.start_date)
    if filters.end_date is not None:
        conds.append(Movie.release_date <= filters.end_date)
    return conds


def _unique(names: list[str]) -> list[str]:
    """Strip names and drop duplicates, keeping first-seen order."""
    return list(dict.fromkeys(n.strip() for n in names if n.strip()))


def _first_by_name(items: list[dict]) -> list[dict]:
    seen: dict[str, dict] = {}
    for item in items:
        seen.setdefault(item["name"].strip(), item)
    return list(seen.values())


def _split_related(data: dict[str, Any]) -> dict[str, Any]:
    """Pop relation fields out of ``data``, leaving only movie columns."""
    related = {key: data.pop(key, None) or [] for key in LINK_FIELDS}
    related["collection"] = data.pop("collection", None)
    return related


class CatalogService:
    """Read and write operations over the movie catalog."""

    # ------------------------------------------------------------------
    # Movies: read
    # ------------------------------------------------------------------

    def _page_movies(
        self,
        db: Session,
        conds: list[ColumnElement[bool]],
        order_by: list,
        page: int,
        limit: int,
    ) -> tuple[list[Movie], int]:
        total = db.execute(select(func.count(Movie.id)).where(*conds)).scalar_one()
        stmt = (
            select(Movie)
            .where(*conds)
            .options(selectinload(Movie.directors), selectinload(Movie.genres))
            .order_by(*order_by)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(db.execute(stmt).scalars().all()), int(total)

    def list_movies(
        self, db: Session, filters: MovieFilters, *, page: int = 1, limit: int = 20
    ) -> tuple[list[Movie], int]:
        """Return a page of movies matching ``filters``, ordered by title."""
        return self._page_movies(db, _movie_conditions(filters), [Movie.title, Movie.id], page, limit)

    def get_movie(self, db: Session, movie_id: int) -> Movie | None:
        stmt = (
            select(Movie)
            .where(Movie.id == movie_id)
            .options(
                selectinload(Movie.collection),
                selectinload(Movie.genres),
                selectinload(Movie.directors),
                selectinload(Movie.producers),
                selectinload(Movie.studios),
                selectinload(Movie.cast),
            )
        )
        return db.execute(stmt).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Movies: write
    # ------------------------------------------------------------------

    def _get_or_create(self, db: Session, model: type, name: str, **attrs: Any):
        name = name.strip()
        row = db.execute(select(model).where(model.name == name)).scalar_one_or_none()
        if row is None:
            row = model(name=name, **attrs)
            db.add(row)
            db.flush()
        return row

    def _build_cast(self, db: Session, cast: list[dict]) -> list[MovieActor]:
        return [
            MovieActor(
                actor=self._get_or_create(db, Actor, c["actor_name"], profile_url=c.get("profile_url")),
                character_name=c.get("character_name"),
                actor_order=c["actor_order"],
            )
            for c in sorted(cast, key=lambda c: c["actor_order"])[:MAX_CAST]
        ]

    def _set_relations(self, db: Session, movie: Movie, related: dict[str, Any]) -> None:
        """Replace every link of ``movie`` with the named entities in ``related``."""
        collection_name = related.get("collection")
        movie.collection = self._get_or_create(db, Collection, collection_name) if collection_name else None
        movie.genres = [self._get_or_create(db, Genre, n) for n in _unique(related["genres"])]
        movie.directors = [self._get_or_create(db, Director, n) for n in _unique(related["directors"])]
        movie.producers = [self._get_or_create(db, Producer, n) for n in _unique(related["producers"])]
        movie.studios = [
            self._get_or_create(db, Studio, s["name"], logo_url=s.get("logo_url"), country=s.get("country"))
            for s in _first_by_name(related["studios"])
        ]
        # Old cast rows must be gone before new ones with the same key are inserted
        if movie.cast:
            movie.cast = []
            db.flush()
        movie.cast = self._build_cast(db, related["cast"])

    def create_movie(self, db: Session, data: dict[str, Any]) -> Movie:
        """Create a movie, resolving related entities by name (get-or-create).

        Runs in a single transaction: either the movie and all its links are
        stored, or nothing is.
        """
        related = _split_related(data)
        try:
            movie = Movie(**data)
            db.add(movie)
            self._set_relations(db, movie, related)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Created movie %s", movie.id, extra={"movie_id": movie.id})
        return self.get_movie(db, movie.id)

    def create_movies_bulk(self, db: Session, movies: list[dict[str, Any]]) -> list[BulkItemResult]:
        """Create each movie in its own transaction.

        A failing movie is rolled back and reported; the others are still
        stored. Results follow the input order.
        """
        results = []
        for data in movies:
            title = data.get("title")
            try:
                movie = self.create_movie(db, dict(data))
            except SQLAlchemyError:
                logger.exception("Bulk import failed for movie %r", title)
                results.append(BulkItemResult(title=title, success=False, error="Failed to store movie"))
            else:
                results.append(BulkItemResult(title=title, success=True, movie_id=movie.id))
        return results

    def replace_movie(self, db: Session, movie_id: int, data: dict[str, Any]) -> Movie | None:
        """Overwrite every scalar field and every link of a movie.

        Fields missing from ``data`` are cleared. Returns None if the movie
        does not exist.
        """
        movie = self.get_movie(db, movie_id)
        if movie is None:
            return None
        related = _split_related(data)
        try:
            for field, value in data.items():
                setattr(movie, field, value)
            self._set_relations(db, movie, related)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Replaced movie %s", movie_id, extra={"movie_id": movie_id})
        return self.get_movie(db, movie_id)

    def update_movie(self, db: Session, movie_id: int, changes: dict[str, Any]) -> Movie | None:
        """Apply scalar field ``changes`` to a movie. Returns None if missing."""
        movie = db.get(Movie, movie_id)
        if movie is None:
            return None
        for field, value in changes.items():
            setattr(movie, field, value)
        db.commit()
        return self.get_movie(db, movie_id)

    def update_cast(self, db: Session, movie_id: int, cast: list[dict]) -> int | None:
        """Replace a movie's cast. Returns the stored cast size, or None if missing.

        At most ``MAX_CAST`` entries are kept, lowest ``actor_order`` first.
        """
        movie = self.get_movie(db, movie_id)
        if movie is None:
            return None
        try:
            movie.cast = []
            db.flush()
            movie.cast = self._build_cast(db, cast)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Updated cast of movie %s", movie_id, extra={"movie_id": movie_id})
        return len(movie.cast)

    def delete_movie(self, db: Session, movie_id: int) -> Movie | None:
        """Delete a movie and its junction rows. Returns the deleted row or None."""
        movie = self.get_movie(db, movie_id)
        if movie is None:
            return None
        db.delete(movie)
        db.commit()
        logger.info("Deleted movie %s", movie_id, extra={"movie_id": movie_id})
        return movie

    # ------------------------------------------------------------------
    # Related entities
    # ------------------------------------------------------------------

    def list_entities(
        self,
        db: Session,
        kind: EntityKind,
        *,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Any], int]:
        model = kind.model
        conds = [_contains(model.name, search)] if search else []
        total = db.execute(select(func.count(model.id)).where(*conds)).scalar_one()
        rows = db.execute(
            select(model)
            .where(*conds)
            .order_by(model.name)
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()
        return list(rows), int(total)

    def get_entity(self, db: Session, kind: EntityKind, entity_id: int) -> Any | None:
        return db.get(kind.model, entity_id)

    def movies_for_entity(
        self,
        db: Session,
        kind: EntityKind,
        *,
        entity_id: int | None = None,
        name: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Movie], int]:
        """Movies linked to one entity (by id) or to entities matching ``name``."""
        if entity_id is not None:
            cond = kind.model.id == entity_id
        elif name:
            cond = _contains(kind.model.name, name)
        else:
            raise ValueError("entity_id or name is required")

        date_order = Movie.release_date.asc() if kind.oldest_first else Movie.release_date.desc()
        return self._page_movies(db, [kind.movies_where(cond)], [date_order, Movie.id], page, limit)
