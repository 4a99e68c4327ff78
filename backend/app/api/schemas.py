"""Response schemas shared by the catalog routers."""

import math
from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from app.models.catalog import Movie

MAX_PAGE_SIZE = 100


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
    hasNextPage: bool
    hasPreviousPage: bool
    query: dict[str, Any] | None = None


def pagination_meta(
    page: int, limit: int, total: int, query: dict[str, Any] | None = None
) -> PaginationMeta:
    pages = max(1, math.ceil(total / limit))
    return PaginationMeta(
        page=page,
        limit=limit,
        total=total,
        pages=pages,
        hasNextPage=page < pages,
        hasPreviousPage=page > 1,
        query=query or None,
    )


class MovieSummary(BaseModel):
    movie_id: int
    title: str
    original_title: str | None
    directors: list[str]
    genres: list[str]
    release_date: date | None
    runtime_minutes: int | None
    overview: str | None
    budget: int | None
    revenue: int | None
    mpa_rating: str | None
    poster_url: str | None
    backdrop_url: str | None

    @classmethod
    def from_movie(cls, movie: Movie) -> "MovieSummary":
        return cls(
            movie_id=movie.id,
            title=movie.title,
            original_title=movie.original_title,
            directors=[d.name for d in movie.directors],
            genres=[g.name for g in movie.genres],
            release_date=movie.release_date,
            runtime_minutes=movie.runtime_minutes,
            overview=movie.overview,
            budget=movie.budget,
            revenue=movie.revenue,
            mpa_rating=movie.mpa_rating,
            poster_url=movie.poster_url,
            backdrop_url=movie.backdrop_url,
        )


class CastMember(BaseModel):
    actor_id: int
    actor_name: str
    character_name: str | None
    actor_order: int
    profile_url: str | None


class StudioOut(BaseModel):
    studio_id: int
    studio_name: str
    logo_url: str | None
    country: str | None


class MovieDetail(MovieSummary):
    collection: str | None
    producers: list[str]
    studios: list[StudioOut]
    cast: list[CastMember]

    @classmethod
    def from_movie(cls, movie: Movie) -> "MovieDetail":
        summary = MovieSummary.from_movie(movie).model_dump()
        return cls(
            **summary,
            collection=movie.collection.name if movie.collection else None,
            producers=[p.name for p in movie.producers],
            studios=[
                StudioOut(studio_id=s.id, studio_name=s.name, logo_url=s.logo_url, country=s.country)
                for s in movie.studios
            ],
            cast=[
                CastMember(
                    actor_id=c.actor.id,
                    actor_name=c.actor.name,
                    character_name=c.character_name,
                    actor_order=c.actor_order,
                    profile_url=c.actor.profile_url,
                )
                for c in movie.cast
            ],
        )


class MovieListResponse(BaseModel):
    data: list[MovieSummary]
    meta: PaginationMeta


class EntityOut(BaseModel):
    """A director, actor, studio or collection.

    ``id``/``name`` are always present; ``details`` carries per-kind extras
    such as an actor's ``profile_url`` or a studio's ``country``.
    """

    id: int
    name: str
    details: dict[str, Any] = Field(default_factory=dict)


class EntityListResponse(BaseModel):
    data: list[EntityOut]
    meta: PaginationMeta
