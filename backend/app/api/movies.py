"""Movies API.

Implements (all require an API key):
  GET    /api/movies          - filtered, paginated listing
  GET    /api/movies/{id}     - full detail with cast and credits
  POST   /api/movies          - create a movie and its related entities
  POST   /api/movies/bulk     - create many movies, one transaction each
  PUT    /api/movies/{id}     - replace every field and link of a movie
  PATCH  /api/movies/{id}     - partial update of scalar fields
  PATCH  /api/movies/{id}/cast - replace the cast list
  DELETE /api/movies/{id}     - delete a movie
"""

from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path, Query, Response
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.api.schemas import (
    MAX_PAGE_SIZE,
    MovieDetail,
    MovieListResponse,
    MovieSummary,
    pagination_meta,
)
from app.deps import get_db, require_api_key
from app.errors import NotFoundError, ValidationError
from app.services.catalog_service import MAX_CAST, BulkItemResult, CatalogService, MovieFilters

router = APIRouter(prefix="/api/movies", tags=["movies"], dependencies=[Depends(require_api_key)])
_catalog = CatalogService()

MovieId = Annotated[int, Path(ge=1, description="Movie ID")]
MAX_BULK_MOVIES = 100


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class MovieListQuery(BaseModel):
    """Query parameters for ``GET /api/movies``."""

    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=MAX_PAGE_SIZE)
    title: str | None = Field(None, min_length=2)
    year: int | None = Field(None, gt=0)
    genre: str | None = None
    rating: str | None = Field(None, max_length=10)
    actor: str | None = None
    director: str | None = None
    studio: str | None = None
    collection: str | None = None
    minBudget: int | None = Field(None, ge=0)
    maxBudget: int | None = Field(None, ge=0)
    minRevenue: int | None = Field(None, ge=0)
    maxRevenue: int | None = Field(None, ge=0)
    startDate: date | None = None
    endDate: date | None = None

    def to_filters(self) -> MovieFilters:
        return MovieFilters(
            title=self.title,
            year=self.year,
            genre=self.genre,
            rating=self.rating,
            actor=self.actor,
            director=self.director,
            studio=self.studio,
            collection=self.collection,
            min_budget=self.minBudget,
            max_budget=self.maxBudget,
            min_revenue=self.minRevenue,
            max_revenue=self.maxRevenue,
            start_date=self.startDate,
            end_date=self.endDate,
        )

    def echo(self) -> dict:
        """The filters the caller actually set, for the response metadata."""
        return self.model_dump(exclude={"page", "limit"}, exclude_none=True, mode="json")


class StudioIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    logo_url: str | None = Field(None, max_length=500)
    country: str | None = Field(None, max_length=5)


class CastIn(BaseModel):
    actor_name: str = Field(..., min_length=1, max_length=255)
    character_name: str | None = Field(None, max_length=500)
    actor_order: int = Field(..., ge=1, le=10)
    profile_url: str | None = Field(None, max_length=500)


class MovieFields(BaseModel):
    """Scalar movie columns; all optional so PATCH can reuse them."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(None, min_length=1, max_length=500)
    original_title: str | None = Field(None, max_length=500)
    release_date: date | None = None
    runtime_minutes: int | None = Field(None, gt=0)
    overview: str | None = None
    budget: int | None = Field(None, ge=0)
    revenue: int | None = Field(None, ge=0)
    mpa_rating: str | None = Field(None, max_length=10)
    poster_url: str | None = Field(None, max_length=500)
    backdrop_url: str | None = Field(None, max_length=500)


def _check_billing(cast: list[CastIn]) -> None:
    orders = [c.actor_order for c in cast]
    if len(orders) != len(set(orders)):
        raise ValueError("cast actor_order values must be unique")


class MovieCreate(MovieFields):
    title: str = Field(..., min_length=1, max_length=500)
    collection: str | None = Field(None, max_length=255)
    genres: list[str] = Field(default_factory=list)
    directors: list[str] = Field(default_factory=list)
    producers: list[str] = Field(default_factory=list)
    studios: list[StudioIn] = Field(default_factory=list)
    cast: list[CastIn] = Field(default_factory=list, max_length=MAX_CAST)

    @model_validator(mode="after")
    def _unique_billing(self):
        _check_billing(self.cast)
        return self


class MovieReplace(MovieCreate):
    """Body for ``PUT``: anything left out is cleared on the stored movie."""


class CastUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    cast: list[CastIn] = Field(..., max_length=MAX_CAST)

    @model_validator(mode="after")
    def _unique_billing(self):
        _check_billing(self.cast)
        return self


class MovieBulkCreate(BaseModel):
    # Each entry is validated separately by the endpoint
    movies: list[dict[str, Any]] = Field(..., min_length=1, max_length=MAX_BULK_MOVIES)


class MovieDeleteResponse(BaseModel):
    success: bool = True
    message: str
    deleted: dict


class CastUpdateResponse(BaseModel):
    success: bool = True
    movie_id: int
    message: str = "Cast updated successfully"
    cast_count: int


class BulkItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str | None = None
    success: bool
    movie_id: int | None = None
    error: str | None = None


class MovieBulkResponse(BaseModel):
    success: bool
    total_processed: int
    successful: int
    failed: int
    results: list[BulkItemOut]


def _parse_bulk_item(item: dict[str, Any]) -> tuple[dict[str, Any] | None, BulkItemResult | None]:
    """Validate one bulk entry. Returns its payload, or a failed result."""
    try:
        return MovieCreate.model_validate(item).model_dump(), None
    except PydanticValidationError as exc:
        err = exc.errors()[0]
        field = ".".join(str(part) for part in err["loc"]) or "body"
        message = str(err["ctx"]["error"]) if "error" in err.get("ctx", {}) else err["msg"]
        title = item.get("title") if isinstance(item.get("title"), str) else None
        return None, BulkItemResult(title=title, success=False, error=f"{field}: {message}")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=MovieListResponse, response_model_exclude_none=True)
def list_movies(
    query: Annotated[MovieListQuery, Query()],
    db: Annotated[Session, Depends(get_db)],
) -> MovieListResponse:
    """List movies with optional filters.

    Examples::

        GET /api/movies?genre=Action&year=2020
        GET /api/movies?title=batman&minRevenue=1000000
    """
    movies, total = _catalog.list_movies(db, query.to_filters(), page=query.page, limit=query.limit)
    if total == 0:
        raise NotFoundError("No movies found matching the specified criteria")

    return MovieListResponse(
        data=[MovieSummary.from_movie(m) for m in movies],
        meta=pagination_meta(query.page, query.limit, total, query.echo()),
    )


@router.get("/{movie_id}", response_model=MovieDetail)
def get_movie(movie_id: MovieId, db: Annotated[Session, Depends(get_db)]) -> MovieDetail:
    movie = _catalog.get_movie(db, movie_id)
    if movie is None:
        raise NotFoundError(f"Movie with ID {movie_id} not found")
    return MovieDetail.from_movie(movie)


@router.post("", response_model=MovieDetail, status_code=201)
def create_movie(body: MovieCreate, db: Annotated[Session, Depends(get_db)]) -> MovieDetail:
    movie = _catalog.create_movie(db, body.model_dump())
    return MovieDetail.from_movie(movie)


@router.post(
    "/bulk",
    response_model=MovieBulkResponse,
    response_model_exclude_none=True,
    status_code=201,
)
def create_movies_bulk(
    body: MovieBulkCreate,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
) -> MovieBulkResponse:
    """Import several movies at once.

    Each entry is validated and stored in its own transaction. Responds 201
    when every entry was stored and 207 when at least one failed.
    """
    parsed = [_parse_bulk_item(item) for item in body.movies]
    stored = iter(_catalog.create_movies_bulk(db, [data for data, _ in parsed if data is not None]))
    results = [next(stored) if data is not None else failure for data, failure in parsed]

    failed = sum(1 for r in results if not r.success)
    if failed:
        response.status_code = 207
    return MovieBulkResponse(
        success=failed == 0,
        total_processed=len(results),
        successful=len(results) - failed,
        failed=failed,
        results=[BulkItemOut.model_validate(r) for r in results],
    )


@router.put("/{movie_id}", response_model=MovieDetail)
def replace_movie(
    movie_id: MovieId,
    body: MovieReplace,
    db: Annotated[Session, Depends(get_db)],
) -> MovieDetail:
    """Replace the whole movie. Fields and links left out of the body are cleared."""
    movie = _catalog.replace_movie(db, movie_id, body.model_dump())
    if movie is None:
        raise NotFoundError(f"Movie with ID {movie_id} not found")
    return MovieDetail.from_movie(movie)


@router.patch("/{movie_id}", response_model=MovieDetail)
def patch_movie(
    movie_id: MovieId,
    body: MovieFields,
    db: Annotated[Session, Depends(get_db)],
) -> MovieDetail:
    """Update only the fields present in the request body."""
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError([{"field": "body", "message": "At least one field must be provided"}])
    if "title" in changes and changes["title"] is None:
        raise ValidationError([{"field": "title", "message": "Title cannot be null"}])

    movie = _catalog.update_movie(db, movie_id, changes)
    if movie is None:
        raise NotFoundError(f"Movie with ID {movie_id} not found")
    return MovieDetail.from_movie(movie)


@router.patch("/{movie_id}/cast", response_model=CastUpdateResponse)
def update_cast(
    movie_id: MovieId,
    body: CastUpdate,
    db: Annotated[Session, Depends(get_db)],
) -> CastUpdateResponse:
    count = _catalog.update_cast(db, movie_id, [c.model_dump() for c in body.cast])
    if count is None:
        raise NotFoundError(f"Movie with ID {movie_id} not found")
    return CastUpdateResponse(movie_id=movie_id, cast_count=count)


@router.delete("/{movie_id}", response_model=MovieDeleteResponse)
def delete_movie(movie_id: MovieId, db: Annotated[Session, Depends(get_db)]) -> MovieDeleteResponse:
    movie = _catalog.delete_movie(db, movie_id)
    if movie is None:
        raise NotFoundError(f"Movie with ID {movie_id} not found")
    return MovieDeleteResponse(
        message=f"Movie '{movie.title}' deleted successfully",
        deleted={"movie_id": movie_id, "title": movie.title},
    )
