"""Directors, actors, studios and collections.

Each kind gets the same read-only routes (all require an API key):

  GET /api/{kind}                      - paginated list, ordered by name
  GET /api/{kind}/search?q=            - substring search on name
  GET /api/{kind}/{id}                 - single entity
  GET /api/{kind}/{id}/movies          - movies linked to the entity
  GET /api/{kind}/name/{name}/movies   - movies linked by name substring
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from app.api.schemas import (
    MAX_PAGE_SIZE,
    EntityListResponse,
    EntityOut,
    MovieListResponse,
    MovieSummary,
    pagination_meta,
)
from app.deps import get_db, require_api_key
from app.errors import NotFoundError
from app.services.catalog_service import ENTITY_KINDS, CatalogService, EntityKind

_catalog = CatalogService()

Page = Annotated[int, Query(ge=1)]
Limit = Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)]
EntityId = Annotated[int, Path(ge=1)]


def _entity_out(kind: EntityKind, row: Any) -> EntityOut:
    return EntityOut(
        id=row.id,
        name=row.name,
        details={field: getattr(row, field) for field in kind.detail_fields},
    )


def _movie_page(
    movies: list, total: int, page: int, limit: int, not_found: str
) -> MovieListResponse:
    if total == 0:
        raise NotFoundError(not_found)
    return MovieListResponse(
        data=[MovieSummary.from_movie(m) for m in movies],
        meta=pagination_meta(page, limit, total),
    )


def build_entity_router(path: str, kind: EntityKind) -> APIRouter:
    """Create the router for one entity kind mounted at ``/api/{path}``."""
    router = APIRouter(
        prefix=f"/api/{path}", tags=[path], dependencies=[Depends(require_api_key)]
    )
    label = kind.label.capitalize()

    @router.get("", response_model=EntityListResponse, response_model_exclude_none=True)
    def list_entities(
        db: Annotated[Session, Depends(get_db)],
        page: Page = 1,
        limit: Limit = 20,
    ) -> EntityListResponse:
        rows, total = _catalog.list_entities(db, kind, page=page, limit=limit)
        return EntityListResponse(
            data=[_entity_out(kind, r) for r in rows],
            meta=pagination_meta(page, limit, total),
        )

    @router.get("/search", response_model=EntityListResponse, response_model_exclude_none=True)
    def search_entities(
        db: Annotated[Session, Depends(get_db)],
        q: Annotated[str, Query(min_length=1, max_length=255)],
        page: Page = 1,
        limit: Limit = 20,
    ) -> EntityListResponse:
        rows, total = _catalog.list_entities(db, kind, search=q, page=page, limit=limit)
        if total == 0:
            raise NotFoundError(f"No {path} found matching '{q}'")
        return EntityListResponse(
            data=[_entity_out(kind, r) for r in rows],
            meta=pagination_meta(page, limit, total, {"q": q}),
        )

    @router.get(
        "/name/{name}/movies",
        response_model=MovieListResponse,
        response_model_exclude_none=True,
    )
    def movies_by_name(
        name: str,
        db: Annotated[Session, Depends(get_db)],
        page: Page = 1,
        limit: Limit = 20,
    ) -> MovieListResponse:
        movies, total = _catalog.movies_for_entity(db, kind, name=name, page=page, limit=limit)
        return _movie_page(movies, total, page, limit, f"No movies found for {kind.label} '{name}'")

    @router.get("/{entity_id}", response_model=EntityOut)
    def get_entity(entity_id: EntityId, db: Annotated[Session, Depends(get_db)]) -> EntityOut:
        row = _catalog.get_entity(db, kind, entity_id)
        if row is None:
            raise NotFoundError(f"{label} with ID {entity_id} not found")
        return _entity_out(kind, row)

    @router.get(
        "/{entity_id}/movies",
        response_model=MovieListResponse,
        response_model_exclude_none=True,
    )
    def movies_by_id(
        entity_id: EntityId,
        db: Annotated[Session, Depends(get_db)],
        page: Page = 1,
        limit: Limit = 20,
    ) -> MovieListResponse:
        if _catalog.get_entity(db, kind, entity_id) is None:
            raise NotFoundError(f"{label} with ID {entity_id} not found")
        movies, total = _catalog.movies_for_entity(
            db, kind, entity_id=entity_id, page=page, limit=limit
        )
        return _movie_page(movies, total, page, limit, f"No movies found for {kind.label} {entity_id}")

    return router


routers = [build_entity_router(path, kind) for path, kind in ENTITY_KINDS.items()]
