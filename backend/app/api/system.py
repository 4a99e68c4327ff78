"""Public system endpoints: API info and database health."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import Settings
from app.deps import get_db, get_settings
from app.errors import DependencyError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["system"])


@router.get("/api-info")
def api_info(settings: Annotated[Settings, Depends(get_settings)]) -> dict:
    return {
        "name": settings.api_title,
        "version": settings.api_version,
        "description": "RESTful API for movies",
        "documentation": "/docs",
    }


@router.get("/health")
def health(db: Annotated[Session, Depends(get_db)]) -> dict:
    """Report whether the database answers a trivial query."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.exception("Database connection failed")
        raise DependencyError("Database connection failed") from exc
    return {"message": "Database is working!"}
