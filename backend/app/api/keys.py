"""API key endpoints.

Implements:
  POST /api/api-key        - issue a new key (public, no auth)
  GET  /api/api-key/info   - describe the key used for this request

The plaintext key appears in exactly one place: the 201 response of the
POST. Only its SHA-256 hash is stored.
"""

import logging
import re
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError

from app.deps import get_api_key_service, get_key_store, require_api_key
from app.errors import DependencyError, NotFoundError
from app.services.api_key_service import ApiKeyService
from app.services.authenticator import ApiKeyContext
from app.services.key_store import KeyStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/api-key", tags=["api-keys"])

_WHITESPACE = re.compile(r"\s+")
_MAX_EMAIL_LENGTH = 255

IMPORTANT_NOTICE = (
    "SAVE THIS KEY SECURELY - It will not be shown again. "
    "Include it in your requests using the X-API-Key header."
)


# --- Pydantic schemas ---


class GenerateApiKeyRequest(BaseModel):
    """Request body for issuing a new API key."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=255, description="Owner name or organization")
    email: EmailStr | None = Field(default=None, description="Optional contact email")

    @field_validator("name", mode="before")
    @classmethod
    def _normalise_name(cls, value):
        if isinstance(value, str):
            return _WHITESPACE.sub(" ", value.strip())
        return value

    @field_validator("email", mode="before")
    @classmethod
    def _normalise_email(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            if not value:
                return None
            if len(value) > _MAX_EMAIL_LENGTH:
                raise ValueError("Email must not exceed 255 characters")
        return value


class ApiKeyCreatedResponse(BaseModel):
    """Response after issuing a key. ``api_key`` is shown once."""

    success: bool = True
    api_key: str
    name: str
    email: str | None = None
    rate_limit: int
    created_at: datetime
    message: str = "API key generated successfully"
    important_notice: str = IMPORTANT_NOTICE


class ApiKeyInfo(BaseModel):
    name: str
    email: str | None
    rate_limit: int
    created_at: datetime
    last_used_at: datetime | None
    expires_at: datetime | None

    model_config = {"from_attributes": True}


class ApiKeyInfoResponse(BaseModel):
    success: bool = True
    api_key_info: ApiKeyInfo


# --- Endpoints ---


@router.post(
    "",
    response_model=ApiKeyCreatedResponse,
    response_model_exclude_none=True,
    status_code=201,
)
def generate_api_key(
    body: GenerateApiKeyRequest,
    service: Annotated[ApiKeyService, Depends(get_api_key_service)],
) -> ApiKeyCreatedResponse:
    """Issue a new API key.

    The raw key is returned exactly once. Store it securely after creation.
    """
    try:
        issued = service.issue(body.name, body.email)
    except SQLAlchemyError as exc:
        logger.exception("Error generating API key")
        raise DependencyError("Failed to generate API key") from exc

    return ApiKeyCreatedResponse(
        api_key=issued.plaintext,
        name=issued.api_key.name,
        email=issued.api_key.email,
        rate_limit=issued.api_key.rate_limit,
        created_at=issued.api_key.created_at,
    )


@router.get("/info", response_model=ApiKeyInfoResponse)
def get_api_key_info(
    api_key: Annotated[ApiKeyContext, Depends(require_api_key)],
    store: Annotated[KeyStore, Depends(get_key_store)],
) -> ApiKeyInfoResponse:
    """Return details about the key that authenticated this request."""
    try:
        record = store.get_by_id(api_key.api_key_id)
    except SQLAlchemyError as exc:
        logger.exception("Error fetching API key info", extra={"api_key_id": api_key.api_key_id})
        raise DependencyError("Failed to fetch API key information") from exc

    if record is None:
        raise NotFoundError("API key not found")

    return ApiKeyInfoResponse(api_key_info=ApiKeyInfo.model_validate(record))
