"""API key issuance: secret generation, hashing and persistence.

Keys are 32 random bytes from the OS CSPRNG, base64url-encoded without
padding (43 characters). Only the SHA-256 hex digest is stored. Because the
digest is unsalted, equality lookup works directly against the indexed
column; this is only sound for high-entropy input, so ``hash_key`` must never
be used for passwords or other user-chosen values.
"""

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass

from app.models.api_key import ApiKey
from app.services.key_store import KeyStore

logger = logging.getLogger(__name__)

KEY_BYTES = 32


def generate_secret() -> str:
    """Return a new URL-safe API key with no ``=`` padding.

    ``secrets.token_bytes`` reads from the OS CSPRNG and raises if it is
    unavailable.
    """
    raw = secrets.token_bytes(KEY_BYTES)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def hash_key(plaintext: str) -> str:
    """SHA-256 hex digest (64 chars) of the plaintext API key."""
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class IssuedKey:
    """A freshly persisted key plus its plaintext, available only here."""

    plaintext: str
    api_key: ApiKey


class ApiKeyService:
    """Issue new API keys against a ``KeyStore``."""

    def __init__(self, store: KeyStore, default_rate_limit: int) -> None:
        if default_rate_limit < 1:
            raise ValueError("default_rate_limit must be a positive integer")
        self._store = store
        self._default_rate_limit = default_rate_limit

    def issue(self, name: str, email: str | None = None) -> IssuedKey:
        """Generate, hash and store a new active key.

        ``name`` and ``email`` are expected to be validated and normalised by
        the request schema. Database errors propagate to the caller; nothing
        is persisted when the single insert fails.
        """
        plaintext = generate_secret()
        api_key = self._store.insert_key(
            key_hash=hash_key(plaintext),
            name=name,
            email=email,
            rate_limit=self._default_rate_limit,
        )
        # Never log the plaintext
        logger.info(
            "API key generated",
            extra={"api_key_id": api_key.id, "owner_name": name, "has_email": email is not None},
        )
        return IssuedKey(plaintext=plaintext, api_key=api_key)
