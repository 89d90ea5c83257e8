"""In-memory credential store."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Literal

from sms4dev.auth.signer import constant_time_equals
from sms4dev.common.logging import get_logger
from sms4dev.common.settings import Settings

logger = get_logger(__name__)

MASK_GLYPH = "*"
VISIBLE_SUFFIX = 4

ValidationReason = Literal["not_found", "mismatch"]


@dataclass(frozen=True)
class Credential:
    """An access key id and its secret."""

    key_id: str
    secret: str

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key_id={self.key_id!r}, secret={mask_secret(self.secret)!r})"


@dataclass(frozen=True)
class MaskedCredential:
    """Display form of a credential."""

    key_id: str
    masked_secret: str

    def to_dict(self) -> dict[str, str]:
        return {"accessKeyId": self.key_id, "maskedSecret": self.masked_secret}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a key/secret check."""

    valid: bool
    reason: ValidationReason | None = None

    def to_dict(self) -> dict[str, object]:
        return {"valid": self.valid, "reason": self.reason}


def mask_secret(secret: str) -> str:
    """Mask all but the last four characters of a secret."""
    if len(secret) <= VISIBLE_SUFFIX:
        return MASK_GLYPH * len(secret)
    hidden = len(secret) - VISIBLE_SUFFIX
    return MASK_GLYPH * hidden + secret[-VISIBLE_SUFFIX:]


class CredentialStore:
    """
    Thread-safe mapping of access key id to secret.

    Every read and write takes the same lock; key management is rare so a
    single lock is enough. Contents live for the lifetime of the process.
    """

    def __init__(self, credentials: dict[str, str] | None = None) -> None:
        self._lock = threading.RLock()
        self._secrets: dict[str, str] = {}
        for key_id, secret in (credentials or {}).items():
            self.add(key_id, secret)

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialStore":
        """Seed a store from the configured default and extra access keys."""
        store = cls()
        if settings.access_key_id and settings.access_key_secret:
            store.add(settings.access_key_id, settings.access_key_secret)
        for key_id, secret in settings.access_keys.items():
            store.add(key_id, secret)
        logger.info("Credential store seeded", keys=len(store))
        return store

    def lookup(self, key_id: str) -> str | None:
        """Return the secret for a key id, or None."""
        with self._lock:
            return self._secrets.get(key_id)

    def add(self, key_id: str, secret: str) -> None:
        """
        Register a credential.

        Adding an existing key id replaces its secret.
        """
        if not key_id or not secret:
            raise ValueError("key_id and secret must be non-empty")
        with self._lock:
            replaced = key_id in self._secrets
            self._secrets[key_id] = secret
        if replaced:
            logger.info("Access key secret replaced", key_id=key_id)

    def add_if_absent(self, key_id: str, secret: str) -> bool:
        """Register a credential unless the key id exists. Returns True when added."""
        if not key_id or not secret:
            raise ValueError("key_id and secret must be non-empty")
        with self._lock:
            if key_id in self._secrets:
                return False
            self._secrets[key_id] = secret
            return True

    def remove(self, key_id: str) -> bool:
        """Remove a credential. Returns False when the key id was unknown."""
        with self._lock:
            return self._secrets.pop(key_id, None) is not None

    def list(self) -> list[MaskedCredential]:
        """List credentials in insertion order with masked secrets."""
        with self._lock:
            items = list(self._secrets.items())
        return [MaskedCredential(key_id, mask_secret(secret)) for key_id, secret in items]

    def validate(self, key_id: str, secret: str) -> ValidationResult:
        """Check a key id / secret pair."""
        stored = self.lookup(key_id)
        if stored is None:
            return ValidationResult(valid=False, reason="not_found")
        if not constant_time_equals(stored, secret):
            return ValidationResult(valid=False, reason="mismatch")
        return ValidationResult(valid=True)

    def __contains__(self, key_id: object) -> bool:
        with self._lock:
            return key_id in self._secrets

    def __len__(self) -> int:
        with self._lock:
            return len(self._secrets)
