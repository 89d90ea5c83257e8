"""Access key lifecycle: create, generate, delete, list and validate."""

from __future__ import annotations

import secrets
from dataclasses import dataclass

from sms4dev.auth.store import (
    Credential,
    CredentialStore,
    MaskedCredential,
    ValidationResult,
    mask_secret,
)
from sms4dev.common.errors import ErrorCode
from sms4dev.common.logging import get_logger
from sms4dev.common.metrics import record_key_operation

logger = get_logger(__name__)

KEY_ID_PREFIX = "SMS"


class KeyLifecycleError(Exception):
    """Access key policy violation with an error code and HTTP status."""

    code = ErrorCode.INVALID_REQUEST
    status_code = 400

    def __init__(self, key_id: str, message: str) -> None:
        super().__init__(message)
        self.key_id = key_id
        self.message = message


class KeyAlreadyExistsError(KeyLifecycleError):
    code = ErrorCode.KEY_ALREADY_EXISTS
    status_code = 400

    def __init__(self, key_id: str) -> None:
        super().__init__(key_id, f"Access key already exists: {key_id}")


class KeyNotFoundError(KeyLifecycleError):
    code = ErrorCode.KEY_NOT_FOUND
    status_code = 404

    def __init__(self, key_id: str) -> None:
        super().__init__(key_id, f"Access key not found: {key_id}")


class ProtectedKeyError(KeyLifecycleError):
    code = ErrorCode.KEY_PROTECTED
    status_code = 400

    def __init__(self, key_id: str) -> None:
        super().__init__(key_id, f"Access key {key_id} is protected in development mode")


@dataclass(frozen=True, repr=False)
class GeneratedCredential(Credential):
    """A freshly issued credential. The secret is never retrievable again."""

    def to_dict(self) -> dict[str, str]:
        return {"accessKeyId": self.key_id, "accessKeySecret": self.secret}


def generate_key_id() -> str:
    """Random access key id: prefix plus 80 bits of hex."""
    return KEY_ID_PREFIX + secrets.token_hex(10).upper()


def generate_secret() -> str:
    """Random 256-bit URL-safe secret."""
    return secrets.token_urlsafe(32)


class AccessKeyManager:
    """
    Policy layer over the credential store.

    Unlike ``CredentialStore.add``, ``create`` refuses to overwrite an
    existing key id.
    """

    def __init__(
        self,
        store: CredentialStore,
        protected_key_id: str | None = None,
        dev_mode: bool = False,
    ):
        """
        Initialize the manager.

        Args:
            store: Backing credential store
            protected_key_id: Default key that cannot be deleted in dev mode
            dev_mode: Enable the protected-key guard
        """
        self._store = store
        self._protected_key_id = protected_key_id
        self._dev_mode = dev_mode

    @property
    def store(self) -> CredentialStore:
        return self._store

    def list(self) -> list[MaskedCredential]:
        return self._store.list()

    def create(self, key_id: str, secret: str) -> MaskedCredential:
        """
        Register a caller-supplied credential.

        Raises:
            KeyAlreadyExistsError: If the key id is already registered
            ValueError: If key id or secret is empty
        """
        if not self._store.add_if_absent(key_id, secret):
            record_key_operation("create", "conflict")
            raise KeyAlreadyExistsError(key_id)
        record_key_operation("create", "success")
        logger.info("Access key created", key_id=key_id)
        return MaskedCredential(key_id, mask_secret(secret))

    def generate(self) -> GeneratedCredential:
        """Issue a new random credential and return its secret once."""
        secret = generate_secret()
        key_id = generate_key_id()
        while not self._store.add_if_absent(key_id, secret):
            key_id = generate_key_id()
        credential = GeneratedCredential(key_id=key_id, secret=secret)
        record_key_operation("generate", "success")
        logger.info("Access key generated", key_id=key_id)
        return credential

    def delete(self, key_id: str) -> None:
        """
        Remove a credential.

        Raises:
            ProtectedKeyError: If the key is the protected default in dev mode
            KeyNotFoundError: If the key id is unknown
        """
        if self._dev_mode and key_id == self._protected_key_id:
            record_key_operation("delete", "protected")
            raise ProtectedKeyError(key_id)
        if not self._store.remove(key_id):
            record_key_operation("delete", "not_found")
            raise KeyNotFoundError(key_id)
        record_key_operation("delete", "success")
        logger.info("Access key deleted", key_id=key_id)

    def validate_public(self, key_id: str, secret: str) -> ValidationResult:
        """Check a key id / secret pair without prior authentication."""
        result = self._store.validate(key_id, secret)
        record_key_operation("validate", "valid" if result.valid else "invalid")
        return result
