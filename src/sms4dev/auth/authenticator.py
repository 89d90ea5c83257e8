"""Dual-mode request authentication (static key/secret or HMAC signature)."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from sms4dev.auth.canonical import build_string_to_sign
from sms4dev.auth.descriptor import (
    HEADER_KEY,
    HEADER_SECRET,
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
    RequestDescriptor,
)
from sms4dev.auth.signer import constant_time_equals, sign
from sms4dev.auth.store import CredentialStore

DEFAULT_TIMESTAMP_TOLERANCE_SECONDS = 900


class AuthMode(Enum):
    """Authentication strategy selected from the request headers."""

    STATIC = "static"
    HMAC = "hmac"


class AuthErrorKind(str, Enum):
    """Machine-readable rejection codes."""

    AUTH_FAILURE = "AuthFailure"
    MISSING_HEADERS = "MissingHeaders"
    MISSING_CREDENTIALS = "MissingCredentials"
    INVALID_TIMESTAMP = "InvalidTimestamp"
    TIMESTAMP_EXPIRED = "TimestampExpired"
    INVALID_ACCESS_KEY = "InvalidAccessKey"
    SIGNATURE_DOES_NOT_MATCH = "SignatureDoesNotMatch"

    @property
    def status_code(self) -> int:
        if self in _MALFORMED_INPUT:
            return 400
        return 401


_MALFORMED_INPUT = {
    AuthErrorKind.MISSING_HEADERS,
    AuthErrorKind.MISSING_CREDENTIALS,
    AuthErrorKind.INVALID_TIMESTAMP,
}


@dataclass(frozen=True)
class SignatureContext:
    """Signature material extracted from HMAC headers."""

    access_key_id: str
    timestamp: str
    provided_signature: str


@dataclass(frozen=True)
class AuthDecision:
    """
    Result of authenticating one request.

    ``detail`` is safe to return to the caller. ``reason`` holds the internal
    cause for logs only. ``calculated_signature`` and ``string_to_sign`` are
    populated on signature mismatch only when explicitly enabled.
    """

    allowed: bool
    mode: AuthMode
    error_kind: AuthErrorKind | None = None
    detail: str = ""
    access_key_id: str | None = None
    reason: str | None = None
    calculated_signature: str | None = None
    string_to_sign: str | None = None

    @property
    def status_code(self) -> int:
        if self.error_kind is None:
            return 200
        return self.error_kind.status_code


def select_mode(descriptor: RequestDescriptor) -> AuthMode:
    """HMAC mode when both timestamp and signature headers are present."""
    if descriptor.header(HEADER_TIMESTAMP) and descriptor.header(HEADER_SIGNATURE):
        return AuthMode.HMAC
    return AuthMode.STATIC


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 instant.

    A trailing ``Z`` is accepted; timestamps without an offset are taken as UTC.

    Raises:
        ValueError: If the value is not an ISO-8601 timestamp
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Authenticator:
    """
    Decide whether a request may proceed.

    Stateless apart from read access to the credential store, so a single
    instance serves concurrent requests.
    """

    def __init__(
        self,
        store: CredentialStore,
        timestamp_tolerance_seconds: int = DEFAULT_TIMESTAMP_TOLERANCE_SECONDS,
        clock: Callable[[], float] = time.time,
        expose_calculated_signature: bool = False,
    ):
        """
        Initialize authenticator.

        Args:
            store: Credential store used for lookups
            timestamp_tolerance_seconds: Max allowed skew for signed requests
            clock: Wall-clock source returning epoch seconds
            expose_calculated_signature: Include the expected signature in
                mismatch decisions (debug only)
        """
        self._store = store
        self._tolerance = timestamp_tolerance_seconds
        self._clock = clock
        self._expose_calculated_signature = expose_calculated_signature

    @property
    def timestamp_tolerance_seconds(self) -> int:
        return self._tolerance

    def authenticate(self, descriptor: RequestDescriptor) -> AuthDecision:
        """Authenticate a request descriptor."""
        mode = select_mode(descriptor)
        if mode is AuthMode.HMAC:
            return self._authenticate_hmac(descriptor)
        return self._authenticate_static(descriptor)

    def _authenticate_static(self, descriptor: RequestDescriptor) -> AuthDecision:
        key_id = descriptor.header(HEADER_KEY)
        secret = descriptor.header(HEADER_SECRET)
        if not key_id or not secret:
            return AuthDecision(
                allowed=False,
                mode=AuthMode.STATIC,
                error_kind=AuthErrorKind.MISSING_CREDENTIALS,
                detail="X-SMS4DEV-KEY and X-SMS4DEV-SECRET headers are required",
                access_key_id=key_id,
            )

        result = self._store.validate(key_id, secret)
        if not result.valid:
            return AuthDecision(
                allowed=False,
                mode=AuthMode.STATIC,
                error_kind=AuthErrorKind.AUTH_FAILURE,
                detail="Invalid access key or secret",
                access_key_id=key_id,
                reason=result.reason,
            )

        return AuthDecision(allowed=True, mode=AuthMode.STATIC, access_key_id=key_id)

    def _extract_context(self, descriptor: RequestDescriptor) -> SignatureContext | None:
        key_id = descriptor.header(HEADER_KEY)
        timestamp = descriptor.header(HEADER_TIMESTAMP)
        signature = descriptor.header(HEADER_SIGNATURE)
        if not key_id or not timestamp or not signature:
            return None
        return SignatureContext(
            access_key_id=key_id,
            timestamp=timestamp,
            provided_signature=signature,
        )

    def _authenticate_hmac(self, descriptor: RequestDescriptor) -> AuthDecision:
        context = self._extract_context(descriptor)
        if context is None:
            return AuthDecision(
                allowed=False,
                mode=AuthMode.HMAC,
                error_kind=AuthErrorKind.MISSING_HEADERS,
                detail=(
                    "X-SMS4DEV-KEY, X-SMS4DEV-TIMESTAMP and X-SMS4DEV-SIGNATURE "
                    "headers are required"
                ),
                access_key_id=descriptor.header(HEADER_KEY),
            )

        key_id = context.access_key_id
        try:
            request_time = parse_timestamp(context.timestamp)
        except ValueError:
            return AuthDecision(
                allowed=False,
                mode=AuthMode.HMAC,
                error_kind=AuthErrorKind.INVALID_TIMESTAMP,
                detail="X-SMS4DEV-TIMESTAMP must be an ISO-8601 timestamp",
                access_key_id=key_id,
            )

        skew = abs(self._clock() - request_time.timestamp())
        if skew > self._tolerance:
            return AuthDecision(
                allowed=False,
                mode=AuthMode.HMAC,
                error_kind=AuthErrorKind.TIMESTAMP_EXPIRED,
                detail=f"Request timestamp is outside the {self._tolerance} second window",
                access_key_id=key_id,
                reason=f"skew={skew:.0f}s",
            )

        secret = self._store.lookup(key_id)
        if secret is None:
            return AuthDecision(
                allowed=False,
                mode=AuthMode.HMAC,
                error_kind=AuthErrorKind.INVALID_ACCESS_KEY,
                detail="Invalid access key",
                access_key_id=key_id,
                reason="not_found",
            )

        string_to_sign = build_string_to_sign(descriptor, context.timestamp)
        expected = sign(secret, string_to_sign)
        if not constant_time_equals(expected, context.provided_signature):
            exposed = self._expose_calculated_signature
            return AuthDecision(
                allowed=False,
                mode=AuthMode.HMAC,
                error_kind=AuthErrorKind.SIGNATURE_DOES_NOT_MATCH,
                detail="The request signature does not match",
                access_key_id=key_id,
                reason="mismatch",
                calculated_signature=expected if exposed else None,
                string_to_sign=string_to_sign if exposed else None,
            )

        return AuthDecision(allowed=True, mode=AuthMode.HMAC, access_key_id=key_id)
