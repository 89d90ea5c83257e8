"""HMAC-SHA256 signing utilities for SMS4Dev requests."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from typing import Any

EMPTY_PAYLOAD_HASH = hashlib.sha256(b"").hexdigest()


def serialize_body(body: Any) -> bytes:
    """
    Serialize a request body for the payload hash.

    Decoded JSON values are re-serialized compactly with key order kept, the
    same bytes JSON.stringify produces. Raw bytes are hashed as received.
    Absent, empty and scalar non-string bodies hash as the empty string.
    """
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    if not isinstance(body, (str, dict, list, tuple)) or not body:
        return b""
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def hash_payload(body: Any) -> str:
    """Lower-case hex SHA-256 of the serialized body."""
    return hashlib.sha256(serialize_body(body)).hexdigest()


def sign(secret: str, string_to_sign: str) -> str:
    """Create a Base64-encoded HMAC-SHA256 signature."""
    digest = hmac.new(
        secret.encode("utf-8"),
        string_to_sign.encode("utf-8"),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def constant_time_equals(a: str, b: str) -> bool:
    """Compare two strings without short-circuiting on the first differing byte."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def verify(secret: str, string_to_sign: str, signature: str) -> bool:
    """Verify a Base64 HMAC signature in constant time."""
    return constant_time_equals(sign(secret, string_to_sign), signature)
