"""Immutable request descriptor and header names of the SMS4Dev scheme."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from starlette.requests import Request

HEADER_PREFIX = "x-sms4dev-"
HEADER_KEY = "x-sms4dev-key"
HEADER_SECRET = "x-sms4dev-secret"
HEADER_TIMESTAMP = "x-sms4dev-timestamp"
HEADER_SIGNATURE = "x-sms4dev-signature"


@dataclass(frozen=True)
class RequestDescriptor:
    """
    Read-only view of an inbound request.

    Header names are lower-cased on construction so lookups are
    case-insensitive. ``body`` is ``None``, raw ``bytes``/``str``, or a
    decoded JSON value.
    """

    method: str
    path: str
    query_params: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None

    def __post_init__(self) -> None:
        if not self.method:
            raise ValueError("method is required")
        if not self.path.startswith("/"):
            raise ValueError(f"path must be absolute: {self.path!r}")
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(
            self,
            "query_params",
            MappingProxyType({str(k): str(v) for k, v in self.query_params.items()}),
        )
        object.__setattr__(
            self,
            "headers",
            MappingProxyType({str(k).lower(): str(v) for k, v in self.headers.items()}),
        )

    def header(self, name: str) -> str | None:
        """Return a header value, treating blank values as absent."""
        value = self.headers.get(name.lower())
        if value is None or not value.strip():
            return None
        return value.strip()


def decode_body(raw: bytes) -> Any:
    """Decode a raw body into a JSON value, keeping it raw when it is not JSON."""
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return raw


async def descriptor_from_request(request: Request) -> RequestDescriptor:
    """Build a RequestDescriptor from a Starlette request."""
    raw = await request.body()
    return RequestDescriptor(
        method=request.method,
        path=request.url.path,
        query_params=dict(request.query_params),
        headers=dict(request.headers),
        body=decode_body(raw),
    )
