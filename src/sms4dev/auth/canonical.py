"""Canonical string-to-sign construction.

The canonical form is a wire contract shared with every client that signs
requests. Segments are joined with ``\\n`` in this order:

    METHOD
    /path
    canonical query string
    canonical signed headers (may span several lines)
    signed header names
    payload hash
    timestamp

Changing segment order, encoding or sort rules breaks existing signers.
"""

from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import quote

from sms4dev.auth.descriptor import HEADER_PREFIX, HEADER_SIGNATURE, RequestDescriptor
from sms4dev.auth.signer import hash_payload

CANONICAL_VERSION = "SMS4DEV-HMAC-SHA256-V1"

# Characters encodeURIComponent leaves untouched besides alphanumerics and "_.-~".
_URI_COMPONENT_SAFE = "!*'()"


def encode_component(value: str) -> str:
    """Percent-encode a query key or value."""
    return quote(value, safe=_URI_COMPONENT_SAFE)


def canonical_query_string(query_params: Mapping[str, str]) -> str:
    pairs = [
        f"{encode_component(key)}={encode_component(value)}"
        for key, value in query_params.items()
    ]
    return "&".join(sorted(pairs))


def signed_headers(headers: Mapping[str, str]) -> list[tuple[str, str]]:
    """Return the (name, value) pairs covered by the signature, sorted by line."""
    selected = []
    for name, value in headers.items():
        lowered = name.lower()
        if lowered.startswith(HEADER_PREFIX) and lowered != HEADER_SIGNATURE:
            selected.append((lowered, value.strip()))
    return sorted(selected, key=lambda item: f"{item[0]}:{item[1]}")


def canonical_headers(headers: Mapping[str, str]) -> str:
    return "\n".join(f"{name}:{value}" for name, value in signed_headers(headers))


def signed_header_names(headers: Mapping[str, str]) -> str:
    return ";".join(sorted(name for name, _ in signed_headers(headers)))


def build_string_to_sign(descriptor: RequestDescriptor, timestamp: str) -> str:
    """Build the canonical string for a request and timestamp."""
    parts = [
        descriptor.method.upper(),
        descriptor.path,
        canonical_query_string(descriptor.query_params),
        canonical_headers(descriptor.headers),
        signed_header_names(descriptor.headers),
        hash_payload(descriptor.body),
        timestamp,
    ]
    return "\n".join(parts)
