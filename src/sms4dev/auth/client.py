"""Client-side request signing and an HTTP client for the key API."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Literal

import aiohttp

from sms4dev.auth.canonical import build_string_to_sign
from sms4dev.auth.descriptor import RequestDescriptor, decode_body
from sms4dev.auth.signer import sign
from sms4dev.common.logging import get_logger

logger = get_logger(__name__)

HEADER_KEY_NAME = "X-SMS4DEV-KEY"
HEADER_SECRET_NAME = "X-SMS4DEV-SECRET"
HEADER_TIMESTAMP_NAME = "X-SMS4DEV-TIMESTAMP"
HEADER_SIGNATURE_NAME = "X-SMS4DEV-SIGNATURE"


def iso_timestamp(moment: datetime | None = None) -> str:
    """Format a UTC instant like JavaScript's toISOString (millisecond precision)."""
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def static_headers(access_key_id: str, access_key_secret: str) -> dict[str, str]:
    """Headers for static key/secret authentication."""
    return {
        HEADER_KEY_NAME: access_key_id,
        HEADER_SECRET_NAME: access_key_secret,
    }


def generate_signed_headers(
    method: str,
    path: str,
    access_key_id: str,
    access_key_secret: str,
    body: Any = None,
    query_params: dict[str, str] | None = None,
    extra_headers: dict[str, str] | None = None,
    timestamp: str | None = None,
) -> dict[str, str]:
    """
    Build the headers for an HMAC-signed request.

    Every ``X-SMS4DEV-*`` header in ``extra_headers`` is covered by the
    signature, as are the key and timestamp headers.

    Args:
        method: HTTP method
        path: Request path without query string
        access_key_id: Access key id
        access_key_secret: Secret used as the HMAC key
        body: JSON-compatible body, or raw bytes signed as the server decodes them
        query_params: Query parameters sent with the request
        extra_headers: Additional headers to send
        timestamp: ISO-8601 timestamp (defaults to now)

    Returns:
        Headers including key, timestamp and signature
    """
    timestamp = timestamp or iso_timestamp()
    if isinstance(body, (bytes, bytearray)):
        body = decode_body(bytes(body))
    headers = dict(extra_headers or {})
    headers[HEADER_KEY_NAME] = access_key_id
    headers[HEADER_TIMESTAMP_NAME] = timestamp

    descriptor = RequestDescriptor(
        method=method,
        path=path,
        query_params=query_params or {},
        headers=headers,
        body=body,
    )
    headers[HEADER_SIGNATURE_NAME] = sign(
        access_key_secret,
        build_string_to_sign(descriptor, timestamp),
    )
    return headers


class Sms4DevClientError(Exception):
    """Error response from the SMS4Dev API."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class Sms4DevClient:
    """
    Async HTTP client for the SMS4Dev access key API.

    Signs every request with HMAC by default; ``mode="static"`` sends the
    key and secret headers instead.
    """

    def __init__(
        self,
        base_url: str,
        access_key_id: str,
        access_key_secret: str,
        mode: Literal["hmac", "static"] = "hmac",
        timeout: float = 30.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._access_key_id = access_key_id
        self._access_key_secret = access_key_secret
        self._mode = mode
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "Sms4DevClient":
        """Enter async context."""
        self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context."""
        if self._session:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session exists."""
        if not self._session:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    def _auth_headers(
        self,
        method: str,
        path: str,
        body: Any,
        params: dict[str, str] | None,
    ) -> dict[str, str]:
        if self._mode == "static":
            return static_headers(self._access_key_id, self._access_key_secret)
        return generate_signed_headers(
            method,
            path,
            self._access_key_id,
            self._access_key_secret,
            body=body,
            query_params=params,
        )

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: dict[str, str] | None = None,
        signed: bool = True,
    ) -> Any:
        """
        Send a request and return the decoded JSON response.

        Raises:
            Sms4DevClientError: On non-2xx responses or transport errors
        """
        headers: dict[str, str] = {}
        if signed:
            headers.update(self._auth_headers(method, path, body, params))
        data: bytes | None = None
        if isinstance(body, (bytes, bytearray)):
            headers.setdefault("Content-Type", "application/octet-stream")
            data = bytes(body)
        elif body is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

        session = self._ensure_session()
        url = f"{self._base_url}{path}"
        logger.debug("SMS4Dev request", method=method, path=path, mode=self._mode)
        try:
            response = await session.request(
                method,
                url,
                params=params,
                data=data,
                headers=headers,
            )
        except aiohttp.ClientError as e:
            raise Sms4DevClientError(f"Request failed: {e}") from e

        async with response:
            if response.status >= 400:
                code = None
                message = await response.text()
                try:
                    payload = json.loads(message)
                except json.JSONDecodeError:
                    payload = None
                if isinstance(payload, dict):
                    code = payload.get("Code")
                    message = payload.get("Message", message)
                raise Sms4DevClientError(message, response.status, code)
            return await response.json()

    # === Access key operations ===

    async def list_keys(self) -> list[dict[str, str]]:
        payload = await self.request("GET", "/api/keys")
        return list(payload.get("keys", []))

    async def create_key(self, access_key_id: str, access_key_secret: str) -> dict[str, str]:
        return await self.request(
            "POST",
            "/api/keys",
            body={"accessKeyId": access_key_id, "accessKeySecret": access_key_secret},
        )

    async def generate_key(self) -> dict[str, str]:
        return await self.request("POST", "/api/keys/generate")

    async def delete_key(self, access_key_id: str) -> None:
        await self.request("DELETE", f"/api/keys/{access_key_id}")

    async def validate_key(self, access_key_id: str, access_key_secret: str) -> dict[str, Any]:
        return await self.request(
            "POST",
            "/api/keys/validate",
            body={"accessKeyId": access_key_id, "accessKeySecret": access_key_secret},
            signed=False,
        )

    async def whoami(self) -> dict[str, Any]:
        return await self.request("GET", "/api/auth/whoami")
