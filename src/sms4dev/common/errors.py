"""Shared error helpers and codes."""

from __future__ import annotations

from typing import Any

from starlette.responses import JSONResponse

from sms4dev.common.http import get_request_id


class ErrorCode:
    AUTH_FAILURE = "AuthFailure"
    MISSING_HEADERS = "MissingHeaders"
    MISSING_CREDENTIALS = "MissingCredentials"
    INVALID_TIMESTAMP = "InvalidTimestamp"
    TIMESTAMP_EXPIRED = "TimestampExpired"
    INVALID_ACCESS_KEY = "InvalidAccessKey"
    SIGNATURE_DOES_NOT_MATCH = "SignatureDoesNotMatch"
    KEY_ALREADY_EXISTS = "KeyAlreadyExists"
    KEY_NOT_FOUND = "KeyNotFound"
    KEY_PROTECTED = "KeyProtected"
    INVALID_REQUEST = "InvalidRequest"


def error_response(
    code: str,
    message: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    payload: dict[str, Any] = {
        "Code": code,
        "Message": message,
    }
    request_id = get_request_id()
    if request_id:
        payload["RequestId"] = request_id
    if details:
        payload.update(details)
    return JSONResponse(payload, status_code=status_code)
