"""Authentication middleware for the mock SMS API."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from sms4dev.auth.authenticator import AuthDecision, AuthErrorKind, Authenticator
from sms4dev.auth.descriptor import HEADER_KEY, descriptor_from_request
from sms4dev.common.errors import error_response
from sms4dev.common.http import bind_access_key_id
from sms4dev.common.logging import get_logger
from sms4dev.common.metrics import record_auth_decision
from sms4dev.common.settings import Settings

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """Authenticated request context."""

    access_key_id: str | None
    mode: str


def rejection_response(decision: AuthDecision) -> Response:
    """Translate a denied decision into the JSON error envelope."""
    kind = decision.error_kind or AuthErrorKind.AUTH_FAILURE
    details: dict[str, str] = {}
    if decision.calculated_signature is not None:
        details["CalculatedSignature"] = decision.calculated_signature
    if decision.string_to_sign is not None:
        details["StringToSign"] = decision.string_to_sign
    return error_response(kind.value, decision.detail, kind.status_code, details or None)


def parse_exempt_routes(entries: Iterable[str]) -> frozenset[tuple[str, str]]:
    """
    Parse ``"METHOD /path"`` entries into (method, path) pairs.

    Raises:
        ValueError: If an entry is not a method followed by an absolute path
    """
    routes = set()
    for entry in entries:
        parts = entry.split()
        if len(parts) != 2 or not parts[1].startswith("/"):
            raise ValueError(f"Invalid exempt route {entry!r}, expected 'METHOD /path'")
        routes.add((parts[0].upper(), parts[1]))
    return frozenset(routes)


class AccessKeyAuthMiddleware(BaseHTTPMiddleware):
    """Static key/secret or HMAC signature authentication."""

    def __init__(
        self,
        app: ASGIApp,
        settings: Settings,
        authenticator: Authenticator,
    ) -> None:
        super().__init__(app)
        self._settings = settings
        self._authenticator = authenticator
        self._exempt_routes = parse_exempt_routes(settings.auth_exempt_routes)

    def _is_exempt(self, request: Request) -> bool:
        # Starlette answers HEAD on GET routes
        method = "GET" if request.method == "HEAD" else request.method
        return (method, request.url.path) in self._exempt_routes

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self._is_exempt(request):
            return await call_next(request)

        if self._settings.allow_insecure_keys:
            key_id = request.headers.get(HEADER_KEY)
            logger.warning(
                "Authentication bypassed by allow_insecure_keys",
                path=request.url.path,
                key_id=key_id,
            )
            record_auth_decision("insecure", True, None)
            request.state.auth = AuthContext(access_key_id=key_id, mode="insecure")
            return await call_next(request)

        descriptor = await descriptor_from_request(request)
        decision = self._authenticator.authenticate(descriptor)
        record_auth_decision(
            decision.mode.value,
            decision.allowed,
            decision.error_kind.value if decision.error_kind else None,
        )

        if not decision.allowed:
            logger.warning(
                "Authentication rejected",
                mode=decision.mode.value,
                code=decision.error_kind.value if decision.error_kind else None,
                reason=decision.reason,
                key_id=decision.access_key_id,
                method=descriptor.method,
                path=descriptor.path,
            )
            return rejection_response(decision)

        request.state.auth = AuthContext(
            access_key_id=decision.access_key_id,
            mode=decision.mode.value,
        )
        bind_access_key_id(decision.access_key_id)
        logger.debug("Authenticated request", mode=decision.mode.value)
        return await call_next(request)
