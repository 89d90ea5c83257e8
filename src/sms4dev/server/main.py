"""Mock SMS API server with access key management routes."""

import json
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from sms4dev.auth.authenticator import Authenticator
from sms4dev.auth.canonical import CANONICAL_VERSION
from sms4dev.auth.keys import AccessKeyManager, KeyLifecycleError
from sms4dev.auth.middleware import AccessKeyAuthMiddleware
from sms4dev.auth.store import CredentialStore
from sms4dev.common.errors import ErrorCode, error_response
from sms4dev.common.http import RequestIdMiddleware
from sms4dev.common.logging import get_logger, setup_logging
from sms4dev.common.metrics import MetricsMiddleware, metrics_endpoint
from sms4dev.common.settings import Settings, get_settings

logger = get_logger(__name__)


class InvalidRequestError(Exception):
    """Malformed request body."""


async def _read_credential_body(request: Request) -> tuple[str, str]:
    """Extract accessKeyId/accessKeySecret from a JSON body."""
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidRequestError("Request body must be valid JSON") from e
    if not isinstance(payload, dict):
        raise InvalidRequestError("Request body must be a JSON object")

    key_id = payload.get("accessKeyId")
    secret = payload.get("accessKeySecret")
    if not isinstance(key_id, str) or not key_id.strip():
        raise InvalidRequestError("accessKeyId is required")
    if not isinstance(secret, str) or not secret:
        raise InvalidRequestError("accessKeySecret is required")
    return key_id.strip(), secret


class KeyServer:
    """HTTP handlers for the access key API."""

    def __init__(self, settings: Settings, store: CredentialStore | None = None):
        """Initialize server."""
        self._settings = settings
        self._store = store or CredentialStore.from_settings(settings)
        self._keys = AccessKeyManager(
            self._store,
            protected_key_id=settings.access_key_id,
            dev_mode=settings.dev_mode,
        )

    @property
    def store(self) -> CredentialStore:
        return self._store

    async def startup(self) -> None:
        """Log security-relevant configuration."""
        logger.info(
            "Starting SMS4Dev server",
            keys=len(self._store),
            dev_mode=self._settings.dev_mode,
            timestamp_tolerance_seconds=self._settings.timestamp_tolerance_seconds,
        )
        if self._settings.allow_insecure_keys:
            logger.warning("allow_insecure_keys is enabled: every request is accepted unauthenticated")
        if self._settings.expose_calculated_signature:
            logger.warning("expose_calculated_signature is enabled: signature mismatches echo the expected value")

    async def shutdown(self) -> None:
        """Clean up resources."""
        logger.info("SMS4Dev server stopped")

    # === HTTP Handlers ===

    async def handle_list_keys(self, _request: Request) -> JSONResponse:
        """GET /api/keys"""
        return JSONResponse({"keys": [item.to_dict() for item in self._keys.list()]})

    async def handle_create_key(self, request: Request) -> JSONResponse:
        """POST /api/keys"""
        try:
            key_id, secret = await _read_credential_body(request)
            created = self._keys.create(key_id, secret)
        except InvalidRequestError as e:
            return error_response(ErrorCode.INVALID_REQUEST, str(e), status_code=400)
        except KeyLifecycleError as e:
            return error_response(e.code, e.message, status_code=e.status_code)
        return JSONResponse(created.to_dict(), status_code=201)

    async def handle_generate_key(self, _request: Request) -> JSONResponse:
        """POST /api/keys/generate"""
        credential = self._keys.generate()
        return JSONResponse(credential.to_dict(), status_code=201)

    async def handle_delete_key(self, request: Request) -> Response:
        """DELETE /api/keys/{key_id}"""
        key_id = request.path_params["key_id"]
        try:
            self._keys.delete(key_id)
        except KeyLifecycleError as e:
            return error_response(e.code, e.message, status_code=e.status_code)
        return JSONResponse({"deleted": key_id})

    async def handle_validate_key(self, request: Request) -> JSONResponse:
        """POST /api/keys/validate"""
        try:
            key_id, secret = await _read_credential_body(request)
        except InvalidRequestError as e:
            return error_response(ErrorCode.INVALID_REQUEST, str(e), status_code=400)
        result = self._keys.validate_public(key_id, secret)
        return JSONResponse(result.to_dict())

    async def handle_whoami(self, request: Request) -> JSONResponse:
        """GET /api/auth/whoami"""
        auth = getattr(request.state, "auth", None)
        payload: dict[str, Any] = {
            "accessKeyId": getattr(auth, "access_key_id", None),
            "mode": getattr(auth, "mode", None),
        }
        return JSONResponse(payload)

    async def handle_health(self, _request: Request) -> JSONResponse:
        """Health check."""
        return JSONResponse({"status": "healthy", "signatureVersion": CANONICAL_VERSION})


def create_app(
    settings: Settings | None = None,
    store: CredentialStore | None = None,
    clock: Callable[[], float] | None = None,
) -> Starlette:
    """Create the Starlette application."""
    settings = settings or get_settings()
    server = KeyServer(settings, store)
    authenticator = Authenticator(
        server.store,
        timestamp_tolerance_seconds=settings.timestamp_tolerance_seconds,
        clock=clock or time.time,
        expose_calculated_signature=settings.expose_calculated_signature,
    )

    @asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        await server.startup()
        yield
        await server.shutdown()

    routes = [
        # Access keys
        Route("/api/keys", server.handle_list_keys, methods=["GET"]),
        Route("/api/keys", server.handle_create_key, methods=["POST"]),
        Route("/api/keys/generate", server.handle_generate_key, methods=["POST"]),
        Route("/api/keys/validate", server.handle_validate_key, methods=["POST"]),
        Route("/api/keys/{key_id}", server.handle_delete_key, methods=["DELETE"]),
        Route("/api/auth/whoami", server.handle_whoami, methods=["GET"]),
        # Health
        Route("/health", server.handle_health, methods=["GET"]),
        Route("/metrics", metrics_endpoint, methods=["GET"]),
    ]

    app = Starlette(routes=routes, lifespan=lifespan)

    app.add_middleware(
        AccessKeyAuthMiddleware,
        settings=settings,
        authenticator=authenticator,
    )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        MetricsMiddleware,
        exclude_paths=["/health", "/metrics"],
    )

    return app


def main() -> None:
    """Entry point for the SMS4Dev server."""
    settings = get_settings()
    setup_logging(settings.log_level, json_logs=settings.json_logs)
    app = create_app(settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
