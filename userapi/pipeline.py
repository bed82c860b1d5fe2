"""Ordered request-processing stages wrapped around every HTTP request.

Each stage exposes ``async handle(request, call_next)``. Stages are composed
once by :class:`RequestPipeline` into a single callable and installed on the
application as one Starlette middleware, so the ordering is fixed at startup:

    ErrorRecoveryStage -> AuthenticationStage -> LoggingStage -> route

A stage may return a response without awaiting ``call_next`` (short-circuit)
or await it and observe the downstream response or exception.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from functools import partial
from typing import Awaitable, Callable, Iterable, Sequence

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .models import AuthenticatedContext
from .security import TokenRegistry, extract_bearer_token

logger = logging.getLogger("userapi.pipeline")

CallNext = Callable[[Request], Awaitable[Response]]

UNAUTHORIZED_MESSAGE = "Invalid or missing token. Use /auth/login to get a valid token."
GENERIC_ERROR_MESSAGE = "An unexpected error occurred while processing the request."


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


class Stage:
    """One link in the request chain."""

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        return await call_next(request)


class ErrorRecoveryStage(Stage):
    """Convert any failure escaping the inner stages into a JSON 500 response."""

    def __init__(self, *, expose_details: bool = True) -> None:
        self._expose_details = expose_details

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception("An unhandled exception occurred")
            message = str(exc) if self._expose_details else GENERIC_ERROR_MESSAGE
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Internal server error", "message": message},
            )


class AuthenticationStage(Stage):
    """Require a registered bearer token on every non-public path."""

    def __init__(self, registry: TokenRegistry, public_paths: Iterable[str]) -> None:
        self._registry = registry
        self._public_paths = tuple(path.lower() for path in public_paths if path)

    def is_public(self, path: str) -> bool:
        lowered = path.lower()
        return any(lowered.startswith(prefix) for prefix in self._public_paths)

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        path = request.url.path
        if self.is_public(path):
            return await call_next(request)

        header = request.headers.get("authorization")
        token = extract_bearer_token(header)
        if token is None:
            logger.warning("Request to %s missing Authorization header", path)
            return self._unauthorized()

        if not self._registry.is_valid(token):
            logger.warning("Request to %s with invalid token", path)
            return self._unauthorized()

        request.state.auth = AuthenticatedContext(
            token=token,
            authenticated_at=datetime.now(timezone.utc),
        )
        logger.info("Request to %s authenticated successfully", path)
        return await call_next(request)

    @staticmethod
    def _unauthorized() -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Unauthorized", "message": UNAUTHORIZED_MESSAGE},
        )


class LoggingStage(Stage):
    """Record method, path, status and duration; failures are re-raised."""

    async def handle(self, request: Request, call_next: CallNext) -> Response:
        method = request.method
        path = request.url.path
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "HTTP %s %s failed with exception after %.2fms",
                method,
                path,
                _elapsed_ms(started),
            )
            raise

        logger.info(
            "HTTP %s %s returned %s in %.2fms",
            method,
            path,
            response.status_code,
            _elapsed_ms(started),
        )
        return response


class RequestPipeline:
    """Compose stages, outermost first, around the downstream application."""

    def __init__(self, stages: Sequence[Stage]) -> None:
        self._stages = tuple(stages)

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    def build(self, endpoint: CallNext) -> CallNext:
        chained = endpoint
        for stage in reversed(self._stages):
            chained = partial(stage.handle, call_next=chained)
        return chained

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        return await self.build(call_next)(request)


def build_pipeline(
    registry: TokenRegistry,
    *,
    public_paths: Iterable[str],
    expose_error_details: bool = True,
) -> RequestPipeline:
    """Return the fixed stage ordering used by the service."""

    return RequestPipeline(
        [
            ErrorRecoveryStage(expose_details=expose_error_details),
            AuthenticationStage(registry, public_paths),
            LoggingStage(),
        ]
    )


class PipelineMiddleware(BaseHTTPMiddleware):
    """Run a :class:`RequestPipeline` for every HTTP request."""

    def __init__(self, app, pipeline: RequestPipeline) -> None:
        super().__init__(app)
        self.pipeline = pipeline

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        return await self.pipeline(request, call_next)


__all__ = [
    "AuthenticationStage",
    "ErrorRecoveryStage",
    "LoggingStage",
    "PipelineMiddleware",
    "RequestPipeline",
    "Stage",
    "build_pipeline",
]
