"""
Middleware components for security, request logging and the error boundary.
"""

import time
from collections.abc import Callable
from datetime import datetime, timezone

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..config.settings import RelaySettings
from .exceptions import PayloadTooLargeError, create_payload_too_large_error

GENERIC_ERROR_MESSAGE = "Something went wrong"


async def _empty_receive() -> Message:
    return {"type": "http.disconnect"}


class ExceptionHandlingMiddleware(BaseHTTPMiddleware):
    """Outermost error boundary: any unhandled exception becomes a 500 JSON body."""

    def __init__(self, app: ASGIApp, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.opt(exception=e).error(
                "❌ Global error on {} {}: {}", request.method, request.url.path, e
            )
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "message": str(e) if self.debug else GENERIC_ERROR_MESSAGE,
                },
            )


class DebugLoggingMiddleware(BaseHTTPMiddleware):
    """Verbose request/response logging. Installed only in debug mode."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        logger.info(
            "[{}] {} {}",
            datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            request.method,
            request.url.path,
        )
        logger.info("Headers: {}", dict(request.headers))

        body = await request.body()
        logger.info("Body: {}", body.decode("utf-8", errors="replace"))

        response = await call_next(request)

        logger.info(
            "Response: {} in {}ms",
            response.status_code,
            round((time.time() - start_time) * 1000, 2),
        )
        return response


class RequestSizeLimitMiddleware:
    """
    Reject bodies larger than the configured limit with a 413.

    The declared ``Content-Length`` is checked up front. Bodies without one
    (chunked uploads) are counted as they are received, and reading stops
    with ``PayloadTooLargeError`` once the running total passes the limit.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int):
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length and content_length.isdigit():
            if int(content_length) > self.max_body_bytes:
                await self._reject(scope, send, int(content_length))
                return

        received = 0
        exceeded = False
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received, exceeded
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    exceeded = True
                    raise create_payload_too_large_error(
                        received, self.max_body_bytes
                    )
            return message

        async def guarded_send(message: Message) -> None:
            nonlocal response_started
            # Whatever the app answers after an oversized read is replaced by the 413
            if exceeded and not response_started:
                return
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except PayloadTooLargeError:
            pass
        except Exception:
            if not exceeded:
                raise

        if exceeded and not response_started:
            await self._reject(scope, send, received)

    async def _reject(self, scope: Scope, send: Send, size: int) -> None:
        logger.warning(
            "Rejected {} {}: body of {} bytes exceeds {}",
            scope.get("method"),
            scope.get("path"),
            size,
            self.max_body_bytes,
        )
        response = JSONResponse(status_code=413, content={"error": "Payload too large"})
        await response(scope, _empty_receive, send)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware for adding security headers."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        # Add security headers
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["X-DNS-Prefetch-Control"] = "off"
        response.headers["Strict-Transport-Security"] = (
            "max-age=15552000; includeSubDomains"
        )
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cross-Origin-Resource-Policy"] = "same-origin"

        return response


def setup_middleware(app: FastAPI, settings: RelaySettings) -> FastAPI:
    """
    Install middleware once at startup.

    Starlette wraps each added middleware around the previous ones, so the
    last one added runs first.
    """
    if settings.debug_mode:
        app.add_middleware(DebugLoggingMiddleware)

    app.add_middleware(
        RequestSizeLimitMiddleware, max_body_bytes=settings.max_body_bytes
    )
    app.add_middleware(ExceptionHandlingMiddleware, debug=settings.debug_mode)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app
