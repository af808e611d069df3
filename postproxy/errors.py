"""Proxy exceptions and the FastAPI handler that renders them."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger("postproxy.errors")


class ProxyError(Exception):
    """Base exception carrying the HTTP status and the JSON error body."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR, **fields: Any):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.fields = fields

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        body.update(self.fields)
        return body


class ClientInputError(ProxyError):
    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, **fields: Any):
        super().__init__(message, status_code, **fields)


class ForbiddenError(ProxyError):
    def __init__(self, message: str = "Unauthorized client", **fields: Any):
        super().__init__(message, status.HTTP_403_FORBIDDEN, **fields)


class MethodNotAllowedError(ProxyError):
    def __init__(self, message: str = "Method not allowed"):
        super().__init__(message, status.HTTP_405_METHOD_NOT_ALLOWED)


class RateLimitedError(ProxyError):
    def __init__(self, retry_after: int):
        super().__init__("Rate limited", status.HTTP_429_TOO_MANY_REQUESTS)
        self.retry_after = retry_after


class ConfigurationError(ProxyError):
    """Server-side misconfiguration; not fixable by the caller."""

    def __init__(self, message: str):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


class UpstreamError(ProxyError):
    def __init__(self, message: str, status_code: int = status.HTTP_502_BAD_GATEWAY, **fields: Any):
        super().__init__(message, status_code, **fields)


class UpstreamTimeoutError(ProxyError):
    def __init__(self, message: str = "AI request timed out"):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_response(exc: ProxyError) -> JSONResponse:
    headers = {}
    if isinstance(exc, RateLimitedError):
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(exc.to_body(), status_code=exc.status_code, headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    """Register the ProxyError handler on the FastAPI app."""

    @app.exception_handler(ProxyError)
    async def handle_proxy_error(request: Request, exc: ProxyError):
        if exc.status_code >= 500:
            logger.warning(
                "request failed",
                extra={"path": request.url.path, "status": exc.status_code, "error": exc.message},
            )
        return error_response(exc)
