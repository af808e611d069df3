"""Origin/access guard applied in front of the proxy endpoints.

Checks run in a fixed order: origin, preflight, method, application key,
rate limit. Preflight requests never reach the key or rate-limit checks.
"""

from __future__ import annotations

import hmac
import logging
from typing import Dict, Iterable, Mapping, Optional

from fastapi import Request, Response, status

from .config import Settings
from .errors import ForbiddenError, MethodNotAllowedError, ProxyError, error_response
from .rate_limit import FixedWindowRateLimiter, client_id_from_headers

logger = logging.getLogger("postproxy.guard")

SECURITY_HEADERS = {
    "Content-Type": "application/json",
    "Cache-Control": "no-store",
    "Vary": "Origin",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
}


def pick_origin(request_origin: Optional[str], allowed_origin: Optional[str]) -> str:
    """Origin to echo in CORS headers; empty string means the origin is forbidden."""
    if not allowed_origin:
        return request_origin or "*"
    if not request_origin:
        return allowed_origin
    return request_origin if request_origin == allowed_origin else ""


def cors_headers(origin: str, method: str, extra_allow_headers: Iterable[str] = ()) -> Dict[str, str]:
    headers = dict(SECURITY_HEADERS)
    headers["Access-Control-Allow-Origin"] = origin
    headers["Access-Control-Allow-Methods"] = f"{method},OPTIONS"
    headers["Access-Control-Allow-Headers"] = ", ".join(["Content-Type", *extra_allow_headers])
    return headers


def app_key_matches(presented: Optional[str], expected: str) -> bool:
    if not presented:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


class Guard:
    """HTTP middleware guarding ``routes`` (path -> allowed method)."""

    def __init__(
        self,
        settings: Settings,
        routes: Mapping[str, str],
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
    ):
        self.settings = settings
        self.routes = dict(routes)
        self.rate_limiter = rate_limiter

    async def __call__(self, request: Request, call_next):
        method = self.routes.get(request.url.path)
        if method is None:
            return await call_next(request)

        request_origin = request.headers.get("origin", "")
        allowed_origin = self.settings.app_allowed_origin
        origin = pick_origin(request_origin, allowed_origin)
        if not origin:
            logger.info("origin rejected", extra={"path": request.url.path, "origin": request_origin})
            return Response(
                status_code=status.HTTP_403_FORBIDDEN,
                headers={"Vary": "Origin", "X-Content-Type-Options": "nosniff"},
            )

        extra_allow_headers = [self.settings.app_key_header] if self.settings.app_client_key else []
        headers = cors_headers(origin, method, extra_allow_headers)

        if request.method == "OPTIONS":
            return Response(status_code=status.HTTP_204_NO_CONTENT, headers=headers)

        try:
            await self._check(request, method)
        except ProxyError as exc:
            response = error_response(exc)
        else:
            response = await call_next(request)

        response.headers.update(headers)
        response.headers["X-App"] = self.settings.app_name
        return response

    async def _check(self, request: Request, method: str) -> None:
        if request.method != method:
            raise MethodNotAllowedError()

        expected_key = self.settings.app_client_key
        if expected_key:
            presented = request.headers.get(self.settings.app_key_header)
            if not app_key_matches(presented, expected_key):
                logger.info("application key rejected", extra={"path": request.url.path})
                raise ForbiddenError("Unauthorized client")

        if self.rate_limiter is not None:
            client_id = client_id_from_headers(
                request.headers, self.settings.client_ip_header, self.settings.trusted_proxy_hops
            )
            await self.rate_limiter.check(client_id)
