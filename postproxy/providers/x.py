"""X (Twitter) API v2 provider adapter."""

from __future__ import annotations

import logging
from typing import Any, Optional, Tuple
from urllib.parse import quote

import httpx

logger = logging.getLogger("postproxy.providers.x")

UpstreamResult = Tuple[int, Any]


class XProvider:
    """Read-only client for the two X API v2 calls the feed needs.

    Each call returns ``(status_code, data)``; ``data`` is None when the body
    is empty or not JSON. Non-success statuses are left to the caller.
    """

    DEFAULT_BASE_URL = "https://api.x.com/2"

    def __init__(
        self,
        bearer_token: str,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.bearer_token = bearer_token
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def lookup_user(self, handle: str) -> UpstreamResult:
        return await self._get_json(
            f"/users/by/username/{quote(handle, safe='')}",
            {"user.fields": "profile_image_url"},
        )

    async def recent_posts(self, user_id: str, max_results: int = 10) -> UpstreamResult:
        return await self._get_json(
            f"/users/{quote(str(user_id), safe='')}/tweets",
            {
                "max_results": str(max_results),
                "exclude": "retweets,replies",
                "tweet.fields": "created_at,public_metrics,attachments",
                "expansions": "attachments.media_keys",
                "media.fields": "type,url,preview_image_url,alt_text",
            },
        )

    async def _get_json(self, path: str, params: dict) -> UpstreamResult:
        headers = {
            "Authorization": f"Bearer {self.bearer_token}",
            "Accept": "application/json",
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(f"{self.base_url}{path}", headers=headers, params=params)

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = None

        if response.is_error:
            logger.warning("X API error: %s %s", response.status_code, path)
        return response.status_code, data
