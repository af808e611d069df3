from __future__ import annotations

import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi import status

from .cache import FeedCache, FeedSnapshot
from .config import Settings
from .errors import ClientInputError, ConfigurationError, UpstreamError
from .providers.x import XProvider

logger = logging.getLogger("postproxy.feed")

HANDLE_PATTERN = re.compile(r"^[A-Za-z0-9_]{1,15}$")


def is_valid_handle(handle: str) -> bool:
    return bool(HANDLE_PATTERN.fullmatch(handle))


def _project_media(media: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": media.get("type"),
        "url": media.get("url") or media.get("preview_image_url") or None,
        "alt": media.get("alt_text") or "",
    }


def build_feed_payload(handle: str, user: Dict[str, Any], timeline: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten the user lookup and timeline responses into the feed payload."""
    includes = timeline.get("includes") or {}
    media_by_key = {
        media["media_key"]: media
        for media in includes.get("media") or []
        if media.get("media_key")
    }

    tweets: List[Dict[str, Any]] = []
    for tweet in timeline.get("data") or []:
        keys = (tweet.get("attachments") or {}).get("media_keys") or []
        media = [_project_media(media_by_key[key]) for key in keys if key in media_by_key]
        tweets.append(
            {
                "id": tweet.get("id"),
                "text": tweet.get("text"),
                "created_at": tweet.get("created_at"),
                "metrics": tweet.get("public_metrics") or {},
                "media": media,
            }
        )

    return {
        "handle": handle,
        "user": {
            "name": user.get("name") or None,
            "username": user.get("username") or handle,
            "pfp": user.get("profile_image_url") or None,
        },
        "tweets": tweets,
    }


def _lookup_failure(upstream_status: int) -> UpstreamError:
    relayed = upstream_status if upstream_status >= 400 else status.HTTP_502_BAD_GATEWAY
    return UpstreamError("X user lookup failed", relayed, status=upstream_status)


async def load_feed(
    settings: Settings,
    cache: FeedCache,
    provider: Optional[XProvider] = None,
    clock: Callable[[], float] = time.time,
) -> Tuple[Dict[str, Any], bool]:
    """Return ``(payload, cached)`` for the configured account.

    Serves the cached snapshot while it is younger than ``feed_ttl_seconds``;
    otherwise fetches upstream and overwrites the snapshot.
    """
    if not settings.x_bearer_token or not settings.x_allowed_handle:
        raise ConfigurationError("Server misconfigured")

    now = clock()
    snapshot = cache.get()
    if snapshot is not None and snapshot.is_fresh(now, settings.feed_ttl_seconds):
        return snapshot.payload, True

    handle = settings.x_allowed_handle.strip()
    if not is_valid_handle(handle):
        raise ClientInputError("Invalid configured handle")

    if provider is None:
        provider = XProvider(
            bearer_token=settings.x_bearer_token,
            base_url=settings.x_api_base_url,
            timeout=settings.feed_timeout_seconds,
        )

    user_status, user_data = await provider.lookup_user(handle)
    if not 200 <= user_status < 300:
        raise _lookup_failure(user_status)

    user = (user_data or {}).get("data") or {}
    user_id = user.get("id")
    if not user_id:
        raise UpstreamError("Missing user id from X")

    timeline_status, timeline_data = await provider.recent_posts(user_id, settings.feed_max_results)
    if not 200 <= timeline_status < 300:
        raise UpstreamError("Timeline failed", status=timeline_status)

    payload = build_feed_payload(handle, user, timeline_data or {})
    cache.set(FeedSnapshot(captured_at=now, payload=payload))
    logger.info("feed refreshed", extra={"handle": handle, "tweets": len(payload["tweets"])})
    return payload, False
