from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse

from .cache import FeedCache
from .config import Settings, get_settings
from .errors import ClientInputError, ConfigurationError, ProxyError, register_error_handlers
from .feed import load_feed
from .generation import GenerateRequest, build_completion_payload, parse_json_object
from .guard import Guard
from .providers.x import XProvider
from .providers.xai import XAIProvider
from .rate_limit import FixedWindowRateLimiter, build_rate_limiter

logger = logging.getLogger("postproxy")
logging.basicConfig(level=logging.INFO)

GUARDED_ROUTES = {
    "/generate": "POST",
    "/feed": "GET",
}

router = APIRouter()

# The body limit counts characters; no UTF-8 character is longer than 4 bytes.
MAX_UTF8_BYTES_PER_CHAR = 4


def _declared_length(request: Request) -> int:
    try:
        return int(request.headers.get("content-length", "0"))
    except ValueError:
        return 0


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_feed_cache(request: Request) -> FeedCache:
    return request.app.state.feed_cache


def get_x_provider(settings: Settings = Depends(get_app_settings)) -> XProvider:
    return XProvider(
        bearer_token=settings.x_bearer_token or "",
        base_url=settings.x_api_base_url,
        timeout=settings.feed_timeout_seconds,
    )


@router.get("/healthz")
async def health() -> dict:
    return {"status": "ok"}


@router.post("/generate")
async def generate(request: Request, settings: Settings = Depends(get_app_settings)):
    if not settings.xai_api_key:
        logger.error("XAI_API_KEY is not configured")
        raise ConfigurationError("AI not configured")

    if _declared_length(request) > MAX_UTF8_BYTES_PER_CHAR * settings.max_body_chars:
        raise ClientInputError("Payload too large", status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)

    raw = (await request.body()).decode("utf-8", errors="replace")
    if len(raw) > settings.max_body_chars:
        raise ClientInputError("Payload too large", status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)

    payload = GenerateRequest.from_body(parse_json_object(raw))
    request_body = build_completion_payload(payload, settings.grok_model, settings.generation_max_tokens)

    logger.info(
        "proxying generation request",
        extra={
            "model": settings.grok_model,
            "variant": payload.variant,
            "temperature": request_body["temperature"],
            "text_length": len(payload.text),
        },
    )

    try:
        output = await XAIProvider.complete(
            api_key=settings.xai_api_key,
            payload=request_body,
            base_url=settings.xai_base_url,
            timeout=settings.generation_timeout_seconds,
        )
    except ProxyError:
        raise
    except Exception:
        logger.exception("generation failed")
        raise ProxyError("AI generation error", status.HTTP_500_INTERNAL_SERVER_ERROR)

    return {"output": output}


@router.get("/feed")
async def feed(
    settings: Settings = Depends(get_app_settings),
    cache: FeedCache = Depends(get_feed_cache),
    provider: XProvider = Depends(get_x_provider),
):
    try:
        payload, cached = await load_feed(settings, cache, provider)
    except ProxyError:
        raise
    except Exception:
        logger.exception("feed request failed")
        raise ProxyError("Server error", status.HTTP_500_INTERNAL_SERVER_ERROR)

    body = dict(payload)
    body["cached"] = cached
    return JSONResponse(body, headers={"X-Cache": "HIT" if cached else "MISS"})


def create_app(
    settings: Optional[Settings] = None,
    feed_cache: Optional[FeedCache] = None,
    rate_limiter: Optional[FixedWindowRateLimiter] = None,
) -> FastAPI:
    settings = settings or get_settings()
    if rate_limiter is None:
        rate_limiter = build_rate_limiter(settings.rate_limit)

    app = FastAPI(title=settings.app_name)
    app.state.settings = settings
    app.state.feed_cache = feed_cache or FeedCache()

    app.middleware("http")(Guard(settings, GUARDED_ROUTES, rate_limiter=rate_limiter))
    register_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()
