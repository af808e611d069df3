from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, validator
from pydantic_settings import BaseSettings

from .secrets import get_secret_from_manager, should_use_secret_manager

logger = logging.getLogger("postproxy.config")


class RateLimitConfig(BaseModel):
    enabled: bool = False
    limit: int = Field(default=20, ge=1)
    window_seconds: float = Field(default=60.0, gt=0)
    max_tracked_clients: int = Field(default=10_000, ge=1)


class Settings(BaseSettings):
    app_name: str = "postproxy"

    # Guard
    app_allowed_origin: Optional[str] = Field(
        default=None,
        description="Only this origin may call the endpoints. Unset means open CORS.",
    )
    app_client_key: Optional[str] = Field(
        default=None,
        description="Shared application key clients must present. Unset disables the check.",
    )
    app_key_header: str = "X-App-Key"
    client_ip_header: str = Field(
        default="X-Forwarded-For",
        description="Trusted proxy-supplied header holding the client IP.",
    )
    trusted_proxy_hops: int = Field(
        default=1,
        ge=1,
        description="Number of trusted proxies appending to client_ip_header; the client is that many entries from the right.",
    )
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)

    # Generation (xAI chat completions)
    xai_api_key: Optional[str] = None
    grok_model: str = "grok-4"
    xai_base_url: str = "https://api.x.ai/v1/chat/completions"
    generation_timeout_seconds: float = Field(default=20.0, gt=0)
    generation_max_tokens: int = Field(default=900, ge=1)
    max_body_chars: int = Field(default=140_000, ge=1)

    # Feed (X API v2)
    x_bearer_token: Optional[str] = None
    x_allowed_handle: Optional[str] = None
    x_api_base_url: str = "https://api.x.com/2"
    feed_max_results: int = Field(default=10, ge=5, le=100)
    feed_ttl_seconds: float = Field(default=120.0, ge=0)
    feed_timeout_seconds: float = Field(default=10.0, gt=0)

    # Secret Manager configuration
    gcp_project_id: Optional[str] = None
    secret_xai_api_key_name: str = "xai-api-key"
    secret_x_bearer_token_name: str = "x-bearer-token"

    class Config:
        env_file = ".env"
        env_nested_delimiter = "__"

    @validator(
        "app_allowed_origin",
        "app_client_key",
        "xai_api_key",
        "x_bearer_token",
        "x_allowed_handle",
        pre=True,
    )
    def _blank_as_none(cls, value: object) -> Optional[object]:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def load_missing_secrets(self) -> None:
        """Fill unset upstream credentials from Secret Manager.

        Each secret is loaded on its own; a failed lookup is logged and leaves
        the field unset so only the endpoint needing it reports misconfiguration.
        """
        project_id = self.gcp_project_id or os.environ.get("GCP_PROJECT_ID")
        for field_name, secret_name in (
            ("xai_api_key", self.secret_xai_api_key_name),
            ("x_bearer_token", self.secret_x_bearer_token_name),
        ):
            if getattr(self, field_name):
                continue
            logger.info("Loading %s from Secret Manager", field_name)
            try:
                value = get_secret_from_manager(secret_name, project_id)
            except Exception as e:
                logger.error("Failed to load %s from Secret Manager: %s", field_name, e)
                continue
            setattr(self, field_name, value or None)


@lru_cache()
def get_settings() -> Settings:
    settings = Settings()
    if should_use_secret_manager():
        settings.load_missing_secrets()
    return settings
