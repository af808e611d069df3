"""xAI (Grok) chat completions provider adapter."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx
from fastapi import status

from ..errors import ProxyError, UpstreamError, UpstreamTimeoutError

logger = logging.getLogger("postproxy.providers.xai")


def _parse_json(response: httpx.Response) -> Any:
    try:
        return response.json() if response.content else None
    except ValueError:
        return None


def _error_detail(data: Any, status_code: int) -> str:
    """Best-effort human-readable message from an upstream error body."""
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if data.get("message"):
            return str(data["message"])
        if isinstance(error, str) and error:
            return error
    return f"HTTP {status_code}"


def _extract_output(data: Any) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content.strip() if isinstance(content, str) else ""


class XAIProvider:
    """Adapter for the xAI chat completions API."""

    DEFAULT_BASE_URL = "https://api.x.ai/v1/chat/completions"

    @staticmethod
    async def complete(
        api_key: str,
        payload: dict,
        base_url: Optional[str] = None,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> str:
        """
        Call the chat completions API and return the trimmed generated text.

        Args:
            api_key: xAI API key
            payload: Request payload (OpenAI-compatible format)
            base_url: Custom endpoint URL (optional)
            timeout: Upper bound in seconds for the whole upstream exchange
            transport: Custom httpx transport (optional)

        Returns:
            The first choice's message content, stripped; "" when absent.

        Raises:
            UpstreamError: upstream answered with a non-success status
            UpstreamTimeoutError: the exchange exceeded ``timeout``
        """
        url = base_url or XAIProvider.DEFAULT_BASE_URL

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
                response = await asyncio.wait_for(
                    client.post(url, headers=headers, json=payload),
                    timeout=timeout,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("xAI request timed out", extra={"timeout": timeout})
            raise UpstreamTimeoutError("AI request timed out")
        except httpx.RequestError as exc:
            logger.warning("xAI request failed: %s", exc)
            raise ProxyError("AI generation error", status.HTTP_500_INTERNAL_SERVER_ERROR)

        data = _parse_json(response)

        if response.is_error:
            detail = _error_detail(data, response.status_code)
            logger.warning("xAI API error: %s - %s", response.status_code, detail)
            raise UpstreamError(
                "AI request failed",
                status=response.status_code,
                detail=detail,
            )

        return _extract_output(data)
