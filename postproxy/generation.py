from __future__ import annotations

import json
from typing import Any, Dict, List

from pydantic import BaseModel, validator

from .errors import ClientInputError

# Maximum characters kept per field; longer values are truncated, not rejected.
FIELD_LIMITS: Dict[str, int] = {
    "source": 40,
    "target": 40,
    "variant": 20,
    "text": 50_000,
    "hook": 200,
    "cta": 200,
}

TEMPERATURES = {"spicy": 0.9, "minimal": 0.3}
DEFAULT_TEMPERATURE = 0.6

SYSTEM_PROMPT = (
    "You are 7H3SOR73R, an enterprise-safe writing assistant. "
    "Rewrite the source text into a copy-ready post for the target platform. "
    "Keep it concise and clear. Do not invent facts. Return only the final formatted output."
)


def clamp(value: Any, max_len: int) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    return value[:max_len]


def parse_json_object(raw: str) -> Dict[str, Any]:
    """Parse a request body that must be a JSON object."""
    if not raw or not raw.strip():
        raise ClientInputError("Invalid JSON")
    try:
        data = json.loads(raw)
    except ValueError:
        raise ClientInputError("Invalid JSON")
    if not isinstance(data, dict):
        raise ClientInputError("Invalid JSON")
    return data


class GenerateRequest(BaseModel):
    source: str = ""
    target: str = ""
    variant: str = ""
    text: str = ""
    hook: str = ""
    cta: str = ""

    @validator("source", "target", pre=True)
    def clamp_platform(cls, value: Any) -> str:
        return clamp(value, FIELD_LIMITS["source"])

    @validator("variant", pre=True)
    def clamp_variant(cls, value: Any) -> str:
        return clamp(value, FIELD_LIMITS["variant"])

    @validator("text", pre=True)
    def clamp_text(cls, value: Any) -> str:
        return clamp(value, FIELD_LIMITS["text"])

    @validator("hook", "cta", pre=True)
    def clamp_copy(cls, value: Any) -> str:
        return clamp(value, FIELD_LIMITS["hook"])

    @classmethod
    def from_body(cls, data: Dict[str, Any]) -> "GenerateRequest":
        known = {name: data.get(name) for name in FIELD_LIMITS}
        request = cls(**known)
        if not request.text.strip():
            raise ClientInputError("Missing text")
        return request


def temperature_for(variant: str) -> float:
    return TEMPERATURES.get(variant, DEFAULT_TEMPERATURE)


def build_user_prompt(request: GenerateRequest) -> str:
    lines = [
        ("Source platform", request.source),
        ("Target platform", request.target),
        ("Variation", request.variant),
        ("Goal/CTA", request.cta),
        ("Hook", request.hook),
    ]
    header = "".join(f"{label}: {value}\n" for label, value in lines if value)
    return f"{header}\n---\nSOURCE TEXT:\n{request.text}"


def build_messages(request: GenerateRequest) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_user_prompt(request)},
    ]


def build_completion_payload(request: GenerateRequest, model: str, max_tokens: int) -> Dict[str, Any]:
    return {
        "model": model,
        "messages": build_messages(request),
        "temperature": temperature_for(request.variant),
        "max_tokens": max_tokens,
        "stream": False,
    }
