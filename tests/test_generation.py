"""Tests for request parsing, clamping and prompt construction."""

import pytest

from postproxy.errors import ClientInputError
from postproxy.generation import (
    FIELD_LIMITS,
    SYSTEM_PROMPT,
    GenerateRequest,
    build_completion_payload,
    build_user_prompt,
    clamp,
    parse_json_object,
    temperature_for,
)


def test_clamp():
    assert clamp(None, 5) == ""
    assert clamp("abcdefgh", 5) == "abcde"
    assert clamp("abc", 5) == "abc"
    assert clamp(12345678, 4) == "1234"


@pytest.mark.parametrize("raw", ["", "   ", "{not json", "[1, 2]", '"text"', "42", "null"])
def test_parse_json_object_rejects(raw):
    with pytest.raises(ClientInputError) as excinfo:
        parse_json_object(raw)
    assert excinfo.value.status_code == 400
    assert excinfo.value.to_body() == {"error": "Invalid JSON"}


def test_parse_json_object_accepts_object():
    assert parse_json_object('{"text": "hi"}') == {"text": "hi"}


def test_fields_are_truncated_to_exact_limits():
    data = {name: "x" * (limit + 25) for name, limit in FIELD_LIMITS.items()}
    request = GenerateRequest.from_body(data)
    for name, limit in FIELD_LIMITS.items():
        assert len(getattr(request, name)) == limit


def test_missing_optional_fields_default_to_empty():
    request = GenerateRequest.from_body({"text": "hello", "source": None})
    assert request.source == ""
    assert request.target == ""
    assert request.variant == ""


@pytest.mark.parametrize("text", [None, "", "   ", "\n\t "])
def test_blank_text_is_rejected(text):
    with pytest.raises(ClientInputError) as excinfo:
        GenerateRequest.from_body({"text": text})
    assert excinfo.value.to_body() == {"error": "Missing text"}


def test_unknown_fields_are_ignored():
    request = GenerateRequest.from_body({"text": "hi", "model": "something-else"})
    assert request.text == "hi"


@pytest.mark.parametrize(
    "variant, expected",
    [("spicy", 0.9), ("minimal", 0.3), ("", 0.6), ("standard", 0.6), ("SPICY", 0.6)],
)
def test_temperature_for(variant, expected):
    assert temperature_for(variant) == expected


def test_prompt_omits_empty_lines():
    prompt = build_user_prompt(GenerateRequest.from_body({"text": "hello"}))
    assert prompt == "\n---\nSOURCE TEXT:\nhello"


def test_prompt_includes_all_fields():
    request = GenerateRequest.from_body(
        {
            "source": "LinkedIn",
            "target": "X",
            "variant": "spicy",
            "text": "We shipped it.",
            "hook": "Big news",
            "cta": "Try it today",
        }
    )
    prompt = build_user_prompt(request)
    assert prompt == (
        "Source platform: LinkedIn\n"
        "Target platform: X\n"
        "Variation: spicy\n"
        "Goal/CTA: Try it today\n"
        "Hook: Big news\n"
        "\n---\nSOURCE TEXT:\nWe shipped it."
    )


def test_completion_payload():
    request = GenerateRequest.from_body({"text": "hello", "variant": "minimal"})
    payload = build_completion_payload(request, model="grok-4", max_tokens=900)
    assert payload["model"] == "grok-4"
    assert payload["temperature"] == 0.3
    assert payload["max_tokens"] == 900
    assert payload["stream"] is False
    assert payload["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert payload["messages"][1]["role"] == "user"
