"""Shared test fixtures for neural-ai tests."""

import json

import pytest

from neural_ai.config import (
    DEEPSEEK_API_KEY_ENV,
    DEEPSEEK_BASE_URL_ENV,
    GOOGLE_API_KEY_ENV,
    GOOGLE_BASE_URL_ENV,
    HUGGINGFACE_API_KEY_ENV,
    HUGGINGFACE_BASE_URL_ENV,
    OLLAMA_BASE_URL_ENV,
    OPENAI_API_KEY_ENV,
    OPENAI_BASE_URL_ENV,
)


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA
# ─────────────────────────────────────────────────────────────────────

# 1x1 transparent PNG
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6300010000000500010d0a2db40000"
    "000049454e44ae426082"
)

WEATHER_FUNCTION = {
    "name": "getWeather",
    "description": "Get the current weather for a location",
    "parameters": {
        "type": "object",
        "properties": {
            "location": {"type": "string"},
            "unit": {"type": "string", "enum": ["celsius", "fahrenheit"]},
        },
        "required": ["location"],
    },
}

MOCK_OPENAI_COMPLETION = {
    "id": "chatcmpl-123",
    "object": "chat.completion",
    "created": 1699000000,
    "model": "gpt-3.5-turbo",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "Four"},
            "finish_reason": "stop",
        }
    ],
    "usage": {"prompt_tokens": 12, "completion_tokens": 1, "total_tokens": 13},
}

MOCK_GOOGLE_RESPONSE = {
    "candidates": [
        {"content": {"parts": [{"text": "Four"}], "role": "model"}}
    ],
    "usageMetadata": {
        "promptTokenCount": 8,
        "candidatesTokenCount": 1,
        "totalTokenCount": 9,
    },
}

ALL_ENV_VARS = [
    OPENAI_API_KEY_ENV,
    OPENAI_BASE_URL_ENV,
    DEEPSEEK_API_KEY_ENV,
    DEEPSEEK_BASE_URL_ENV,
    GOOGLE_API_KEY_ENV,
    GOOGLE_BASE_URL_ENV,
    HUGGINGFACE_API_KEY_ENV,
    HUGGINGFACE_BASE_URL_ENV,
    OLLAMA_BASE_URL_ENV,
]


def sse_body(chunks: list[dict], done: bool = True) -> str:
    """Build a server-sent events body from JSON chunks."""
    lines = [f"data: {json.dumps(chunk)}\n\n" for chunk in chunks]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines)


def ndjson_body(chunks: list[dict]) -> str:
    return "".join(json.dumps(chunk) + "\n" for chunk in chunks)


# ─────────────────────────────────────────────────────────────────────
# FIXTURES - Environment
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove provider credentials/URLs so the host environment cannot leak in."""
    for name in ALL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ─────────────────────────────────────────────────────────────────────
# FIXTURES - Data
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def weather_function():
    return json.loads(json.dumps(WEATHER_FUNCTION))


@pytest.fixture
def png_file(tmp_path):
    """A real PNG file on disk."""
    path = tmp_path / "pixel.png"
    path.write_bytes(PNG_BYTES)
    return path
