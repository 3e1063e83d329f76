"""Tests for OpenAIAdapter and DeepSeekAdapter - payloads, parsing, errors, SSE."""

import json

import httpx
import pytest
import respx

from neural_ai.adapters.deepseek import DeepSeekAdapter
from neural_ai.adapters.openai import OpenAIAdapter
from neural_ai.adapters.schema import NormalizedRequest
from neural_ai.errors import ConfigurationError, MultimodalError, ProviderError

from tests.conftest import MOCK_OPENAI_COMPLETION, PNG_BYTES, sse_body

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
DEEPSEEK_URL = "https://api.deepseek.com/v1/chat/completions"


@pytest.fixture
def adapter():
    return OpenAIAdapter({"api_key": "sk-test"})


def capture(response: httpx.Response):
    """respx side effect that records the request body."""
    captured = {}

    def handler(request):
        captured["request"] = request
        captured["body"] = json.loads(request.content)
        return response

    return captured, handler


# ─────────────────────────────────────────────────────────────────────
# Generation
# ─────────────────────────────────────────────────────────────────────


class TestGenerate:
    @pytest.mark.asyncio
    @respx.mock
    async def test_two_plus_two(self, adapter):
        captured, handler = capture(httpx.Response(200, json=MOCK_OPENAI_COMPLETION))
        respx.post(OPENAI_URL).mock(side_effect=handler)

        response = await adapter.generate(
            NormalizedRequest(prompt="2+2?", system_prompt="reply with one word")
        )

        assert response.text == "Four"
        assert response.usage.total_tokens == 13
        assert response.function_calls is None
        assert response.raw == MOCK_OPENAI_COMPLETION

        body = captured["body"]
        assert body["model"] == "gpt-3.5-turbo"
        assert body["messages"] == [
            {"role": "system", "content": "reply with one word"},
            {"role": "user", "content": "2+2?"},
        ]
        assert "stream" not in body
        assert captured["request"].headers["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    @respx.mock
    async def test_per_call_options_override_instance(self):
        adapter = OpenAIAdapter({"api_key": "sk-test", "model": "gpt-4o", "temperature": 0.2})
        captured, handler = capture(httpx.Response(200, json=MOCK_OPENAI_COMPLETION))
        respx.post(OPENAI_URL).mock(side_effect=handler)

        await adapter.generate(NormalizedRequest(
            prompt="hi",
            options={"temperature": 0.9, "max_tokens": 100},
        ))

        body = captured["body"]
        assert body["model"] == "gpt-4o"
        assert body["temperature"] == 0.9
        assert body["max_tokens"] == 100
        assert "top_p" not in body

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_network(self):
        adapter = OpenAIAdapter()
        with respx.mock(assert_all_called=False) as router:
            route = router.post(OPENAI_URL)
            with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
                await adapter.generate(NormalizedRequest(prompt="hi"))
            assert not route.called

    @pytest.mark.asyncio
    @respx.mock
    async def test_env_key_and_base_url(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("OPENAI_BASE_URL", "http://proxy.local/v1/")
        captured, handler = capture(httpx.Response(200, json=MOCK_OPENAI_COMPLETION))
        respx.post("http://proxy.local/v1/chat/completions").mock(side_effect=handler)

        await OpenAIAdapter().generate(NormalizedRequest(prompt="hi"))

        assert captured["request"].headers["Authorization"] == "Bearer sk-env"

    @pytest.mark.asyncio
    @respx.mock
    async def test_multimodal_content_order(self, adapter, png_file):
        captured, handler = capture(httpx.Response(200, json=MOCK_OPENAI_COMPLETION))
        respx.post(OPENAI_URL).mock(side_effect=handler)

        await adapter.generate(NormalizedRequest.model_validate({
            "prompt": "Compare",
            "content": [
                {"type": "image", "source": str(png_file)},
                {"type": "text", "text": "with this one"},
            ],
            "image": PNG_BYTES,
        }))

        content = captured["body"]["messages"][0]["content"]
        assert [part["type"] for part in content] == ["text", "image_url", "text", "image_url"]
        assert content[0]["text"] == "Compare"
        assert content[1]["image_url"]["url"].startswith("data:image/png;base64,")
        assert content[3]["image_url"]["url"].startswith("data:image/jpeg;base64,")


# ─────────────────────────────────────────────────────────────────────
# Native tool calling
# ─────────────────────────────────────────────────────────────────────


class TestTools:
    @pytest.mark.asyncio
    @respx.mock
    async def test_forced_function(self, adapter, weather_function):
        completion = {
            "choices": [{
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [{
                        "id": "call_1",
                        "type": "function",
                        "function": {
                            "name": "getWeather",
                            "arguments": '{"location": "Tokyo"}',
                        },
                    }],
                },
            }],
        }
        captured, handler = capture(httpx.Response(200, json=completion))
        respx.post(OPENAI_URL).mock(side_effect=handler)

        response = await adapter.generate(NormalizedRequest(
            prompt="Weather in Tokyo?",
            functions=[weather_function],
            function_call={"name": "getWeather"},
        ))

        body = captured["body"]
        assert body["tools"][0] == {"type": "function", "function": weather_function}
        assert body["tool_choice"] == {"type": "function", "function": {"name": "getWeather"}}

        assert response.text == ""
        assert response.function_calls[0].name == "getWeather"
        assert json.loads(response.function_calls[0].arguments) == {"location": "Tokyo"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_auto_directive(self, adapter, weather_function):
        captured, handler = capture(httpx.Response(200, json=MOCK_OPENAI_COMPLETION))
        respx.post(OPENAI_URL).mock(side_effect=handler)

        await adapter.generate(NormalizedRequest(
            prompt="hi", functions=[weather_function], function_call="auto",
        ))

        assert captured["body"]["tool_choice"] == "auto"


# ─────────────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────────────


class TestErrors:
    @pytest.mark.asyncio
    @respx.mock
    async def test_plain_error_passes_through(self, adapter):
        respx.post(OPENAI_URL).mock(
            return_value=httpx.Response(429, json={"error": {"message": "Rate limit exceeded"}})
        )

        with pytest.raises(ProviderError, match="Rate limit exceeded") as exc_info:
            await adapter.generate(NormalizedRequest(prompt="hi"))

        assert type(exc_info.value) is ProviderError
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    @respx.mock
    @pytest.mark.parametrize("body", [
        {"choices": [None]},
        {"choices": [{"message": "not an object"}]},
        {"choices": "nope"},
    ])
    async def test_malformed_choices(self, adapter, body):
        respx.post(OPENAI_URL).mock(return_value=httpx.Response(200, json=body))

        with pytest.raises(ProviderError, match="unexpected response body") as exc_info:
            await adapter.generate(NormalizedRequest(prompt="hi"))

        assert exc_info.value.payload == body

    @pytest.mark.asyncio
    @respx.mock
    async def test_multimodal_failure_rewritten(self, adapter):
        respx.post(OPENAI_URL).mock(
            return_value=httpx.Response(
                400, json={"error": {"message": "Invalid content type. image_url is only supported by certain models."}}
            )
        )

        with pytest.raises(MultimodalError) as exc_info:
            await adapter.generate(NormalizedRequest(prompt="what is this", image=PNG_BYTES))

        error = exc_info.value
        assert "gpt-4o" in str(error)
        assert "(original error: Invalid content type." in str(error)
        assert error.status_code == 400
        assert isinstance(error.__cause__, ProviderError)

    @pytest.mark.asyncio
    @respx.mock
    async def test_image_wording_ignored_for_text_requests(self, adapter):
        respx.post(OPENAI_URL).mock(
            return_value=httpx.Response(400, json={"error": {"message": "image generation disabled"}})
        )

        with pytest.raises(ProviderError) as exc_info:
            await adapter.generate(NormalizedRequest(prompt="hi"))

        assert not isinstance(exc_info.value, MultimodalError)


# ─────────────────────────────────────────────────────────────────────
# Streaming
# ─────────────────────────────────────────────────────────────────────


class TestStream:
    @pytest.mark.asyncio
    @respx.mock
    async def test_streams_deltas(self, adapter):
        chunks = [
            {"choices": [{"delta": {"role": "assistant", "content": ""}}]},
            {"choices": [{"delta": {"content": "The capital"}}]},
            {"choices": [{"delta": {"content": " is Paris."}}]},
            {"choices": [{"delta": {}, "finish_reason": "stop"}]},
        ]
        captured, handler = capture(httpx.Response(200, text=sse_body(chunks)))
        respx.post(OPENAI_URL).mock(side_effect=handler)

        pieces = [piece async for piece in adapter.stream(NormalizedRequest(prompt="Capital?"))]

        assert pieces == ["The capital", " is Paris."]
        assert captured["body"]["stream"] is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_stream_error(self, adapter):
        respx.post(OPENAI_URL).mock(
            return_value=httpx.Response(401, json={"error": {"message": "Invalid API key"}})
        )

        with pytest.raises(ProviderError, match="Invalid API key"):
            async for _ in adapter.stream(NormalizedRequest(prompt="hi")):
                pass


# ─────────────────────────────────────────────────────────────────────
# DeepSeek
# ─────────────────────────────────────────────────────────────────────


class TestDeepSeek:
    @pytest.mark.asyncio
    @respx.mock
    async def test_same_wire_format_different_defaults(self, monkeypatch):
        monkeypatch.setenv("DEEPSEEK_API_KEY", "ds-key")
        captured, handler = capture(httpx.Response(200, json=MOCK_OPENAI_COMPLETION))
        respx.post(DEEPSEEK_URL).mock(side_effect=handler)

        response = await DeepSeekAdapter().generate(NormalizedRequest(prompt="2+2?"))

        assert response.text == "Four"
        assert captured["body"]["model"] == "deepseek-chat"
        assert captured["request"].headers["Authorization"] == "Bearer ds-key"

    @pytest.mark.asyncio
    async def test_missing_key_names_deepseek_env(self):
        with pytest.raises(ConfigurationError, match="DEEPSEEK_API_KEY"):
            await DeepSeekAdapter().generate(NormalizedRequest(prompt="hi"))
