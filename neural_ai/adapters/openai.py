"""
OpenAIAdapter - chat-completions implementation of ModelAdapter.

Native tool calling and native SSE streaming; images go inline as data URLs.
DeepSeekAdapter reuses this wire format with different defaults.
"""

import json
import logging
from contextlib import aclosing
from typing import Any, AsyncGenerator, Optional, Union

from neural_ai.adapters.content import collect_parts
from neural_ai.adapters.http import iter_sse_json, post, stream_lines
from neural_ai.adapters.schema import (
    AIProvider,
    ForcedFunction,
    FunctionCall,
    GenerationConfig,
    NormalizedRequest,
    NormalizedResponse,
    TokenUsage,
)
from neural_ai.config import (
    OPENAI_API_KEY_ENV,
    OPENAI_BASE_URL_ENV,
    OPENAI_DEFAULT_BASE_URL,
    OPENAI_DEFAULT_MODEL,
    OPENAI_VISION_MODEL,
    get_api_key,
    get_base_url,
)
from neural_ai.errors import ProviderError, looks_like_multimodal_failure, multimodal_error

logger = logging.getLogger(__name__)


def build_tools(request: NormalizedRequest) -> dict:
    """`tools` and `tool_choice` payload fields, empty when no functions."""
    if not request.functions:
        return {}

    fields: dict[str, Any] = {
        "tools": [
            {
                "type": "function",
                "function": {
                    "name": f.name,
                    "description": f.description,
                    "parameters": f.parameters,
                },
            }
            for f in request.functions
        ]
    }

    if isinstance(request.function_call, ForcedFunction):
        fields["tool_choice"] = {
            "type": "function",
            "function": {"name": request.function_call.name},
        }
    elif request.function_call in ("auto", "none"):
        fields["tool_choice"] = request.function_call

    return fields


def parse_tool_calls(message: dict) -> Optional[list[FunctionCall]]:
    """Structured tool_calls of type "function" from a response message."""
    tool_calls = message.get("tool_calls") or []
    calls = []
    for call in tool_calls:
        if call.get("type", "function") != "function":
            continue
        function = call.get("function") or {}
        arguments = function.get("arguments", "{}")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        calls.append(FunctionCall(name=function.get("name", ""), arguments=arguments))
    return calls or None


def parse_usage(data: dict) -> Optional[TokenUsage]:
    usage = data.get("usage")
    if not isinstance(usage, dict):
        return None
    return TokenUsage(
        prompt_tokens=usage.get("prompt_tokens"),
        completion_tokens=usage.get("completion_tokens"),
        total_tokens=usage.get("total_tokens"),
    )


class OpenAIAdapter:
    """
    OpenAI chat-completions implementation of ModelAdapter protocol.

    Usage:
        adapter = OpenAIAdapter({"model": "gpt-4o", "api_key": "sk-..."})
        response = await adapter.generate(NormalizedRequest(prompt="Hi"))
    """

    provider = AIProvider.OPENAI
    display_name = "OpenAI"
    default_base_url = OPENAI_DEFAULT_BASE_URL
    default_model = OPENAI_DEFAULT_MODEL
    api_key_env = OPENAI_API_KEY_ENV
    base_url_env = OPENAI_BASE_URL_ENV
    vision_model = OPENAI_VISION_MODEL

    def __init__(self, config: Union[GenerationConfig, dict, None] = None):
        self._config = GenerationConfig.model_validate(config or {})

    @property
    def config(self) -> GenerationConfig:
        return self._config

    async def _format_messages(self, request: NormalizedRequest) -> list[dict]:
        messages: list[dict] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})

        if not request.is_multimodal:
            messages.append({"role": "user", "content": request.prompt})
            return messages

        content = []
        for part in await collect_parts(request):
            if part.is_image:
                content.append({"type": "image_url", "image_url": {"url": part.image.data_url}})
            else:
                content.append({"type": "text", "text": part.text})
        messages.append({"role": "user", "content": content})
        return messages

    async def _prepare(self, request: NormalizedRequest, stream: bool) -> tuple[GenerationConfig, dict, dict, str]:
        config = self._config.merge(request.options)
        api_key = get_api_key(config.api_key, self.api_key_env, self.display_name)
        base_url = get_base_url(config.base_url, self.base_url_env, self.default_base_url)
        model = config.model or self.default_model

        payload: dict[str, Any] = {
            "model": model,
            "messages": await self._format_messages(request),
        }
        optional = {
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "top_p": config.top_p,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        if stream:
            payload["stream"] = True
        payload.update(build_tools(request))

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        return config, payload, headers, f"{base_url}/chat/completions"

    def _rewrite_error(self, error: ProviderError, request: NormalizedRequest, model: str) -> ProviderError:
        if request.is_multimodal and looks_like_multimodal_failure(error):
            return multimodal_error(error, model, self.vision_model)
        return error

    async def generate(self, request: NormalizedRequest) -> NormalizedResponse:
        """Single chat-completions call, normalized."""
        config, payload, headers, url = await self._prepare(request, stream=False)
        try:
            data = await post(
                url,
                provider=self.provider.value,
                model=payload["model"],
                headers=headers,
                json_body=payload,
                timeout_seconds=config.timeout_seconds,
            )
        except ProviderError as e:
            rewritten = self._rewrite_error(e, request, payload["model"])
            if rewritten is e:
                raise
            raise rewritten from e

        choices = (data.get("choices") or []) if isinstance(data, dict) else None
        choice = (choices[0] if choices else {}) if isinstance(choices, list) else None
        message = (choice.get("message") or {}) if isinstance(choice, dict) else None
        if not isinstance(data, dict) or not isinstance(message, dict):
            raise ProviderError(
                f"{self.display_name} returned an unexpected response body: {str(data)[:200]}",
                provider=self.provider.value,
                payload=data,
            )

        return NormalizedResponse(
            text=message.get("content") or "",
            usage=parse_usage(data),
            function_calls=parse_tool_calls(message),
            raw=data,
        )

    async def stream(self, request: NormalizedRequest) -> AsyncGenerator[str, None]:
        """Stream delta.content fragments from server-sent events."""
        config, payload, headers, url = await self._prepare(request, stream=True)
        lines = stream_lines(
            url,
            provider=self.provider.value,
            model=payload["model"],
            json_body=payload,
            headers=headers,
            timeout_seconds=config.timeout_seconds,
        )
        try:
            async with aclosing(iter_sse_json(lines, self.provider.value)) as chunks:
                async for chunk in chunks:
                    choices = chunk.get("choices") or []
                    if not choices or not isinstance(choices[0], dict):
                        continue
                    content = (choices[0].get("delta") or {}).get("content")
                    if content:
                        yield content
        except ProviderError as e:
            rewritten = self._rewrite_error(e, request, payload["model"])
            if rewritten is e:
                raise
            raise rewritten from e
