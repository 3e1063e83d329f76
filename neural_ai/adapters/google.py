"""
GoogleAdapter - Gemini generative API implementation of ModelAdapter.

Payloads are an ordered `parts` array mixing {"text"} and
{"inlineData": {"data", "mimeType"}}; there are no explicit roles.

Function calling goes through prompt injection rather than the native tools
field: definitions are appended to the prompt as a JSON block and the
generated text is mined by tool_parsers. If the backend call on that path fails,
the request is retried once as plain generation.
"""

import logging
from contextlib import aclosing
from typing import Any, AsyncGenerator, Optional, Union

from neural_ai.adapters.content import ResolvedPart, collect_parts
from neural_ai.adapters.http import iter_sse_json, post, stream_lines
from neural_ai.adapters.schema import (
    AIProvider,
    GenerationConfig,
    NormalizedRequest,
    NormalizedResponse,
    TokenUsage,
)
from neural_ai.config import (
    GOOGLE_API_KEY_ENV,
    GOOGLE_BASE_URL_ENV,
    GOOGLE_DEFAULT_BASE_URL,
    GOOGLE_DEFAULT_MODEL,
    GOOGLE_VISION_MODEL,
    get_api_key,
    get_base_url,
)
from neural_ai.errors import ProviderError, looks_like_multimodal_failure, multimodal_error
from neural_ai.tool_parsers import append_function_prompt, extract_function_calls

logger = logging.getLogger(__name__)


def extract_text(data: Any) -> str:
    """Concatenate candidates[0].content.parts[*].text."""
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


def parse_usage(data: Any) -> Optional[TokenUsage]:
    if not isinstance(data, dict):
        return None
    usage = data.get("usageMetadata")
    if not isinstance(usage, dict):
        return None
    return TokenUsage(
        prompt_tokens=usage.get("promptTokenCount"),
        completion_tokens=usage.get("candidatesTokenCount"),
        total_tokens=usage.get("totalTokenCount"),
    )


class GoogleAdapter:
    """
    Google generative API implementation of ModelAdapter protocol.

    Design decisions:
    - API key sent in the x-goog-api-key header, not the query string
    - System prompt becomes the first text part
    - Native stream via :streamGenerateContent?alt=sse
    """

    provider = AIProvider.GOOGLE

    def __init__(self, config: Union[GenerationConfig, dict, None] = None):
        self._config = GenerationConfig.model_validate(config or {})

    @property
    def config(self) -> GenerationConfig:
        return self._config

    @staticmethod
    def _build_parts(request: NormalizedRequest, resolved: list[ResolvedPart], prompt: str) -> list[dict]:
        parts: list[dict] = []
        if request.system_prompt:
            parts.append({"text": request.system_prompt})
        if prompt:
            parts.append({"text": prompt})
        for part in resolved:
            if part.is_image:
                parts.append({
                    "inlineData": {
                        "data": part.image.base64,
                        "mimeType": part.image.mime_type,
                    }
                })
            else:
                parts.append({"text": part.text})
        return parts

    def _resolve(self, request: NormalizedRequest) -> tuple[GenerationConfig, str, str, dict]:
        config = self._config.merge(request.options)
        api_key = get_api_key(config.api_key, GOOGLE_API_KEY_ENV, "Google")
        base_url = get_base_url(config.base_url, GOOGLE_BASE_URL_ENV, GOOGLE_DEFAULT_BASE_URL)
        model = config.model or GOOGLE_DEFAULT_MODEL
        headers = {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }
        return config, base_url, model, headers

    @staticmethod
    def _payload(parts: list[dict], config: GenerationConfig) -> dict:
        generation_config = {
            "temperature": config.temperature,
            "maxOutputTokens": config.max_tokens,
            "topP": config.top_p,
        }
        payload: dict[str, Any] = {"contents": [{"parts": parts}]}
        generation_config = {k: v for k, v in generation_config.items() if v is not None}
        if generation_config:
            payload["generationConfig"] = generation_config
        return payload

    async def _call(self, request: NormalizedRequest, parts: list[dict]) -> Any:
        config, base_url, model, headers = self._resolve(request)
        try:
            return await post(
                f"{base_url}/models/{model}:generateContent",
                provider=self.provider.value,
                model=model,
                headers=headers,
                json_body=self._payload(parts, config),
                timeout_seconds=config.timeout_seconds,
            )
        except ProviderError as e:
            if request.is_multimodal and looks_like_multimodal_failure(e):
                raise multimodal_error(e, model, GOOGLE_VISION_MODEL) from e
            raise

    async def _generate_with_functions(
        self, request: NormalizedRequest, resolved: list[ResolvedPart]
    ) -> NormalizedResponse:
        prompt = append_function_prompt(request.prompt, request.functions, request.function_call)
        data = await self._call(request, self._build_parts(request, resolved, prompt))
        text = extract_text(data)
        return NormalizedResponse(
            text=text,
            usage=parse_usage(data),
            function_calls=extract_function_calls(text, request.function_call, request.functions),
            raw=data,
        )

    async def generate(self, request: NormalizedRequest) -> NormalizedResponse:
        """Single generateContent call, normalized."""
        # Credentials and images are resolved once, before the function path,
        # so their errors propagate instead of triggering the fallback
        self._resolve(request)
        resolved = await collect_parts(request, prompt="")

        if request.wants_functions:
            try:
                return await self._generate_with_functions(request, resolved)
            except ProviderError as e:
                logger.warning(
                    f"Function calling via prompt injection failed for Google, "
                    f"falling back to plain generation: {e}"
                )

        data = await self._call(request, self._build_parts(request, resolved, request.prompt))
        return NormalizedResponse(
            text=extract_text(data),
            usage=parse_usage(data),
            raw=data,
        )

    async def stream(self, request: NormalizedRequest) -> AsyncGenerator[str, None]:
        """Stream text from :streamGenerateContent server-sent events."""
        config, base_url, model, headers = self._resolve(request)
        parts = self._build_parts(request, await collect_parts(request, prompt=""), request.prompt)
        lines = stream_lines(
            f"{base_url}/models/{model}:streamGenerateContent",
            provider=self.provider.value,
            model=model,
            json_body=self._payload(parts, config),
            headers=headers,
            params={"alt": "sse"},
            timeout_seconds=config.timeout_seconds,
        )
        try:
            async with aclosing(iter_sse_json(lines, self.provider.value)) as chunks:
                async for chunk in chunks:
                    text = extract_text(chunk)
                    if text:
                        yield text
        except ProviderError as e:
            if request.is_multimodal and looks_like_multimodal_failure(e):
                raise multimodal_error(e, model, GOOGLE_VISION_MODEL) from e
            raise
