"""
OllamaAdapter - local Ollama daemon implementation of ModelAdapter.

Two endpoints:
- /generate with a flat `prompt` for plain text requests
- /chat with `messages` whenever the request has an image, function
  definitions, or a system prompt

Ollama has no native tool calling here: definitions are rendered into the
system message and the reply is mined by tool_parsers. Streaming is native
newline-delimited JSON; the text field depends on the endpoint.
"""

import logging
from contextlib import aclosing
from typing import Any, AsyncGenerator, Optional, Union

from neural_ai.adapters.content import collect_parts, join_text
from neural_ai.adapters.http import iter_ndjson, post, stream_lines
from neural_ai.adapters.schema import (
    AIProvider,
    GenerationConfig,
    NormalizedRequest,
    NormalizedResponse,
    TokenUsage,
)
from neural_ai.config import (
    OLLAMA_BASE_URL_ENV,
    OLLAMA_DEFAULT_BASE_URL,
    OLLAMA_DEFAULT_MODEL,
    OLLAMA_VISION_MODEL,
    get_base_url,
)
from neural_ai.errors import (
    MODEL_NOT_FOUND_PATTERN,
    ProviderError,
    looks_like_multimodal_failure,
    model_not_found_error,
    multimodal_error,
)
from neural_ai.tool_parsers import build_function_prompt, extract_function_calls

logger = logging.getLogger(__name__)


def uses_chat_endpoint(request: NormalizedRequest) -> bool:
    return request.has_images or bool(request.functions) or bool(request.system_prompt)


def parse_usage(data: Any) -> Optional[TokenUsage]:
    if not isinstance(data, dict):
        return None
    prompt_tokens = data.get("prompt_eval_count")
    completion_tokens = data.get("eval_count")
    if prompt_tokens is None and completion_tokens is None:
        return None
    total = None
    if prompt_tokens is not None and completion_tokens is not None:
        total = prompt_tokens + completion_tokens
    return TokenUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total,
    )


def chunk_text(chunk: dict, chat: bool) -> str:
    if chat:
        return (chunk.get("message") or {}).get("content") or ""
    return chunk.get("response") or ""


class OllamaAdapter:
    """
    Ollama implementation of ModelAdapter protocol.

    Design decisions:
    - No API key: the daemon is local
    - Sampling settings go in `options` (temperature, num_predict, top_p)
    - Model-not-found errors tell the user to `ollama pull` the model
    """

    provider = AIProvider.OLLAMA

    def __init__(self, config: Union[GenerationConfig, dict, None] = None):
        self._config = GenerationConfig.model_validate(config or {})

    @property
    def config(self) -> GenerationConfig:
        return self._config

    async def _build_messages(self, request: NormalizedRequest) -> list[dict]:
        messages: list[dict] = []

        system_sections = []
        if request.system_prompt:
            system_sections.append(request.system_prompt)
        if request.wants_functions:
            system_sections.append(build_function_prompt(request.functions, request.function_call))
        if system_sections:
            messages.append({"role": "system", "content": "\n\n".join(system_sections)})

        parts = await collect_parts(request)
        if any(part.is_image for part in parts):
            content: Any = []
            for part in parts:
                if part.is_image:
                    content.append({
                        "type": "image",
                        "image": {
                            "data": part.image.base64,
                            "mimeType": part.image.mime_type,
                        },
                    })
                else:
                    content.append({"type": "text", "text": part.text})
        else:
            content = "\n\n".join(part.text for part in parts if part.text)

        messages.append({"role": "user", "content": content})
        return messages

    async def _prepare(self, request: NormalizedRequest, stream: bool) -> tuple[GenerationConfig, str, bool, dict]:
        config = self._config.merge(request.options)
        base_url = get_base_url(config.base_url, OLLAMA_BASE_URL_ENV, OLLAMA_DEFAULT_BASE_URL)
        model = config.model or OLLAMA_DEFAULT_MODEL
        chat = uses_chat_endpoint(request)

        payload: dict[str, Any] = {"model": model, "stream": stream}
        if chat:
            payload["messages"] = await self._build_messages(request)
        else:
            payload["prompt"] = join_text(await collect_parts(request))

        options = {
            "temperature": config.temperature,
            "num_predict": config.max_tokens,
            "top_p": config.top_p,
        }
        options = {k: v for k, v in options.items() if v is not None}
        if options:
            payload["options"] = options

        url = f"{base_url}/{'chat' if chat else 'generate'}"
        return config, url, chat, payload

    def _rewrite_error(self, error: ProviderError, request: NormalizedRequest, model: str) -> ProviderError:
        if request.is_multimodal and looks_like_multimodal_failure(error):
            return multimodal_error(error, model, OLLAMA_VISION_MODEL)
        if error.status_code == 404 or MODEL_NOT_FOUND_PATTERN.search(error.backend_message or ""):
            return model_not_found_error(error, model)
        return error

    async def generate(self, request: NormalizedRequest) -> NormalizedResponse:
        """Single non-streaming call to /generate or /chat, normalized."""
        config, url, chat, payload = await self._prepare(request, stream=False)
        try:
            data = await post(
                url,
                provider=self.provider.value,
                model=payload["model"],
                json_body=payload,
                timeout_seconds=config.timeout_seconds,
            )
        except ProviderError as e:
            rewritten = self._rewrite_error(e, request, payload["model"])
            if rewritten is e:
                raise
            raise rewritten from e

        text = chunk_text(data, chat) if isinstance(data, dict) else str(data)
        function_calls = None
        if request.wants_functions:
            function_calls = extract_function_calls(text, request.function_call, request.functions)

        return NormalizedResponse(
            text=text,
            usage=parse_usage(data),
            function_calls=function_calls,
            raw=data,
        )

    async def stream(self, request: NormalizedRequest) -> AsyncGenerator[str, None]:
        """Stream text from newline-delimited JSON chunks until done."""
        config, url, chat, payload = await self._prepare(request, stream=True)
        lines = stream_lines(
            url,
            provider=self.provider.value,
            model=payload["model"],
            json_body=payload,
            timeout_seconds=config.timeout_seconds,
        )
        try:
            async with aclosing(iter_ndjson(lines, self.provider.value)) as chunks:
                async for chunk in chunks:
                    if chunk.get("error"):
                        raise ProviderError(
                            f"ollama stream error for '{payload['model']}': {chunk['error']}",
                            provider=self.provider.value,
                            payload=chunk,
                            backend_message=str(chunk["error"]),
                        )
                    text = chunk_text(chunk, chat)
                    if text:
                        yield text
                    if chunk.get("done"):
                        break
        except ProviderError as e:
            rewritten = self._rewrite_error(e, request, payload["model"])
            if rewritten is e:
                raise
            raise rewritten from e
