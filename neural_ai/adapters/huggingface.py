"""
HuggingFace Inference API adapter.

Implements ModelAdapter protocol for the hosted inference widget API, and for
self-hosted inference servers that accept the same `inputs`/`parameters`
payload (point `base_url` at them).

Key differences from the chat-completion adapters:
- One flat prompt string: system prompt and content text are folded in
- No native tool calling: definitions are appended to the prompt
- No native streaming: stream() re-chunks a full generate() call
- Image payload shape varies per model, so several formats are tried in order
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from neural_ai.adapters.content import ResolvedPart, collect_parts, images_of, join_text
from neural_ai.adapters.http import post
from neural_ai.adapters.schema import (
    AIProvider,
    GenerationConfig,
    NormalizedRequest,
    NormalizedResponse,
)
from neural_ai.adapters.streaming import synthetic_stream
from neural_ai.config import (
    HUGGINGFACE_API_KEY_ENV,
    HUGGINGFACE_BASE_URL_ENV,
    HUGGINGFACE_DEFAULT_BASE_URL,
    HUGGINGFACE_DEFAULT_MODEL,
    HUGGINGFACE_VISION_MODEL,
    get_api_key,
    get_base_url,
)
from neural_ai.errors import (
    FormatNegotiationError,
    ProviderError,
    looks_like_multimodal_failure,
    multimodal_error,
    permission_error,
)
from neural_ai.images import ResolvedImage
from neural_ai.tool_parsers import append_function_prompt, extract_function_calls

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# MULTIMODAL PAYLOAD FORMATS
# ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PayloadFormat:
    """
    One way of packing text + images into a request.

    `build` returns keyword arguments for http.post (json_body, or
    data + files for multipart).
    """
    name: str
    build: Callable[[str, list[ResolvedImage], dict], dict]


def _nested(text: str, images: list[ResolvedImage], parameters: dict) -> dict:
    inputs: dict[str, Any] = {"text": text}
    if len(images) == 1:
        inputs["image"] = images[0].base64
    else:
        inputs["images"] = [image.base64 for image in images]
    return {"json_body": {"inputs": inputs, "parameters": parameters}}


def _flat(text: str, images: list[ResolvedImage], parameters: dict) -> dict:
    body: dict[str, Any] = {"inputs": text, "parameters": parameters}
    if len(images) == 1:
        body["image"] = images[0].base64
    else:
        body["images"] = [image.base64 for image in images]
    return {"json_body": body}


def _multipart(text: str, images: list[ResolvedImage], parameters: dict) -> dict:
    files = []
    for index, image in enumerate(images):
        extension = image.mime_type.split("/")[-1].split("+")[0]
        files.append(("image", (f"image_{index}.{extension}", image.to_bytes(), image.mime_type)))
    return {
        "data": {"inputs": text, "parameters": json.dumps(parameters)},
        "files": files,
    }


PAYLOAD_FORMATS: list[PayloadFormat] = [
    PayloadFormat("nested", _nested),
    PayloadFormat("flat", _flat),
    PayloadFormat("multipart", _multipart),
]


# ─────────────────────────────────────────────────────────────────────
# RESPONSE PARSING
# ─────────────────────────────────────────────────────────────────────

def extract_generated_text(data: Any) -> str:
    """
    Text from any of the response envelopes the API returns:
    [{"generated_text": ...}], {"generated_text": ...}, or a bare string.
    Anything else is returned as its JSON encoding.
    """
    if isinstance(data, list) and data and isinstance(data[0], dict) and "generated_text" in data[0]:
        return data[0]["generated_text"] or ""
    if isinstance(data, dict) and "generated_text" in data:
        return data["generated_text"] or ""
    if isinstance(data, str):
        return data
    return json.dumps(data)


class HuggingFaceAdapter:
    """
    HuggingFace implementation of ModelAdapter protocol.

    Design decisions:
    - Token from config or HUGGINGFACE_API_KEY env var
    - 403 means the token lacks access to the model (gated repo, license)
    - Image formats are a data list; failures accumulate and are all reported

    Usage:
        adapter = HuggingFaceAdapter({"model": "mistralai/Mistral-7B-Instruct-v0.2"})
        response = await adapter.generate(NormalizedRequest(prompt="Hi"))
    """

    provider = AIProvider.HUGGINGFACE
    payload_formats: list[PayloadFormat] = PAYLOAD_FORMATS

    def __init__(self, config: Union[GenerationConfig, dict, None] = None):
        self._config = GenerationConfig.model_validate(config or {})

    @property
    def config(self) -> GenerationConfig:
        return self._config

    @staticmethod
    def _full_prompt(request: NormalizedRequest, parts: list[ResolvedPart]) -> str:
        text = join_text(parts)
        if request.system_prompt:
            text = f"{request.system_prompt}\n\n{text}"
        if request.wants_functions:
            text = append_function_prompt(text, request.functions, request.function_call)
        return text

    @staticmethod
    def _parameters(config: GenerationConfig) -> dict:
        parameters = {
            "temperature": config.temperature,
            "max_new_tokens": config.max_tokens,
            "top_p": config.top_p,
        }
        parameters = {k: v for k, v in parameters.items() if v is not None}
        parameters["return_full_text"] = False
        return parameters

    def _rewrite_error(self, error: ProviderError, request: NormalizedRequest, model: str) -> ProviderError:
        if request.is_multimodal and looks_like_multimodal_failure(error):
            return multimodal_error(error, model, HUGGINGFACE_VISION_MODEL)
        if error.status_code == 403:
            return permission_error(error, model)
        return error

    async def _negotiate(
        self,
        url: str,
        model: str,
        headers: dict,
        text: str,
        images: list[ResolvedImage],
        parameters: dict,
        timeout_seconds: Optional[float],
    ) -> Any:
        """Try each payload format in order; first success wins."""
        errors: list[tuple[str, ProviderError]] = []
        for payload_format in self.payload_formats:
            try:
                return await post(
                    url,
                    provider=self.provider.value,
                    model=model,
                    headers=headers,
                    timeout_seconds=timeout_seconds,
                    **payload_format.build(text, images, parameters),
                )
            except ProviderError as e:
                # Access problems will not change with the payload shape
                if e.status_code == 403:
                    raise
                logger.warning(f"HuggingFace format '{payload_format.name}' failed for {model}: {e}")
                errors.append((payload_format.name, e))

        summary = "; ".join(f"{name}: {error.backend_message}" for name, error in errors)
        last = errors[-1][1]
        raise FormatNegotiationError(
            f"Model '{model}' rejected every multimodal payload format ({summary}). "
            f"Try a vision-capable model such as '{HUGGINGFACE_VISION_MODEL}'.",
            errors=errors,
            provider=self.provider.value,
            status_code=last.status_code,
            payload=last.payload,
            backend_message=last.backend_message,
        )

    async def generate(self, request: NormalizedRequest) -> NormalizedResponse:
        """Single inference call (or format negotiation when images are present)."""
        config = self._config.merge(request.options)
        api_key = get_api_key(config.api_key, HUGGINGFACE_API_KEY_ENV, "HuggingFace")
        base_url = get_base_url(config.base_url, HUGGINGFACE_BASE_URL_ENV, HUGGINGFACE_DEFAULT_BASE_URL)
        model = config.model or HUGGINGFACE_DEFAULT_MODEL
        url = f"{base_url}/{model}"
        headers = {"Authorization": f"Bearer {api_key}"}

        parts = await collect_parts(request)
        text = self._full_prompt(request, parts)
        images = images_of(parts)
        parameters = self._parameters(config)

        try:
            if images:
                data = await self._negotiate(
                    url, model, headers, text, images, parameters, config.timeout_seconds,
                )
            else:
                data = await post(
                    url,
                    provider=self.provider.value,
                    model=model,
                    headers=headers,
                    json_body={"inputs": text, "parameters": parameters},
                    timeout_seconds=config.timeout_seconds,
                )
        except FormatNegotiationError:
            raise
        except ProviderError as e:
            rewritten = self._rewrite_error(e, request, model)
            if rewritten is e:
                raise
            raise rewritten from e

        generated = extract_generated_text(data)
        function_calls = None
        if request.wants_functions:
            function_calls = extract_function_calls(generated, request.function_call, request.functions)

        return NormalizedResponse(text=generated, function_calls=function_calls, raw=data)

    stream = synthetic_stream()(generate)
