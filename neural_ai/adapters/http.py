"""
Shared httpx transport helpers for all adapters.

Every call opens its own AsyncClient, so adapters own no connection state.
Non-2xx responses and transport failures become ProviderError with the
backend's own message attached.
"""

import json
import logging
from typing import Any, AsyncGenerator, Optional

import httpx

from neural_ai.errors import ProviderError

logger = logging.getLogger(__name__)


def _client_kwargs(timeout_seconds: Optional[float]) -> dict:
    # Omitting timeout keeps httpx's default rather than disabling it
    if timeout_seconds is None:
        return {}
    return {"timeout": timeout_seconds}


def _decode_body(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return text


def extract_error_message(payload: Any, status_code: int) -> str:
    """
    Pull a readable message out of a backend error body.

    Handles the shapes seen across backends:
    {"error": {"message": ...}}, {"error": "..."}, {"message": ...},
    [{"error": ...}], and plain text.
    """
    if isinstance(payload, list) and payload:
        payload = payload[0]
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if message:
                return str(message)
        elif isinstance(error, str) and error:
            return error
        message = payload.get("message") or payload.get("detail")
        if message:
            return str(message)
        return f"HTTP {status_code}: {json.dumps(payload)[:500]}"
    if isinstance(payload, str) and payload.strip():
        return payload.strip()[:500]
    return f"HTTP {status_code}"


def provider_error(provider: str, model: str, status_code: int, body_text: str) -> ProviderError:
    payload = _decode_body(body_text)
    backend_message = extract_error_message(payload, status_code)
    return ProviderError(
        f"{provider} API error (HTTP {status_code}) for '{model}': {backend_message}",
        provider=provider,
        status_code=status_code,
        payload=payload,
        backend_message=backend_message,
    )


def transport_error(provider: str, model: str, error: httpx.HTTPError) -> ProviderError:
    message = str(error) or type(error).__name__
    return ProviderError(
        f"{provider} request failed for '{model}': {message}",
        provider=provider,
        backend_message=message,
    )


async def post(
    url: str,
    *,
    provider: str,
    model: str,
    headers: Optional[dict] = None,
    params: Optional[dict] = None,
    json_body: Any = None,
    data: Optional[dict] = None,
    files: Optional[list] = None,
    timeout_seconds: Optional[float] = None,
) -> Any:
    """
    POST and return the decoded body.

    The body is parsed as JSON when possible; otherwise the raw text is
    returned so adapters can treat bare-string replies as content.

    Raises:
        ProviderError: on transport failure or HTTP status >= 400
    """
    logger.debug(f"POST {url} ({provider}, model={model})")
    try:
        async with httpx.AsyncClient(**_client_kwargs(timeout_seconds)) as client:
            response = await client.post(
                url,
                headers=headers,
                params=params,
                json=json_body,
                data=data,
                files=files,
            )
    except httpx.HTTPError as e:
        raise transport_error(provider, model, e) from e

    if response.status_code >= 400:
        raise provider_error(provider, model, response.status_code, response.text)

    return _decode_body(response.text)


async def stream_lines(
    url: str,
    *,
    provider: str,
    model: str,
    json_body: Any,
    headers: Optional[dict] = None,
    params: Optional[dict] = None,
    timeout_seconds: Optional[float] = None,
) -> AsyncGenerator[str, None]:
    """
    POST and yield non-empty response lines as they arrive.

    The response stays open inside `async with`, so closing this generator
    early closes the HTTP stream.
    """
    logger.debug(f"POST (stream) {url} ({provider}, model={model})")
    try:
        async with httpx.AsyncClient(**_client_kwargs(timeout_seconds)) as client:
            async with client.stream(
                "POST",
                url,
                headers=headers,
                params=params,
                json=json_body,
            ) as response:
                if response.status_code >= 400:
                    error_body = await response.aread()
                    raise provider_error(
                        provider, model, response.status_code,
                        error_body.decode("utf-8", errors="replace"),
                    )

                async for line in response.aiter_lines():
                    line = line.strip()
                    if line:
                        yield line
    except httpx.HTTPError as e:
        raise transport_error(provider, model, e) from e


async def iter_sse_json(lines: AsyncGenerator[str, None], provider: str) -> AsyncGenerator[dict, None]:
    """Decode `data: {...}` server-sent events until `[DONE]` or stream end."""
    try:
        async for line in lines:
            if not line.startswith("data:"):
                continue
            data = line[5:].strip()
            if data == "[DONE]":
                break
            try:
                chunk = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Skipping unparsable {provider} stream line: {data[:200]}")
                continue
            yield chunk
    finally:
        await lines.aclose()


async def iter_ndjson(lines: AsyncGenerator[str, None], provider: str) -> AsyncGenerator[dict, None]:
    """Decode newline-delimited JSON objects."""
    try:
        async for line in lines:
            try:
                chunk = json.loads(line)
            except json.JSONDecodeError:
                logger.warning(f"Skipping unparsable {provider} stream line: {line[:200]}")
                continue
            if isinstance(chunk, dict):
                yield chunk
    finally:
        await lines.aclose()
