"""
Synthetic streaming for backends without a native stream endpoint.

One full non-streaming call, then the text is re-sliced into fixed windows
with a short pause between them.
"""

import asyncio
from typing import AsyncGenerator, Awaitable, Callable

from neural_ai.adapters.schema import NormalizedRequest, NormalizedResponse
from neural_ai.config import SYNTHETIC_CHUNK_DELAY_SECONDS, SYNTHETIC_CHUNK_SIZE

GenerateMethod = Callable[[object, NormalizedRequest], Awaitable[NormalizedResponse]]


async def chunk_text(
    text: str,
    chunk_size: int = SYNTHETIC_CHUNK_SIZE,
    delay_seconds: float = SYNTHETIC_CHUNK_DELAY_SECONDS,
) -> AsyncGenerator[str, None]:
    """Yield text in chunk_size slices, sleeping delay_seconds between slices."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    for start in range(0, len(text), chunk_size):
        if start:
            await asyncio.sleep(delay_seconds)
        yield text[start:start + chunk_size]


def synthetic_stream(
    chunk_size: int = SYNTHETIC_CHUNK_SIZE,
    delay_seconds: float = SYNTHETIC_CHUNK_DELAY_SECONDS,
) -> Callable[[GenerateMethod], Callable[..., AsyncGenerator[str, None]]]:
    """
    Turn an adapter's `generate` method into a `stream` method.

    Usage:
        class MyAdapter:
            async def generate(self, request): ...

            stream = synthetic_stream()(generate)
    """
    def decorator(generate: GenerateMethod) -> Callable[..., AsyncGenerator[str, None]]:
        method_name = generate.__name__

        async def stream(self, request: NormalizedRequest) -> AsyncGenerator[str, None]:
            """Synthetic stream: one full generate() call, re-chunked."""
            # Looked up on the instance so subclass overrides are honored
            response = await getattr(self, method_name)(request)
            async for chunk in chunk_text(response.text, chunk_size, delay_seconds):
                yield chunk

        return stream

    return decorator
