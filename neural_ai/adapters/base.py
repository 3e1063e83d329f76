"""
ModelAdapter Protocol - the contract every backend adapter implements.

This is the WHAT (interface), not the HOW (implementation).
See openai.py, google.py, ollama.py, huggingface.py for concrete adapters.
"""

from typing import AsyncGenerator, Protocol

from neural_ai.adapters.schema import AIProvider, NormalizedRequest, NormalizedResponse


class ModelAdapter(Protocol):
    """
    Contract for LLM backends.

    Implementations must provide:
    - Single-shot generation (generate)
    - Incremental text streaming (stream)

    Instances hold only read-only default configuration, so one adapter may
    serve concurrent calls.
    """

    provider: AIProvider

    async def generate(self, request: NormalizedRequest) -> NormalizedResponse:
        """
        Run one request and return the normalized response.

        Raises:
            ConfigurationError: missing credential (before any network call)
            ImageSourceError: an image could not be resolved
            ProviderError: backend failure, possibly rewritten with guidance
        """
        ...

    def stream(self, request: NormalizedRequest) -> AsyncGenerator[str, None]:
        """
        Yield text fragments as they are produced.

        Stopping iteration early closes the underlying HTTP stream.
        """
        ...
