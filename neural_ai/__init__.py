"""
neural-ai: one request/response contract over several LLM backends.

Usage:
    from neural_ai import create_model, NormalizedRequest

    model = create_model("openai", {"model": "gpt-4o"})
    response = await model.generate(NormalizedRequest(prompt="What is 2+2?"))
"""

from neural_ai.adapters import (
    AIProvider,
    ForcedFunction,
    FunctionCall,
    FunctionDefinition,
    GenerationConfig,
    ImagePart,
    ModelAdapter,
    NormalizedRequest,
    NormalizedResponse,
    TextPart,
    TokenUsage,
)
from neural_ai.errors import (
    ConfigurationError,
    FormatNegotiationError,
    ImageSourceError,
    ModelNotFoundError,
    MultimodalError,
    NeuralAIError,
    PermissionDeniedError,
    ProviderError,
)
from neural_ai.factory import ADAPTER_REGISTRY, create_model

__version__ = "0.1.0"

__all__ = [
    "create_model",
    "ADAPTER_REGISTRY",
    "AIProvider",
    "ForcedFunction",
    "FunctionCall",
    "FunctionDefinition",
    "GenerationConfig",
    "ImagePart",
    "ModelAdapter",
    "NormalizedRequest",
    "NormalizedResponse",
    "TextPart",
    "TokenUsage",
    "ConfigurationError",
    "FormatNegotiationError",
    "ImageSourceError",
    "ModelNotFoundError",
    "MultimodalError",
    "NeuralAIError",
    "PermissionDeniedError",
    "ProviderError",
]
