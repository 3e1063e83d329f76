"""
Adapters for LLM inference backends.

Provider-agnostic architecture: Protocol defines WHAT, implementations define HOW.
Concrete adapters live in their own modules (openai, deepseek, google, ollama,
huggingface); use neural_ai.create_model to construct one by provider tag.
"""

from .base import ModelAdapter
from .schema import (
    AIProvider,
    ContentPart,
    ForcedFunction,
    FunctionCall,
    FunctionDefinition,
    GenerationConfig,
    ImagePart,
    NormalizedRequest,
    NormalizedResponse,
    TextPart,
    TokenUsage,
)

__all__ = [
    "ModelAdapter",
    "AIProvider",
    "ContentPart",
    "ForcedFunction",
    "FunctionCall",
    "FunctionDefinition",
    "GenerationConfig",
    "ImagePart",
    "NormalizedRequest",
    "NormalizedResponse",
    "TextPart",
    "TokenUsage",
]
