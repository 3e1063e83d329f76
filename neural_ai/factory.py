import logging
from typing import Union

from neural_ai.adapters.base import ModelAdapter
from neural_ai.adapters.deepseek import DeepSeekAdapter
from neural_ai.adapters.google import GoogleAdapter
from neural_ai.adapters.huggingface import HuggingFaceAdapter
from neural_ai.adapters.ollama import OllamaAdapter
from neural_ai.adapters.openai import OpenAIAdapter
from neural_ai.adapters.schema import AIProvider, GenerationConfig

logger = logging.getLogger(__name__)

# --- Adapter Registry ---
# Explicit link between a provider tag and its adapter class.
ADAPTER_REGISTRY: dict[AIProvider, type] = {
    AIProvider.OPENAI: OpenAIAdapter,
    AIProvider.GOOGLE: GoogleAdapter,
    AIProvider.DEEPSEEK: DeepSeekAdapter,
    AIProvider.OLLAMA: OllamaAdapter,
    AIProvider.HUGGINGFACE: HuggingFaceAdapter,
}


def create_model(
    provider: Union[AIProvider, str],
    config: Union[GenerationConfig, dict, None] = None,
) -> ModelAdapter:
    """
    Construct the adapter for a provider tag.

    Args:
        provider: AIProvider member or its string value (e.g. "ollama")
        config: Instance defaults for the adapter

    Raises:
        ValueError: If the provider tag is unknown
    """
    try:
        tag = AIProvider(provider)
    except ValueError:
        raise ValueError(f"Unsupported AI provider: {provider}") from None

    adapter_class = ADAPTER_REGISTRY[tag]
    logger.debug(f"Creating {adapter_class.__name__} for provider '{tag.value}'")
    return adapter_class(config)
