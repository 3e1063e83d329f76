"""
DeepSeekAdapter - DeepSeek's OpenAI-compatible chat-completions API.

Same wire format and native tool calling as OpenAIAdapter; only the
endpoint, default model, and credential variable differ. DeepSeek chat
models have no image input, so multimodal failures point at an OpenAI
vision model.
"""

from neural_ai.adapters.openai import OpenAIAdapter
from neural_ai.adapters.schema import AIProvider
from neural_ai.config import (
    DEEPSEEK_API_KEY_ENV,
    DEEPSEEK_BASE_URL_ENV,
    DEEPSEEK_DEFAULT_BASE_URL,
    DEEPSEEK_DEFAULT_MODEL,
    OPENAI_VISION_MODEL,
)


class DeepSeekAdapter(OpenAIAdapter):
    provider = AIProvider.DEEPSEEK
    display_name = "DeepSeek"
    default_base_url = DEEPSEEK_DEFAULT_BASE_URL
    default_model = DEEPSEEK_DEFAULT_MODEL
    api_key_env = DEEPSEEK_API_KEY_ENV
    base_url_env = DEEPSEEK_BASE_URL_ENV
    vision_model = OPENAI_VISION_MODEL
