"""
Configuration constants and credential resolution for neural-ai.
"""

import os
from typing import Optional

from neural_ai.errors import ConfigurationError


# ─────────────────────────────────────────────────────────────────────
# DEFAULTS - Per-backend endpoints and models
# ─────────────────────────────────────────────────────────────────────

OPENAI_DEFAULT_BASE_URL: str = "https://api.openai.com/v1"
OPENAI_DEFAULT_MODEL: str = "gpt-3.5-turbo"

DEEPSEEK_DEFAULT_BASE_URL: str = "https://api.deepseek.com/v1"
DEEPSEEK_DEFAULT_MODEL: str = "deepseek-chat"

GOOGLE_DEFAULT_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
GOOGLE_DEFAULT_MODEL: str = "gemini-2.0-flash"

HUGGINGFACE_DEFAULT_BASE_URL: str = "https://api-inference.huggingface.co/models"
HUGGINGFACE_DEFAULT_MODEL: str = "meta-llama/Llama-2-7b-chat-hf"

OLLAMA_DEFAULT_BASE_URL: str = "http://localhost:11434/api"
OLLAMA_DEFAULT_MODEL: str = "llama2"


# ─────────────────────────────────────────────────────────────────────
# ENVIRONMENT VARIABLES
# ─────────────────────────────────────────────────────────────────────

OPENAI_API_KEY_ENV = "OPENAI_API_KEY"
OPENAI_BASE_URL_ENV = "OPENAI_BASE_URL"
DEEPSEEK_API_KEY_ENV = "DEEPSEEK_API_KEY"
DEEPSEEK_BASE_URL_ENV = "DEEPSEEK_BASE_URL"
GOOGLE_API_KEY_ENV = "GOOGLE_API_KEY"
GOOGLE_BASE_URL_ENV = "GOOGLE_BASE_URL"
HUGGINGFACE_API_KEY_ENV = "HUGGINGFACE_API_KEY"
HUGGINGFACE_BASE_URL_ENV = "HUGGINGFACE_BASE_URL"
OLLAMA_BASE_URL_ENV = "OLLAMA_BASE_URL"


# ─────────────────────────────────────────────────────────────────────
# VISION MODEL SUGGESTIONS - Named in multimodal error guidance
# ─────────────────────────────────────────────────────────────────────

OPENAI_VISION_MODEL: str = "gpt-4o"
GOOGLE_VISION_MODEL: str = "gemini-2.0-flash"
HUGGINGFACE_VISION_MODEL: str = "llava-hf/llava-1.5-7b-hf"
OLLAMA_VISION_MODEL: str = "llama3.2-vision"


# ─────────────────────────────────────────────────────────────────────
# INTERNAL CONSTANTS
# ─────────────────────────────────────────────────────────────────────

SYNTHETIC_CHUNK_SIZE: int = 10
SYNTHETIC_CHUNK_DELAY_SECONDS: float = 0.01
DEFAULT_IMAGE_MIME_TYPE: str = "image/jpeg"


# ─────────────────────────────────────────────────────────────────────
# CREDENTIAL RESOLUTION
# ─────────────────────────────────────────────────────────────────────

def get_api_key(config_key: Optional[str], env_var: str, provider_name: str) -> str:
    """
    Resolve an API key from explicit config, then the environment.

    Args:
        config_key: Key from the merged GenerationConfig (per-call wins over instance)
        env_var: Backend-specific environment variable, e.g. OPENAI_API_KEY
        provider_name: Human-readable provider name for the error message

    Raises:
        ConfigurationError: If neither source provides a key
    """
    if config_key:
        return config_key

    env_key = os.environ.get(env_var)
    if env_key:
        return env_key

    raise ConfigurationError(
        f"{provider_name} API key is required. "
        f"Provide it via the 'api_key' option or set the {env_var} environment variable.",
        env_var=env_var,
    )


def get_base_url(config_url: Optional[str], env_var: str, default_url: str) -> str:
    """Resolve a base URL from explicit config, then the environment, then the default."""
    if config_url:
        return config_url.rstrip("/")
    return (os.environ.get(env_var) or default_url).rstrip("/")
