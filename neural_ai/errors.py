"""
Exception taxonomy shared by every adapter.

Input problems (missing credentials, bad image sources) fail before any
network call. Backend failures surface as ProviderError carrying the
backend's own message; adapters may rewrite them into a guidance-bearing
subclass, but the original message stays in the text and the original
exception stays on __cause__.
"""

import re
from typing import Any, Optional


class NeuralAIError(Exception):
    """Base class for all neural-ai errors."""
    pass


class ConfigurationError(NeuralAIError, ValueError):
    """A required credential or setting is missing."""

    def __init__(self, message: str, env_var: Optional[str] = None):
        super().__init__(message)
        self.env_var = env_var


class ImageSourceError(NeuralAIError, ValueError):
    """Image source is invalid, unreadable, or could not be fetched."""
    pass


class ProviderError(NeuralAIError):
    """
    Backend call failed.

    Attributes:
        provider: Provider tag (e.g. "openai")
        status_code: HTTP status, None for transport failures
        payload: Backend error body (parsed JSON when possible, else text)
        backend_message: The backend's own error message
    """

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: Optional[int] = None,
        payload: Any = None,
        backend_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.payload = payload
        self.backend_message = backend_message if backend_message is not None else message


class MultimodalError(ProviderError):
    """Backend rejected image content; message names a working vision model."""

    def __init__(self, message: str, suggested_model: str, **kwargs):
        super().__init__(message, **kwargs)
        self.suggested_model = suggested_model


class PermissionDeniedError(ProviderError):
    """Backend refused access to the model (HTTP 403)."""
    pass


class ModelNotFoundError(ProviderError):
    """Model is not available on the backend and must be pulled first."""

    def __init__(self, message: str, model: str, **kwargs):
        super().__init__(message, **kwargs)
        self.model = model


class FormatNegotiationError(ProviderError):
    """Every multimodal payload format was rejected."""

    def __init__(self, message: str, errors: list[tuple[str, ProviderError]], **kwargs):
        super().__init__(message, **kwargs)
        self.errors = list(errors)


# ─────────────────────────────────────────────────────────────────────
# CLASSIFICATION
# ─────────────────────────────────────────────────────────────────────

MULTIMODAL_FAILURE_PATTERN = re.compile(
    r"image|vision|multimodal|multi-modal|unsupported|content-type|\b415\b",
    re.IGNORECASE,
)
MODEL_NOT_FOUND_PATTERN = re.compile(r"model\b.*\bnot\b", re.IGNORECASE | re.DOTALL)


def looks_like_multimodal_failure(error: ProviderError) -> bool:
    """True if the failure signature points at image/vision support."""
    if error.status_code == 415:
        return True
    return bool(MULTIMODAL_FAILURE_PATTERN.search(error.backend_message or ""))


def with_original(guidance: str, error: ProviderError) -> str:
    """Append the original backend message so it is never lost."""
    return f"{guidance} (original error: {error.backend_message})"


def _carry(error: ProviderError) -> dict:
    return {
        "provider": error.provider,
        "status_code": error.status_code,
        "payload": error.payload,
        "backend_message": error.backend_message,
    }


def multimodal_error(error: ProviderError, model: str, suggested_model: str) -> MultimodalError:
    guidance = (
        f"Model '{model}' does not appear to support image input. "
        f"Try a vision-capable model such as '{suggested_model}'."
    )
    return MultimodalError(
        with_original(guidance, error),
        suggested_model=suggested_model,
        **_carry(error),
    )


def permission_error(error: ProviderError, model: str) -> PermissionDeniedError:
    guidance = (
        f"Access to model '{model}' was denied. Check that your API token has "
        f"inference permission and that you have accepted the model's license terms."
    )
    return PermissionDeniedError(with_original(guidance, error), **_carry(error))


def model_not_found_error(error: ProviderError, model: str) -> ModelNotFoundError:
    guidance = f"Model '{model}' is not available. Pull the model first: ollama pull {model}"
    return ModelNotFoundError(with_original(guidance, error), model=model, **_carry(error))
