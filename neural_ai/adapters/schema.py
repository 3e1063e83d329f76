from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class AIProvider(str, Enum):
    OPENAI = "openai"
    GOOGLE = "google"
    DEEPSEEK = "deepseek"
    OLLAMA = "ollama"
    HUGGINGFACE = "huggingface"


class GenerationConfig(BaseModel):
    """
    Connection and sampling settings.

    An adapter holds one as its instance default; a request may carry another
    as a per-call override. Fields left as None fall through to the instance
    value, then to backend defaults applied inside each adapter.
    """
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    # None leaves httpx's own default in place
    timeout_seconds: Optional[float] = None

    def merge(self, override: Optional["GenerationConfig"]) -> "GenerationConfig":
        """Return a new config where every non-None field of override wins."""
        if override is None:
            return self.model_copy()
        return self.model_copy(update=override.model_dump(exclude_none=True))


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    type: Literal["image"] = "image"
    source: Union[bytes, str]


ContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="type")]


class FunctionDefinition(BaseModel):
    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ForcedFunction(BaseModel):
    """Directive forcing the model to call one named function."""
    name: str


FunctionCallDirective = Union[Literal["auto", "none"], ForcedFunction]


class NormalizedRequest(BaseModel):
    """
    Backend-agnostic request accepted by every adapter.

    Images from `content` and the convenience `image` field are both sent,
    in that order, after the prompt text.
    """
    prompt: str
    system_prompt: Optional[str] = None
    content: Optional[List[ContentPart]] = None
    image: Optional[Union[bytes, str]] = None
    functions: Optional[List[FunctionDefinition]] = None
    function_call: Optional[FunctionCallDirective] = None
    options: Optional[GenerationConfig] = None

    @property
    def has_images(self) -> bool:
        if self.image is not None:
            return True
        return any(isinstance(part, ImagePart) for part in self.content or [])

    @property
    def is_multimodal(self) -> bool:
        """True when the request carries images or structured content."""
        return self.image is not None or bool(self.content)

    @property
    def forced_function(self) -> Optional[str]:
        if isinstance(self.function_call, ForcedFunction):
            return self.function_call.name
        return None

    @property
    def wants_functions(self) -> bool:
        """Function definitions present and not forbidden by the directive."""
        return bool(self.functions) and self.function_call != "none"


class FunctionCall(BaseModel):
    """A function invocation; arguments is a JSON-encoded string, not a dict."""
    name: str
    arguments: str


class TokenUsage(BaseModel):
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class NormalizedResponse(BaseModel):
    """
    Backend-agnostic response returned by every adapter.
    `raw` holds the unmodified backend body.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    text: str = ""
    usage: Optional[TokenUsage] = None
    function_calls: Optional[List[FunctionCall]] = None
    raw: Any = None
