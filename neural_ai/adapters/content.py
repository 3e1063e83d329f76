"""
Request content assembly shared by the multimodal adapters.

Resolves every image in request order (prompt text, then `content` parts,
then the convenience `image`) so each adapter only maps ResolvedPart items
onto its own wire shape.
"""

from dataclasses import dataclass
from typing import Optional

from neural_ai.adapters.schema import ImagePart, NormalizedRequest, TextPart
from neural_ai.images import ResolvedImage, resolve_image


@dataclass(frozen=True)
class ResolvedPart:
    """Either a text span or a resolved image."""
    text: Optional[str] = None
    image: Optional[ResolvedImage] = None

    @property
    def is_image(self) -> bool:
        return self.image is not None


async def collect_parts(request: NormalizedRequest, prompt: Optional[str] = None) -> list[ResolvedPart]:
    """
    Build the ordered part list for a request.

    Args:
        request: The normalized request
        prompt: Text to use in place of request.prompt (e.g. with function
            instructions appended)

    Images are resolved one at a time, in order.
    """
    parts: list[ResolvedPart] = []

    text = request.prompt if prompt is None else prompt
    if text:
        parts.append(ResolvedPart(text=text))

    for item in request.content or []:
        if isinstance(item, TextPart):
            parts.append(ResolvedPart(text=item.text))
        elif isinstance(item, ImagePart):
            parts.append(ResolvedPart(image=await resolve_image(item.source)))

    if request.image is not None:
        parts.append(ResolvedPart(image=await resolve_image(request.image)))

    return parts


def join_text(parts: list[ResolvedPart], separator: str = "\n\n") -> str:
    """Concatenate the text parts, ignoring images."""
    return separator.join(part.text for part in parts if part.text)


def images_of(parts: list[ResolvedPart]) -> list[ResolvedImage]:
    return [part.image for part in parts if part.image is not None]
