"""Base protocol and types for hairstyle generation providers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from hairlab.errors import GenerationFailed

NO_IMAGE_MESSAGE = (
    "The AI could not generate an image. Try adjusting the description "
    "or using a different reference image."
)
NO_SUGGESTIONS_MESSAGE = "The AI returned no suggestions. Try again in a moment."


def to_data_url(base64_data: str, mime_type: str) -> str:
    """Embed base64 data and its MIME type as ``data:<mime>;base64,<data>``."""
    return f"data:{mime_type};base64,{base64_data}"


@dataclass(frozen=True)
class ImagePayload:
    """A base64-encoded image as received on the wire.

    Only non-emptiness of both fields is checked upstream; the bytes are never
    decoded on the server.

    Attributes:
        base64_data: Base64-encoded image bytes.
        mime_type: MIME type (e.g., ``image/jpeg``).
    """

    base64_data: str
    mime_type: str

    def to_data_url(self) -> str:
        """Return this image as a data URL."""
        return to_data_url(self.base64_data, self.mime_type)

    def to_dict(self) -> dict[str, str]:
        """Wire representation (camelCase keys)."""
        return {"base64Data": self.base64_data, "mimeType": self.mime_type}


@dataclass(frozen=True)
class GenerationResult:
    """Normalized result of an edit call.

    Attributes:
        image: Data URL of the generated image, if any.
        text: Accompanying text, if any.
    """

    image: str | None = None
    text: str | None = None

    @property
    def is_empty(self) -> bool:
        """True when neither an image nor text was produced."""
        return not self.image and not self.text

    def to_dict(self) -> dict[str, str | None]:
        return {"image": self.image, "text": self.text}


@dataclass(frozen=True)
class ProviderSettings:
    """Credentials and default models for one provider.

    Resolved once at startup and never mutated afterwards.
    """

    api_key: str
    suggestions_model: str
    image_model: str

    def __repr__(self) -> str:
        return (
            f"ProviderSettings(api_key='***', suggestions_model={self.suggestions_model!r}, "
            f"image_model={self.image_model!r})"
        )


class EditPolicy(Enum):
    """What an edit call may return on success.

    - IMAGE_OR_TEXT: return whichever of image/text the backend produced.
    - IMAGE_ONLY: a text-only answer is a failure that quotes the text.
    """

    IMAGE_OR_TEXT = "image_or_text"
    IMAGE_ONLY = "image_only"


def apply_edit_policy(result: GenerationResult, policy: EditPolicy) -> GenerationResult:
    """Enforce ``policy`` on a normalized edit result.

    Raises:
        GenerationFailed: If the result is empty, or text-only under IMAGE_ONLY.
    """
    if result.is_empty:
        raise GenerationFailed(NO_IMAGE_MESSAGE)
    if policy is EditPolicy.IMAGE_ONLY:
        if not result.image:
            raise GenerationFailed(
                f'The AI returned a message instead of an image: "{result.text}"'
            )
        return GenerationResult(image=result.image)
    return result


@runtime_checkable
class HairstyleProvider(Protocol):
    """Protocol for multimodal generation backends.

    Implementations normalize their backend's native response shape; nothing
    above the provider sees it. Each operation makes exactly one outbound call
    and never retries.
    """

    name: str

    async def suggest(self, image: ImagePayload, model: str) -> str:
        """Suggest hairstyles for the face in ``image``.

        Returns:
            Non-empty suggestion text.

        Raises:
            RequestRejected: If the backend blocked the request.
            GenerationFailed: If the backend returned no usable text.
        """
        ...

    async def edit(
        self,
        image: ImagePayload,
        prompt: str,
        reference: ImagePayload | None,
        model: str,
    ) -> GenerationResult:
        """Apply a hairstyle to the subject in ``image``.

        Args:
            image: Subject photo.
            prompt: Hairstyle description; may be empty.
            reference: Optional photo whose hairstyle should be copied.
            model: Backend model name.

        Returns:
            GenerationResult with at least one of image/text set.

        Raises:
            RequestRejected: If the backend blocked the request.
            GenerationFailed: If the backend produced nothing usable.
        """
        ...
