"""Pydantic models for inbound dispatcher payloads.

Field names on the wire are camelCase; the models expose snake_case
attributes. Validation failures are reported as ``ValidationFailed`` naming
the offending wire field (e.g. ``referenceImage.mimeType``).
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_validator

from hairlab.errors import ValidationFailed
from hairlab.providers.base import ImagePayload

RequestT = TypeVar("RequestT", bound=BaseModel)


def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


def _optional_text(value: Any) -> str | None:
    """Non-string selectors are treated as absent."""
    return value if isinstance(value, str) else None


class ImagePayloadModel(BaseModel):
    """A base64 image: both fields required and non-blank."""

    model_config = ConfigDict(frozen=True)

    base64_data: StrictStr = Field(alias="base64Data")
    mime_type: StrictStr = Field(alias="mimeType")

    check_base64 = field_validator("base64_data")(_require_text)
    check_mime = field_validator("mime_type")(_require_text)

    def to_payload(self) -> ImagePayload:
        return ImagePayload(base64_data=self.base64_data, mime_type=self.mime_type)


class SuggestionsRequest(ImagePayloadModel):
    """Body of ``POST /api/llm/suggestions``."""

    provider: str | None = None
    model: str | None = None

    loose_selectors = field_validator("provider", "model", mode="before")(_optional_text)


class EditRequest(SuggestionsRequest):
    """Body of ``POST /api/llm/edit``."""

    prompt: str = ""
    reference_image: ImagePayloadModel | None = Field(default=None, alias="referenceImage")

    @field_validator("prompt", mode="before")
    @classmethod
    def prompt_as_text(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""


def _describe(error: dict[str, Any]) -> str:
    """Turn one pydantic error into a user-facing message."""
    loc = [str(part) for part in error.get("loc", ())]
    field = ".".join(loc) or "body"
    if loc == ["referenceImage"]:
        return f'The "{field}" field must be an object with base64Data and mimeType.'
    return f'The "{field}" field is required.'


def parse_request(model: type[RequestT], body: dict[str, Any]) -> RequestT:
    """Validate a decoded JSON object against ``model``.

    Raises:
        ValidationFailed: Naming the first invalid field.
    """
    try:
        return model.model_validate(body)
    except ValidationError as e:
        errors = e.errors()
        raise ValidationFailed(_describe(errors[0]) if errors else "Invalid request.") from e
