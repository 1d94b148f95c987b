"""Gemini provider.

Talks to the Gemini API through the ``google-genai`` SDK. Both operations go
through ``generateContent``; edits ask for IMAGE and TEXT response modalities
and come back as a list of content parts, each carrying either ``text`` or
``inline_data`` (raw bytes plus MIME type).
"""

from __future__ import annotations

import asyncio
import base64
import binascii
from collections.abc import Iterator
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from hairlab.errors import (
    GenerationFailed,
    RequestRejected,
    ValidationFailed,
    error_from_status,
)
from hairlab.observability.logging import get_logger
from hairlab.providers.base import (
    NO_SUGGESTIONS_MESSAGE,
    EditPolicy,
    GenerationResult,
    ImagePayload,
    apply_edit_policy,
    to_data_url,
)
from hairlab.providers.prompts import SUGGESTIONS_PROMPT, build_edit_instruction

log = get_logger(__name__)

_DEFAULT_TIMEOUT = 120.0
_LABEL = "Gemini"
_FALLBACK_MIME_TYPE = "image/png"


def _image_part(image: ImagePayload) -> types.Part:
    """Build an inline-data part; the SDK wants raw bytes, not base64 text."""
    try:
        data = base64.b64decode(image.base64_data)
    except (binascii.Error, ValueError) as e:
        raise ValidationFailed("Image data is not valid base64.") from e
    return types.Part.from_bytes(data=data, mime_type=image.mime_type)


def _iter_parts(response: Any) -> Iterator[Any]:
    """Yield the content parts of the first candidate, tolerating missing levels."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return
    content = getattr(candidates[0], "content", None)
    yield from getattr(content, "parts", None) or []


def _block_message(response: Any) -> str | None:
    """Return the backend's block reason, or None if the prompt was not blocked."""
    feedback = getattr(response, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None)
    if not reason:
        return None
    reason_text = getattr(reason, "value", reason)
    detail = getattr(feedback, "block_reason_message", None)
    return detail or str(reason_text) or "Request blocked for safety reasons."


_SAFETY_FINISH_REASONS = frozenset(
    {
        "SAFETY",
        "IMAGE_SAFETY",
        "PROHIBITED_CONTENT",
        "IMAGE_PROHIBITED_CONTENT",
        "BLOCKLIST",
        "SPII",
    }
)


def _finish_block(response: Any) -> str | None:
    """Return the first candidate's finish reason if it stopped on a safety filter."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    reason = getattr(candidates[0], "finish_reason", None)
    reason_text = str(getattr(reason, "value", reason) or "")
    return reason_text if reason_text in _SAFETY_FINISH_REASONS else None


def _encode_inline(data: bytes | str) -> str:
    if isinstance(data, bytes):
        return base64.b64encode(data).decode("ascii")
    return data


def _dump_response(response: Any) -> str:
    """Serialize an SDK response for diagnostics."""
    dump = getattr(response, "model_dump_json", None)
    if callable(dump):
        return str(dump(exclude_none=True))
    return repr(response)


class GeminiHairstyleProvider:
    """Hairstyle suggestions and edits via the Gemini API.

    Args:
        api_key: Gemini API key.
        timeout: Upper bound in seconds for each outbound call.
        edit_policy: Whether text-only edit answers count as success.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
        edit_policy: EditPolicy = EditPolicy.IMAGE_OR_TEXT,
    ) -> None:
        self._timeout = timeout
        self._edit_policy = edit_policy
        self._client = genai.Client(api_key=api_key)

    async def suggest(self, image: ImagePayload, model: str) -> str:
        contents = [_image_part(image), types.Part.from_text(text=SUGGESTIONS_PROMPT)]

        log.debug("gemini_suggest_start", model=model, mime_type=image.mime_type)
        response = await self._generate(model=model, contents=contents)

        blocked = _block_message(response)
        if blocked:
            raise RequestRejected(f"Your request was blocked: {blocked}")

        for part in _iter_parts(response):
            text = getattr(part, "text", None)
            if text and text.strip():
                return text.strip()

        stopped = _finish_block(response)
        if stopped:
            log.warning("gemini_suggest_blocked", model=model, finish_reason=stopped)
            raise RequestRejected(f"Your request was blocked: {stopped}")

        log.warning("gemini_empty_suggestions", model=model, response=_dump_response(response))
        raise GenerationFailed(NO_SUGGESTIONS_MESSAGE)

    async def edit(
        self,
        image: ImagePayload,
        prompt: str,
        reference: ImagePayload | None,
        model: str,
    ) -> GenerationResult:
        parts = [_image_part(image)]
        if reference is not None:
            parts.append(_image_part(reference))
        instruction = build_edit_instruction(prompt, has_reference=reference is not None)
        parts.append(types.Part.from_text(text=instruction))

        config = types.GenerateContentConfig(
            response_modalities=[types.Modality.IMAGE, types.Modality.TEXT],
        )

        log.debug(
            "gemini_edit_start",
            model=model,
            has_reference=reference is not None,
            prompt_length=len(prompt),
        )
        response = await self._generate(model=model, contents=parts, config=config)

        blocked = _block_message(response)
        if blocked:
            raise RequestRejected(f"Your request was blocked: {blocked}")

        image_url: str | None = None
        text: str | None = None
        for part in _iter_parts(response):
            inline = getattr(part, "inline_data", None)
            if image_url is None and inline is not None and getattr(inline, "data", None):
                mime_type = getattr(inline, "mime_type", None) or _FALLBACK_MIME_TYPE
                image_url = to_data_url(_encode_inline(inline.data), mime_type)
            part_text = getattr(part, "text", None)
            if text is None and part_text and part_text.strip():
                text = part_text.strip()

        result = GenerationResult(image=image_url, text=text)
        if result.is_empty:
            stopped = _finish_block(response)
            if stopped:
                log.warning("gemini_edit_blocked", model=model, finish_reason=stopped)
                raise RequestRejected(f"Your request was blocked: {stopped}")
            log.error("gemini_empty_edit", model=model, response=_dump_response(response))
        else:
            log.info("gemini_edit_complete", model=model, has_image=bool(image_url))
        return apply_edit_policy(result, self._edit_policy)

    async def _generate(self, **kwargs: Any) -> Any:
        """Issue one ``generate_content`` call and translate SDK failures."""
        try:
            return await asyncio.wait_for(
                self._client.aio.models.generate_content(**kwargs),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            log.error("gemini_timeout", timeout=self._timeout)
            raise GenerationFailed(
                f"{_LABEL} did not respond within {self._timeout:g}s. Try again later."
            ) from e
        except genai_errors.APIError as e:
            log.error("gemini_api_error", status_code=e.code, error=e.message)
            raise error_from_status(_LABEL, e.code, e.message or str(e)) from e
        except httpx.TransportError as e:
            log.error("gemini_connect_error", error=str(e))
            raise GenerationFailed(f"Cannot connect to {_LABEL}. Try again later.") from e
