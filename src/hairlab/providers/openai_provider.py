"""OpenAI provider.

Uses the Responses API. Suggestions are a plain multimodal text request;
edits attach the ``image_generation`` tool so a text model orchestrates an
image model (``gpt-image-1`` by default) and the picture comes back as an
``image_generation_call`` output item holding base64 PNG data.
"""

from __future__ import annotations

import asyncio
from typing import Any, NoReturn

from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from hairlab.errors import GenerationFailed, RateLimited, RequestRejected, error_from_status
from hairlab.observability.logging import get_logger
from hairlab.providers.base import (
    NO_SUGGESTIONS_MESSAGE,
    EditPolicy,
    GenerationResult,
    ImagePayload,
    apply_edit_policy,
    to_data_url,
)
from hairlab.providers.prompts import (
    IMAGE_ONLY_SUFFIX,
    SUGGESTIONS_PROMPT,
    build_edit_instruction,
)

log = get_logger(__name__)

_DEFAULT_TIMEOUT = 120.0
_DEFAULT_ORCHESTRATOR_MODEL = "gpt-4.1-mini"
_OUTPUT_FORMAT = "png"
_LABEL = "OpenAI"


def _find_image_call(output: list[Any] | None) -> Any | None:
    """Return the first ``image_generation_call`` item that carries a result."""
    for item in output or []:
        if getattr(item, "type", None) == "image_generation_call" and getattr(
            item, "result", None
        ):
            return item
    return None


def _output_text(response: Any) -> str | None:
    text = getattr(response, "output_text", None)
    if isinstance(text, str) and text.strip():
        return text.strip()
    return None


def _raise_response_error(response: Any) -> None:
    """Raise if the response reports a backend-side error object."""
    error = getattr(response, "error", None)
    if not error:
        return
    message = getattr(error, "message", None) or str(error)
    if getattr(error, "code", None) == "rate_limit_exceeded":
        raise RateLimited(f"Your request was rejected: {message}")
    raise RequestRejected(f"Your request was rejected: {message}")


class OpenAIHairstyleProvider:
    """Hairstyle suggestions and edits via OpenAI's Responses API.

    Args:
        api_key: OpenAI API key.
        orchestrator_model: Text model driving the ``image_generation`` tool
            during edits. The ``model`` passed to ``edit`` selects the image model.
        timeout: Upper bound in seconds for each outbound call.
        edit_policy: Whether text-only edit answers count as success.
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        *,
        orchestrator_model: str = _DEFAULT_ORCHESTRATOR_MODEL,
        timeout: float = _DEFAULT_TIMEOUT,
        edit_policy: EditPolicy = EditPolicy.IMAGE_OR_TEXT,
    ) -> None:
        self._orchestrator_model = orchestrator_model
        self._timeout = timeout
        self._edit_policy = edit_policy
        # Retries belong to callers; one outbound call per operation.
        self._client = AsyncOpenAI(api_key=api_key, max_retries=0, timeout=timeout)

    async def suggest(self, image: ImagePayload, model: str) -> str:
        content = [
            {"type": "input_image", "image_url": image.to_data_url(), "detail": "auto"},
            {"type": "input_text", "text": SUGGESTIONS_PROMPT},
        ]

        log.debug("openai_suggest_start", model=model, mime_type=image.mime_type)
        response = await self._create(model=model, input=[{"role": "user", "content": content}])
        _raise_response_error(response)

        suggestions = _output_text(response)
        if not suggestions:
            log.warning("openai_empty_suggestions", model=model, response_id=_id(response))
            raise GenerationFailed(NO_SUGGESTIONS_MESSAGE)
        return suggestions

    async def edit(
        self,
        image: ImagePayload,
        prompt: str,
        reference: ImagePayload | None,
        model: str,
    ) -> GenerationResult:
        content: list[dict[str, Any]] = [
            {"type": "input_image", "image_url": image.to_data_url(), "detail": "high"},
        ]
        if reference is not None:
            content.append(
                {"type": "input_image", "image_url": reference.to_data_url(), "detail": "high"}
            )

        instruction = build_edit_instruction(prompt, has_reference=reference is not None)
        if self._edit_policy is EditPolicy.IMAGE_ONLY:
            instruction = f"{instruction} {IMAGE_ONLY_SUFFIX}"
        content.append({"type": "input_text", "text": instruction})

        tool = {
            "type": "image_generation",
            "model": model,
            "output_format": _OUTPUT_FORMAT,
            "background": "auto",
            "input_fidelity": "high",
        }

        log.debug(
            "openai_edit_start",
            orchestrator=self._orchestrator_model,
            model=model,
            has_reference=reference is not None,
            prompt_length=len(prompt),
        )
        response = await self._create(
            model=self._orchestrator_model,
            input=[{"role": "user", "content": content}],
            tools=[tool],
        )
        _raise_response_error(response)

        image_call = _find_image_call(getattr(response, "output", None))
        image_url = to_data_url(image_call.result, "image/png") if image_call else None
        result = GenerationResult(image=image_url, text=_output_text(response))

        if result.is_empty:
            log.error("openai_empty_edit", model=model, response_id=_id(response))
        else:
            log.info("openai_edit_complete", model=model, has_image=bool(image_url))
        return apply_edit_policy(result, self._edit_policy)

    async def _create(self, **kwargs: Any) -> Any:
        """Issue one ``responses.create`` call and translate SDK failures."""
        try:
            return await asyncio.wait_for(
                self._client.responses.create(**kwargs),
                timeout=self._timeout,
            )
        except Exception as e:
            self._handle_error(e)

    def _handle_error(self, error: Exception) -> NoReturn:
        """Convert OpenAI SDK exceptions to hairlab errors."""
        if isinstance(error, TimeoutError):
            log.error("openai_timeout", timeout=self._timeout)
            raise GenerationFailed(
                f"{_LABEL} did not respond within {self._timeout:g}s. Try again later."
            ) from error

        # APITimeoutError subclasses APIConnectionError
        if isinstance(error, APIConnectionError):
            log.error("openai_connect_error", error=str(error))
            raise GenerationFailed(f"Cannot connect to {_LABEL}. Try again later.") from error

        if isinstance(error, APIStatusError):
            log.error("openai_api_error", status_code=error.status_code, error=error.message)
            raise error_from_status(_LABEL, error.status_code, error.message) from error

        raise error


def _id(response: Any) -> str | None:
    return getattr(response, "id", None)
