"""Client-side gateway to the hairlab dispatcher.

Mirrors the dispatcher's contract from the caller's side: builds requests,
parses success and error bodies, and raises a single ``GatewayError`` type a
UI can render verbatim. Transport failures (the server could not be reached)
are distinguishable from application failures (the server answered non-2xx).
"""

from __future__ import annotations

import os
from typing import Any

import httpx

from hairlab.config import DEFAULT_API_URL
from hairlab.observability.logging import get_logger
from hairlab.providers.base import GenerationResult, ImagePayload

log = get_logger(__name__)

_DEFAULT_TIMEOUT = 180.0

NETWORK_ERROR_MESSAGE = (
    "Could not connect to the server. Check your internet connection "
    "and that the backend is running."
)
TIMEOUT_MESSAGE = "The server took too long to respond. Try again in a moment."
GENERIC_ERROR_MESSAGE = "Failed to communicate with the server. Try again later."
INVALID_RESPONSE_MESSAGE = "Invalid response from the server."
NO_SUGGESTIONS_MESSAGE = "The server did not return valid suggestions."
NO_CONTENT_MESSAGE = "The server did not return generated content."


class GatewayError(Exception):
    """A failed gateway call, ready for display.

    Attributes:
        message: User-displayable message.
        status_code: HTTP status from the dispatcher, or None if no response.
        is_transport_error: True when the dispatcher could not be reached.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        is_transport_error: bool = False,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.is_transport_error = is_transport_error
        super().__init__(message)


def _blank_to_none(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _parse_body(response: httpx.Response) -> Any:
    """Decode a response body: JSON when declared, else text, else None."""
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError as e:
            log.warning("gateway_json_unparsable", status_code=response.status_code, error=str(e))
            return None
    return response.text or None


def extract_error_message(body: Any) -> str:
    """Pick the message out of an error body, falling back to a generic one."""
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    if isinstance(body, str) and body.strip():
        return body.strip()
    return GENERIC_ERROR_MESSAGE


class HairlabClient:
    """Async client for the dispatcher.

    Args:
        base_url: Dispatcher URL. Falls back to ``HAIRLAB_API_URL``.
        provider: Provider used when a call names none. None leaves the
            choice to the server default.
        model: Image model used when an edit names none.
        suggestions_model: Model used when a suggestion call names none.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        provider: str | None = None,
        model: str | None = None,
        suggestions_model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        url = base_url or os.getenv("HAIRLAB_API_URL") or DEFAULT_API_URL
        self._base_url = url.rstrip("/")
        self._provider = _blank_to_none(provider)
        self._model = _blank_to_none(model)
        self._suggestions_model = _blank_to_none(suggestions_model)
        self._client = httpx.AsyncClient(
            base_url=self._base_url, timeout=timeout, transport=transport
        )

    async def __aenter__(self) -> HairlabClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    @property
    def base_url(self) -> str:
        return self._base_url

    async def health(self) -> bool:
        """Return True if the dispatcher answers its health probe."""
        try:
            response = await self._client.get("/health")
        except httpx.TransportError:
            return False
        return response.status_code == 200

    async def get_suggestions(
        self,
        image: ImagePayload,
        *,
        provider: str | None = None,
        model: str | None = None,
    ) -> str:
        """Ask the dispatcher for hairstyle suggestions.

        Raises:
            GatewayError: On transport failure, non-2xx, or missing suggestions.
        """
        body = await self._post_json(
            "/api/llm/suggestions",
            {
                **image.to_dict(),
                "provider": _blank_to_none(provider) or self._provider,
                "model": _blank_to_none(model) or self._suggestions_model,
            },
        )
        suggestions = body.get("suggestions")
        if not isinstance(suggestions, str) or not suggestions.strip():
            raise GatewayError(NO_SUGGESTIONS_MESSAGE)
        return suggestions

    async def edit_image(
        self,
        image: ImagePayload,
        prompt: str,
        reference: ImagePayload | None = None,
        *,
        provider: str | None = None,
        model: str | None = None,
    ) -> GenerationResult:
        """Ask the dispatcher for an edited preview.

        Raises:
            GatewayError: On transport failure, non-2xx, or an empty result.
        """
        body = await self._post_json(
            "/api/llm/edit",
            {
                **image.to_dict(),
                "prompt": prompt,
                "referenceImage": reference.to_dict() if reference else None,
                "provider": _blank_to_none(provider) or self._provider,
                "model": _blank_to_none(model) or self._model,
            },
        )
        result = GenerationResult(
            image=_blank_to_none(body.get("image")),
            text=_blank_to_none(body.get("text")),
        )
        if result.is_empty:
            raise GatewayError(NO_CONTENT_MESSAGE)
        return result

    async def _post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(path, json=payload)
        except httpx.TransportError as e:
            # Only a connect timeout means the server was never reached
            if isinstance(e, httpx.TimeoutException) and not isinstance(e, httpx.ConnectTimeout):
                log.warning("gateway_timeout", url=self._base_url, path=path, error=str(e))
                raise GatewayError(TIMEOUT_MESSAGE) from e
            log.warning("gateway_unreachable", url=self._base_url, path=path, error=str(e))
            raise GatewayError(NETWORK_ERROR_MESSAGE, is_transport_error=True) from e

        body = _parse_body(response)
        if not response.is_success:
            message = extract_error_message(body)
            log.info("gateway_error_response", path=path, status_code=response.status_code)
            raise GatewayError(message, status_code=response.status_code)

        if not isinstance(body, dict):
            raise GatewayError(INVALID_RESPONSE_MESSAGE, status_code=response.status_code)
        return body
