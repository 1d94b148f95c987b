"""Tests for the client gateway against a mocked transport."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from hairlab.client import (
    GENERIC_ERROR_MESSAGE,
    INVALID_RESPONSE_MESSAGE,
    NETWORK_ERROR_MESSAGE,
    NO_CONTENT_MESSAGE,
    NO_SUGGESTIONS_MESSAGE,
    TIMEOUT_MESSAGE,
    GatewayError,
    HairlabClient,
    extract_error_message,
)
from hairlab.providers.base import GenerationResult, ImagePayload

Handler = Callable[[httpx.Request], httpx.Response]


def _client(handler: Handler, **kwargs: str) -> HairlabClient:
    return HairlabClient(
        "http://dispatcher.test/", transport=httpx.MockTransport(handler), **kwargs
    )


class TestExtractErrorMessage:
    def test_message_field(self) -> None:
        assert extract_error_message({"message": " Quota exceeded "}) == "Quota exceeded"

    def test_plain_text(self) -> None:
        assert extract_error_message("Bad Gateway") == "Bad Gateway"

    @pytest.mark.parametrize("body", [None, "", {"error": "x"}, {"message": ""}, [1, 2]])
    def test_fallback(self, body: object) -> None:
        assert extract_error_message(body) == GENERIC_ERROR_MESSAGE


def test_base_url_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HAIRLAB_API_URL", "https://hairlab.example/")

    assert HairlabClient().base_url == "https://hairlab.example"


class TestGetSuggestions:
    @pytest.mark.asyncio()
    async def test_success_and_payload(self, subject_image: ImagePayload) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"suggestions": "1. Buzz cut"})

        async with _client(handler, provider="openai") as client:
            suggestions = await client.get_suggestions(subject_image, model="gpt-4.1")

        assert suggestions == "1. Buzz cut"
        (request,) = seen
        assert request.url.path == "/api/llm/suggestions"
        assert json.loads(request.content) == {
            "base64Data": "QUJD",
            "mimeType": "image/jpeg",
            "provider": "openai",
            "model": "gpt-4.1",
        }

    @pytest.mark.asyncio()
    async def test_unset_selectors_are_null(self, subject_image: ImagePayload) -> None:
        bodies: list[dict[str, object]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"suggestions": "ok"})

        async with _client(handler) as client:
            await client.get_suggestions(subject_image, provider="  ")

        assert bodies[0]["provider"] is None
        assert bodies[0]["model"] is None

    @pytest.mark.asyncio()
    async def test_missing_suggestions(self, subject_image: ImagePayload) -> None:
        async with _client(lambda _: httpx.Response(200, json={"suggestions": ""})) as client:
            with pytest.raises(GatewayError, match=NO_SUGGESTIONS_MESSAGE):
                await client.get_suggestions(subject_image)


class TestEditImage:
    @pytest.mark.asyncio()
    async def test_success_with_reference(
        self, subject_image: ImagePayload, reference_image: ImagePayload
    ) -> None:
        bodies: list[dict[str, object]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"image": "data:image/png;base64,QUJD", "text": None})

        async with _client(handler, model="gpt-image-1") as client:
            result = await client.edit_image(subject_image, "", reference_image)

        assert result == GenerationResult(image="data:image/png;base64,QUJD")
        body = bodies[0]
        assert body["prompt"] == ""
        assert body["referenceImage"] == {"base64Data": "REVG", "mimeType": "image/png"}
        assert body["model"] == "gpt-image-1"

    @pytest.mark.asyncio()
    async def test_text_only(self, subject_image: ImagePayload) -> None:
        def handler(_: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"image": None, "text": "No face found."})

        async with _client(handler) as client:
            result = await client.edit_image(subject_image, "bob")

        assert result == GenerationResult(text="No face found.")

    @pytest.mark.asyncio()
    async def test_empty_content(self, subject_image: ImagePayload) -> None:
        def handler(_: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"image": "", "text": None})

        async with _client(handler) as client:
            with pytest.raises(GatewayError, match=NO_CONTENT_MESSAGE):
                await client.edit_image(subject_image, "bob")


class TestFailures:
    @pytest.mark.asyncio()
    async def test_transport_error(self, subject_image: ImagePayload) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(GatewayError) as exc_info:
                await client.edit_image(subject_image, "bob")

        assert exc_info.value.is_transport_error
        assert exc_info.value.status_code is None
        assert exc_info.value.message == NETWORK_ERROR_MESSAGE

    @pytest.mark.asyncio()
    async def test_slow_server_is_timeout_not_unreachable(
        self, subject_image: ImagePayload
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with _client(handler) as client:
            with pytest.raises(GatewayError) as exc_info:
                await client.get_suggestions(subject_image)

        assert exc_info.value.message == TIMEOUT_MESSAGE
        assert not exc_info.value.is_transport_error

    @pytest.mark.asyncio()
    async def test_connect_timeout_is_unreachable(self, subject_image: ImagePayload) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        async with _client(handler) as client:
            with pytest.raises(GatewayError) as exc_info:
                await client.edit_image(subject_image, "bob")

        assert exc_info.value.message == NETWORK_ERROR_MESSAGE
        assert exc_info.value.is_transport_error

    @pytest.mark.asyncio()
    async def test_error_body_message(self, subject_image: ImagePayload) -> None:
        def handler(_: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"message": "Gemini is rate limiting requests."})

        async with _client(handler) as client:
            with pytest.raises(GatewayError) as exc_info:
                await client.get_suggestions(subject_image)

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "Gemini is rate limiting requests."
        assert not exc_info.value.is_transport_error

    @pytest.mark.asyncio()
    async def test_plain_text_error(self, subject_image: ImagePayload) -> None:
        async with _client(lambda _: httpx.Response(502, text="Bad Gateway")) as client:
            with pytest.raises(GatewayError, match="Bad Gateway"):
                await client.get_suggestions(subject_image)

    @pytest.mark.asyncio()
    async def test_empty_error_body(self, subject_image: ImagePayload) -> None:
        async with _client(lambda _: httpx.Response(500)) as client:
            with pytest.raises(GatewayError) as exc_info:
                await client.get_suggestions(subject_image)

        assert exc_info.value.message == GENERIC_ERROR_MESSAGE

    @pytest.mark.asyncio()
    async def test_non_object_success_body(self, subject_image: ImagePayload) -> None:
        async with _client(lambda _: httpx.Response(200, json=["x"])) as client:
            with pytest.raises(GatewayError, match=INVALID_RESPONSE_MESSAGE):
                await client.get_suggestions(subject_image)


class TestHealth:
    @pytest.mark.asyncio()
    async def test_up(self) -> None:
        async with _client(lambda _: httpx.Response(200, json={"status": "ok"})) as client:
            assert await client.health() is True

    @pytest.mark.asyncio()
    async def test_unreachable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        async with _client(handler) as client:
            assert await client.health() is False
