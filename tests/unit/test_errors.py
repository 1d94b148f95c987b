"""Tests for the error taxonomy and backend status mapping."""

from __future__ import annotations

import pytest

from hairlab.errors import (
    GENERIC_INTERNAL_MESSAGE,
    AuthenticationFailed,
    GenerationFailed,
    HairlabError,
    InternalError,
    MalformedRequest,
    NotFound,
    RateLimited,
    RequestRejected,
    UnsupportedProvider,
    ValidationFailed,
    error_from_status,
)


class TestStatusCodes:
    @pytest.mark.parametrize(
        ("error_cls", "status"),
        [
            (MalformedRequest, 400),
            (ValidationFailed, 400),
            (RequestRejected, 400),
            (AuthenticationFailed, 401),
            (NotFound, 404),
            (RateLimited, 429),
            (GenerationFailed, 502),
        ],
    )
    def test_default_status(self, error_cls: type[HairlabError], status: int) -> None:
        assert error_cls("boom").status_code == status

    def test_explicit_status_overrides_default(self) -> None:
        assert RequestRejected("nope", 422).status_code == 422

    def test_to_dict_carries_only_message(self) -> None:
        assert ValidationFailed("missing").to_dict() == {"message": "missing"}

    def test_unsupported_provider_names_the_key(self) -> None:
        err = UnsupportedProvider("claude")
        assert err.status_code == 400
        assert err.provider == "claude"
        assert err.message == 'Provider "claude" is not supported by the server.'

    def test_internal_error_uses_generic_message(self) -> None:
        err = InternalError()
        assert err.status_code == 500
        assert err.message == GENERIC_INTERNAL_MESSAGE


class TestErrorFromStatus:
    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_failures(self, status: int) -> None:
        err = error_from_status("Gemini", status, "API key invalid")
        assert isinstance(err, AuthenticationFailed)
        assert err.status_code == status
        assert "Gemini" in err.message

    def test_rate_limit(self) -> None:
        err = error_from_status("OpenAI", 429, "slow down")
        assert isinstance(err, RateLimited)
        assert err.status_code == 429

    def test_other_client_errors_keep_backend_message(self) -> None:
        err = error_from_status("OpenAI", 400, "Invalid image format")
        assert isinstance(err, RequestRejected)
        assert err.status_code == 400
        assert err.message == "Invalid image format"

    def test_client_error_without_message_gets_fallback(self) -> None:
        err = error_from_status("OpenAI", 404, "")
        assert isinstance(err, RequestRejected)
        assert "OpenAI" in err.message

    def test_server_errors_are_generation_failures(self) -> None:
        err = error_from_status("Gemini", 503, "overloaded")
        assert isinstance(err, GenerationFailed)
        assert err.status_code == 503
        assert "overloaded" not in err.message

    def test_missing_status_is_bad_gateway(self) -> None:
        err = error_from_status("Gemini", None, "???")
        assert isinstance(err, GenerationFailed)
        assert err.status_code == 502
