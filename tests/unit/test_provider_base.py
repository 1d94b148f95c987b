"""Tests for provider value types and the edit policy."""

from __future__ import annotations

import pytest

from hairlab.errors import GenerationFailed
from hairlab.providers.base import (
    NO_IMAGE_MESSAGE,
    EditPolicy,
    GenerationResult,
    ImagePayload,
    ProviderSettings,
    apply_edit_policy,
    to_data_url,
)


class TestImagePayload:
    def test_data_url(self) -> None:
        payload = ImagePayload(base64_data="QUJD", mime_type="image/webp")
        assert payload.to_data_url() == "data:image/webp;base64,QUJD"

    def test_wire_keys_are_camel_case(self) -> None:
        payload = ImagePayload(base64_data="QUJD", mime_type="image/png")
        assert payload.to_dict() == {"base64Data": "QUJD", "mimeType": "image/png"}

    def test_frozen(self) -> None:
        payload = ImagePayload(base64_data="QUJD", mime_type="image/png")
        with pytest.raises(AttributeError):
            payload.mime_type = "image/gif"  # type: ignore[misc]


def test_to_data_url() -> None:
    assert to_data_url("eHl6", "image/png") == "data:image/png;base64,eHl6"


class TestGenerationResult:
    def test_empty(self) -> None:
        assert GenerationResult().is_empty
        assert GenerationResult(image="", text="").is_empty

    def test_wire_shape_keeps_nulls(self) -> None:
        result = GenerationResult(text="Could not edit.")
        assert result.to_dict() == {"image": None, "text": "Could not edit."}


def test_provider_settings_repr_masks_key() -> None:
    settings = ProviderSettings(api_key="sk-secret", suggestions_model="a", image_model="b")
    assert "sk-secret" not in repr(settings)


class TestApplyEditPolicy:
    def test_empty_result_fails_under_any_policy(self) -> None:
        for policy in EditPolicy:
            with pytest.raises(GenerationFailed) as exc_info:
                apply_edit_policy(GenerationResult(), policy)
            assert exc_info.value.message == NO_IMAGE_MESSAGE
            assert exc_info.value.status_code == 502

    def test_text_only_is_success_by_default(self) -> None:
        result = GenerationResult(text="I cannot edit this photo.")
        assert apply_edit_policy(result, EditPolicy.IMAGE_OR_TEXT) == result

    def test_text_only_fails_under_image_only(self) -> None:
        result = GenerationResult(text="I cannot edit this photo.")
        with pytest.raises(GenerationFailed, match="I cannot edit this photo."):
            apply_edit_policy(result, EditPolicy.IMAGE_ONLY)

    def test_image_only_drops_accompanying_text(self) -> None:
        result = GenerationResult(image="data:image/png;base64,QUJD", text="Here you go")
        assert apply_edit_policy(result, EditPolicy.IMAGE_ONLY) == GenerationResult(
            image="data:image/png;base64,QUJD"
        )
