"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from hairlab.providers.base import GenerationResult, ImagePayload, ProviderSettings
from hairlab.providers.registry import ProviderRegistry

_ENV_VARS = (
    "HAIRLAB_PROVIDER",
    "HAIRLAB_PROVIDERS",
    "HAIRLAB_REQUEST_TIMEOUT",
    "HAIRLAB_EDIT_POLICY",
    "HAIRLAB_API_URL",
    "GEMINI_API_KEY",
    "GEMINI_SUGGESTION_MODEL",
    "GEMINI_IMAGE_MODEL",
    "OPENAI_API_KEY",
    "OPENAI_SUGGESTION_MODEL",
    "OPENAI_IMAGE_MODEL",
    "CORS_ORIGIN",
    "HOST",
    "PORT",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer credentials and overrides out of test runs."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def subject_image() -> ImagePayload:
    return ImagePayload(base64_data="QUJD", mime_type="image/jpeg")


@pytest.fixture
def reference_image() -> ImagePayload:
    return ImagePayload(base64_data="REVG", mime_type="image/png")


class FakeProvider:
    """In-memory provider recording every call it receives."""

    def __init__(
        self,
        name: str = "gemini",
        *,
        suggestions: str = "1. Textured crop",
        result: GenerationResult | None = None,
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self.suggestions = suggestions
        self.result = result or GenerationResult(image="data:image/png;base64,QUJD")
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def suggest(self, image: ImagePayload, model: str) -> str:
        self.calls.append(("suggest", {"image": image, "model": model}))
        if self.error is not None:
            raise self.error
        return self.suggestions

    async def edit(
        self,
        image: ImagePayload,
        prompt: str,
        reference: ImagePayload | None,
        model: str,
    ) -> GenerationResult:
        self.calls.append(
            ("edit", {"image": image, "prompt": prompt, "reference": reference, "model": model})
        )
        if self.error is not None:
            raise self.error
        return self.result


GEMINI_SETTINGS = ProviderSettings(
    api_key="gemini-key",
    suggestions_model="gemini-2.5-flash",
    image_model="gemini-2.5-flash-image-preview",
)
OPENAI_SETTINGS = ProviderSettings(
    api_key="openai-key",
    suggestions_model="gpt-4.1-mini",
    image_model="gpt-image-1",
)


@pytest.fixture
def gemini_fake() -> FakeProvider:
    return FakeProvider("gemini")


@pytest.fixture
def openai_fake() -> FakeProvider:
    return FakeProvider("openai", suggestions="1. Curtain bangs")


@pytest.fixture
def registry(gemini_fake: FakeProvider, openai_fake: FakeProvider) -> ProviderRegistry:
    """Registry with both providers active and gemini as default."""
    return ProviderRegistry(
        {"gemini": gemini_fake, "openai": openai_fake},
        {"gemini": GEMINI_SETTINGS, "openai": OPENAI_SETTINGS},
        "gemini",
    )
