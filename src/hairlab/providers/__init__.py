"""Multimodal hairstyle providers and their registry."""

from hairlab.providers.base import (
    EditPolicy,
    GenerationResult,
    HairstyleProvider,
    ImagePayload,
    ProviderSettings,
    to_data_url,
)
from hairlab.providers.prompts import SUGGESTIONS_PROMPT, build_edit_instruction
from hairlab.providers.registry import (
    DEFAULT_PROVIDER,
    KNOWN_PROVIDERS,
    ProviderRegistry,
    ProviderSpec,
    Resolution,
    create_provider,
)

__all__ = [
    "DEFAULT_PROVIDER",
    "KNOWN_PROVIDERS",
    "SUGGESTIONS_PROMPT",
    "EditPolicy",
    "GenerationResult",
    "HairstyleProvider",
    "ImagePayload",
    "ProviderRegistry",
    "ProviderSettings",
    "ProviderSpec",
    "Resolution",
    "build_edit_instruction",
    "create_provider",
    "to_data_url",
]
