"""Provider registry and per-request resolution.

Holds the statically known provider keys with their default models, builds
one adapter per active provider at startup, and resolves each request's
``provider``/``model`` fields to a concrete adapter and effective model.
Provider implementations are imported lazily so an inactive backend's SDK
is never touched.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from hairlab.errors import ConfigurationError, UnsupportedProvider
from hairlab.observability.logging import get_logger
from hairlab.providers.base import EditPolicy, HairstyleProvider, ProviderSettings

if TYPE_CHECKING:
    from hairlab.config import ServerSettings

log = get_logger(__name__)

Operation = Literal["suggestions", "image"]


@dataclass(frozen=True)
class ProviderSpec:
    """Static description of a known provider.

    Attributes:
        label: Display name used in user-facing messages.
        api_key_env: Environment variable holding the credential.
        suggestions_model: Default model for suggestions.
        image_model: Default model for edits.
    """

    label: str
    api_key_env: str
    suggestions_model: str
    image_model: str

    @property
    def env_prefix(self) -> str:
        return self.api_key_env.removesuffix("_API_KEY")


KNOWN_PROVIDERS: dict[str, ProviderSpec] = {
    "gemini": ProviderSpec(
        label="Gemini",
        api_key_env="GEMINI_API_KEY",
        suggestions_model="gemini-2.5-flash",
        image_model="gemini-2.5-flash-image-preview",
    ),
    "openai": ProviderSpec(
        label="OpenAI",
        api_key_env="OPENAI_API_KEY",
        suggestions_model="gpt-4.1-mini",
        image_model="gpt-image-1",
    ),
}

DEFAULT_PROVIDER = "gemini"


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a request against the registry."""

    provider_name: str
    provider: HairstyleProvider
    model: str


def create_provider(
    name: str,
    settings: ProviderSettings,
    *,
    timeout: float = 120.0,
    edit_policy: EditPolicy = EditPolicy.IMAGE_OR_TEXT,
) -> HairstyleProvider:
    """Create the adapter for a known provider.

    Args:
        name: Provider key (``gemini`` or ``openai``).
        settings: Credential and default models for that provider.
        timeout: Outbound call bound in seconds.
        edit_policy: Edit success policy.

    Returns:
        Configured adapter.

    Raises:
        ConfigurationError: If the provider is unknown or has no credential.
    """
    if name not in KNOWN_PROVIDERS:
        raise ConfigurationError(f"Unknown provider: {name}")
    if not settings.api_key:
        raise ConfigurationError(
            f"{KNOWN_PROVIDERS[name].api_key_env} is not set; cannot activate '{name}'."
        )

    if name == "gemini":
        from hairlab.providers.gemini import GeminiHairstyleProvider

        return GeminiHairstyleProvider(
            settings.api_key, timeout=timeout, edit_policy=edit_policy
        )

    from hairlab.providers.openai_provider import OpenAIHairstyleProvider

    return OpenAIHairstyleProvider(
        settings.api_key,
        orchestrator_model=settings.suggestions_model,
        timeout=timeout,
        edit_policy=edit_policy,
    )


class ProviderRegistry:
    """Active adapters keyed by provider name, plus the process default.

    Immutable after construction; safe to share across concurrent requests.

    Args:
        providers: Adapter per active provider key.
        settings: Default models per active provider key.
        default_provider: Key used when a request names no provider.

    Raises:
        ConfigurationError: If the default is not among the active providers,
            or a provider has no settings.
    """

    def __init__(
        self,
        providers: Mapping[str, HairstyleProvider],
        settings: Mapping[str, ProviderSettings],
        default_provider: str,
    ) -> None:
        if default_provider not in providers:
            raise ConfigurationError(
                f"Default provider '{default_provider}' is not among the active providers."
            )
        missing = sorted(set(providers) - set(settings))
        if missing:
            raise ConfigurationError(f"No settings for provider(s): {', '.join(missing)}")

        self._providers = dict(providers)
        self._settings = dict(settings)
        self._default = default_provider

    @classmethod
    def from_settings(cls, server_settings: ServerSettings) -> ProviderRegistry:
        """Build adapters for every active provider in ``server_settings``."""
        providers = {
            name: create_provider(
                name,
                server_settings.providers[name],
                timeout=server_settings.request_timeout,
                edit_policy=server_settings.edit_policy,
            )
            for name in server_settings.active_providers
        }
        log.info(
            "provider_registry_ready",
            providers=sorted(providers),
            default=server_settings.default_provider,
        )
        return cls(providers, server_settings.providers, server_settings.default_provider)

    @property
    def default_provider(self) -> str:
        return self._default

    @property
    def names(self) -> list[str]:
        return sorted(self._providers)

    def settings_for(self, name: str) -> ProviderSettings:
        return self._settings[name]

    def resolve_provider(self, requested: object) -> str:
        """Resolve a requested provider key to an active one.

        Blank or non-string values fall back to the default.

        Raises:
            UnsupportedProvider: If a key was given and it is not active.
        """
        if not isinstance(requested, str) or not requested.strip():
            return self._default
        key = requested.strip()
        if key not in self._providers:
            log.warning("provider_unsupported", requested=key, active=self.names)
            raise UnsupportedProvider(key)
        return key

    def resolve_model(self, provider_name: str, requested: object, operation: Operation) -> str:
        """Requested model if non-blank after trimming, else the provider default."""
        if isinstance(requested, str) and requested.strip():
            return requested.strip()
        settings = self._settings[provider_name]
        return settings.suggestions_model if operation == "suggestions" else settings.image_model

    def resolve(self, provider: object, model: object, operation: Operation) -> Resolution:
        """Resolve both provider and model for one request."""
        name = self.resolve_provider(provider)
        return Resolution(
            provider_name=name,
            provider=self._providers[name],
            model=self.resolve_model(name, model, operation),
        )
