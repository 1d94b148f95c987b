"""Server configuration loading.

Configuration comes from the environment (a ``.env`` file is loaded by the
CLI before this module is consulted). It is resolved once at startup into
frozen dataclasses and never mutated afterwards.

Resolution order for each provider's default models:
1. ``<PREFIX>_SUGGESTION_MODEL`` / ``<PREFIX>_IMAGE_MODEL`` (e.g. GEMINI_IMAGE_MODEL)
2. The registry's built-in default
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from hairlab.errors import ConfigurationError
from hairlab.providers.base import EditPolicy, ProviderSettings
from hairlab.providers.registry import DEFAULT_PROVIDER, KNOWN_PROVIDERS

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3001
DEFAULT_CORS_ORIGIN = "*"
DEFAULT_REQUEST_TIMEOUT = 120.0
DEFAULT_API_URL = "http://localhost:3001"


@dataclass(frozen=True)
class ServerSettings:
    """Everything the dispatcher and registry need at startup.

    Attributes:
        default_provider: Provider used when a request names none.
        active_providers: Providers with live adapters, default included.
        providers: Credential and default models per active provider.
        cors_origin: Value of ``Access-Control-Allow-Origin``.
        host: Bind address for ``hairlab serve``.
        port: Bind port for ``hairlab serve``.
        request_timeout: Outbound call bound in seconds.
        edit_policy: Whether text-only edit answers count as success.
    """

    default_provider: str = DEFAULT_PROVIDER
    active_providers: tuple[str, ...] = (DEFAULT_PROVIDER,)
    providers: dict[str, ProviderSettings] = field(default_factory=dict)
    cors_origin: str = DEFAULT_CORS_ORIGIN
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    edit_policy: EditPolicy = EditPolicy.IMAGE_OR_TEXT


def _clean(value: str | None) -> str:
    return value.strip() if isinstance(value, str) else ""


def _parse_list(value: str | None) -> list[str]:
    """Split a comma list, dropping blanks and duplicates while keeping order."""
    seen: list[str] = []
    for entry in _clean(value).split(","):
        name = entry.strip().lower()
        if name and name not in seen:
            seen.append(name)
    return seen


def load_provider_settings(name: str, env: Mapping[str, str]) -> ProviderSettings:
    """Resolve credential and default models for one known provider.

    Raises:
        ConfigurationError: If the credential is missing.
    """
    spec = KNOWN_PROVIDERS[name]
    api_key = _clean(env.get(spec.api_key_env))
    if not api_key:
        raise ConfigurationError(
            f"The {spec.api_key_env} environment variable is not set; "
            f"it is required for the '{name}' provider."
        )
    return ProviderSettings(
        api_key=api_key,
        suggestions_model=_clean(env.get(f"{spec.env_prefix}_SUGGESTION_MODEL"))
        or spec.suggestions_model,
        image_model=_clean(env.get(f"{spec.env_prefix}_IMAGE_MODEL")) or spec.image_model,
    )


def load_settings(env: Mapping[str, str] | None = None) -> ServerSettings:
    """Build ServerSettings from environment variables.

    Args:
        env: Mapping to read instead of ``os.environ`` (used by tests).

    Returns:
        Fully resolved settings.

    Raises:
        ConfigurationError: On unknown providers, missing credentials, or
            unparsable numeric/enum values. The process must not start.
    """
    env = os.environ if env is None else env

    default_provider = _clean(env.get("HAIRLAB_PROVIDER")).lower() or DEFAULT_PROVIDER
    active = _parse_list(env.get("HAIRLAB_PROVIDERS")) or [default_provider]
    if default_provider not in active:
        active.insert(0, default_provider)

    unknown = [name for name in active if name not in KNOWN_PROVIDERS]
    if unknown:
        known = ", ".join(sorted(KNOWN_PROVIDERS))
        raise ConfigurationError(f"Unknown provider(s): {', '.join(unknown)}. Known: {known}")

    providers = {name: load_provider_settings(name, env) for name in active}

    port_raw = _clean(env.get("PORT"))
    timeout_raw = _clean(env.get("HAIRLAB_REQUEST_TIMEOUT"))
    policy_raw = _clean(env.get("HAIRLAB_EDIT_POLICY")).lower()
    try:
        port = int(port_raw) if port_raw else DEFAULT_PORT
        timeout = float(timeout_raw) if timeout_raw else DEFAULT_REQUEST_TIMEOUT
        policy = EditPolicy(policy_raw) if policy_raw else EditPolicy.IMAGE_OR_TEXT
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e
    if timeout <= 0:
        raise ConfigurationError("HAIRLAB_REQUEST_TIMEOUT must be positive.")

    return ServerSettings(
        default_provider=default_provider,
        active_providers=tuple(active),
        providers=providers,
        cors_origin=_clean(env.get("CORS_ORIGIN")) or DEFAULT_CORS_ORIGIN,
        host=_clean(env.get("HOST")) or DEFAULT_HOST,
        port=port,
        request_timeout=timeout,
        edit_policy=policy,
    )
