"""Error taxonomy shared by providers, the dispatcher, and the client gateway.

Every error a caller can see is a ``HairlabError`` carrying a human-readable
message and an HTTP status code. Errors are created where the fault is
detected and converted to a response exactly once, at the dispatcher boundary.
"""

from __future__ import annotations

GENERIC_INTERNAL_MESSAGE = "Internal server error. Check the server logs for details."


class HairlabError(Exception):
    """Base class for typed, user-displayable errors.

    Attributes:
        message: Message safe to show to end users.
        status_code: HTTP status used when the error reaches the wire.
    """

    default_status: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        """Wire body for this error."""
        return {"message": self.message}


class MalformedRequest(HairlabError):
    """Request body is empty, not JSON, or not a JSON object."""

    default_status = 400


class ValidationFailed(HairlabError):
    """A required field is missing or empty."""

    default_status = 400


class UnsupportedProvider(HairlabError):
    """Requested provider key is not active on this server."""

    default_status = 400

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f'Provider "{provider}" is not supported by the server.')


class RequestRejected(HairlabError):
    """Backend declined the request (safety filter, content policy, other 4xx)."""

    default_status = 400


class AuthenticationFailed(HairlabError):
    """Backend refused the configured credential."""

    default_status = 401


class RateLimited(HairlabError):
    """Backend is throttling requests."""

    default_status = 429


class GenerationFailed(HairlabError):
    """Backend produced no usable output or could not be reached."""

    default_status = 502


class NotFound(HairlabError):
    """No route matches the request."""

    default_status = 404


class InternalError(HairlabError):
    """Unexpected fault. Always carries the generic message."""

    default_status = 500

    def __init__(self) -> None:
        super().__init__(GENERIC_INTERNAL_MESSAGE)


class ConfigurationError(Exception):
    """Startup configuration is unusable. Fatal for the process."""


def error_from_status(provider_label: str, status: int | None, message: str) -> HairlabError:
    """Map a backend HTTP failure onto the taxonomy.

    The same mapping applies to every backend so callers never need to know
    which provider raised.

    Args:
        provider_label: Display name of the backend (e.g. ``Gemini``).
        status: HTTP status reported by the backend, if any.
        message: Backend's own error message.

    Returns:
        The typed error to raise.
    """
    if status in (401, 403):
        return AuthenticationFailed(
            f"Authentication with {provider_label} failed. Check the configured API key.",
            status,
        )
    if status == 429:
        return RateLimited(
            f"{provider_label} is rate limiting requests right now. Try again shortly.",
            429,
        )
    if status is not None and 400 <= status < 500:
        return RequestRejected(message or f"{provider_label} rejected the request.", status)
    if status is not None and status >= 500:
        return GenerationFailed(
            f"Error generating content with {provider_label}. Try again later.", status
        )
    return GenerationFailed(f"Error generating content with {provider_label}. Try again later.")
