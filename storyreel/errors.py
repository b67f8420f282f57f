"""Exception taxonomy shared by the pipeline, provider client, and HTTP API.

WHY: Callers need typed exceptions to tell a user mistake from a missing
dependency, a flaky network, or a provider policy decision. Each class
carries the HTTP-equivalent status so the API layer can render a
structured error without guessing.

HOW: StoryreelError holds message, status_code, and optional details.
Subclasses fix the status code and add flags the UI keys remediation on.

RULES:
- UserInputError → 400, message is surfaced verbatim
- DependencyUnavailableError → 500, never retried
- TransientProviderError → 502, eligible for retry
- RateLimitError → 429, TermsAcceptanceRequiredError → 403, never retried
- Malformed caption data is NOT an exception; it is filtered and logged
"""

from __future__ import annotations

from typing import Any


class StoryreelError(Exception):
    """Base class for every error surfaced as a structured API response."""

    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        """Render the ``{success: false, error, details?}`` body."""
        payload: dict[str, Any] = {"success": False, "error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class UserInputError(StoryreelError):
    """A required field is missing or invalid."""

    status_code = 400


class NotFoundError(StoryreelError):
    """A requested workspace, video, or file does not exist."""

    status_code = 404


class DependencyUnavailableError(StoryreelError):
    """The encoder binary or a required asset is unavailable."""

    status_code = 500


class ConfigurationError(DependencyUnavailableError):
    """Process configuration (API key, paths) is incomplete."""


class EncoderError(StoryreelError):
    """The encoder exited non-zero or could not be spawned."""

    status_code = 500

    def __init__(self, message: str, exit_code: int | None = None) -> None:
        self.exit_code = exit_code
        super().__init__(message)


class ProviderAPIError(StoryreelError):
    """The AI provider returned a non-success response."""

    status_code = 500

    def __init__(self, status_code: int, message: str) -> None:
        self.provider_status = status_code
        super().__init__(
            "Provider API error {}: {}".format(status_code, message),
            details=message,
        )


class TransientProviderError(StoryreelError):
    """Network-level failure talking to a provider (connection reset, etc.)."""

    status_code = 502


class ProviderPolicyError(StoryreelError):
    """Provider refused for policy reasons; surfaced, never retried."""


class RateLimitError(ProviderPolicyError):
    status_code = 429

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["rateLimited"] = True
        return payload


class TermsAcceptanceRequiredError(ProviderPolicyError):
    status_code = 403

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["requiresTermsAcceptance"] = True
        return payload
