"""Error taxonomy shared by the provider runtime and the HTTP layer."""
from __future__ import annotations

from typing import Any
from urllib.parse import urlencode


class ProviderError(RuntimeError):
    """Base class for failures that surface to API clients."""

    status_code: int = 500
    default_suggestions: tuple[str, ...] = ("Try again later",)

    def __init__(self, message: str, *, suggestions: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.suggestions = list(suggestions or self.default_suggestions)

    def to_payload(self) -> dict[str, Any]:
        """Render the error as the JSON envelope used by every endpoint."""

        return {"error": self.message, "suggestions": self.suggestions}


class ModuleUnavailableError(ProviderError):
    """Raised when a provider lacks the module role an operation needs."""

    status_code = 404
    default_suggestions = (
        "Check the provider identifier",
        "Try a different provider if available",
    )


class ExecutionError(ProviderError):
    """Raised when sandboxed provider code fails."""

    status_code = 500
    default_suggestions = (
        "The provider module may need to be updated",
        "Retry with refresh=true to fetch the latest module",
    )

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException | None = None,
        suggestions: list[str] | None = None,
    ) -> None:
        super().__init__(message, suggestions=suggestions)
        self.cause = cause


class SandboxViolationError(ExecutionError):
    """Raised when module source uses a construct the sandbox forbids."""


class NetworkError(ProviderError):
    """Raised when an outbound request fails."""

    status_code = 502
    default_suggestions = ("Check that the upstream site is reachable",)


class AbortedError(ProviderError):
    """Raised when a cancellation signal fires during an operation."""

    status_code = 408
    default_suggestions = ("Try again or check if the provider is working",)


class ResolverTimeoutError(AbortedError):
    """Raised when a provider resolver exceeds its time budget."""


class NoCandidatesError(ProviderError):
    """Raised when every resolution strategy came back empty."""

    status_code = 422
    default_suggestions = (
        "Try refreshing the page",
        "Check if the content is still available",
        "Try a different provider if available",
        "Contact support if the issue persists",
    )
    reasons: tuple[str, ...] = (
        "The website is blocking automated requests (Cloudflare protection)",
        "The content has been removed or is no longer available",
        "The URL format is not supported by this provider",
        "The provider module needs to be updated",
    )

    def __init__(self, message: str, *, link: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.link = link
        self.provider = provider

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload.update(
            {
                "details": "Unable to extract a playable stream. This could be due to:",
                "reasons": list(self.reasons),
                "originalUrl": self.link,
            }
        )
        if self.provider:
            payload["provider"] = self.provider
        return payload


class UpstreamUnavailableError(ProviderError):
    """Raised when the proxy target cannot be reached at all."""

    status_code = 502
    default_suggestions = (
        "Verify the video source is accessible",
        "Try a different stream server",
    )


class UpstreamRejectedError(ProviderError):
    """Raised when an upstream answers with a non-2xx status."""

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message, suggestions=["Try a different stream server"])
        self.status_code = status_code


class FallbackExhaustedError(ProviderError):
    """Raised by the fallback endpoint when no direct or embedded stream was found."""

    status_code = 422
    default_suggestions = (
        "The content may be protected by Cloudflare",
        "Try accessing the URL manually in a browser",
        "The content may have been removed",
        "Try a different provider or URL",
    )

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["details"] = "Unable to extract content using fallback methods"
        return payload


class InvalidRequestError(ProviderError):
    """Raised when request parameters are missing or malformed."""

    status_code = 400
    default_suggestions = (
        "Ensure the URL starts with http:// or https://",
        "Check that the URL is properly encoded",
    )


class TranscodeFailedError(ProviderError):
    """Raised when no relay method could stream the requested URL."""

    status_code = 502
    default_suggestions = (
        "Use the proxy endpoint with a direct media URL",
        "Resolve the page through the stream-fallback endpoint",
    )

    def __init__(self, message: str, *, url: str, referer: str | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.referer = referer

    def to_payload(self) -> dict[str, Any]:
        params = {"url": self.url}
        if self.referer:
            params["referer"] = self.referer
        payload = super().to_payload()
        payload.update(
            {
                "message": "Unable to stream content using any available method",
                "fallback": f"/stream-fallback?{urlencode(params)}",
                "proxy": f"/proxy?{urlencode(params)}",
                "redirect": True,
            }
        )
        return payload
