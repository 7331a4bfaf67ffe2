"""Error taxonomy for provider lookups.

Every failure a provider can produce is a ProviderError, so the race
coordinator can record it as a losing branch instead of letting it escape.
"""

from typing import Optional


class ProviderError(Exception):
    """Base class for a single provider's failure."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"{provider}: {message}")


class TransportError(ProviderError):
    """Connection failure, transport timeout, or a non-2xx response."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(provider, message)
        self.status_code = status_code


class DecodeError(ProviderError):
    """Response body is not the JSON object the provider's schema promises."""


class NotFoundError(ProviderError):
    """Provider answered, but has no address for this CEP."""


class LookupCancelled(ProviderError):
    """The race ended through another branch while this one was in flight."""
