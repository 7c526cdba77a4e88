"""
Shared exception types for chainchirp.
Provider-level errors are raised inside the fallback chain and swallowed there;
only AllProvidersFailedError and ServiceError reach calling code.
"""

from __future__ import annotations

from typing import List, Optional


class ChainChirpError(Exception):
    """Base exception for chainchirp; catch this for any package-raised error."""

    pass


class ProviderError(ChainChirpError):
    """A single provider failed to satisfy a request."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status = status
        self.code = code


class ProviderHTTPError(ProviderError):
    """Non-2xx response or transport-level failure talking to a provider."""

    pass


class NormalizationError(ProviderError):
    """Provider answered, but the body cannot be mapped to the canonical shape."""

    pass


class AllProvidersFailedError(ChainChirpError):
    """Every candidate provider in the fallback chain failed."""

    def __init__(
        self,
        last_error: Optional[BaseException] = None,
        attempted: Optional[List[str]] = None,
    ) -> None:
        detail = str(last_error) if last_error is not None and str(last_error) else "Unknown error"
        super().__init__(f"All API providers failed. Last error: {detail}")
        self.last_error = last_error
        self.attempted = list(attempted or [])


class ServiceError(ChainChirpError):
    """A calling service could not produce its result."""

    pass


__all__ = [
    "ChainChirpError",
    "ProviderError",
    "ProviderHTTPError",
    "NormalizationError",
    "AllProvidersFailedError",
    "ServiceError",
]
