"""
Stable facade: shared exception types. Do not add exports without updating __all__.
"""

from __future__ import annotations

from .errors import (
    AllProvidersFailedError,
    ChainChirpError,
    NormalizationError,
    ProviderError,
    ProviderHTTPError,
    ServiceError,
)

# Do not add exports without updating __all__.
__all__ = [
    "AllProvidersFailedError",
    "ChainChirpError",
    "NormalizationError",
    "ProviderError",
    "ProviderHTTPError",
    "ServiceError",
]
