"""
Provider architecture for Bitcoin market and blockchain data.

Six market data providers and three blockchain data providers are described by
immutable specs, paired with adapters that map the canonical CoinGecko /
mempool.space schemas, and walked in priority order by a FallbackClient with
per-provider rate limiting, transient retry/backoff and advisory health flags.
"""

from __future__ import annotations

from .base import (
    CanonicalAdapter,
    FallbackRequest,
    MappedAdapter,
    ProviderAdapter,
    ProviderHealth,
    ProviderSpec,
)
from .chain import FallbackClient
from .defaults import create_chain_client, create_market_client
from .health import HealthPolicy, HealthTracker
from .ratelimit import RateLimiterPool, SlidingWindowRateLimiter
from .registry import ProviderRegistry
from .resilience import RetryConfig, TransientRetrier, resilient_call

__all__ = [
    "ProviderSpec",
    "FallbackRequest",
    "ProviderHealth",
    "ProviderAdapter",
    "CanonicalAdapter",
    "MappedAdapter",
    "ProviderRegistry",
    "SlidingWindowRateLimiter",
    "RateLimiterPool",
    "RetryConfig",
    "TransientRetrier",
    "resilient_call",
    "HealthPolicy",
    "HealthTracker",
    "FallbackClient",
    "create_market_client",
    "create_chain_client",
]
