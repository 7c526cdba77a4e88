"""
Shared plumbing for calling services: TTL cache, error wrapping, default clients.

Services never talk HTTP directly. They get a FallbackClient injected (or the
lazily built default market / chain client) and only see canonical bodies.
"""
from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from ..core.errors import ChainChirpError, ServiceError
from ..providers.chain import FallbackClient
from ..providers.defaults import create_chain_client, create_market_client

logger = logging.getLogger(__name__)

_client_lock = threading.Lock()
_market_client: Optional[FallbackClient] = None
_chain_client: Optional[FallbackClient] = None


def get_market_client() -> FallbackClient:
    """Process-wide market data client, built from config on first use."""
    global _market_client
    with _client_lock:
        if _market_client is None:
            _market_client = create_market_client()
        return _market_client


def get_chain_client() -> FallbackClient:
    """Process-wide blockchain data client, built from config on first use."""
    global _chain_client
    with _client_lock:
        if _chain_client is None:
            _chain_client = create_chain_client()
        return _chain_client


def reset_default_clients() -> None:
    """Drop the default clients (tests, config reload)."""
    global _market_client, _chain_client
    with _client_lock:
        _market_client = None
        _chain_client = None


class TTLCache:
    """
    Cache of recent results per key.

    Entries older than their TTL are treated as missing; a service then
    refetches through the fallback chain.
    """

    def __init__(self, ttl_s: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl_s = ttl_s
        self._clock = clock
        self._store: Dict[str, Tuple[Any, float, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, stored_at, ttl_s = entry
            if (self._clock() - stored_at) >= ttl_s:
                del self._store[key]
                return None
            return value

    def put(self, key: str, value: Any, ttl_s: Optional[float] = None) -> None:
        with self._lock:
            self._store[key] = (value, self._clock(), self._ttl_s if ttl_s is None else ttl_s)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._store)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


@contextmanager
def service_errors(operation: str) -> Iterator[None]:
    """Re-raise fetch or shape failures as ServiceError('Failed to <operation>: ...')."""
    try:
        yield
    except ServiceError:
        raise
    except (ChainChirpError, KeyError, IndexError, TypeError, ValueError) as exc:
        raise ServiceError(f"Failed to {operation}: {exc}") from exc


def currency_value(table: Any, currency: str) -> Tuple[str, Optional[float]]:
    """
    Read a per-currency field from a canonical body.

    Returns (key, value) for the requested currency, else USD; (currency, None)
    when the table is absent or holds neither.
    """
    if not isinstance(table, Mapping):
        return currency, None
    for key in (currency.lower(), "usd"):
        value = table.get(key)
        if value is not None:
            return key, float(value)
    return currency, None


def pct_distance(current: float, reference: Optional[float]) -> Optional[float]:
    if not reference:
        return None
    return (current - reference) / reference * 100


class BaseService:
    """Client + TTL cache holder shared by every calling service."""

    name = "service"
    ttl_s = 30.0

    def __init__(
        self,
        client: Optional[FallbackClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self.cache = TTLCache(self.ttl_s, clock=clock)

    def _default_client(self) -> FallbackClient:
        return get_market_client()

    @property
    def client(self) -> FallbackClient:
        if self._client is None:
            self._client = self._default_client()
        return self._client

    def _cached(self, key: str, loader: Callable[[], Any], ttl_s: Optional[float] = None) -> Any:
        hit = self.cache.get(key)
        if hit is not None:
            logger.debug("[%s] cache hit: %s", self.name, key)
            return hit
        value = loader()
        self.cache.put(key, value, ttl_s=ttl_s)
        return value

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> Dict[str, Any]:
        return {"size": len(self.cache), "keys": self.cache.keys()}


class ChainService(BaseService):
    """Base for services backed by the blockchain data client."""

    def _default_client(self) -> FallbackClient:
        return get_chain_client()
