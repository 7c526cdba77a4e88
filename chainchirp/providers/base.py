"""
Provider interfaces and data contracts.

Every upstream source is described by a frozen ProviderSpec and paired with a
ProviderAdapter that maps canonical (CoinGecko / mempool.space shaped)
requests to the provider's own endpoints and maps responses back.

Data is passed via dataclasses for immutability and type safety.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable

from ..core.errors import NormalizationError

# Primitive or array query values accepted by every provider.
ParamValue = Union[str, int, float, bool, Sequence[Union[str, int, float, bool]], None]
QueryParams = Dict[str, ParamValue]


@dataclass(frozen=True)
class ProviderSpec:
    """Immutable descriptor of one upstream provider."""

    key: str
    name: str
    base_url: str
    rate_limit_per_minute: int
    priority: int
    requires_auth: bool = False
    # Header name -> env var holding the secret.
    auth_headers: Mapping[str, str] = field(default_factory=dict)
    health_endpoint: Optional[str] = None

    def __post_init__(self) -> None:
        if self.rate_limit_per_minute <= 0:
            raise ValueError(
                f"rate_limit_per_minute must be positive for {self.key}, "
                f"got {self.rate_limit_per_minute}"
            )


@dataclass(frozen=True)
class FallbackRequest:
    """A canonical request routed through the fallback chain."""

    endpoint: str
    params: QueryParams = field(default_factory=dict)
    # None means "every provider the client was built with".
    candidate_providers: Optional[Tuple[str, ...]] = None
    skip_providers: Tuple[str, ...] = ()
    # None defers to the client's RetryConfig.max_retries.
    max_retries_per_provider: Optional[int] = None


@dataclass
class ProviderHealth:
    """Mutable advisory health state for a single provider."""

    provider_name: str
    healthy: bool = True
    last_ok_at: Optional[str] = None
    fail_count: int = 0
    last_error: Optional[str] = None

    def record_success(self) -> None:
        self.healthy = True
        self.fail_count = 0
        self.last_ok_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        self.last_error = None

    def record_failure(self, error: str) -> None:
        self.healthy = False
        self.fail_count += 1
        self.last_error = error[:500]


@runtime_checkable
class ProviderAdapter(Protocol):
    """Request/response mapping between canonical endpoints and one provider."""

    def transform_request(self, endpoint: str, params: QueryParams) -> Tuple[str, QueryParams]:
        """Return (provider_endpoint, provider_params) for a canonical request."""
        ...

    def transform_response(self, raw: Any, endpoint: str, params: QueryParams) -> Any:
        """Return the canonical body for a raw provider body. Must be pure."""
        ...


class CanonicalAdapter:
    """Adapter for providers whose API already is the canonical schema."""

    def transform_request(self, endpoint: str, params: QueryParams) -> Tuple[str, QueryParams]:
        return endpoint, dict(params)

    def transform_response(self, raw: Any, endpoint: str, params: QueryParams) -> Any:
        return raw


class MappedAdapter:
    """
    Base for adapters with a per-endpoint mapping table.

    Subclasses return ``_request_map`` / ``_response_map`` tables of callables keyed by the
    canonical endpoint. Unmapped endpoints pass through unchanged on the way
    out, and their bodies are rejected on the way back.
    """

    provider_key = "unknown"

    def _request_map(self) -> Dict[str, Any]:
        return {}

    def _response_map(self) -> Dict[str, Any]:
        return {}

    def transform_request(self, endpoint: str, params: QueryParams) -> Tuple[str, QueryParams]:
        handler = self._request_map().get(endpoint)
        if handler is None:
            return endpoint, dict(params)
        return handler(dict(params))

    def transform_response(self, raw: Any, endpoint: str, params: QueryParams) -> Any:
        handler = self._response_map().get(endpoint)
        if handler is None:
            raise NormalizationError(
                f"{self.provider_key} has no mapping for {endpoint}",
                provider=self.provider_key,
            )
        try:
            return handler(raw, dict(params))
        except NormalizationError:
            raise
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as exc:
            raise NormalizationError(
                f"{self.provider_key} returned an unexpected body for {endpoint}: "
                f"{type(exc).__name__}: {exc}",
                provider=self.provider_key,
            ) from exc


# ---------------------------------------------------------------------------
# Normalization helpers shared by adapters
# ---------------------------------------------------------------------------


def requested_currency(params: Mapping[str, ParamValue], default: str = "usd") -> str:
    """First currency of vs_currencies / vs_currency, lower-cased."""
    raw = params.get("vs_currencies") or params.get("vs_currency") or default
    if isinstance(raw, (list, tuple)):
        raw = raw[0] if raw else default
    first = str(raw).split(",")[0].strip().lower()
    return first or default


def wants_flag(params: Mapping[str, ParamValue], name: str) -> bool:
    value = params.get(name)
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


def pick_currency(table: Mapping[str, Any], currency: str) -> Tuple[str, Any]:
    """
    Look up ``currency`` in a provider payload keyed by currency code.

    Falls back to USD when the exact key is absent. Keys are matched
    case-insensitively. Returns (canonical_key, value).
    """
    if not isinstance(table, Mapping):
        raise NormalizationError(f"expected a currency table, got {type(table).__name__}")
    lowered = {str(k).lower(): v for k, v in table.items()}
    for key in (currency.lower(), "usd"):
        if key in lowered and lowered[key] is not None:
            return key, lowered[key]
    raise NormalizationError(f"currency {currency!r} (or usd) missing from payload")


def to_float(value: Any) -> float:
    """Parse a numeric field; raises NormalizationError on junk."""
    if isinstance(value, bool) or value is None:
        raise NormalizationError(f"expected a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise NormalizationError(f"expected a number, got {value!r}") from exc


def simple_price(
    currency: str,
    price: float,
    market_cap: Optional[float] = None,
    volume_24h: Optional[float] = None,
    change_24h: Optional[float] = None,
) -> Dict[str, Dict[str, float]]:
    """Canonical /simple/price body; optional fields only when supplied."""
    body: Dict[str, float] = {currency: price}
    if market_cap is not None:
        body[f"{currency}_market_cap"] = market_cap
    if volume_24h is not None:
        body[f"{currency}_24h_vol"] = volume_24h
    if change_24h is not None:
        body[f"{currency}_24h_change"] = change_24h
    return {"bitcoin": body}


def coin_data(
    currency: str,
    price: float,
    market_cap: Optional[float] = None,
    volume_24h: Optional[float] = None,
    change_pct_24h: Optional[float] = None,
    high_24h: Optional[float] = None,
    low_24h: Optional[float] = None,
) -> Dict[str, Any]:
    """Canonical /coins/bitcoin body (subset of CoinGecko's market_data)."""
    market: Dict[str, Any] = {"current_price": {currency: price}}
    if market_cap is not None:
        market["market_cap"] = {currency: market_cap}
    if volume_24h is not None:
        market["total_volume"] = {currency: volume_24h}
    if high_24h is not None:
        market["high_24h"] = {currency: high_24h}
    if low_24h is not None:
        market["low_24h"] = {currency: low_24h}
    if change_pct_24h is not None:
        market["price_change_percentage_24h"] = change_pct_24h
    return {"id": "bitcoin", "symbol": "btc", "market_data": market}


def market_chart(rows: List[Tuple[int, float, float]]) -> Dict[str, List[List[float]]]:
    """Canonical market_chart body from (timestamp_ms, price, volume) rows."""
    return {
        "prices": [[ts, price] for ts, price, _ in rows],
        "total_volumes": [[ts, volume] for ts, _, volume in rows],
    }
