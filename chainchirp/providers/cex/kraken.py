"""
Kraken adapter.

Uses the public Kraken API (no authentication required):
  GET https://api.kraken.com/0/public/Ticker?pair=XBTUSD
      -> {"error": [], "result": {"XXBTZUSD": {"c": ["43250.1", "0.1"], "v": [..], "o": ..}}}
  GET https://api.kraken.com/0/public/OHLC?pair=XBTUSD&interval=1440
"""
from __future__ import annotations

from typing import Any, Dict, Tuple

from ...core.errors import NormalizationError
from ..base import (
    MappedAdapter,
    QueryParams,
    coin_data,
    market_chart,
    requested_currency,
    simple_price,
    to_float,
)

_CURRENCY_TO_QUOTE = {
    "usd": "USD",
    "eur": "EUR",
    "gbp": "GBP",
    "jpy": "JPY",
    "cad": "CAD",
    "chf": "CHF",
}


def pair_for(params: QueryParams) -> Tuple[str, str]:
    """Return (kraken_pair, canonical_currency_key); Kraken calls BTC 'XBT'."""
    currency = requested_currency(params)
    if currency not in _CURRENCY_TO_QUOTE:
        currency = "usd"
    return f"XBT{_CURRENCY_TO_QUOTE[currency]}", currency


def _result_entry(raw: Any, params: QueryParams) -> Any:
    if raw.get("error"):
        raise NormalizationError(f"Kraken error: {raw['error']}", provider="kraken")
    result: Dict[str, Any] = raw.get("result") or {}
    quote = _CURRENCY_TO_QUOTE[pair_for(params)[1]]
    for key in (f"XXBTZ{quote}", f"XBT{quote}"):
        if key in result:
            return result[key]
    # OHLC responses carry a "last" cursor next to the pair
    pairs = [k for k in result if k != "last"]
    if not pairs:
        raise NormalizationError("Kraken response missing result", provider="kraken")
    return result[pairs[0]]


def _days(params: QueryParams) -> int:
    try:
        return max(int(float(params.get("days", 7))), 1)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 7


class KrakenAdapter(MappedAdapter):
    provider_key = "kraken"

    def _request_map(self):
        ticker = lambda params: ("/Ticker", {"pair": pair_for(params)[0]})  # noqa: E731
        return {
            "/simple/price": ticker,
            "/coins/bitcoin": ticker,
            "/coins/bitcoin/market_chart": self._ohlc_request,
        }

    def _response_map(self):
        return {
            "/simple/price": self._simple_price,
            "/coins/bitcoin": self._coin_data,
            "/coins/bitcoin/market_chart": self._market_chart,
        }

    def _ohlc_request(self, params: QueryParams):
        interval = 60 if _days(params) <= 1 else 1440
        return "/OHLC", {"pair": pair_for(params)[0], "interval": interval}

    def _ticker(self, raw: Any, params: QueryParams):
        entry = _result_entry(raw, params)
        price = to_float(entry["c"][0])
        open_ = to_float(entry["o"]) if "o" in entry else None
        volume = to_float(entry["v"][1]) * price if "v" in entry else None
        change = ((price - open_) / open_) * 100 if open_ else None
        return entry, price, volume, change

    def _simple_price(self, raw: Any, params: QueryParams):
        _, key = pair_for(params)
        _, price, volume, change = self._ticker(raw, params)
        return simple_price(key, price, volume_24h=volume, change_24h=change)

    def _coin_data(self, raw: Any, params: QueryParams):
        _, key = pair_for(params)
        entry, price, volume, change = self._ticker(raw, params)
        return coin_data(
            key,
            price,
            volume_24h=volume,
            change_pct_24h=change,
            high_24h=to_float(entry["h"][1]) if "h" in entry else None,
            low_24h=to_float(entry["l"][1]) if "l" in entry else None,
        )

    def _market_chart(self, raw: Any, params: QueryParams):
        # candle: [time, open, high, low, close, vwap, volume, count]
        candles = _result_entry(raw, params)
        keep = 24 if _days(params) <= 1 else _days(params)
        rows = [
            (int(c[0]) * 1000, to_float(c[4]), to_float(c[6]) * to_float(c[5]))
            for c in candles[-keep:]
        ]
        return market_chart(rows)
