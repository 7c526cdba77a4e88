"""
Binance adapter.

Uses the public Binance API (no authentication required):
  GET https://api.binance.com/api/v3/ticker/price?symbol=BTCUSDT  -> {"price": "43250.10"}
  GET https://api.binance.com/api/v3/ticker/24hr?symbol=BTCUSDT   -> {"lastPrice", "quoteVolume", ...}
  GET https://api.binance.com/api/v3/klines?symbol=BTCUSDT&interval=1d&limit=7
"""
from __future__ import annotations

from typing import Any, Tuple

from ..base import (
    MappedAdapter,
    QueryParams,
    coin_data,
    market_chart,
    requested_currency,
    simple_price,
    to_float,
    wants_flag,
)

# Binance has no USD book for BTC; USDT stands in for USD.
_CURRENCY_TO_QUOTE = {
    "usd": "USDT",
    "eur": "EUR",
    "gbp": "GBP",
    "jpy": "JPY",
    "try": "TRY",
    "brl": "BRL",
}
MAX_KLINES = 1000


def symbol_for(params: QueryParams) -> Tuple[str, str]:
    """Return (binance_symbol, canonical_currency_key); unknown currencies fall back to USD."""
    currency = requested_currency(params)
    if currency not in _CURRENCY_TO_QUOTE:
        currency = "usd"
    return f"BTC{_CURRENCY_TO_QUOTE[currency]}", currency


def _days(params: QueryParams) -> int:
    raw = params.get("days", 7)
    if isinstance(raw, str) and raw.strip().lower() == "max":
        return MAX_KLINES
    try:
        return max(int(float(raw)), 1)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 7


class BinanceAdapter(MappedAdapter):
    provider_key = "binance"

    def _request_map(self):
        return {
            "/simple/price": self._price_request,
            "/coins/bitcoin": lambda params: ("/ticker/24hr", {"symbol": symbol_for(params)[0]}),
            "/coins/bitcoin/market_chart": self._klines_request,
        }

    def _response_map(self):
        return {
            "/simple/price": self._simple_price,
            "/coins/bitcoin": self._coin_data,
            "/coins/bitcoin/market_chart": self._market_chart,
        }

    def _price_request(self, params: QueryParams):
        symbol, _ = symbol_for(params)
        if wants_flag(params, "include_24hr_vol") or wants_flag(params, "include_24hr_change"):
            return "/ticker/24hr", {"symbol": symbol}
        return "/ticker/price", {"symbol": symbol}

    def _klines_request(self, params: QueryParams):
        symbol, _ = symbol_for(params)
        days = _days(params)
        if days <= 1:
            return "/klines", {"symbol": symbol, "interval": "1h", "limit": 24}
        return "/klines", {"symbol": symbol, "interval": "1d", "limit": min(days, MAX_KLINES)}

    def _simple_price(self, raw: Any, params: QueryParams):
        _, key = symbol_for(params)
        if "lastPrice" in raw:
            return simple_price(
                key,
                to_float(raw["lastPrice"]),
                volume_24h=to_float(raw["quoteVolume"]),
                change_24h=to_float(raw["priceChangePercent"]),
            )
        return simple_price(key, to_float(raw["price"]))

    def _coin_data(self, raw: Any, params: QueryParams):
        _, key = symbol_for(params)
        return coin_data(
            key,
            to_float(raw["lastPrice"]),
            volume_24h=to_float(raw["quoteVolume"]),
            change_pct_24h=to_float(raw["priceChangePercent"]),
            high_24h=to_float(raw["highPrice"]),
            low_24h=to_float(raw["lowPrice"]),
        )

    def _market_chart(self, raw: Any, params: QueryParams):
        # kline: [open_time, open, high, low, close, volume, close_time, quote_volume, ...]
        rows = [(int(k[0]), to_float(k[4]), to_float(k[7])) for k in raw]
        return market_chart(rows)
