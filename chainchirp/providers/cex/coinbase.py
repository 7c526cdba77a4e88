"""
Coinbase adapter.

Uses the public Coinbase APIs (no authentication required):
  GET https://api.coinbase.com/v2/exchange-rates?currency=BTC
      -> {"data": {"currency": "BTC", "rates": {"USD": "43250.10", ...}}}
  GET https://api.exchange.coinbase.com/products/BTC-USD/stats
      -> {"open", "high", "low", "last", "volume"}  (volume in BTC)
"""
from __future__ import annotations

from typing import Any

from ..base import (
    MappedAdapter,
    QueryParams,
    coin_data,
    pick_currency,
    requested_currency,
    simple_price,
    to_float,
    wants_flag,
)

EXCHANGE_STATS_URL = "https://api.exchange.coinbase.com/products/BTC-{quote}/stats"
_STATS_QUOTES = {"usd", "eur", "gbp"}


def _stats_quote(params: QueryParams) -> str:
    currency = requested_currency(params)
    return currency if currency in _STATS_QUOTES else "usd"


class CoinbaseAdapter(MappedAdapter):
    provider_key = "coinbase"

    def _request_map(self):
        return {
            "/simple/price": self._price_request,
            "/coins/bitcoin": lambda params: ("/exchange-rates", {"currency": "BTC"}),
        }

    def _response_map(self):
        return {
            "/simple/price": self._simple_price,
            "/coins/bitcoin": self._coin_data,
        }

    def _price_request(self, params: QueryParams):
        if wants_flag(params, "include_24hr_vol"):
            return EXCHANGE_STATS_URL.format(quote=_stats_quote(params).upper()), {}
        return "/exchange-rates", {"currency": "BTC"}

    def _simple_price(self, raw: Any, params: QueryParams):
        if "last" in raw:
            last = to_float(raw["last"])
            open_ = to_float(raw["open"])
            change = ((last - open_) / open_) * 100 if open_ else 0.0
            return simple_price(
                _stats_quote(params),
                last,
                volume_24h=to_float(raw["volume"]) * last,
                change_24h=change,
            )
        key, rate = pick_currency(raw["data"]["rates"], requested_currency(params))
        return simple_price(key, to_float(rate))

    def _coin_data(self, raw: Any, params: QueryParams):
        key, rate = pick_currency(raw["data"]["rates"], requested_currency(params))
        return coin_data(key, to_float(rate))
