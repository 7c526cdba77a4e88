"""
CoinMarketCap adapter.

  GET https://pro-api.coinmarketcap.com/v1/cryptocurrency/quotes/latest?symbol=BTC&convert=USD
  (requires X-CMC_PRO_API_KEY)

Body: data.BTC.quote.<CUR>.{price, market_cap, volume_24h, percent_change_24h}
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from ..base import (
    MappedAdapter,
    QueryParams,
    coin_data,
    pick_currency,
    requested_currency,
    simple_price,
    to_float,
)

QUOTES_LATEST = "/cryptocurrency/quotes/latest"


def _opt(quote: Dict[str, Any], field: str) -> Optional[float]:
    value = quote.get(field)
    return None if value is None else to_float(value)


class CoinMarketCapAdapter(MappedAdapter):
    provider_key = "coinmarketcap"

    def _request_map(self):
        return {
            "/simple/price": self._quotes_request,
            "/coins/bitcoin": self._quotes_request,
        }

    def _response_map(self):
        return {
            "/simple/price": self._simple_price,
            "/coins/bitcoin": self._coin_data,
        }

    def _quotes_request(self, params: QueryParams) -> Tuple[str, QueryParams]:
        currency = requested_currency(params)
        return QUOTES_LATEST, {"symbol": "BTC", "convert": currency.upper()}

    def _quote(self, raw: Any, params: QueryParams) -> Tuple[str, Dict[str, Any]]:
        btc = raw["data"]["BTC"]
        # v2 responses wrap each symbol in a list
        if isinstance(btc, list):
            btc = btc[0]
        return pick_currency(btc["quote"], requested_currency(params))

    def _simple_price(self, raw: Any, params: QueryParams):
        key, quote = self._quote(raw, params)
        return simple_price(
            key,
            to_float(quote["price"]),
            market_cap=_opt(quote, "market_cap"),
            volume_24h=_opt(quote, "volume_24h"),
            change_24h=_opt(quote, "percent_change_24h"),
        )

    def _coin_data(self, raw: Any, params: QueryParams):
        key, quote = self._quote(raw, params)
        return coin_data(
            key,
            to_float(quote["price"]),
            market_cap=_opt(quote, "market_cap"),
            volume_24h=_opt(quote, "volume_24h"),
            change_pct_24h=_opt(quote, "percent_change_24h"),
        )
