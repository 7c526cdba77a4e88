"""
Bitcoin price, market data and price change.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, Optional

from ..timeutils import now_utc_iso
from .base import BaseService, currency_value, service_errors

logger = logging.getLogger(__name__)

PRICE_CACHE_TTL_S = 30.0

SIMPLE_PRICE = "/simple/price"
COIN_DATA = "/coins/bitcoin"

# CoinGecko query flags for /coins/bitcoin; other providers ignore them.
COIN_DATA_PARAMS: Dict[str, Any] = {
    "localization": False,
    "tickers": False,
    "market_data": True,
    "community_data": False,
    "developer_data": False,
    "sparkline": False,
}


def coin_data_params(currency: str, sparkline: bool = False) -> Dict[str, Any]:
    params = dict(COIN_DATA_PARAMS)
    params["vs_currency"] = currency
    params["sparkline"] = sparkline
    return params


def _pct_field(market: Dict[str, Any], field: str, currency: str) -> Optional[float]:
    """Percent changes come either flat or as a per-currency ``*_in_currency`` table."""
    _, value = currency_value(market.get(f"{field}_in_currency"), currency)
    if value is not None:
        return value
    flat = market.get(field)
    return float(flat) if flat is not None else None


class PriceService(BaseService):
    name = "PriceService"
    ttl_s = PRICE_CACHE_TTL_S

    def get_current_price(self, currency: str = "usd") -> Dict[str, Any]:
        """Current BTC price; ``currency`` in the result is the key the provider actually served."""
        currency = currency.lower()

        def load() -> Dict[str, Any]:
            with service_errors("fetch current price"):
                body = self.client.fetch_with_fallback(
                    SIMPLE_PRICE, {"ids": "bitcoin", "vs_currencies": currency}
                )
                key, price = currency_value(body["bitcoin"], currency)
                if price is None:
                    raise ValueError(f"Invalid price data for currency: {currency}")
                return {"price": price, "currency": key}

        return self._cached(f"price-{currency}", load)

    def get_market_data(self, currency: str = "usd") -> Dict[str, Any]:
        currency = currency.lower()

        def load() -> Dict[str, Any]:
            with service_errors("fetch market data"):
                body = self.client.fetch_with_fallback(COIN_DATA, coin_data_params(currency))
                market = body["market_data"]
                key, price = currency_value(market["current_price"], currency)
                if price is None:
                    raise ValueError(f"Invalid price data for currency: {currency}")
                return {
                    "price": price,
                    "currency": key,
                    "change_24h": market.get("price_change_24h"),
                    "change_percent_24h": market.get("price_change_percentage_24h"),
                    "change_percent_7d": market.get("price_change_percentage_7d"),
                    "change_percent_30d": market.get("price_change_percentage_30d"),
                    "market_cap": currency_value(market.get("market_cap"), key)[1],
                    "volume_24h": currency_value(market.get("total_volume"), key)[1],
                    "high_24h": currency_value(market.get("high_24h"), key)[1],
                    "low_24h": currency_value(market.get("low_24h"), key)[1],
                    "ath": currency_value(market.get("ath"), key)[1],
                    "atl": currency_value(market.get("atl"), key)[1],
                    "last_updated": body.get("last_updated") or now_utc_iso(),
                }

        return self._cached(f"market-{currency}", load)

    def get_multi_currency_prices(self, currencies: Iterable[str]) -> Dict[str, float]:
        """
        Prices for several currencies in one request.

        Only currencies present in the answer are returned; providers that
        quote a single currency yield a partial map.
        """
        wanted = [c.lower() for c in currencies]
        with service_errors("fetch multi-currency prices"):
            body = self.client.fetch_with_fallback(
                SIMPLE_PRICE, {"ids": "bitcoin", "vs_currencies": ",".join(wanted)}
            )
            quotes = body["bitcoin"]
            return {c: float(quotes[c]) for c in wanted if quotes.get(c) is not None}

    def get_price_change(self, currency: str = "usd") -> Dict[str, Any]:
        """1h / 24h / 7d / 30d percent change from coin data; missing periods are None."""
        currency = currency.lower()

        def load() -> Dict[str, Any]:
            with service_errors("fetch price changes"):
                body = self.client.fetch_with_fallback(COIN_DATA, coin_data_params(currency))
                market = body["market_data"]
                key, current = currency_value(market["current_price"], currency)
                if current is None:
                    raise ValueError(f"Invalid price data for currency: {currency}")
                pct_24h = _pct_field(market, "price_change_percentage_24h", key)
                change_24h = market.get("price_change_24h")
                if change_24h is None and pct_24h is not None and pct_24h > -100:
                    change_24h = current - current / (1 + pct_24h / 100)
                return {
                    "current": current,
                    "currency": key,
                    "change_24h": change_24h,
                    "change_percent_1h": _pct_field(market, "price_change_percentage_1h", key),
                    "change_percent_24h": pct_24h,
                    "change_percent_7d": _pct_field(market, "price_change_percentage_7d", key),
                    "change_percent_30d": _pct_field(market, "price_change_percentage_30d", key),
                }

        return self._cached(f"change-{currency}", load)

    @staticmethod
    def calculate_price_change(current: float, previous: float) -> Dict[str, float]:
        absolute = current - previous
        percentage = (absolute / previous) * 100 if previous != 0 else 0.0
        return {"absolute": round(absolute, 2), "percentage": round(percentage, 2)}


_instance: Optional[PriceService] = None
_instance_lock = threading.Lock()


def get_price_service() -> PriceService:
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = PriceService()
        return _instance
