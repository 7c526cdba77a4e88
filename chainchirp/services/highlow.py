"""
24h high/low, all-time high/low and position of the current price in those ranges.
"""
from __future__ import annotations

import threading
from typing import Any, Dict, Optional

import pandas as pd

from ..timeutils import epoch_to_iso
from .base import BaseService, currency_value, pct_distance, service_errors
from .price import COIN_DATA, coin_data_params

HIGHLOW_CACHE_TTL_S = 60.0

MARKET_CHART = "/coins/bitcoin/market_chart"
CHART_PROVIDERS = ("coingecko", "binance", "kraken")


def chart_params(currency: str, days: int) -> Dict[str, Any]:
    return {
        "vs_currency": currency,
        "days": str(days),
        "interval": "hourly" if days <= 1 else "daily",
    }


def price_frame(body: Dict[str, Any]) -> pd.DataFrame:
    """Canonical market_chart body -> DataFrame(ts, price) indexed by UTC timestamp."""
    prices = body["prices"]
    if not isinstance(prices, list) or not prices:
        raise ValueError("Invalid historical price data")
    df = pd.DataFrame(prices, columns=["ts_ms", "price"])
    df["ts"] = pd.to_datetime(df["ts_ms"], unit="ms", utc=True)
    return df.set_index("ts")


class HighLowService(BaseService):
    name = "HighLowService"
    ttl_s = HIGHLOW_CACHE_TTL_S

    def get_high_low(self, currency: str = "usd") -> Dict[str, Any]:
        currency = currency.lower()

        def load() -> Dict[str, Any]:
            with service_errors("fetch high/low data"):
                body = self.client.fetch_with_fallback(COIN_DATA, coin_data_params(currency))
                market = body["market_data"]
                key, current = currency_value(market["current_price"], currency)
                if current is None:
                    raise ValueError(f"Invalid price data for currency: {currency}")
                high_24h = currency_value(market.get("high_24h"), key)[1]
                low_24h = currency_value(market.get("low_24h"), key)[1]
                ath = currency_value(market.get("ath"), key)[1]
                atl = currency_value(market.get("atl"), key)[1]
                return {
                    "current": current,
                    "currency": key,
                    "high_24h": high_24h,
                    "low_24h": low_24h,
                    "ath": ath,
                    "atl": atl,
                    "ath_date": (market.get("ath_date") or {}).get(key),
                    "atl_date": (market.get("atl_date") or {}).get(key),
                    "high_24h_change_percent": pct_distance(current, high_24h),
                    "low_24h_change_percent": pct_distance(current, low_24h),
                    "ath_change_percent": pct_distance(current, ath),
                    "atl_change_percent": pct_distance(current, atl),
                }

        return self._cached(f"highlow-{currency}", load)

    def get_historical_high_low(self, currency: str = "usd", days: int = 7) -> Dict[str, Any]:
        """Highest and lowest price over the last ``days`` with their timestamps."""
        currency = currency.lower()

        def load() -> Dict[str, Any]:
            with service_errors("fetch historical high/low"):
                body = self.client.fetch_with_fallback(
                    MARKET_CHART, chart_params(currency, days), providers=CHART_PROVIDERS
                )
                df = price_frame(body)
                hi = df.loc[df["price"].idxmax()]
                lo = df.loc[df["price"].idxmin()]
                return {
                    "period_high": float(hi["price"]),
                    "period_low": float(lo["price"]),
                    "high_date": epoch_to_iso(int(hi["ts_ms"]) / 1000),
                    "low_date": epoch_to_iso(int(lo["ts_ms"]) / 1000),
                    "days": days,
                }

        return self._cached(f"historical-highlow-{currency}-{days}", load)

    @staticmethod
    def calculate_distance(current: float, high: float, low: float) -> Dict[str, Optional[float]]:
        """Distance to the range edges; position is 0 at the low and 1 at the high."""
        span = high - low
        return {
            "distance_from_high": high - current,
            "distance_from_low": current - low,
            "percent_from_high": pct_distance(current, high),
            "percent_from_low": pct_distance(current, low),
            "position_in_range": (current - low) / span if span > 0 else 0.5,
        }


_instance: Optional[HighLowService] = None
_instance_lock = threading.Lock()


def get_highlow_service() -> HighLowService:
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = HighLowService()
        return _instance
