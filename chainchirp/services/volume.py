"""
24h trading volume, per-exchange volume and volume history analytics.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..core.errors import ChainChirpError
from ..timeutils import epoch_to_iso, now_utc_iso
from .base import BaseService, currency_value, service_errors
from .highlow import CHART_PROVIDERS, MARKET_CHART, chart_params
from .price import COIN_DATA, SIMPLE_PRICE, coin_data_params

logger = logging.getLogger(__name__)

VOLUME_CACHE_TTL_S = 60.0

TICKERS = "/coins/bitcoin/tickers"
SIMPLE_VOLUME_PROVIDERS = ("coingecko", "coinmarketcap", "binance", "coinbase", "kraken")
COIN_VOLUME_PROVIDERS = ("coingecko", "coinmarketcap", "coinapi", "binance", "kraken")
# Volume tends to move with price but less sharply.
VOLUME_PRICE_DAMPING = 0.8


class VolumeService(BaseService):
    name = "VolumeService"
    ttl_s = VOLUME_CACHE_TTL_S

    def get_volume_data(self, currency: str = "usd") -> Dict[str, Any]:
        """
        24h volume from the simple price endpoint, falling back to coin data.

        ``volume_change_percent_24h`` is estimated from the 24h price change
        when the provider does not report a volume change.
        """
        currency = currency.lower()

        def load() -> Dict[str, Any]:
            with service_errors("fetch volume data"):
                try:
                    return self._volume_from_simple_price(currency)
                except (ChainChirpError, KeyError, ValueError) as exc:
                    logger.info("Simple price volume unavailable (%s); trying coin data", exc)
                return self._volume_from_coin_data(currency)

        return self._cached(f"volume-{currency}", load)

    def _volume_from_simple_price(self, currency: str) -> Dict[str, Any]:
        body = self.client.fetch_with_fallback(
            SIMPLE_PRICE,
            {
                "ids": "bitcoin",
                "vs_currencies": currency,
                "include_24hr_vol": True,
                "include_24hr_change": True,
                "include_last_updated_at": True,
            },
            providers=SIMPLE_VOLUME_PROVIDERS,
        )
        quotes = body["bitcoin"]
        key = currency if quotes.get(f"{currency}_24h_vol") is not None else "usd"
        volume = quotes.get(f"{key}_24h_vol")
        if volume is None:
            raise ValueError("Invalid volume data: 24h volume not found")
        change = quotes.get(f"{key}_24h_change")
        updated = quotes.get("last_updated_at")
        return self._volume_result(
            key,
            float(volume),
            float(change) if change is not None else None,
            epoch_to_iso(float(updated)) if updated else now_utc_iso(),
        )

    def _volume_from_coin_data(self, currency: str) -> Dict[str, Any]:
        body = self.client.fetch_with_fallback(
            COIN_DATA, coin_data_params(currency), providers=COIN_VOLUME_PROVIDERS
        )
        market = body["market_data"]
        key, volume = currency_value(market.get("total_volume"), currency)
        if volume is None:
            raise ValueError("Invalid volume data: market_data.total_volume not found")
        change = market.get("price_change_percentage_24h")
        return self._volume_result(
            key,
            volume,
            float(change) if change is not None else None,
            body.get("last_updated") or now_utc_iso(),
        )

    @staticmethod
    def _volume_result(
        currency: str, volume: float, price_change_pct: Optional[float], updated: str
    ) -> Dict[str, Any]:
        est_pct = price_change_pct * VOLUME_PRICE_DAMPING if price_change_pct is not None else None
        return {
            "volume_24h": volume,
            "currency": currency,
            "volume_change_24h": volume * est_pct / 100 if est_pct is not None else None,
            "volume_change_percent_24h": est_pct,
            "price_change_percent_24h": price_change_pct,
            "timestamp": updated,
        }

    def get_top_exchange_volumes(self, currency: str = "usd", limit: int = 10) -> List[Dict[str, Any]]:
        """Largest BTC markets by converted volume (CoinGecko tickers only)."""
        currency = currency.lower()

        def load() -> List[Dict[str, Any]]:
            with service_errors("fetch exchange volumes"):
                body = self.client.fetch_with_fallback(TICKERS, {}, providers=("coingecko",))
                rows = []
                for ticker in body["tickers"]:
                    if ticker.get("base") != "BTC":
                        continue
                    _, converted = currency_value(ticker.get("converted_volume"), currency)
                    rows.append(
                        {
                            "exchange": ticker["market"]["name"],
                            "volume": converted if converted is not None else float(ticker["volume"]),
                            "pair": f"{ticker['base']}/{ticker['target']}",
                            "trusted": ticker.get("trust_score") in ("green", "high"),
                        }
                    )
                rows.sort(key=lambda r: r["volume"], reverse=True)
                return rows[:limit]

        return self._cached(f"exchanges-{currency}-{limit}", load)

    def get_historical_volume(self, currency: str = "usd", days: int = 7) -> List[float]:
        currency = currency.lower()

        def load() -> List[float]:
            with service_errors("fetch historical volume"):
                body = self.client.fetch_with_fallback(
                    MARKET_CHART, chart_params(currency, days), providers=CHART_PROVIDERS
                )
                volumes = body["total_volumes"]
                if not isinstance(volumes, list):
                    raise ValueError("Invalid historical volume data")
                return [float(v) for _, v in volumes]

        return self._cached(f"historical-volume-{currency}-{days}", load)

    def get_volume_moving_average(
        self, currency: str = "usd", days: int = 7, period: int = 3
    ) -> List[float]:
        """Simple moving average of daily volume; empty when fewer than ``period`` points."""
        if period <= 0:
            raise ValueError("period must be positive")
        volumes = self.get_historical_volume(currency, days)
        with service_errors("calculate volume moving average"):
            series = pd.Series(volumes, dtype=float)
            return series.rolling(window=period).mean().dropna().tolist()

    @staticmethod
    def analyze_volume_trend(volumes: Sequence[float]) -> Dict[str, Any]:
        """
        Classify a volume series.

        trend: stable when the mean step is under 5% of the first value.
        strength: weak (<10%), moderate (<25%), strong otherwise.
        volatility: population std / mean, 4 decimals.
        """
        series = pd.Series(list(volumes), dtype=float)
        if len(series) < 2:
            return {"trend": "stable", "strength": "weak", "volatility": 0.0}

        avg_change = float(series.diff().dropna().mean())
        mean = float(series.mean())
        volatility = float(np.round(series.std(ddof=0) / mean, 4)) if mean else 0.0
        first = float(series.iloc[0]) or 1.0

        if abs(avg_change) < first * 0.05:
            trend = "stable"
        elif avg_change > 0:
            trend = "increasing"
        else:
            trend = "decreasing"

        ratio = abs(avg_change) / first
        if ratio < 0.1:
            strength = "weak"
        elif ratio < 0.25:
            strength = "moderate"
        else:
            strength = "strong"
        return {"trend": trend, "strength": strength, "volatility": volatility}


_instance: Optional[VolumeService] = None
_instance_lock = threading.Lock()


def get_volume_service() -> VolumeService:
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = VolumeService()
        return _instance
