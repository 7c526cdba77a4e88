"""
Price history sparklines: series fetch, summary stats and ASCII rendering.
"""
from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .base import BaseService, service_errors
from .highlow import CHART_PROVIDERS, MARKET_CHART, chart_params, price_frame

SPARKLINE_CACHE_TTL_S = 120.0

TIMEFRAME_DAYS = {"1d": 1, "7d": 7, "30d": 30, "90d": 90, "1y": 365}
DEFAULT_TIMEFRAME = "7d"

UP, DOWN, FLAT, LEVEL = "▲", "▼", "●", "─"


def timeframe_to_days(timeframe: str) -> int:
    try:
        return TIMEFRAME_DAYS[timeframe.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown timeframe {timeframe!r}; expected one of {sorted(TIMEFRAME_DAYS)}"
        ) from None


def _trend_char(prices: Sequence[float], index: int) -> str:
    if index == 0 or prices[index] == prices[index - 1]:
        return FLAT
    return UP if prices[index] > prices[index - 1] else DOWN


def render_ascii_sparkline(prices: Sequence[float], width: int = 80, height: int = 8) -> str:
    """
    Plot prices on a width x height character grid.

    Each column samples one price; the glyph shows the move from the
    previous sample. A flat series renders as a single horizontal line.
    """
    if not prices or width <= 0 or height <= 0:
        return ""
    lo, hi = min(prices), max(prices)
    span = hi - lo
    if span == 0:
        mid = height // 2
        return "\n".join(LEVEL * width if row == mid else " " * width for row in range(height))

    grid = [[" "] * width for _ in range(height)]
    step = len(prices) / width
    for col in range(width):
        idx = int(col * step)
        if idx >= len(prices):
            break
        level = int((prices[idx] - lo) / span * (height - 1))
        grid[height - 1 - level][col] = _trend_char(prices, idx)
    return "\n".join("".join(row) for row in grid)


class SparklineService(BaseService):
    name = "SparklineService"
    ttl_s = SPARKLINE_CACHE_TTL_S

    def get_sparkline_data(self, currency: str = "usd", timeframe: str = DEFAULT_TIMEFRAME) -> Dict[str, Any]:
        currency = currency.lower()
        days = timeframe_to_days(timeframe)

        def load() -> Dict[str, Any]:
            with service_errors("fetch sparkline data"):
                body = self.client.fetch_with_fallback(
                    MARKET_CHART, chart_params(currency, days), providers=CHART_PROVIDERS
                )
                df = price_frame(body)
                return {
                    "prices": df["price"].astype(float).tolist(),
                    "timestamps": df["ts_ms"].astype(int).tolist(),
                    "timeframe": timeframe.lower(),
                    "currency": currency,
                }

        return self._cached(f"sparkline-{currency}-{timeframe.lower()}", load)

    def get_sparkline_stats(self, currency: str = "usd", timeframe: str = DEFAULT_TIMEFRAME) -> Dict[str, Any]:
        data = self.get_sparkline_data(currency, timeframe)
        return self.calculate_stats(data["prices"])

    @staticmethod
    def calculate_stats(prices: List[float]) -> Dict[str, Any]:
        """min/max/avg, +-1% trend over the window, population std as volatility."""
        series = pd.Series(prices, dtype=float)
        if series.empty:
            raise ValueError("No price data available for analysis")
        first, last = float(series.iloc[0]), float(series.iloc[-1])
        change_pct = (last - first) / first * 100 if first else 0.0
        if change_pct > 1:
            trend = "up"
        elif change_pct < -1:
            trend = "down"
        else:
            trend = "flat"
        return {
            "min": round(float(series.min()), 2),
            "max": round(float(series.max()), 2),
            "avg": round(float(series.mean()), 2),
            "trend": trend,
            "change_percent": round(change_pct, 2),
            "volatility": round(float(np.std(series.to_numpy())), 2),
            "data_points": int(series.size),
        }

    def render_ascii_sparkline(
        self,
        currency: str = "usd",
        timeframe: str = DEFAULT_TIMEFRAME,
        width: int = 80,
        height: int = 8,
    ) -> str:
        data = self.get_sparkline_data(currency, timeframe)
        return render_ascii_sparkline(data["prices"], width=width, height=height)


_instance: Optional[SparklineService] = None
_instance_lock = threading.Lock()


def get_sparkline_service() -> SparklineService:
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = SparklineService()
        return _instance
