"""
Tests for market services (price, high/low, volume, sparkline) and their shared plumbing.

Services get a MagicMock client unless the test exercises the real fallback
chain, in which case a FallbackClient over a FakeTransport is used.
"""
from __future__ import annotations

from unittest.mock import MagicMock, call

import numpy as np
import pytest

from chainchirp.core.errors import AllProvidersFailedError, ServiceError
from chainchirp.providers.defaults import create_market_client
from chainchirp.services.base import TTLCache, currency_value, pct_distance, service_errors
from chainchirp.services.highlow import CHART_PROVIDERS, MARKET_CHART, HighLowService, chart_params
from chainchirp.services.price import COIN_DATA, PriceService, coin_data_params
from chainchirp.services.sparkline import SparklineService, render_ascii_sparkline, timeframe_to_days
from chainchirp.services.volume import COIN_VOLUME_PROVIDERS, VolumeService
from chainchirp.timeutils import epoch_to_iso
from tests.fakes import FakeClock, FakeTransport, http_error


def _client(*results):
    client = MagicMock()
    client.fetch_with_fallback.side_effect = list(results)
    return client


def _exhausted():
    return AllProvidersFailedError(http_error("coingecko", 404), attempted=["coingecko"])


# ---------------------------------------------------------------------------
# Plumbing
# ---------------------------------------------------------------------------


class TestTTLCache:
    def test_hit_until_ttl(self):
        clock = FakeClock()
        cache = TTLCache(30, clock=clock)
        cache.put("k", 1)

        clock.advance(29)
        assert cache.get("k") == 1
        clock.advance(1)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self):
        clock = FakeClock()
        cache = TTLCache(30, clock=clock)
        cache.put("short", "a", ttl_s=5)
        cache.put("long", "b")

        clock.advance(10)

        assert cache.get("short") is None
        assert cache.get("long") == "b"
        assert cache.keys() == ["long"]

    def test_clear(self):
        cache = TTLCache(30)
        cache.put("k", 1)
        cache.clear()
        assert len(cache) == 0


class TestServiceHelpers:
    def test_service_errors_wraps(self):
        with pytest.raises(ServiceError, match="Failed to fetch thing: 'market_data'") as excinfo:
            with service_errors("fetch thing"):
                {}["market_data"]
        assert isinstance(excinfo.value.__cause__, KeyError)

    def test_service_errors_keeps_service_error(self):
        with pytest.raises(ServiceError, match="^inner$"):
            with service_errors("outer"):
                raise ServiceError("inner")

    def test_service_errors_ignores_foreign_errors(self):
        with pytest.raises(RuntimeError):
            with service_errors("x"):
                raise RuntimeError("boom")

    def test_currency_value(self):
        assert currency_value({"eur": 2, "usd": 1}, "EUR") == ("eur", 2.0)
        assert currency_value({"usd": 1}, "eur") == ("usd", 1.0)
        assert currency_value({"gbp": 1}, "eur") == ("eur", None)
        assert currency_value(None, "eur") == ("eur", None)

    def test_pct_distance(self):
        assert pct_distance(90, 100) == pytest.approx(-10.0)
        assert pct_distance(90, None) is None
        assert pct_distance(90, 0) is None


# ---------------------------------------------------------------------------
# Price
# ---------------------------------------------------------------------------


class TestPriceService:
    def test_current_price(self):
        client = _client({"bitcoin": {"eur": 40000}})
        service = PriceService(client=client)

        assert service.get_current_price("EUR") == {"price": 40000.0, "currency": "eur"}
        client.fetch_with_fallback.assert_called_once_with(
            "/simple/price", {"ids": "bitcoin", "vs_currencies": "eur"}
        )

    def test_current_price_reports_served_currency(self):
        service = PriceService(client=_client({"bitcoin": {"usd": 50000}}))
        assert service.get_current_price("eur") == {"price": 50000.0, "currency": "usd"}

    def test_cached_within_ttl_then_refetched(self):
        clock = FakeClock()
        client = _client({"bitcoin": {"usd": 1}}, {"bitcoin": {"usd": 2}})
        service = PriceService(client=client, clock=clock)

        assert service.get_current_price()["price"] == 1.0
        assert service.get_current_price()["price"] == 1.0
        clock.advance(30)
        assert service.get_current_price()["price"] == 2.0
        assert client.fetch_with_fallback.call_count == 2
        assert service.cache_stats() == {"size": 1, "keys": ["price-usd"]}

    def test_exhaustion_becomes_service_error_and_is_not_cached(self):
        client = _client(_exhausted(), {"bitcoin": {"usd": 3}})
        service = PriceService(client=client)

        with pytest.raises(ServiceError) as excinfo:
            service.get_current_price()
        assert str(excinfo.value) == (
            "Failed to fetch current price: All API providers failed. "
            "Last error: coingecko returned HTTP 404"
        )
        assert service.get_current_price()["price"] == 3.0

    def test_missing_price_is_service_error(self):
        service = PriceService(client=_client({"bitcoin": {}}))
        with pytest.raises(ServiceError, match="Invalid price data"):
            service.get_current_price("usd")

    def test_multi_currency_returns_only_served(self):
        client = _client({"bitcoin": {"usd": 1, "eur": 2}})
        service = PriceService(client=client)

        assert service.get_multi_currency_prices(["USD", "eur", "gbp"]) == {"usd": 1.0, "eur": 2.0}
        assert client.fetch_with_fallback.call_args == call(
            "/simple/price", {"ids": "bitcoin", "vs_currencies": "usd,eur,gbp"}
        )

    def test_market_data(self):
        body = {
            "market_data": {
                "current_price": {"usd": 100},
                "market_cap": {"usd": 2000},
                "total_volume": {"usd": 300},
                "price_change_percentage_24h": 1.5,
            },
            "last_updated": "2026-01-01T00:00:00Z",
        }
        client = _client(body)
        data = PriceService(client=client).get_market_data()

        assert data["price"] == 100.0
        assert data["market_cap"] == 2000.0
        assert data["volume_24h"] == 300.0
        assert data["change_percent_24h"] == 1.5
        assert data["ath"] is None
        assert data["last_updated"] == "2026-01-01T00:00:00Z"
        client.fetch_with_fallback.assert_called_once_with(COIN_DATA, coin_data_params("usd"))

    def test_price_change_derives_absolute_change(self):
        body = {
            "market_data": {
                "current_price": {"usd": 110},
                "price_change_percentage_24h": 10.0,
                "price_change_percentage_1h_in_currency": {"usd": 0.5},
                "price_change_percentage_7d": -3.0,
            }
        }
        data = PriceService(client=_client(body)).get_price_change()

        assert data["current"] == 110.0
        assert data["change_24h"] == pytest.approx(10.0)
        assert data["change_percent_1h"] == 0.5
        assert data["change_percent_24h"] == 10.0
        assert data["change_percent_7d"] == -3.0
        assert data["change_percent_30d"] is None

    def test_calculate_price_change(self):
        assert PriceService.calculate_price_change(110, 100) == {"absolute": 10.0, "percentage": 10.0}
        assert PriceService.calculate_price_change(5, 0) == {"absolute": 5.0, "percentage": 0.0}

    def test_real_chain_falls_back_from_rate_limited_coingecko(self):
        transport = FakeTransport(
            {"coingecko": [http_error("coingecko", 429)], "binance": [{"price": "43250.10"}]}
        )
        clock = FakeClock()
        cfg = {"providers": {"market_priority": ["coingecko", "binance"]}}
        client = create_market_client(cfg, transport=transport, clock=clock, sleep=clock.sleep)

        data = PriceService(client=client, clock=clock).get_current_price("usd")

        assert data == {"price": 43250.10, "currency": "usd"}
        assert transport.calls_for("coingecko") == 4
        assert clock.sleeps == [1.0, 2.0, 4.0]


# ---------------------------------------------------------------------------
# High / low
# ---------------------------------------------------------------------------


class TestHighLowService:
    def test_high_low(self):
        body = {
            "market_data": {
                "current_price": {"usd": 90},
                "high_24h": {"usd": 100},
                "low_24h": {"usd": 80},
                "ath": {"usd": 120},
                "atl": {"usd": 60},
                "ath_date": {"usd": "2024-03-14T07:10:36.635Z"},
            }
        }
        data = HighLowService(client=_client(body)).get_high_low()

        assert data["high_24h_change_percent"] == pytest.approx(-10.0)
        assert data["low_24h_change_percent"] == pytest.approx(12.5)
        assert data["ath_change_percent"] == pytest.approx(-25.0)
        assert data["atl_change_percent"] == pytest.approx(50.0)
        assert data["ath_date"] == "2024-03-14T07:10:36.635Z"
        assert data["atl_date"] is None

    def test_exchange_coin_data_without_ath(self):
        body = {"market_data": {"current_price": {"usd": 90}, "high_24h": {"usd": 100}}}
        data = HighLowService(client=_client(body)).get_high_low()
        assert data["ath"] is None
        assert data["ath_change_percent"] is None
        assert data["low_24h"] is None

    def test_historical_high_low(self):
        body = {"prices": [[1700000000000, 10.0], [1700086400000, 30.0], [1700172800000, 20.0]]}
        client = _client(body)

        data = HighLowService(client=client).get_historical_high_low("usd", 3)

        assert data == {
            "period_high": 30.0,
            "period_low": 10.0,
            "high_date": epoch_to_iso(1700086400),
            "low_date": epoch_to_iso(1700000000),
            "days": 3,
        }
        client.fetch_with_fallback.assert_called_once_with(
            MARKET_CHART, chart_params("usd", 3), providers=CHART_PROVIDERS
        )

    def test_historical_empty_is_service_error(self):
        with pytest.raises(ServiceError, match="Invalid historical price data"):
            HighLowService(client=_client({"prices": []})).get_historical_high_low()

    def test_calculate_distance(self):
        out = HighLowService.calculate_distance(90, 100, 80)
        assert out["distance_from_high"] == 10
        assert out["distance_from_low"] == 10
        assert out["position_in_range"] == 0.5
        assert HighLowService.calculate_distance(5, 5, 5)["position_in_range"] == 0.5

    def test_chart_params(self):
        assert chart_params("usd", 1) == {"vs_currency": "usd", "days": "1", "interval": "hourly"}
        assert chart_params("eur", 30)["interval"] == "daily"


# ---------------------------------------------------------------------------
# Volume
# ---------------------------------------------------------------------------


class TestVolumeService:
    def test_volume_from_simple_price(self):
        body = {
            "bitcoin": {
                "usd": 50000,
                "usd_24h_vol": 1.0e9,
                "usd_24h_change": 5.0,
                "last_updated_at": 1700000000,
            }
        }
        data = VolumeService(client=_client(body)).get_volume_data()

        assert data["volume_24h"] == 1.0e9
        assert data["currency"] == "usd"
        assert data["volume_change_percent_24h"] == pytest.approx(4.0)
        assert data["volume_change_24h"] == pytest.approx(4.0e7)
        assert data["price_change_percent_24h"] == 5.0
        assert data["timestamp"] == epoch_to_iso(1700000000)

    def test_falls_back_to_coin_data(self):
        coin = {
            "market_data": {"total_volume": {"usd": 2.0e9}, "price_change_percentage_24h": -2.5},
            "last_updated": "2026-01-01T00:00:00Z",
        }
        client = _client(_exhausted(), coin)

        data = VolumeService(client=client).get_volume_data()

        assert data["volume_24h"] == 2.0e9
        assert data["volume_change_percent_24h"] == pytest.approx(-2.0)
        assert data["timestamp"] == "2026-01-01T00:00:00Z"
        assert client.fetch_with_fallback.call_args.kwargs["providers"] == COIN_VOLUME_PROVIDERS

    def test_price_only_answer_falls_back(self):
        coin = {"market_data": {"total_volume": {"usd": 7.0}}}
        client = _client({"bitcoin": {"usd": 1}}, coin)

        data = VolumeService(client=client).get_volume_data()

        assert data["volume_24h"] == 7.0
        assert data["volume_change_percent_24h"] is None
        assert data["volume_change_24h"] is None

    def test_both_paths_failing_is_service_error(self):
        client = _client(_exhausted(), _exhausted())
        with pytest.raises(ServiceError, match="Failed to fetch volume data"):
            VolumeService(client=client).get_volume_data()

    def test_top_exchange_volumes(self):
        body = {
            "tickers": [
                {"base": "BTC", "target": "USDT", "market": {"name": "Binance"},
                 "volume": 10, "converted_volume": {"usd": 500.0}, "trust_score": "green"},
                {"base": "ETH", "target": "BTC", "market": {"name": "Kraken"},
                 "volume": 99, "converted_volume": {"usd": 9999.0}},
                {"base": "BTC", "target": "USD", "market": {"name": "Coinbase"},
                 "volume": 20, "converted_volume": {"usd": 900.0}, "trust_score": "yellow"},
                {"base": "BTC", "target": "EUR", "market": {"name": "Bitstamp"},
                 "volume": 3, "trust_score": "green"},
            ]
        }
        rows = VolumeService(client=_client(body)).get_top_exchange_volumes(limit=2)

        assert rows == [
            {"exchange": "Coinbase", "volume": 900.0, "pair": "BTC/USD", "trusted": False},
            {"exchange": "Binance", "volume": 500.0, "pair": "BTC/USDT", "trusted": True},
        ]

    def test_moving_average(self):
        body = {"total_volumes": [[i, float(v)] for i, v in enumerate([1, 2, 3, 4, 5])]}
        service = VolumeService(client=_client(body))

        assert service.get_volume_moving_average(period=3) == [2.0, 3.0, 4.0]

    def test_moving_average_rejects_bad_period(self):
        with pytest.raises(ValueError):
            VolumeService(client=MagicMock()).get_volume_moving_average(period=0)

    def test_analyze_trend_increasing(self):
        volumes = [100.0, 110.0, 121.0]
        out = VolumeService.analyze_volume_trend(volumes)

        assert out["trend"] == "increasing"
        assert out["strength"] == "moderate"
        assert out["volatility"] == pytest.approx(np.std(volumes) / np.mean(volumes), abs=1e-4)

    def test_analyze_trend_stable_and_short(self):
        assert VolumeService.analyze_volume_trend([100.0, 101.0, 100.0])["trend"] == "stable"
        assert VolumeService.analyze_volume_trend([5.0]) == {
            "trend": "stable", "strength": "weak", "volatility": 0.0
        }

    def test_analyze_trend_decreasing_strong(self):
        out = VolumeService.analyze_volume_trend([100.0, 50.0, 10.0])
        assert out["trend"] == "decreasing"
        assert out["strength"] == "strong"


# ---------------------------------------------------------------------------
# Sparkline
# ---------------------------------------------------------------------------


class TestSparkline:
    def test_timeframe_to_days(self):
        assert timeframe_to_days("1Y") == 365
        assert timeframe_to_days("7d") == 7
        with pytest.raises(ValueError, match="Unknown timeframe"):
            timeframe_to_days("2w")

    def test_render_rising_series(self):
        chart = render_ascii_sparkline([1, 2, 3, 4], width=4, height=4)
        assert chart.split("\n") == ["   ▲", "  ▲ ", " ▲  ", "●   "]

    def test_render_flat_series(self):
        chart = render_ascii_sparkline([5, 5, 5], width=4, height=3)
        assert chart.split("\n") == ["    ", "────", "    "]

    def test_render_empty(self):
        assert render_ascii_sparkline([], width=10, height=3) == ""

    def test_calculate_stats(self):
        stats = SparklineService.calculate_stats([100.0, 102.0])
        assert stats == {
            "min": 100.0,
            "max": 102.0,
            "avg": 101.0,
            "trend": "up",
            "change_percent": 2.0,
            "volatility": 1.0,
            "data_points": 2,
        }
        assert SparklineService.calculate_stats([100.0, 100.5])["trend"] == "flat"

    def test_calculate_stats_empty(self):
        with pytest.raises(ValueError):
            SparklineService.calculate_stats([])

    def test_sparkline_data(self):
        body = {"prices": [[1700000000000, 1.0], [1700086400000, 2.0]], "total_volumes": []}
        client = _client(body)
        service = SparklineService(client=client)

        data = service.get_sparkline_data("USD", "7D")

        assert data == {
            "prices": [1.0, 2.0],
            "timestamps": [1700000000000, 1700086400000],
            "timeframe": "7d",
            "currency": "usd",
        }
        client.fetch_with_fallback.assert_called_once_with(
            MARKET_CHART, chart_params("usd", 7), providers=CHART_PROVIDERS
        )
        # stats and chart reuse the cached series
        assert service.get_sparkline_stats("usd", "7d")["data_points"] == 2
        assert service.render_ascii_sparkline("usd", "7d", width=2, height=2) == " ▲\n● "
        assert client.fetch_with_fallback.call_count == 1

    def test_unknown_timeframe_does_not_fetch(self):
        client = MagicMock()
        with pytest.raises(ValueError):
            SparklineService(client=client).get_sparkline_data("usd", "2w")
        client.fetch_with_fallback.assert_not_called()
