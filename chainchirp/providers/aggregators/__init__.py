"""Market-data aggregator adapters (CoinGecko, CoinMarketCap, CoinAPI)."""
from __future__ import annotations

from .coinapi import CoinAPIAdapter
from .coingecko import CoinGeckoAdapter
from .coinmarketcap import CoinMarketCapAdapter

__all__ = ["CoinAPIAdapter", "CoinGeckoAdapter", "CoinMarketCapAdapter"]
