"""Centralized exchange adapters (public endpoints, no API key)."""

from .binance import BinanceAdapter
from .coinbase import CoinbaseAdapter
from .kraken import KrakenAdapter

__all__ = ["BinanceAdapter", "CoinbaseAdapter", "KrakenAdapter"]
