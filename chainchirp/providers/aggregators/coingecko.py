"""
CoinGecko adapter.

CoinGecko's public API (https://api.coingecko.com/api/v3) is the canonical
schema for market endpoints, so requests and bodies pass through untouched.
"""
from __future__ import annotations

from ..base import CanonicalAdapter


class CoinGeckoAdapter(CanonicalAdapter):
    provider_key = "coingecko"
