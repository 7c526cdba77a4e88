"""
Calling services: market and blockchain metrics on top of the fallback clients.

Each service takes a FallbackClient (default: the process-wide market or chain
client) and keeps a per-service TTL cache.
"""

from __future__ import annotations

from .base import (
    TTLCache,
    get_chain_client,
    get_market_client,
    reset_default_clients,
)
from .chain import (
    BlockService,
    FeesService,
    HalvingService,
    HashrateService,
    MempoolService,
    get_block_service,
    get_fees_service,
    get_halving_service,
    get_hashrate_service,
    get_mempool_service,
)
from .highlow import HighLowService, get_highlow_service
from .price import PriceService, get_price_service
from .sparkline import SparklineService, get_sparkline_service
from .volume import VolumeService, get_volume_service

__all__ = [
    "TTLCache",
    "get_market_client",
    "get_chain_client",
    "reset_default_clients",
    "PriceService",
    "HighLowService",
    "VolumeService",
    "SparklineService",
    "BlockService",
    "MempoolService",
    "FeesService",
    "HashrateService",
    "HalvingService",
    "get_price_service",
    "get_highlow_service",
    "get_volume_service",
    "get_sparkline_service",
    "get_block_service",
    "get_mempool_service",
    "get_fees_service",
    "get_hashrate_service",
    "get_halving_service",
]
