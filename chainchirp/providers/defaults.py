"""
Default provider registry configuration.

Registers built-in providers and builds the market and chain clients from
config.yaml settings. To add a new provider, give it a spec here, register
its adapter and add it to the priority list in config.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from .. import config
from .aggregators import CoinAPIAdapter, CoinGeckoAdapter, CoinMarketCapAdapter
from .base import ProviderSpec
from .cex import BinanceAdapter, CoinbaseAdapter, KrakenAdapter
from .chain import FallbackClient
from .health import HealthPolicy, HealthTracker
from .http import ProviderTransport, RequestsTransport
from .onchain import BlockchainInfoAdapter, BlockstreamAdapter, MempoolSpaceAdapter
from .registry import ProviderRegistry
from .resilience import RetryConfig

logger = logging.getLogger(__name__)

COINGECKO = ProviderSpec(
    key="coingecko",
    name="CoinGecko",
    base_url="https://api.coingecko.com/api/v3",
    rate_limit_per_minute=30,
    priority=1,
    health_endpoint="/ping",
)
COINMARKETCAP = ProviderSpec(
    key="coinmarketcap",
    name="CoinMarketCap",
    base_url="https://pro-api.coinmarketcap.com/v1",
    rate_limit_per_minute=333,
    priority=2,
    requires_auth=True,
    auth_headers={"X-CMC_PRO_API_KEY": "CMC_API_KEY"},
    health_endpoint="/cryptocurrency/listings/latest",
)
COINAPI = ProviderSpec(
    key="coinapi",
    name="CoinAPI",
    base_url="https://rest.coinapi.io/v1",
    rate_limit_per_minute=100,
    priority=3,
    requires_auth=True,
    auth_headers={"X-CoinAPI-Key": "COINAPI_KEY"},
    health_endpoint="/exchangerate/BTC/USD",
)
BINANCE = ProviderSpec(
    key="binance",
    name="Binance",
    base_url="https://api.binance.com/api/v3",
    rate_limit_per_minute=1200,
    priority=4,
    health_endpoint="/ping",
)
COINBASE = ProviderSpec(
    key="coinbase",
    name="Coinbase",
    base_url="https://api.coinbase.com/v2",
    rate_limit_per_minute=10000,
    priority=5,
    health_endpoint="/exchange-rates",
)
KRAKEN = ProviderSpec(
    key="kraken",
    name="Kraken",
    base_url="https://api.kraken.com/0/public",
    rate_limit_per_minute=60,
    priority=6,
    health_endpoint="/SystemStatus",
)

MEMPOOL = ProviderSpec(
    key="mempool",
    name="mempool.space",
    base_url="https://mempool.space/api",
    rate_limit_per_minute=60,
    priority=1,
    health_endpoint="/blocks/tip/height",
)
BLOCKSTREAM = ProviderSpec(
    key="blockstream",
    name="Blockstream",
    base_url="https://blockstream.info/api",
    rate_limit_per_minute=60,
    priority=2,
    health_endpoint="/blocks/tip/height",
)
BLOCKCHAIN_INFO = ProviderSpec(
    key="blockchain_info",
    name="Blockchain.info",
    base_url="https://blockchain.info",
    rate_limit_per_minute=60,
    priority=3,
    health_endpoint="/q/getblockcount",
)

MARKET_SPECS = (COINGECKO, COINMARKETCAP, COINAPI, BINANCE, COINBASE, KRAKEN)
CHAIN_SPECS = (MEMPOOL, BLOCKSTREAM, BLOCKCHAIN_INFO)


def create_market_registry() -> ProviderRegistry:
    """Create a registry with the six market data providers."""
    registry = ProviderRegistry()
    registry.register(COINGECKO, CoinGeckoAdapter)
    registry.register(COINMARKETCAP, CoinMarketCapAdapter)
    registry.register(COINAPI, CoinAPIAdapter)
    registry.register(BINANCE, BinanceAdapter)
    registry.register(COINBASE, CoinbaseAdapter)
    registry.register(KRAKEN, KrakenAdapter)
    return registry


def create_chain_registry() -> ProviderRegistry:
    """Create a registry with the blockchain data providers."""
    registry = ProviderRegistry()
    registry.register(MEMPOOL, MempoolSpaceAdapter)
    registry.register(BLOCKSTREAM, BlockstreamAdapter)
    registry.register(BLOCKCHAIN_INFO, BlockchainInfoAdapter)
    return registry


def retry_config_from(cfg: dict) -> RetryConfig:
    retry = cfg.get("retry", {})
    default = RetryConfig()
    return RetryConfig(
        max_retries=int(retry.get("max_retries", default.max_retries)),
        base_delay_s=float(retry.get("base_delay_s", default.base_delay_s)),
        backoff_factor=float(retry.get("backoff_factor", default.backoff_factor)),
    )


def _build_client(
    name: str,
    registry: ProviderRegistry,
    priority: List[str],
    cfg: dict,
    transport: Optional[ProviderTransport],
    clock: Callable[[], float],
    sleep: Callable[[float], None],
) -> FallbackClient:
    api = cfg.get("api", {})
    timeout_s = float(api.get("timeout_s", 10.0))
    unknown = [p for p in priority if p not in registry]
    if unknown:
        logger.warning("[%s] Ignoring unknown providers in priority list: %s", name, unknown)
    return FallbackClient(
        registry,
        transport=transport or RequestsTransport(
            timeout_s=timeout_s,
            user_agent=str(api.get("user_agent", "ChainChirp-CLI/1.0.0")),
        ),
        retry_config=retry_config_from(cfg),
        health=HealthTracker(registry.specs(), policy=HealthPolicy.from_config(cfg)),
        default_providers=priority,
        default_skip=cfg.get("providers", {}).get("skip") or [],
        timeout_s=timeout_s,
        health_timeout_s=float(api.get("health_timeout_s", 5.0)),
        clock=clock,
        sleep=sleep,
        name=name,
    )


def create_market_client(
    cfg: Optional[dict] = None,
    transport: Optional[ProviderTransport] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> FallbackClient:
    """Build the market data client (CoinGecko first, Kraken last by default)."""
    cfg = cfg if cfg is not None else config.get_config()
    priority = list(cfg.get("providers", {}).get("market_priority") or [s.key for s in MARKET_SPECS])
    return _build_client("market", create_market_registry(), priority, cfg, transport, clock, sleep)


def create_chain_client(
    cfg: Optional[dict] = None,
    transport: Optional[ProviderTransport] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> FallbackClient:
    """Build the blockchain data client (mempool.space first by default)."""
    cfg = cfg if cfg is not None else config.get_config()
    priority = list(cfg.get("providers", {}).get("chain_priority") or [s.key for s in CHAIN_SPECS])
    return _build_client("chain", create_chain_registry(), priority, cfg, transport, clock, sleep)
