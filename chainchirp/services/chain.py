"""
Blockchain metrics: blocks, mempool, fee estimates, hashrate and halving countdown.

All requests go through the chain client (mempool.space, then Blockstream,
then Blockchain.info) in the mempool.space schema.
"""
from __future__ import annotations

import logging
import math
import threading
from typing import Any, Dict, List, Optional

from ..core.errors import ChainChirpError
from ..timeutils import epoch_to_iso, now_epoch_s
from .base import ChainService, service_errors

logger = logging.getLogger(__name__)

BLOCK_CACHE_TTL_S = 30.0
MEMPOOL_CACHE_TTL_S = 15.0
FEES_CACHE_TTL_S = 30.0
HASHRATE_CACHE_TTL_S = 300.0
HALVING_CACHE_TTL_S = 600.0

HALVING_INTERVAL = 210_000
INITIAL_REWARD_BTC = 50.0
TARGET_BLOCK_TIME_S = 600
DIFFICULTY_PERIOD = 2016

BLOCK_PROVIDERS = ("mempool", "blockstream")


def format_age(timestamp: int, now: Optional[float] = None) -> str:
    seconds = max(int((now if now is not None else now_epoch_s()) - timestamp), 0)
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s ago"
    if seconds < 86400:
        return f"{seconds // 3600}h {(seconds % 3600) // 60}m ago"
    return f"{seconds // 86400}d {(seconds % 86400) // 3600}h ago"


def block_summary(raw: Dict[str, Any]) -> Dict[str, Any]:
    timestamp = int(raw["timestamp"])
    return {
        "height": int(raw["height"]),
        "hash": raw["id"],
        "timestamp": timestamp,
        "time": epoch_to_iso(timestamp),
        "tx_count": int(raw.get("tx_count") or 0),
        "size": int(raw.get("size") or 0),
        "weight": int(raw.get("weight") or 0),
        "difficulty": float(raw.get("difficulty") or 0),
        "age": format_age(timestamp),
    }


def congestion_level(count: int, vsize: int) -> str:
    """Transaction count dominates; vsize adds one point per MvB."""
    score = count + vsize / 1_000_000
    if score < 5000:
        return "low"
    if score < 20000:
        return "medium"
    return "high"


def fee_level(sat_per_vb: float) -> str:
    if sat_per_vb < 10:
        return "low"
    if sat_per_vb < 50:
        return "medium"
    return "high"


def hashrate_from_difficulty(difficulty: float) -> float:
    """Expected network hashes per second at the 10-minute block target."""
    return difficulty * 2 ** 32 / TARGET_BLOCK_TIME_S


def scale_hashrate(hashes_per_s: float) -> Dict[str, Any]:
    if hashes_per_s >= 1e18:
        return {"value": round(hashes_per_s / 1e18, 2), "unit": "EH/s"}
    return {"value": round(hashes_per_s / 1e12, 2), "unit": "TH/s"}


def block_reward(epoch: int) -> float:
    return INITIAL_REWARD_BTC / (2 ** epoch)


def halving_for_height(height: int, now: Optional[float] = None) -> Dict[str, Any]:
    epoch = height // HALVING_INTERVAL
    next_height = (epoch + 1) * HALVING_INTERVAL
    remaining = next_height - height
    seconds = remaining * TARGET_BLOCK_TIME_S
    now_s = now if now is not None else now_epoch_s()
    return {
        "current_block_height": height,
        "halving_block_height": next_height,
        "blocks_remaining": remaining,
        "estimated_date": epoch_to_iso(now_s + seconds),
        "days_remaining": math.ceil(seconds / 86400),
        "current_reward": block_reward(epoch),
        "next_reward": block_reward(epoch + 1),
        "epoch_progress_percent": round((height - epoch * HALVING_INTERVAL) / HALVING_INTERVAL * 100, 2),
    }


class BlockService(ChainService):
    name = "BlockService"
    ttl_s = BLOCK_CACHE_TTL_S

    def get_current_block(self) -> Dict[str, Any]:
        def load() -> Dict[str, Any]:
            with service_errors("fetch current block"):
                blocks = self.client.fetch_with_fallback("/blocks")
                if not blocks:
                    raise ValueError("No blocks returned from API")
                return block_summary(blocks[0])

        return self._cached("current-block", load)

    def get_recent_blocks(self, count: int = 10) -> List[Dict[str, Any]]:
        def load() -> List[Dict[str, Any]]:
            with service_errors("fetch recent blocks"):
                blocks = self.client.fetch_with_fallback("/blocks", providers=BLOCK_PROVIDERS)
                if not blocks:
                    raise ValueError("No blocks returned from API")
                return [block_summary(b) for b in blocks[:count]]

        return self._cached(f"recent-blocks-{count}", load, ttl_s=self.ttl_s / 2)

    def get_block(self, block_hash: str) -> Dict[str, Any]:
        def load() -> Dict[str, Any]:
            with service_errors(f"fetch block {block_hash}"):
                raw = self.client.fetch_with_fallback(f"/block/{block_hash}", providers=BLOCK_PROVIDERS)
                return block_summary(raw)

        # Mined blocks do not change.
        return self._cached(f"block-{block_hash}", load, ttl_s=self.ttl_s * 10)


class MempoolService(ChainService):
    name = "MempoolService"
    ttl_s = MEMPOOL_CACHE_TTL_S

    def get_mempool_info(self) -> Dict[str, Any]:
        def load() -> Dict[str, Any]:
            with service_errors("fetch mempool info"):
                raw = self.client.fetch_with_fallback("/mempool")
                count = int(raw["count"])
                vsize = int(raw.get("vsize") or 0)
                return {
                    "count": count,
                    "vsize": vsize,
                    "total_fee": int(raw.get("total_fee") or 0),
                    "fee_histogram": raw.get("fee_histogram") or [],
                    "congestion_level": congestion_level(count, vsize),
                }

        return self._cached("mempool-info", load)


class FeesService(ChainService):
    name = "FeesService"
    ttl_s = FEES_CACHE_TTL_S

    def get_recommended_fees(self) -> Dict[str, Any]:
        def load() -> Dict[str, Any]:
            with service_errors("fetch fee estimates"):
                raw = self.client.fetch_with_fallback(
                    "/v1/fees/recommended", providers=BLOCK_PROVIDERS
                )
                fees = {
                    "fastest": float(raw["fastestFee"]),
                    "half_hour": float(raw["halfHourFee"]),
                    "hour": float(raw["hourFee"]),
                    "economy": float(raw["economyFee"]),
                    "minimum": float(raw["minimumFee"]),
                }
                fees["unit"] = "sat/vB"
                fees["level"] = fee_level(fees["fastest"])
                return fees

        return self._cached("recommended-fees", load)


class HashrateService(ChainService):
    name = "HashrateService"
    ttl_s = HASHRATE_CACHE_TTL_S

    def get_current_hashrate(self) -> Dict[str, Any]:
        """
        Hashrate implied by the tip difficulty plus retarget progress.

        Progress comes from mempool.space's difficulty-adjustment endpoint,
        or from ``height % 2016`` when it is unavailable.
        """

        def load() -> Dict[str, Any]:
            with service_errors("fetch hashrate data"):
                blocks = self.client.fetch_with_fallback("/blocks", providers=BLOCK_PROVIDERS)
                if not blocks:
                    raise ValueError("No blocks returned from API")
                tip = blocks[0]
                height = int(tip["height"])
                difficulty = float(tip.get("difficulty") or 0)
                if difficulty <= 0:
                    raise ValueError(f"No difficulty reported for block {height}")
                progress, remaining_blocks = self._adjustment_progress(height)
                eta_s = remaining_blocks * TARGET_BLOCK_TIME_S
                scaled = scale_hashrate(hashrate_from_difficulty(difficulty))
                return {
                    "current": scaled["value"],
                    "unit": scaled["unit"],
                    "difficulty": difficulty,
                    "block_height": height,
                    "adjustment_progress": round(progress, 2),
                    "remaining_blocks": remaining_blocks,
                    "estimated_time_to_adjustment": eta_s,
                    "next_adjustment_date": epoch_to_iso(now_epoch_s() + eta_s),
                }

        return self._cached("current-hashrate", load)

    def _adjustment_progress(self, height: int):
        try:
            adj = self.client.fetch_with_fallback(
                "/v1/difficulty-adjustment", providers=("mempool",)
            )
            return float(adj["progressPercent"]), int(adj["remainingBlocks"])
        except (ChainChirpError, KeyError, TypeError, ValueError) as exc:
            logger.info("Difficulty adjustment unavailable (%s); estimating from height", exc)
        into_period = height % DIFFICULTY_PERIOD
        return into_period / DIFFICULTY_PERIOD * 100, DIFFICULTY_PERIOD - into_period


class HalvingService(ChainService):
    name = "HalvingService"
    ttl_s = HALVING_CACHE_TTL_S

    def get_halving_data(self) -> Dict[str, Any]:
        def load() -> Dict[str, Any]:
            with service_errors("fetch halving data"):
                height = int(self.client.fetch_with_fallback("/blocks/tip/height"))
                return halving_for_height(height)

        return self._cached("current-halving", load)


_instances: Dict[str, ChainService] = {}
_instances_lock = threading.Lock()


def _singleton(cls):
    with _instances_lock:
        if cls.name not in _instances:
            _instances[cls.name] = cls()
        return _instances[cls.name]


def get_block_service() -> BlockService:
    return _singleton(BlockService)


def get_mempool_service() -> MempoolService:
    return _singleton(MempoolService)


def get_fees_service() -> FeesService:
    return _singleton(FeesService)


def get_hashrate_service() -> HashrateService:
    return _singleton(HashrateService)


def get_halving_service() -> HalvingService:
    return _singleton(HalvingService)
