"""
Blockchain.info adapter.

  GET https://blockchain.info/latestblock
      -> {"hash", "time", "block_index", "height", "txIndexes": [...]}
  GET https://blockchain.info/q/unconfirmedcount -> 3120

Only the latest block is available, without size, weight or difficulty;
those fields are reported as 0.
"""
from __future__ import annotations

from typing import Any

from ..base import MappedAdapter, QueryParams


def _latest_block(raw: Any):
    return {
        "id": raw["hash"],
        "height": int(raw["height"]),
        "timestamp": int(raw["time"]),
        "tx_count": len(raw.get("txIndexes") or []),
        "size": 0,
        "weight": 0,
        "difficulty": 0,
    }


class BlockchainInfoAdapter(MappedAdapter):
    provider_key = "blockchain_info"

    def _request_map(self):
        latest = lambda params: ("/latestblock", {})  # noqa: E731
        return {
            "/blocks": latest,
            "/blocks/tip/height": latest,
            "/mempool": lambda params: ("/q/unconfirmedcount", {}),
        }

    def _response_map(self):
        return {
            "/blocks": lambda raw, params: [_latest_block(raw)],
            "/blocks/tip/height": lambda raw, params: int(raw["height"]),
            "/mempool": self._mempool,
        }

    def _mempool(self, raw: Any, params: QueryParams):
        return {"count": int(raw), "vsize": 0, "total_fee": 0, "fee_histogram": []}
