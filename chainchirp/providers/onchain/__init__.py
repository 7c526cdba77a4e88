"""Blockchain data adapters (mempool.space schema is canonical)."""

from .blockchain_info import BlockchainInfoAdapter
from .blockstream import BlockstreamAdapter
from .mempool import MempoolSpaceAdapter

__all__ = ["BlockchainInfoAdapter", "BlockstreamAdapter", "MempoolSpaceAdapter"]
