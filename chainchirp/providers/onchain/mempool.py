"""
mempool.space adapter.

Its REST API (https://mempool.space/api) defines the canonical shapes for
/blocks, /mempool, /v1/fees/recommended and /v1/difficulty-adjustment.
"""
from __future__ import annotations

from ..base import CanonicalAdapter


class MempoolSpaceAdapter(CanonicalAdapter):
    provider_key = "mempool"
