"""
Blockstream Esplora adapter.

Esplora (https://blockstream.info/api) serves /blocks, /mempool,
/blocks/tip/height and /block/<hash> in the mempool.space schema. Fee
recommendations come from /fee-estimates, a map of confirmation target
(blocks) to sat/vB.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from ...core.errors import NormalizationError
from ..base import MappedAdapter, QueryParams, to_float

BLOCK_PREFIX = "/block/"

# fee field -> (confirmation targets tried in order, fallback sat/vB)
_FEE_TARGETS: Dict[str, Tuple[Sequence[str], float]] = {
    "fastestFee": (("1", "2"), 20),
    "halfHourFee": (("3", "6"), 15),
    "hourFee": (("6", "12"), 10),
    "economyFee": (("144", "504"), 5),
    "minimumFee": (("1008",), 1),
}


def _first_estimate(estimates: Mapping[str, Any], targets: Sequence[str]) -> Optional[float]:
    for target in targets:
        value = estimates.get(target)
        if value:
            return to_float(value)
    return None


def fees_from_estimates(estimates: Mapping[str, Any]) -> Dict[str, float]:
    """Map Esplora fee-estimates onto the recommended-fees shape."""
    fees: Dict[str, float] = {}
    for field_name, (targets, fallback) in _FEE_TARGETS.items():
        value = _first_estimate(estimates, targets)
        fees[field_name] = value if value is not None else fallback
    return fees


def _block(raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, dict) or "id" not in raw or "height" not in raw:
        raise NormalizationError("blockstream block body missing id/height", provider="blockstream")
    return raw


class BlockstreamAdapter(MappedAdapter):
    provider_key = "blockstream"

    def _request_map(self):
        return {
            "/v1/fees/recommended": lambda params: ("/fee-estimates", {}),
        }

    def _response_map(self):
        return {
            "/blocks": self._blocks,
            "/mempool": self._mempool,
            "/blocks/tip/height": lambda raw, params: int(raw),
            "/v1/fees/recommended": self._fees,
        }

    def transform_response(self, raw: Any, endpoint: str, params: QueryParams) -> Any:
        if endpoint.startswith(BLOCK_PREFIX):
            return _block(raw)
        return super().transform_response(raw, endpoint, params)

    def _blocks(self, raw: Any, params: QueryParams):
        if not isinstance(raw, list):
            raise NormalizationError("blockstream /blocks did not return a list", provider="blockstream")
        return [_block(b) for b in raw]

    def _mempool(self, raw: Any, params: QueryParams):
        if not isinstance(raw, dict) or "count" not in raw:
            raise NormalizationError("blockstream /mempool missing count", provider="blockstream")
        return raw

    def _fees(self, raw: Any, params: QueryParams):
        if not isinstance(raw, dict):
            raise NormalizationError("blockstream /fee-estimates is not a map", provider="blockstream")
        return fees_from_estimates(raw)
