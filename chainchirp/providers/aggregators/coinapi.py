"""
CoinAPI adapter.

  GET https://rest.coinapi.io/v1/exchangerate/BTC/{QUOTE}  -> {"rate": ...}
  GET https://rest.coinapi.io/v1/assets/BTC                -> [{"price_usd", "volume_1day_usd", ...}]
  (requires X-CoinAPI-Key)
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from ...core.errors import NormalizationError
from ..base import (
    MappedAdapter,
    QueryParams,
    coin_data,
    requested_currency,
    simple_price,
    to_float,
    wants_flag,
)

ASSET_BTC = "/assets/BTC"


def _asset_row(raw: Any) -> Dict[str, Any]:
    rows = raw if isinstance(raw, list) else [raw]
    for row in rows:
        if isinstance(row, dict) and row.get("asset_id") in (None, "BTC"):
            return row
    raise NormalizationError("CoinAPI asset list has no BTC row", provider="coinapi")


def _opt(row: Dict[str, Any], field: str) -> Optional[float]:
    value = row.get(field)
    return None if value is None else to_float(value)


class CoinAPIAdapter(MappedAdapter):
    provider_key = "coinapi"

    def _request_map(self):
        return {
            "/simple/price": self._price_request,
            "/coins/bitcoin": lambda params: (ASSET_BTC, {}),
        }

    def _response_map(self):
        return {
            "/simple/price": self._simple_price,
            "/coins/bitcoin": self._coin_data,
        }

    def _price_request(self, params: QueryParams) -> Tuple[str, QueryParams]:
        # The exchange-rate endpoint has no volume, the asset endpoint does (USD only).
        if wants_flag(params, "include_24hr_vol"):
            return ASSET_BTC, {}
        return f"/exchangerate/BTC/{requested_currency(params).upper()}", {}

    def _simple_price(self, raw: Any, params: QueryParams):
        if isinstance(raw, dict) and "rate" in raw:
            quote = str(raw.get("asset_id_quote") or requested_currency(params)).lower()
            return simple_price(quote, to_float(raw["rate"]))
        row = _asset_row(raw)
        return simple_price(
            "usd",
            to_float(row["price_usd"]),
            volume_24h=_opt(row, "volume_1day_usd"),
        )

    def _coin_data(self, raw: Any, params: QueryParams):
        row = _asset_row(raw)
        return coin_data(
            "usd",
            to_float(row["price_usd"]),
            volume_24h=_opt(row, "volume_1day_usd"),
        )
