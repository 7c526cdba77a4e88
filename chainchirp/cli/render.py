"""
Human-readable output for CLI commands.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

CURRENCY_SYMBOLS = {"usd": "$", "eur": "€", "gbp": "£", "jpy": "¥", "cad": "C$", "aud": "A$"}


def money(value: Optional[float], currency: str) -> str:
    if value is None:
        return "n/a"
    symbol = CURRENCY_SYMBOLS.get(currency.lower())
    decimals = 0 if currency.lower() == "jpy" else 2
    text = f"{value:,.{decimals}f}"
    return f"{symbol}{text}" if symbol else f"{text} {currency.upper()}"


def pct(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    return f"{value:+.2f}%"


def large(value: Optional[float], currency: str) -> str:
    """Compact money for volumes and market caps (K/M/B/T)."""
    if value is None:
        return "n/a"
    for div, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if abs(value) >= div:
            return f"{money(value / div, currency)}{suffix}"
    return money(value, currency)


def vsize(value: int) -> str:
    if value >= 1_000_000:
        return f"{value / 1_000_000:.2f} MvB"
    if value >= 1000:
        return f"{value / 1000:.2f} KvB"
    return f"{value} vB"


def _lines(title: str, rows: List[tuple]) -> str:
    width = max((len(label) for label, _ in rows), default=0)
    body = [f"  {label.ljust(width)}  {value}" for label, value in rows]
    return "\n".join([title] + body)


def render_price(data: Dict[str, Any]) -> str:
    return _lines("Bitcoin price", [("Price", money(data["price"], data["currency"]))])


def render_change(data: Dict[str, Any]) -> str:
    cur = data["currency"]
    return _lines(
        "Bitcoin price change",
        [
            ("Current", money(data["current"], cur)),
            ("24h", f"{money(data.get('change_24h'), cur)} ({pct(data.get('change_percent_24h'))})"),
            ("1h", pct(data.get("change_percent_1h"))),
            ("7d", pct(data.get("change_percent_7d"))),
            ("30d", pct(data.get("change_percent_30d"))),
        ],
    )


def render_highlow(data: Dict[str, Any]) -> str:
    cur = data["currency"]
    return _lines(
        "Bitcoin high / low",
        [
            ("Current", money(data["current"], cur)),
            ("24h high", f"{money(data.get('high_24h'), cur)} ({pct(data.get('high_24h_change_percent'))})"),
            ("24h low", f"{money(data.get('low_24h'), cur)} ({pct(data.get('low_24h_change_percent'))})"),
            ("ATH", f"{money(data.get('ath'), cur)} ({pct(data.get('ath_change_percent'))})"),
            ("ATL", f"{money(data.get('atl'), cur)} ({pct(data.get('atl_change_percent'))})"),
        ],
    )


def render_volume(data: Dict[str, Any]) -> str:
    cur = data["currency"]
    return _lines(
        "Bitcoin 24h volume",
        [
            ("Volume", large(data["volume_24h"], cur)),
            ("Change (est.)", pct(data.get("volume_change_percent_24h"))),
            ("Updated", data.get("timestamp", "n/a")),
        ],
    )


def render_sparkline(data: Dict[str, Any]) -> str:
    cur = data["currency"]
    stats = data["stats"]
    header = _lines(
        f"Bitcoin {data['timeframe']} sparkline",
        [
            ("Min", money(stats["min"], cur)),
            ("Max", money(stats["max"], cur)),
            ("Avg", money(stats["avg"], cur)),
            ("Trend", f"{stats['trend']} ({pct(stats['change_percent'])})"),
        ],
    )
    return f"{header}\n\n{data['chart']}"


def render_block(data: Dict[str, Any]) -> str:
    if "blocks" in data:
        rows = [(str(b["height"]), f"{b['tx_count']} txs  {b['age']}") for b in data["blocks"]]
        return _lines("Recent blocks", rows)
    return _lines(
        f"Block {data['height']}",
        [
            ("Hash", data["hash"]),
            ("Time", f"{data['time']} ({data['age']})"),
            ("Transactions", f"{data['tx_count']:,}"),
            ("Size", f"{data['size']:,} bytes"),
            ("Weight", f"{data['weight']:,} WU"),
        ],
    )


def render_mempool(data: Dict[str, Any]) -> str:
    return _lines(
        "Mempool",
        [
            ("Transactions", f"{data['count']:,}"),
            ("Size", vsize(data["vsize"])),
            ("Total fees", f"{data['total_fee']:,} sats"),
            ("Congestion", data["congestion_level"]),
        ],
    )


def render_fees(data: Dict[str, Any]) -> str:
    unit = data.get("unit", "sat/vB")
    return _lines(
        f"Recommended fees ({data['level']})",
        [
            ("Next block", f"{data['fastest']:g} {unit}"),
            ("~30 minutes", f"{data['half_hour']:g} {unit}"),
            ("~1 hour", f"{data['hour']:g} {unit}"),
            ("Economy", f"{data['economy']:g} {unit}"),
            ("Minimum", f"{data['minimum']:g} {unit}"),
        ],
    )


def render_hashrate(data: Dict[str, Any]) -> str:
    return _lines(
        "Network hashrate",
        [
            ("Hashrate", f"{data['current']:,} {data['unit']}"),
            ("Difficulty", f"{data['difficulty']:,.0f}"),
            ("Retarget progress", f"{data['adjustment_progress']:.2f}%"),
            ("Blocks to retarget", f"{data['remaining_blocks']:,}"),
            ("Next retarget", data["next_adjustment_date"]),
        ],
    )


def render_halving(data: Dict[str, Any]) -> str:
    return _lines(
        "Next halving",
        [
            ("Current height", f"{data['current_block_height']:,}"),
            ("Halving height", f"{data['halving_block_height']:,}"),
            ("Blocks remaining", f"{data['blocks_remaining']:,}"),
            ("Estimated date", f"{data['estimated_date']} (~{data['days_remaining']} days)"),
            ("Reward", f"{data['current_reward']:g} -> {data['next_reward']:g} BTC"),
        ],
    )


def render_health(data: Dict[str, Any]) -> str:
    sections = []
    for group in ("market", "chain"):
        rows = [(name, "ok" if ok else "DOWN") for name, ok in data.get(group, {}).items()]
        sections.append(_lines(f"{group.capitalize()} providers", rows))
    return "\n\n".join(sections)


RENDERERS = {
    "price": render_price,
    "change": render_change,
    "highlow": render_highlow,
    "volume": render_volume,
    "sparkline": render_sparkline,
    "block": render_block,
    "mempool": render_mempool,
    "fees": render_fees,
    "hashrate": render_hashrate,
    "halving": render_halving,
    "health": render_health,
}
