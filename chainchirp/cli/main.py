"""
Top-level CLI dispatcher: chainchirp <command> [--currency C] [--json] [--watch] [--interval N] [--debug].
Market commands use the market client, chain commands the blockchain client.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from typing import Any, Callable, Dict, List, Optional

from .. import config
from .._version import __version__
from ..core.errors import ChainChirpError
from ..services import (
    get_block_service,
    get_chain_client,
    get_fees_service,
    get_halving_service,
    get_hashrate_service,
    get_highlow_service,
    get_market_client,
    get_mempool_service,
    get_price_service,
    get_sparkline_service,
    get_volume_service,
)
from ..services.sparkline import DEFAULT_TIMEFRAME, TIMEFRAME_DAYS
from ..timeutils import now_utc_iso
from .render import RENDERERS

logger = logging.getLogger(__name__)

CLEAR_SCREEN = "\033[2J\033[H"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(debug: bool = False) -> None:
    """Root logger to stderr; stdout stays clean for --json."""
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)


# ---------------------------------------------------------------------------
# Commands: each returns a JSON-serializable dict
# ---------------------------------------------------------------------------


def _cmd_price(args: argparse.Namespace) -> Dict[str, Any]:
    return get_price_service().get_current_price(args.currency)


def _cmd_change(args: argparse.Namespace) -> Dict[str, Any]:
    return get_price_service().get_price_change(args.currency)


def _cmd_highlow(args: argparse.Namespace) -> Dict[str, Any]:
    return get_highlow_service().get_high_low(args.currency)


def _cmd_volume(args: argparse.Namespace) -> Dict[str, Any]:
    return get_volume_service().get_volume_data(args.currency)


def _cmd_sparkline(args: argparse.Namespace) -> Dict[str, Any]:
    service = get_sparkline_service()
    data = service.get_sparkline_data(args.currency, args.timeframe)
    return {
        "currency": data["currency"],
        "timeframe": data["timeframe"],
        "prices": data["prices"],
        "stats": service.calculate_stats(data["prices"]),
        "chart": service.render_ascii_sparkline(
            args.currency, args.timeframe, width=args.width, height=args.height
        ),
    }


def _cmd_block(args: argparse.Namespace) -> Dict[str, Any]:
    service = get_block_service()
    if args.hash:
        return service.get_block(args.hash)
    if args.recent:
        return {"blocks": service.get_recent_blocks(args.recent)}
    return service.get_current_block()


def _cmd_mempool(args: argparse.Namespace) -> Dict[str, Any]:
    return get_mempool_service().get_mempool_info()


def _cmd_fees(args: argparse.Namespace) -> Dict[str, Any]:
    return get_fees_service().get_recommended_fees()


def _cmd_hashrate(args: argparse.Namespace) -> Dict[str, Any]:
    return get_hashrate_service().get_current_hashrate()


def _cmd_halving(args: argparse.Namespace) -> Dict[str, Any]:
    return get_halving_service().get_halving_data()


def _cmd_health(args: argparse.Namespace) -> Dict[str, Any]:
    return {"market": get_market_client().check_all(), "chain": get_chain_client().check_all()}


COMMANDS: Dict[str, Callable[[argparse.Namespace], Dict[str, Any]]] = {
    "price": _cmd_price,
    "change": _cmd_change,
    "highlow": _cmd_highlow,
    "volume": _cmd_volume,
    "sparkline": _cmd_sparkline,
    "block": _cmd_block,
    "mempool": _cmd_mempool,
    "fees": _cmd_fees,
    "hashrate": _cmd_hashrate,
    "halving": _cmd_halving,
    "health": _cmd_health,
}

HELP = {
    "price": "Current Bitcoin price",
    "change": "Price change over 1h / 24h / 7d / 30d",
    "highlow": "24h and all-time high / low",
    "volume": "24h trading volume",
    "sparkline": "ASCII price chart",
    "block": "Latest block (or --hash / --recent)",
    "mempool": "Mempool size and congestion",
    "fees": "Recommended fee rates",
    "hashrate": "Network hashrate and difficulty retarget",
    "halving": "Countdown to the next halving",
    "health": "Probe every data provider",
}


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def emit(command: str, data: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        payload = dict(data)
        payload["timestamp"] = now_utc_iso()
        print(json.dumps(payload, indent=2, default=str))
    else:
        print(RENDERERS[command](data))


def emit_error(message: str, as_json: bool) -> None:
    if as_json:
        print(json.dumps({"error": message, "timestamp": now_utc_iso()}, indent=2))
    else:
        print(f"Error: {message}", file=sys.stderr)


def run_once(args: argparse.Namespace) -> int:
    try:
        data = COMMANDS[args.command](args)
    except ChainChirpError as exc:
        logger.debug("%s failed", args.command, exc_info=True)
        emit_error(str(exc), args.json)
        return 1
    emit(args.command, data, args.json)
    return 0


def run_watch(
    args: argparse.Namespace,
    sleep: Callable[[float], None] = time.sleep,
    max_ticks: Optional[int] = None,
) -> int:
    """Re-run the command every interval; a failed tick is reported and polling continues."""
    ticks = 0
    try:
        while max_ticks is None or ticks < max_ticks:
            if args.clear and not args.json:
                print(CLEAR_SCREEN, end="")
            if run_once(args) != 0:
                logger.warning("Watch tick failed for %s; retrying in %ss", args.command, args.interval)
            ticks += 1
            if max_ticks is None or ticks < max_ticks:
                sleep(args.interval)
    except KeyboardInterrupt:
        if not args.json:
            print("\nStopped.")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--currency", "-c", default=config.default_currency(), help="Fiat currency (default: usd)")
    common.add_argument("--json", action="store_true", help="Print JSON instead of text")
    common.add_argument("--watch", "-w", action="store_true", help="Refresh periodically until Ctrl+C")
    common.add_argument(
        "--interval", "-i", type=int, default=config.watch_interval_s(), metavar="SEC",
        help="Watch refresh interval in seconds (default: 30)",
    )
    common.add_argument("--no-clear", dest="clear", action="store_false", default=config.clear_screen(),
                        help="Do not clear the screen between watch refreshes")
    common.add_argument("--debug", action="store_true", help="Verbose provider logging on stderr")

    parser = argparse.ArgumentParser(
        prog="chainchirp",
        description="Bitcoin market and blockchain metrics from multiple providers",
    )
    parser.add_argument("--version", action="version", version=f"chainchirp {__version__}")
    subparsers = parser.add_subparsers(dest="command", help="command")
    for name in COMMANDS:
        sub = subparsers.add_parser(name, parents=[common], help=HELP[name])
        if name == "sparkline":
            sub.add_argument("--timeframe", "-t", default=DEFAULT_TIMEFRAME, choices=sorted(TIMEFRAME_DAYS))
            sub.add_argument("--width", type=int, default=60)
            sub.add_argument("--height", type=int, default=8)
        elif name == "block":
            sub.add_argument("--hash", default=None, help="Look up a specific block hash")
            sub.add_argument("--recent", type=int, default=0, metavar="N", help="List the N most recent blocks")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    configure_logging(args.debug or config.debug_enabled())
    args.currency = args.currency.lower()
    if args.interval <= 0:
        parser.error("--interval must be positive")

    if args.watch:
        return run_watch(args)
    return run_once(args)


if __name__ == "__main__":
    raise SystemExit(main())
