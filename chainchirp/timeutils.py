"""
Single source for "now" time. Supports deterministic mode for tests via
CHAINCHIRP_DETERMINISTIC_TIME (ISO format, e.g. 2026-01-01T00:00:00Z).
"""

from __future__ import annotations

import os
import time
from datetime import datetime, timezone


def now_utc_iso() -> str:
    """
    Return current UTC time in ISO format (seconds).
    If env CHAINCHIRP_DETERMINISTIC_TIME is set, return that value instead.
    """
    fixed = os.environ.get("CHAINCHIRP_DETERMINISTIC_TIME", "").strip()
    if fixed:
        return fixed if fixed.endswith("Z") or "+" in fixed else f"{fixed}Z"
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def now_epoch_s() -> float:
    """Current wall-clock time in seconds; honours CHAINCHIRP_DETERMINISTIC_TIME."""
    fixed = os.environ.get("CHAINCHIRP_DETERMINISTIC_TIME", "").strip()
    if fixed:
        parsed = datetime.fromisoformat(fixed.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp()
    return time.time()


def epoch_to_iso(seconds: float) -> str:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat(timespec="seconds")
