"""
Resilience primitives: transient-failure classification and retry with
exponential backoff around a single provider call.

Attempt 1 runs immediately. Each transient failure waits
base_delay_s * backoff_factor ** retry_count (1s, 2s, 4s by default) and
retries, up to max_retries retries; then the last error is raised.
Non-transient failures propagate on the first occurrence.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from ..core.errors import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = (429, 500, 502, 503, 504)
# connection-reset, connection-aborted, timed-out
TRANSIENT_ERROR_CODES = ("ECONNRESET", "ECONNABORTED", "ETIMEDOUT")


@dataclass
class RetryConfig:
    """Configuration for retry with exponential backoff."""
    max_retries: int = 3
    base_delay_s: float = 1.0
    backoff_factor: float = 2.0
    max_delay_s: float = 30.0
    retry_on_status_codes: tuple[int, ...] = TRANSIENT_STATUS_CODES
    retry_on_error_codes: tuple[str, ...] = TRANSIENT_ERROR_CODES

    def delay_for(self, retry_count: int) -> float:
        return min(self.base_delay_s * (self.backoff_factor ** retry_count), self.max_delay_s)


def is_transient(exc: BaseException, config: Optional[RetryConfig] = None) -> bool:
    """True iff the failure is a retryable HTTP status or network error code."""
    cfg = config or RetryConfig()
    if not isinstance(exc, ProviderError):
        return False
    if exc.status is not None and exc.status in cfg.retry_on_status_codes:
        return True
    return exc.code is not None and exc.code in cfg.retry_on_error_codes


class TransientRetrier:
    """Wraps one provider HTTP call with bounded exponential-backoff retry."""

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or RetryConfig()
        self._sleep = sleep

    def execute(
        self,
        func: Callable[..., T],
        *args: Any,
        max_retries: Optional[int] = None,
        label: str = "request",
        **kwargs: Any,
    ) -> T:
        """
        Run func, retrying transient failures.

        Raises the last exception once the retry budget is spent, or the
        first non-transient exception immediately.
        """
        budget = self.config.max_retries if max_retries is None else max(max_retries, 0)
        retry_count = 0
        while True:
            try:
                return func(*args, **kwargs)
            except ProviderError as exc:
                if not is_transient(exc, self.config):
                    raise
                if retry_count >= budget:
                    logger.debug(
                        "%s: giving up after %d retries: %s", label, retry_count, exc
                    )
                    raise
                delay = self.config.delay_for(retry_count)
                retry_count += 1
                logger.info(
                    "%s: retrying (%d/%d) after %.0fms: %s",
                    label, retry_count, budget, delay * 1000, exc,
                )
                self._sleep(delay)


def resilient_call(
    func: Callable[..., T],
    *args: Any,
    retry_config: Optional[RetryConfig] = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> T:
    """Execute a provider call with transient-failure retry."""
    return TransientRetrier(retry_config, sleep=sleep).execute(func, *args, **kwargs)
