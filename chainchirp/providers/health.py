"""
Advisory provider health.

HealthTracker holds the last-known-healthy flag per provider. It is updated
passively by the fallback chain after every provider attempt and actively by
check_all() probes. It never gates the fallback chain; it exists for
diagnostics (`chainchirp health`, --debug output).
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional

from ..core.errors import NormalizationError, ProviderError
from .base import ProviderHealth, ProviderSpec
from .http import ProviderTransport

logger = logging.getLogger(__name__)

HEALTH_CHECK_TIMEOUT_S = 5.0


@dataclass(frozen=True)
class HealthPolicy:
    """
    Which failures flip a provider to unhealthy.

    The default status set also counts 401/403/404, which are client or
    auth problems rather than outages. Narrow it via config.yaml
    (health.unhealthy_status_codes) if that is not wanted.
    """

    unhealthy_status_codes: FrozenSet[int] = field(
        default_factory=lambda: frozenset({401, 403, 404, 500, 502, 503, 504})
    )
    mark_network_errors: bool = True
    mark_normalization_errors: bool = False

    @classmethod
    def from_config(cls, cfg: dict) -> "HealthPolicy":
        health = cfg.get("health", {}) if isinstance(cfg, dict) else {}
        default = cls()
        codes = health.get("unhealthy_status_codes")
        return cls(
            unhealthy_status_codes=(
                frozenset(int(c) for c in codes) if codes is not None
                else default.unhealthy_status_codes
            ),
            mark_network_errors=bool(health.get("mark_network_errors", default.mark_network_errors)),
            mark_normalization_errors=bool(
                health.get("mark_normalization_errors", default.mark_normalization_errors)
            ),
        )

    def marks_unhealthy(self, exc: BaseException) -> bool:
        if isinstance(exc, NormalizationError):
            return self.mark_normalization_errors
        if not isinstance(exc, ProviderError):
            return False
        if exc.status is not None:
            return exc.status in self.unhealthy_status_codes
        return exc.code is not None and self.mark_network_errors


class HealthTracker:
    """Process-wide (per client) map of provider -> last-known-healthy."""

    def __init__(
        self,
        specs: Iterable[ProviderSpec] = (),
        policy: Optional[HealthPolicy] = None,
    ) -> None:
        self.policy = policy or HealthPolicy()
        self._health: Dict[str, ProviderHealth] = {}
        self._lock = threading.Lock()
        for spec in specs:
            # Assume healthy until told otherwise.
            self._health[spec.key] = ProviderHealth(provider_name=spec.key)

    def _entry(self, key: str) -> ProviderHealth:
        entry = self._health.get(key)
        if entry is None:
            entry = ProviderHealth(provider_name=key)
            self._health[key] = entry
        return entry

    def mark_healthy(self, key: str) -> None:
        with self._lock:
            self._entry(key).record_success()

    def mark_unhealthy(self, key: str, error: str = "") -> None:
        with self._lock:
            self._entry(key).record_failure(error)

    def is_healthy(self, key: str) -> bool:
        with self._lock:
            entry = self._health.get(key)
            return entry.healthy if entry is not None else False

    def record_failure(self, key: str, exc: BaseException) -> bool:
        """Apply the policy to one provider failure. Returns True if marked unhealthy."""
        if self.policy.marks_unhealthy(exc):
            self.mark_unhealthy(key, f"{type(exc).__name__}: {exc}")
            return True
        return False

    def snapshot(self) -> Dict[str, bool]:
        with self._lock:
            return {key: h.healthy for key, h in self._health.items()}

    def details(self) -> Dict[str, ProviderHealth]:
        with self._lock:
            return {
                key: ProviderHealth(
                    provider_name=h.provider_name,
                    healthy=h.healthy,
                    last_ok_at=h.last_ok_at,
                    fail_count=h.fail_count,
                    last_error=h.last_error,
                )
                for key, h in self._health.items()
            }

    def check_all(
        self,
        specs: Iterable[ProviderSpec],
        transport: ProviderTransport,
        timeout_s: float = HEALTH_CHECK_TIMEOUT_S,
    ) -> Dict[str, bool]:
        """
        Actively probe each provider's health endpoint.

        Providers without a health path report their last known flag. Probes
        run sequentially and bypass rate limiting and retry.
        """
        results: Dict[str, bool] = {}
        for spec in specs:
            if not spec.health_endpoint:
                results[spec.key] = self.is_healthy(spec.key)
                continue
            try:
                transport.get(spec, spec.health_endpoint, timeout=timeout_s)
            except ProviderError as exc:
                results[spec.key] = False
                self.mark_unhealthy(spec.key, str(exc))
                logger.warning("Health check failed for %s: %s", spec.name, exc)
            else:
                results[spec.key] = True
                self.mark_healthy(spec.key)
        return results
