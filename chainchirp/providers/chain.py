"""
Provider chains: ordered fallback over heterogeneous upstream APIs.

A FallbackClient takes one canonical request and walks the resolved
providers in ascending priority. Per provider it waits on the rate limiter,
maps the request, performs the HTTP call through the retrier, and normalizes
the body. The first success is returned; later providers are never touched.
Provider-level failures are logged and fed to the health tracker; only
exhaustion of the whole chain reaches the caller.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, List, Optional

from ..core.errors import AllProvidersFailedError, ProviderError
from .base import FallbackRequest, ProviderHealth, ProviderSpec, QueryParams
from .health import HEALTH_CHECK_TIMEOUT_S, HealthPolicy, HealthTracker
from .http import DEFAULT_TIMEOUT_S, ProviderTransport, RequestsTransport
from .ratelimit import RateLimiterPool
from .registry import ProviderRegistry
from .resilience import RetryConfig, TransientRetrier

logger = logging.getLogger(__name__)


class FallbackClient:
    """
    Resilient multi-provider fetch over a ProviderRegistry.

    Construct once and pass it to every service that needs it; rate limiter
    windows and health flags are shared by all requests on the same client.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        transport: Optional[ProviderTransport] = None,
        retry_config: Optional[RetryConfig] = None,
        health: Optional[HealthTracker] = None,
        default_providers: Optional[Iterable[str]] = None,
        default_skip: Optional[Iterable[str]] = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        health_timeout_s: float = HEALTH_CHECK_TIMEOUT_S,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        name: str = "fallback",
    ) -> None:
        self.name = name
        self.registry = registry
        self.transport: ProviderTransport = transport or RequestsTransport(timeout_s=timeout_s)
        self.retry_config = retry_config or RetryConfig()
        self.timeout_s = timeout_s
        self.health_timeout_s = health_timeout_s
        self._default_providers = list(default_providers) if default_providers is not None else None
        self._default_skip = list(default_skip or ())
        self._retrier = TransientRetrier(self.retry_config, sleep=sleep)
        self._limiters = RateLimiterPool(registry.specs(), clock=clock, sleep=sleep)
        self._health = health or HealthTracker(registry.specs(), policy=HealthPolicy())

    @property
    def health(self) -> HealthTracker:
        return self._health

    @property
    def limiters(self) -> RateLimiterPool:
        return self._limiters

    def candidates_for(self, request: FallbackRequest) -> List[ProviderSpec]:
        """Resolve the ordered provider chain for one request."""
        names = request.candidate_providers
        if names is None:
            names = tuple(self._default_providers or self.registry.names)
        skip = list(self._default_skip) + list(request.skip_providers)
        return self.registry.resolve(names, skip=skip)

    def fetch(self, request: FallbackRequest) -> Any:
        """
        Return the canonical body for request from the first provider that succeeds.

        Raises AllProvidersFailedError carrying the last provider's error once
        every candidate has failed.
        """
        chain = self.candidates_for(request)
        attempted: List[str] = []
        last_error: Optional[BaseException] = None

        for spec in chain:
            attempted.append(spec.key)
            logger.debug("[%s] Trying provider: %s for %s", self.name, spec.name, request.endpoint)
            try:
                result = self._attempt(spec, request)
            except ProviderError as exc:
                last_error = exc
                logger.warning("[%s] %s failed: %s", self.name, spec.name, exc)
                self._health.record_failure(spec.key, exc)
                continue

            self._health.mark_healthy(spec.key)
            logger.debug("[%s] Success with %s", self.name, spec.name)
            return result

        raise AllProvidersFailedError(last_error, attempted=attempted)

    def _attempt(self, spec: ProviderSpec, request: FallbackRequest) -> Any:
        limiter = self._limiters.for_provider(spec)
        limiter.acquire()

        adapter = self.registry.get_adapter(spec.key)
        path, params = adapter.transform_request(request.endpoint, dict(request.params))

        raw = self._retrier.execute(
            self.transport.get,
            spec,
            path,
            params,
            self.timeout_s,
            max_retries=request.max_retries_per_provider,
            label=spec.name,
        )
        return adapter.transform_response(raw, request.endpoint, dict(request.params))

    def fetch_with_fallback(
        self,
        endpoint: str,
        params: Optional[QueryParams] = None,
        providers: Optional[Iterable[str]] = None,
        skip_providers: Optional[Iterable[str]] = None,
        max_retries: Optional[int] = None,
    ) -> Any:
        """Keyword-style wrapper over fetch()."""
        return self.fetch(
            FallbackRequest(
                endpoint=endpoint,
                params=dict(params or {}),
                candidate_providers=tuple(providers) if providers is not None else None,
                skip_providers=tuple(skip_providers or ()),
                max_retries_per_provider=max_retries,
            )
        )

    def get_provider_health(self) -> dict:
        """Return the advisory health flag for each provider."""
        return self._health.snapshot()

    def get_health_details(self) -> dict[str, ProviderHealth]:
        return self._health.details()

    def check_all(self) -> dict:
        """Actively probe every registered provider's health endpoint."""
        return self._health.check_all(
            self.registry.specs(), self.transport, timeout_s=self.health_timeout_s
        )
