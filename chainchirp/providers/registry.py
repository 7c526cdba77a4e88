"""
Provider registry: central catalog of available providers.

Providers register themselves here together with the adapter that speaks
their schema. The registry resolves caller-supplied candidate lists into the
priority-ordered chain the FallbackClient walks.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Type, Union

from .base import ProviderAdapter, ProviderSpec

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Registry mapping provider keys to specs and adapter classes/instances.

    Usage:
        registry = ProviderRegistry()
        registry.register(COINGECKO, CoinGeckoAdapter)
        registry.register(KRAKEN, KrakenAdapter)

        chain = registry.resolve(["kraken", "coingecko"])  # -> [coingecko, kraken]
    """

    def __init__(self) -> None:
        self._specs: Dict[str, ProviderSpec] = {}
        self._adapter_factories: Dict[str, Union[Type[ProviderAdapter], ProviderAdapter]] = {}
        self._adapter_instances: Dict[str, ProviderAdapter] = {}

    def register(
        self,
        spec: ProviderSpec,
        adapter: Union[Type[ProviderAdapter], ProviderAdapter],
    ) -> None:
        """Register a provider by its spec key."""
        self._specs[spec.key] = spec
        self._adapter_factories[spec.key] = adapter
        self._adapter_instances.pop(spec.key, None)
        logger.debug("Registered provider: %s (priority %d)", spec.key, spec.priority)

    def __contains__(self, key: object) -> bool:
        return key in self._specs

    def get_spec(self, key: str) -> ProviderSpec:
        spec = self._specs.get(key)
        if spec is None:
            raise KeyError(f"Unknown provider '{key}'. Available: {list(self._specs)}")
        return spec

    def get_adapter(self, key: str) -> ProviderAdapter:
        """Get or instantiate the adapter for a provider."""
        if key not in self._adapter_instances:
            factory = self._adapter_factories.get(key)
            if factory is None:
                raise KeyError(f"Unknown provider '{key}'. Available: {list(self._specs)}")
            if isinstance(factory, type):
                self._adapter_instances[key] = factory()
            else:
                self._adapter_instances[key] = factory
        return self._adapter_instances[key]

    @property
    def names(self) -> List[str]:
        """Registered keys in priority order."""
        return [s.key for s in sorted(self._specs.values(), key=lambda s: s.priority)]

    def specs(self) -> List[ProviderSpec]:
        return sorted(self._specs.values(), key=lambda s: s.priority)

    def resolve(
        self,
        candidates: Optional[Iterable[str]] = None,
        skip: Optional[Iterable[str]] = None,
    ) -> List[ProviderSpec]:
        """
        Build the ordered chain for one request.

        candidates minus skip, intersected with registered providers, sorted
        ascending by priority. Unknown names are dropped.
        """
        names = list(candidates) if candidates is not None else list(self._specs)
        skipped = set(skip or ())
        chosen: List[ProviderSpec] = []
        seen = set()
        for name in names:
            if name in skipped or name in seen:
                continue
            spec = self._specs.get(name)
            if spec is None:
                logger.debug("Ignoring unregistered provider in candidate list: %s", name)
                continue
            seen.add(name)
            chosen.append(spec)
        # sorted() is stable, so equal priorities keep caller order.
        return sorted(chosen, key=lambda s: s.priority)
