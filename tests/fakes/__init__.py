"""Fake transport, clock and provider specs for provider tests (no live network)."""

from .providers import (
    FakeClock,
    FakeTransport,
    http_error,
    make_registry,
    make_spec,
    network_error,
)

__all__ = [
    "FakeClock",
    "FakeTransport",
    "http_error",
    "make_registry",
    "make_spec",
    "network_error",
]
