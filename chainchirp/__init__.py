"""
Top-level public API surface. Stable facades only.
Canonical entrypoint: import chainchirp; use chainchirp.providers, chainchirp.services.
Does not import cli.
"""

from __future__ import annotations

from . import config, core, providers, services
from ._version import __version__

# Do not add exports without updating __all__.
__all__ = [
    "__version__",
    "config",
    "core",
    "providers",
    "services",
]
