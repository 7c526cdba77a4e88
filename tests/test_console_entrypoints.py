"""Verify the CLI exposes main() and chainchirp --help works."""

from __future__ import annotations

import subprocess
import sys
from importlib import import_module

import pytest

from chainchirp.cli.main import COMMANDS, HELP


def test_cli_module_has_main():
    mod = import_module("chainchirp.cli.main")
    assert hasattr(mod, "main"), "chainchirp.cli.main missing main()"
    assert callable(mod.main), "chainchirp.cli.main.main not callable"


def test_every_command_has_help_and_renderer():
    from chainchirp.cli.render import RENDERERS

    assert set(COMMANDS) == set(HELP) == set(RENDERERS)


def test_cli_main_help_exits_zero():
    """cli.main.main(["--help"]) exits with 0 (in-process)."""
    from chainchirp.cli.main import main

    with pytest.raises(SystemExit) as exc_info:
        main(["--help"])
    assert exc_info.value.code == 0


def test_cli_version():
    from chainchirp import __version__
    from chainchirp.cli.main import main

    with pytest.raises(SystemExit) as exc_info:
        main(["--version"])
    assert exc_info.value.code == 0
    assert __version__ == "1.0.2"


def test_chainchirp_help_exits_zero():
    """python -m chainchirp --help exits 0 and lists commands (subprocess)."""
    r = subprocess.run(
        [sys.executable, "-m", "chainchirp", "--help"],
        capture_output=True,
        text=True,
        timeout=10,
    )
    assert r.returncode == 0, (r.stdout or "") + (r.stderr or "")
    out = (r.stdout or "") + (r.stderr or "")
    for command in ("price", "fees", "halving", "health"):
        assert command in out, f"Help output should list '{command}' command"
