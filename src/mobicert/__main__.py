"""Module entrypoint for ``python -m mobicert``."""

from __future__ import annotations

from mobicert.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
