"""Terminal rendering for the mobicert CLI.

Plain text by default; ANSI colour only when the stream is a TTY, ``--no-color`` was not
given and ``NO_COLOR`` is unset.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, Final, TextIO

from mobicert.domain.models import CertificationLevel

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

_RESET: Final = "\033[0m"
_STYLES: Final[dict[str, str]] = {
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
}
_LEVEL_STYLES: Final[dict[CertificationLevel, str]] = {
    CertificationLevel.GOLD: "yellow",
    CertificationLevel.SILVER: "cyan",
    CertificationLevel.BRONZE: "green",
    CertificationLevel.FAILED: "red",
}


def color_allowed(
    no_color_flag: bool,
    stream: TextIO | None = None,
    environ: Mapping[str, str] | None = None,
) -> bool:
    if no_color_flag:
        return False
    env = os.environ if environ is None else environ
    if env.get("NO_COLOR", ""):
        return False
    target = stream if stream is not None else sys.stdout
    return hasattr(target, "isatty") and target.isatty()


class CLIRenderer:
    """Thin line-oriented renderer; every method writes whole lines to ``stream``."""

    def __init__(
        self,
        *,
        no_color: bool = False,
        verbose: bool = False,
        stream: TextIO | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.verbose = verbose
        self._stream = stream
        self._color = color_allowed(no_color, stream, environ)

    @property
    def color(self) -> bool:
        return self._color

    def style(self, text: str, *styles: str) -> str:
        if not self._color or not styles:
            return text
        prefix = "".join(_STYLES[name] for name in styles)
        return f"{prefix}{text}{_RESET}"

    def text(self, line: str = "") -> None:
        print(line, file=self._stream or sys.stdout)

    def blank(self) -> None:
        self.text()

    def heading(self, text: str) -> None:
        self.text(self.style(text, "bold"))

    def section(self, title: str) -> None:
        self.text()
        self.heading(title)

    def kv(self, key: str, value: object) -> None:
        self.text(f"{key}: {value}")

    def ok(self, label: str) -> None:
        self.text(f"  {self.style('PASS', 'green', 'bold')}  {label}")

    def fail(self, label: str) -> None:
        self.text(f"  {self.style('FAIL', 'red', 'bold')}  {label}")

    def warning(self, text: str) -> None:
        self.text(f"  {self.style('warning', 'yellow')}: {text}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self.text(f"  {prefix}{entry}")

    def level(self, level: CertificationLevel) -> str:
        return self.style(level.value.upper(), _LEVEL_STYLES[level], "bold")

    def table(self, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        if not rows:
            return
        widths = [len(header) for header in headers]
        for row in rows:
            for index, cell in enumerate(row[: len(headers)]):
                widths[index] = max(widths[index], len(str(cell)))

        def pad(cells: Sequence[str]) -> str:
            return "  ".join(
                (str(cells[index]) if index < len(cells) else "").ljust(width)
                for index, width in enumerate(widths)
            ).rstrip()

        self.text(f"  {pad(headers)}")
        self.text(f"  {'  '.join('-' * width for width in widths)}")
        for row in rows:
            self.text(f"  {pad(row)}")


def create_renderer(
    *, no_color: bool = False, verbose: bool = False, stream: TextIO | None = None
) -> CLIRenderer:
    return CLIRenderer(no_color=no_color, verbose=verbose, stream=stream)


__all__ = ["CLIRenderer", "color_allowed", "create_renderer"]
