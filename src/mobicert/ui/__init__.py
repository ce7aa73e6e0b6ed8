"""Command-line surface and terminal rendering."""

from mobicert.ui.cli import CLIError, build_parser, main, run_cli
from mobicert.ui.render import CLIRenderer, color_allowed, create_renderer

__all__ = [
    "CLIError",
    "CLIRenderer",
    "build_parser",
    "color_allowed",
    "create_renderer",
    "main",
    "run_cli",
]
