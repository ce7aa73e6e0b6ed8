"""Console, JSON and markdown reporting for certification runs."""

from mobicert.reporting.console import (
    error_line,
    repair_line,
    run_error_lines,
    tier_status_line,
)
from mobicert.reporting.documents import (
    batch_document,
    dumps_document,
    run_document,
    template_document,
    write_document,
)
from mobicert.reporting.markdown import render_batch_markdown

__all__ = [
    "batch_document",
    "dumps_document",
    "error_line",
    "render_batch_markdown",
    "repair_line",
    "run_document",
    "run_error_lines",
    "template_document",
    "tier_status_line",
    "write_document",
]
