"""Plain-text formatting of tier results and runs for terminal output."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mobicert.domain.models import Severity

if TYPE_CHECKING:
    from mobicert.domain.models import (
        CertificationRun,
        ErrorRecord,
        RepairAttempt,
        Tier,
        TierResult,
    )


def tier_status_line(tier: Tier, result: TierResult) -> str:
    status = "PASS" if result.passed else "FAIL"
    line = f"{tier.value:<6} {status:<4}  {result.duration_ms}ms, {result.error_count} error(s)"
    if result.warning_count:
        line += f", {result.warning_count} warning(s)"
    return line


def error_line(record: ErrorRecord) -> str:
    label = "error" if record.severity is Severity.ERROR else "warning"
    code = f" {record.code}" if record.code else ""
    location = f"{record.location}: " if record.location else ""
    return f"[{record.kind.value}{code}] {label}: {location}{record.message}"


def repair_line(attempt: RepairAttempt) -> str:
    before = sum(1 for record in attempt.errors_before if record.is_error)
    after = sum(1 for record in attempt.errors_after if record.is_error)
    line = (
        f"{attempt.tier.value} attempt {attempt.attempt_number}: {attempt.outcome.value} "
        f"({before} -> {after} errors, {len(attempt.files_modified)} file(s) changed)"
    )
    if attempt.detail:
        line += f" - {attempt.detail}"
    return line


def run_error_lines(
    run: CertificationRun, *, limit: int = 20, include_warnings: bool = False
) -> tuple[list[str], int]:
    """Up to ``limit`` formatted records across tiers, plus the number left out."""

    lines: list[str] = []
    omitted = 0
    for result in run.tier_results:
        for record in result.errors:
            if not record.is_error and not include_warnings:
                continue
            if len(lines) >= limit:
                omitted += 1
                continue
            lines.append(f"{result.tier.value}: {error_line(record)}")
    return lines, omitted


__all__ = ["error_line", "repair_line", "run_error_lines", "tier_status_line"]
