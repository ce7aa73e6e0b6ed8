"""
mobicert — repair orchestrator

Purpose
- Drive the bounded "request fix, apply patch, re-validate" loop for one failed tier.

Functional requirements
- Explicit state machine with an attempt counter; never exceeds the attempt budget.
- Non-retryable fix failures abort after exactly one call, recorded as one fatal attempt.
- Patch application failures abort the loop with the project restored to its pre-batch state.
- A re-validation that cannot run is recorded as a fatal attempt; earlier attempts are kept.
- Two consecutive attempts ending with the same error set abort as non-convergent.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import structlog

from mobicert.constants import (
    DEFAULT_ATTEMPT_BUDGET,
    DEFAULT_FIX_TIMEOUT_SECONDS,
    MAX_ATTEMPT_BUDGET,
    PACKAGE_MANIFEST,
)
from mobicert.domain.models import (
    ErrorKind,
    ErrorRecord,
    RepairAttempt,
    RepairOutcome,
    TierResult,
)
from mobicert.fixes.contract import (
    BackoffConfig,
    FixCapabilityError,
    FixRequest,
    FixResponse,
    map_unexpected_exception,
    run_with_retries,
)
from mobicert.fixes.patches import PatchApplicationError, apply_patches
from mobicert.utils.concurrency import run_with_timeout
from mobicert.utils.fs import resolve_within

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from mobicert.certification.tier_runner import TierRunner
    from mobicert.checks.base import Check
    from mobicert.domain.models import ErrorFingerprint, Tier
    from mobicert.fixes.contract import FixCapability, JSONValue

_MAX_EXCERPT_FILES: Final[int] = 8
_MAX_EXCERPT_CHARS: Final[int] = 12_000


class RepairState(StrEnum):
    PENDING = "pending"
    CHECKING = "checking"
    REPAIRING = "repairing"
    PASSED = "passed"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"


TERMINAL_STATES: Final[frozenset[RepairState]] = frozenset(
    {RepairState.PASSED, RepairState.EXHAUSTED, RepairState.ABORTED}
)


@dataclass(frozen=True, slots=True)
class RepairReport:
    """Ordered attempts plus the tier result the loop ended on."""

    attempts: tuple[RepairAttempt, ...]
    final_result: TierResult
    final_state: RepairState

    @property
    def resolved(self) -> bool:
        return self.final_result.passed


class RepairOrchestrator:
    """Bounded repair loop for a single failed tier."""

    def __init__(
        self,
        *,
        fix_capability: FixCapability,
        tier_runner: TierRunner,
        fix_timeout_seconds: float = DEFAULT_FIX_TIMEOUT_SECONDS,
        backoff: BackoffConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: Any | None = None,
    ) -> None:
        if fix_timeout_seconds <= 0:
            raise ValueError("fix_timeout_seconds must be > 0")
        self._fix_capability = fix_capability
        self._tier_runner = tier_runner
        self._fix_timeout_seconds = float(fix_timeout_seconds)
        self._backoff = backoff if backoff is not None else BackoffConfig()
        self._sleep = sleep
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def attempt_repair(
        self,
        project_path: str | Path,
        tier_result: TierResult,
        attempt_budget: int = DEFAULT_ATTEMPT_BUDGET,
        *,
        check_set: Sequence[Check] | None = None,
    ) -> RepairReport:
        if not 1 <= attempt_budget <= MAX_ATTEMPT_BUDGET:
            raise ValueError(f"attempt_budget must be between 1 and {MAX_ATTEMPT_BUDGET}")

        project = Path(project_path)
        tier = tier_result.tier
        log = self._logger.bind(tier=tier.value, project=str(project))

        attempts: list[RepairAttempt] = []
        current = tier_result
        previous_after: frozenset[ErrorFingerprint] | None = None
        state = RepairState.PASSED if tier_result.passed else RepairState.PENDING

        while state not in TERMINAL_STATES:
            if state is RepairState.PENDING or state is RepairState.CHECKING:
                if current.passed:
                    state = RepairState.PASSED
                elif len(attempts) >= attempt_budget:
                    log.info("repair_budget_exhausted", attempts=len(attempts))
                    state = RepairState.EXHAUSTED
                else:
                    state = RepairState.REPAIRING
                continue

            attempt_number = len(attempts) + 1
            log.info("repair_attempt_started", attempt=attempt_number, errors=current.error_count)
            request = FixRequest(
                tier=tier,
                errors=current.blocking_errors,
                affected_files=current.affected_files,
                project_context=build_project_context(project, current),
                attempt_number=attempt_number,
                warnings=tuple(record for record in current.errors if not record.is_error),
            )

            try:
                response = await self._request_fix(request, log)
            except FixCapabilityError as exc:
                log.error(
                    "repair_fix_failed",
                    attempt=attempt_number,
                    code=exc.code,
                    retryable=exc.retryable,
                    error=exc.detail,
                )
                attempts.append(
                    _attempt(current, current, attempt_number, (), RepairOutcome.FATAL, str(exc))
                )
                state = RepairState.ABORTED
                continue

            try:
                modified = apply_patches(project, response.patches, logger=self._logger)
            except PatchApplicationError as exc:
                log.error("repair_patch_failed", attempt=attempt_number, error=str(exc))
                attempts.append(
                    _attempt(
                        current,
                        current,
                        attempt_number,
                        exc.left_modified,
                        RepairOutcome.PATCH_FAILED,
                        str(exc),
                    )
                )
                state = RepairState.ABORTED
                continue

            revalidated, crash = await self._revalidate(project, tier, check_set, log)
            if crash is not None:
                attempts.append(
                    _attempt(
                        current, revalidated, attempt_number, modified, RepairOutcome.FATAL, crash
                    )
                )
                current = revalidated
                state = RepairState.ABORTED
                continue

            after = revalidated.error_set()
            if revalidated.passed:
                outcome = RepairOutcome.RESOLVED
            elif previous_after is not None and after == previous_after:
                outcome = RepairOutcome.NON_CONVERGENT
            elif revalidated.error_count < current.error_count:
                outcome = RepairOutcome.IMPROVED
            else:
                outcome = RepairOutcome.UNCHANGED

            attempts.append(
                _attempt(
                    current,
                    revalidated,
                    attempt_number,
                    modified,
                    outcome,
                    response.description or None,
                )
            )
            log.info(
                "repair_attempt_finished",
                attempt=attempt_number,
                outcome=outcome.value,
                files_modified=len(modified),
                errors_after=revalidated.error_count,
            )
            current = revalidated
            previous_after = after
            if outcome is RepairOutcome.NON_CONVERGENT:
                log.warning("repair_non_convergent", attempt=attempt_number)
                state = RepairState.ABORTED
            else:
                state = RepairState.CHECKING

        return RepairReport(attempts=tuple(attempts), final_result=current, final_state=state)

    async def _revalidate(
        self, project: Path, tier: Tier, check_set: Sequence[Check] | None, log: Any
    ) -> tuple[TierResult, str | None]:
        started = time.perf_counter()
        try:
            return await self._tier_runner.run_tier(project, tier, check_set), None
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            detail = f"{tier.value} re-validation could not run: {type(exc).__name__}: {exc}"
            log.error("repair_revalidation_crashed", error=detail)
            crashed = TierResult.from_errors(
                tier,
                [ErrorRecord(kind=ErrorKind.INTERNAL, message=detail, source="repair")],
                int((time.perf_counter() - started) * 1000),
            )
            return crashed, detail

    async def _request_fix(self, request: FixRequest, log: Any) -> FixResponse:
        async def operation() -> FixResponse:
            return await run_with_timeout(
                self._fix_capability.request_fix(request), self._fix_timeout_seconds
            )

        def on_retry(retry_number: int, error: FixCapabilityError, delay: float) -> None:
            log.warning(
                "repair_fix_retry", retry=retry_number, code=error.code, delay_seconds=delay
            )

        response = await run_with_retries(
            operation,
            backoff=self._backoff,
            map_exception=map_unexpected_exception,
            sleep=self._sleep,
            on_retry=on_retry,
        )
        if not isinstance(response, FixResponse):
            raise map_unexpected_exception(
                TypeError(f"fix capability returned {type(response).__name__}")
            )
        return response


def build_project_context(project: Path, result: TierResult) -> dict[str, JSONValue]:
    """Summarize the project for a fix request: root, dependencies, excerpts of affected files."""

    context: dict[str, JSONValue] = {
        "tier": result.tier.value,
        "project_root": str(project.resolve()),
    }
    try:
        package = json.loads((project / PACKAGE_MANIFEST).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        package = None
    if isinstance(package, dict):
        for key in ("dependencies", "devDependencies"):
            section = package.get(key)
            if isinstance(section, dict):
                context[key] = {str(name): str(version) for name, version in section.items()}

    excerpts: dict[str, JSONValue] = {}
    for relative in result.affected_files[:_MAX_EXCERPT_FILES]:
        try:
            text = resolve_within(project, relative).read_text(encoding="utf-8", errors="replace")
        except (OSError, ValueError):
            continue
        if len(text) > _MAX_EXCERPT_CHARS:
            text = text[:_MAX_EXCERPT_CHARS] + "\n/* ...truncated... */"
        excerpts[relative] = text
    context["file_excerpts"] = excerpts
    return context


def _attempt(
    before: TierResult,
    after: TierResult,
    attempt_number: int,
    files_modified: Sequence[str],
    outcome: RepairOutcome,
    detail: str | None,
) -> RepairAttempt:
    return RepairAttempt(
        tier=before.tier,
        attempt_number=attempt_number,
        files_modified=tuple(files_modified),
        success=after.passed,
        errors_before=before.errors,
        errors_after=after.errors,
        outcome=outcome,
        detail=detail,
    )


__all__ = [
    "TERMINAL_STATES",
    "RepairOrchestrator",
    "RepairReport",
    "RepairState",
    "build_project_context",
]
