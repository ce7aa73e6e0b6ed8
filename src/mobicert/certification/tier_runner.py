"""
mobicert — tier runner

Purpose
- Execute one tier's check set concurrently and fold the outcomes into a ``TierResult``.

Functional requirements
- Concurrency is bounded by min(max_workers, number of checks).
- A tier exceeding its budget yields exactly one timeout record and nothing else.
- However many checks time out individually, the tier carries a single timeout record.
- With early termination, the first check reporting a critical error cancels the checks still
  running; records of checks that already finished are kept.
- A check raising is absorbed into an ``internal`` record; records keep check-set order.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping, Sequence
from contextlib import aclosing
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import structlog

from mobicert.checks.base import CheckContext, CheckOutcome, LocalSubprocessExecutor
from mobicert.checks.registry import DEFAULT_TIER_CHECKS, build_default_check_registry
from mobicert.constants import DEFAULT_CHECK_TIMEOUT_SECONDS, DEFAULT_MAX_WORKERS
from mobicert.domain.models import ErrorKind, ErrorRecord, Tier, TierResult
from mobicert.taxonomy.registry import build_default_registry
from mobicert.utils.concurrency import CancellationToken, WorkerPool, run_with_timeout

if TYPE_CHECKING:
    from mobicert.checks.base import Check, CommandExecutor
    from mobicert.checks.registry import CheckRegistry
    from mobicert.taxonomy.registry import ParserRegistry


class TierRunner:
    """Run the configured check set for a tier against one project directory."""

    def __init__(
        self,
        *,
        check_registry: CheckRegistry | None = None,
        tier_checks: Mapping[Tier, Sequence[str]] | None = None,
        parsers: ParserRegistry | None = None,
        executor: CommandExecutor | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        check_timeout_seconds: float = DEFAULT_CHECK_TIMEOUT_SECONDS,
        tier_budgets: Mapping[Tier, float] | None = None,
        early_termination: bool = False,
        logger: Any | None = None,
    ) -> None:
        if max_workers <= 0:
            raise ValueError("max_workers must be > 0")
        if check_timeout_seconds <= 0:
            raise ValueError("check_timeout_seconds must be > 0")

        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._registry = check_registry or build_default_check_registry()
        if tier_checks is None:
            tier_checks = DEFAULT_TIER_CHECKS
        self._tier_checks = {tier: tuple(names) for tier, names in tier_checks.items()}
        for names in self._tier_checks.values():
            # Raises UnknownCheckError up front rather than mid-run.
            self._registry.build(names)
        self._parsers = parsers or build_default_registry(logger=self._logger)
        self._executor = executor or LocalSubprocessExecutor()
        self._max_workers = max_workers
        self._check_timeout_seconds = float(check_timeout_seconds)
        self._tier_budgets = {tier: tier.budget_seconds for tier in Tier}
        for tier, budget in (tier_budgets or {}).items():
            if budget <= 0:
                raise ValueError(f"budget for {tier} must be > 0")
            self._tier_budgets[Tier.parse(tier)] = float(budget)
        self._early_termination = early_termination

    @property
    def parsers(self) -> ParserRegistry:
        return self._parsers

    @property
    def early_termination(self) -> bool:
        return self._early_termination

    def budget_for(self, tier: Tier) -> float:
        return self._tier_budgets[tier]

    def check_names(self, tier: Tier) -> tuple[str, ...]:
        return self._tier_checks.get(tier, ())

    def checks_for(self, tier: Tier) -> tuple[Check, ...]:
        return self._registry.build(self.check_names(tier))

    async def run_tier(
        self,
        project_path: str | Path,
        tier: Tier,
        check_set: Sequence[Check] | None = None,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> TierResult:
        tier = Tier.parse(tier)
        project = Path(project_path)
        checks = tuple(check_set) if check_set is not None else self.checks_for(tier)
        budget = self.budget_for(tier)
        started = time.perf_counter()
        log = self._logger.bind(tier=tier.value, project=str(project))

        try:
            records = await run_with_timeout(
                self._run_checks(project, tier, checks, cancel_token), budget, cancel_token
            )
        except TimeoutError:
            log.warning("tier_timeout", budget_seconds=budget)
            records = [
                ErrorRecord(
                    kind=ErrorKind.TIMEOUT,
                    message=f"{tier.value} exceeded its {budget:g}s budget",
                    source="tier-runner",
                )
            ]

        result = TierResult.from_errors(tier, records, _elapsed_ms(started))
        log.info(
            "tier_completed",
            passed=result.passed,
            errors=result.error_count,
            warnings=result.warning_count,
            duration_ms=result.duration_ms,
        )
        return result

    async def _run_checks(
        self,
        project: Path,
        tier: Tier,
        checks: Sequence[Check],
        cancel_token: CancellationToken | None,
    ) -> list[ErrorRecord]:
        if not checks:
            return []

        budget = self.budget_for(tier)
        per_check_timeout = min(self._check_timeout_seconds, budget)
        context = CheckContext(
            project_path=project,
            tier=tier,
            parsers=self._parsers,
            executor=self._executor,
            timeout_seconds=per_check_timeout,
        )
        # A per-check deadline equal to the tier budget would race the tier deadline itself.
        check_deadline = per_check_timeout if per_check_timeout < budget else None

        pool: WorkerPool[tuple[int, CheckOutcome]] = WorkerPool(
            max_concurrency=min(self._max_workers, len(checks)), cancel_token=cancel_token
        )
        outcomes: dict[int, CheckOutcome] = {}
        coroutines = [
            self._run_check(index, check, context, check_deadline)
            for index, check in enumerate(checks)
        ]
        async with aclosing(pool.run(coroutines)) as finished:
            async for index, outcome in finished:
                outcomes[index] = outcome
                if self._early_termination and has_critical_error(outcome):
                    self._logger.info(
                        "tier_terminated_early",
                        tier=tier.value,
                        check=outcome.check_name,
                        not_finished=len(checks) - len(outcomes),
                    )
                    break

        records: list[ErrorRecord] = []
        for index in sorted(outcomes):
            records.extend(outcomes[index].records)
        return _merge_timeouts(records)

    async def _run_check(
        self,
        index: int,
        check: Check,
        context: CheckContext,
        deadline: float | None,
    ) -> tuple[int, CheckOutcome]:
        started = time.perf_counter()
        name = getattr(check, "name", type(check).__name__)
        log = self._logger.bind(tier=context.tier.value, check=name)
        try:
            if deadline is None:
                outcome = await check.run(context)
            else:
                outcome = await run_with_timeout(check.run(context), deadline)
        except TimeoutError:
            log.warning("check_timeout", timeout_seconds=deadline)
            outcome = _failed_outcome(
                name,
                ErrorKind.TIMEOUT,
                f"check '{name}' timed out after {deadline or context.timeout_seconds:g}s",
                started,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - a broken check must not break the tier.
            log.error("check_crashed", error=f"{type(exc).__name__}: {exc}")
            outcome = _failed_outcome(
                name,
                ErrorKind.INTERNAL,
                f"check '{name}' crashed: {type(exc).__name__}: {exc}",
                started,
            )

        if outcome.skipped:
            log.debug("check_skipped", reason=outcome.detail)
        else:
            log.debug(
                "check_completed",
                passed=outcome.passed,
                records=len(outcome.records),
                duration_ms=outcome.duration_ms,
            )
        return index, outcome


# Errors that make every later check of the tier pointless.
CRITICAL_ERROR_KINDS: Final[frozenset[ErrorKind]] = frozenset(
    {ErrorKind.TYPE_CHECK, ErrorKind.IMPORT_RESOLUTION}
)
CRITICAL_ERROR_CODES: Final[frozenset[str]] = frozenset({"no-undef", "import/no-unresolved"})


def has_critical_error(outcome: CheckOutcome) -> bool:
    return any(
        record.is_error
        and (record.kind in CRITICAL_ERROR_KINDS or record.code in CRITICAL_ERROR_CODES)
        for record in outcome.records
    )


def _failed_outcome(name: str, kind: ErrorKind, message: str, started: float) -> CheckOutcome:
    return CheckOutcome(
        check_name=name,
        records=(ErrorRecord(kind=kind, message=message, source=name),),
        duration_ms=_elapsed_ms(started),
    )


def _merge_timeouts(records: list[ErrorRecord]) -> list[ErrorRecord]:
    """Fold every timeout record into one, placed where the first timeout appeared."""

    timeouts = [record for record in records if record.kind is ErrorKind.TIMEOUT]
    if len(timeouts) <= 1:
        return records
    sources = ", ".join(dict.fromkeys(record.source or "unknown" for record in timeouts))
    merged: ErrorRecord | None = ErrorRecord(
        kind=ErrorKind.TIMEOUT,
        message=f"{len(timeouts)} checks timed out: {sources}",
        source="tier-runner",
    )
    out: list[ErrorRecord] = []
    for record in records:
        if record.kind is not ErrorKind.TIMEOUT:
            out.append(record)
        elif merged is not None:
            out.append(merged)
            merged = None
    return out


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.perf_counter() - started) * 1000))


__all__ = ["CRITICAL_ERROR_CODES", "CRITICAL_ERROR_KINDS", "TierRunner", "has_critical_error"]
