"""
mobicert — certification engine

Purpose
- Run tiers in order against one project, repair failed tiers when enabled, and grade the run.

Functional requirements
- Configuration errors are raised before any work begins.
- Every other failure is absorbed; a run always returns a complete, gradeable result.
- The tier listener fires exactly once per attempted tier, in tier order.
- At most one certification per resolved project path runs at a time.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import structlog

from mobicert.certification.repair import RepairOrchestrator
from mobicert.certification.tier_runner import TierRunner
from mobicert.constants import (
    DEFAULT_ATTEMPT_BUDGET,
    DEFAULT_FIX_TIMEOUT_SECONDS,
    MAX_ATTEMPT_BUDGET,
)
from mobicert.domain.models import (
    CertificationResult,
    CertificationRun,
    ErrorKind,
    ErrorRecord,
    Tier,
    TierResult,
    tiers_up_to,
)
from mobicert.observability.logging import correlation_scope
from mobicert.utils.concurrency import ProjectLockRegistry

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from mobicert.domain.models import RepairAttempt
    from mobicert.fixes.contract import BackoffConfig, FixCapability
    from mobicert.utils.concurrency import CancellationToken


class CertificationConfigError(ValueError):
    """Invalid project path or tier range; raised before any work begins."""


@runtime_checkable
class TierListener(Protocol):
    def on_tier_complete(self, tier: Tier, result: TierResult) -> None: ...


TierCallback = Callable[[Tier, TierResult], None]


class CertificationEngine:
    """Progressive tier1 -> tier3 certification with optional bounded auto-repair."""

    def __init__(
        self,
        *,
        tier_runner: TierRunner | None = None,
        fix_capability: FixCapability | None = None,
        repair_enabled: bool = True,
        attempt_budget: int = DEFAULT_ATTEMPT_BUDGET,
        fix_timeout_seconds: float = DEFAULT_FIX_TIMEOUT_SECONDS,
        backoff: BackoffConfig | None = None,
        lock_registry: ProjectLockRegistry | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: Any | None = None,
    ) -> None:
        _validate_attempt_budget(attempt_budget)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._tier_runner = tier_runner or TierRunner(logger=self._logger)
        self._fix_capability = fix_capability
        self._repair_enabled = repair_enabled
        self._attempt_budget = attempt_budget
        self._locks = lock_registry or ProjectLockRegistry()
        self._repairer = (
            RepairOrchestrator(
                fix_capability=fix_capability,
                tier_runner=self._tier_runner,
                fix_timeout_seconds=fix_timeout_seconds,
                backoff=backoff,
                sleep=sleep,
                logger=self._logger,
            )
            if fix_capability is not None
            else None
        )

    @property
    def tier_runner(self) -> TierRunner:
        return self._tier_runner

    @property
    def fix_capability(self) -> FixCapability | None:
        return self._fix_capability

    @property
    def repair_available(self) -> bool:
        return self._repair_enabled and self._repairer is not None

    async def validate_progressive(
        self,
        project_path: str | Path,
        max_tier: Tier | str | int = Tier.TIER3,
        stop_on_failure: bool = False,
        on_tier_complete: TierCallback | TierListener | None = None,
    ) -> CertificationResult:
        run = await self.certify(
            project_path,
            max_tier=max_tier,
            stop_on_failure=stop_on_failure,
            on_tier_complete=on_tier_complete,
        )
        return run.result

    async def certify(
        self,
        project_path: str | Path,
        max_tier: Tier | str | int = Tier.TIER3,
        stop_on_failure: bool = False,
        on_tier_complete: TierCallback | TierListener | None = None,
        *,
        auto_repair: bool | None = None,
        attempt_budget: int | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> CertificationRun:
        project = _validate_project_path(project_path)
        try:
            top_tier = Tier.parse(max_tier)
        except ValueError as exc:
            raise CertificationConfigError(str(exc)) from exc
        budget = self._attempt_budget if attempt_budget is None else attempt_budget
        try:
            _validate_attempt_budget(budget)
        except ValueError as exc:
            raise CertificationConfigError(str(exc)) from exc
        repair = self.repair_available if auto_repair is None else (
            auto_repair and self._repairer is not None
        )
        notify = _resolve_listener(on_tier_complete)
        run_id = uuid.uuid4().hex

        async with self._locks.hold(project) as key:
            with correlation_scope(run_id=run_id, project=key):
                return await self._run(
                    run_id=run_id,
                    project=project,
                    max_tier=top_tier,
                    stop_on_failure=stop_on_failure,
                    repair=repair,
                    attempt_budget=budget,
                    notify=notify,
                    cancel_token=cancel_token,
                )

    async def _run(
        self,
        *,
        run_id: str,
        project: Path,
        max_tier: Tier,
        stop_on_failure: bool,
        repair: bool,
        attempt_budget: int,
        notify: TierCallback | None,
        cancel_token: CancellationToken | None,
    ) -> CertificationRun:
        started_at = datetime.now(tz=UTC)
        log = self._logger.bind(run_id=run_id, project=str(project))
        log.info(
            "certification_started",
            max_tier=max_tier.value,
            stop_on_failure=stop_on_failure,
            auto_repair=repair,
        )

        tier_results: list[TierResult] = []
        repair_attempts: list[RepairAttempt] = []
        for tier in tiers_up_to(max_tier):
            result = await self._run_tier_safely(project, tier, cancel_token, log)
            if repair and not result.passed:
                result, attempts = await self._repair_safely(
                    project, result, attempt_budget, log
                )
                repair_attempts.extend(attempts)

            tier_results.append(result)
            if notify is not None:
                try:
                    notify(tier, result)
                except Exception as exc:  # noqa: BLE001 - listeners are observers only.
                    log.warning(
                        "tier_listener_failed",
                        tier=tier.value,
                        error=f"{type(exc).__name__}: {exc}",
                    )

            if stop_on_failure and not result.passed:
                log.info("certification_stopped", tier=tier.value)
                break

        certification = CertificationResult(tier_results=tuple(tier_results))
        run = CertificationRun(
            run_id=run_id,
            project_path=str(project),
            max_tier=max_tier,
            stop_on_failure=stop_on_failure,
            tier_results=tuple(tier_results),
            repair_attempts=tuple(repair_attempts),
            result=certification,
            started_at=started_at,
            finished_at=datetime.now(tz=UTC),
        )
        log.info(
            "certification_finished",
            level=run.level.value,
            tiers=len(tier_results),
            repair_attempts=len(repair_attempts),
            duration_ms=run.duration_ms,
        )
        return run

    async def _run_tier_safely(
        self,
        project: Path,
        tier: Tier,
        cancel_token: CancellationToken | None,
        log: Any,
    ) -> TierResult:
        started = time.perf_counter()
        try:
            return await self._tier_runner.run_tier(project, tier, cancel_token=cancel_token)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - degrade the grade, never crash the run.
            log.error("tier_crashed", tier=tier.value, error=f"{type(exc).__name__}: {exc}")
            return TierResult.from_errors(
                tier,
                [
                    ErrorRecord(
                        kind=ErrorKind.INTERNAL,
                        message=f"{tier.value} could not run: {type(exc).__name__}: {exc}",
                        source="engine",
                    )
                ],
                int((time.perf_counter() - started) * 1000),
            )

    async def _repair_safely(
        self, project: Path, result: TierResult, attempt_budget: int, log: Any
    ) -> tuple[TierResult, tuple[RepairAttempt, ...]]:
        assert self._repairer is not None
        try:
            report = await self._repairer.attempt_repair(project, result, attempt_budget)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            log.error(
                "repair_crashed", tier=result.tier.value, error=f"{type(exc).__name__}: {exc}"
            )
            return result, ()
        return report.final_result, report.attempts


def _validate_project_path(project_path: str | Path) -> Path:
    if project_path is None or (isinstance(project_path, str) and not project_path.strip()):
        raise CertificationConfigError("project path must not be empty")
    project = Path(project_path).expanduser()
    if not project.exists():
        raise CertificationConfigError(f"project path does not exist: {project}")
    if not project.is_dir():
        raise CertificationConfigError(f"project path is not a directory: {project}")
    return project.resolve()


def _validate_attempt_budget(attempt_budget: int) -> None:
    if (
        isinstance(attempt_budget, bool)
        or not isinstance(attempt_budget, int)
        or not 1 <= attempt_budget <= MAX_ATTEMPT_BUDGET
    ):
        raise ValueError(f"attempt_budget must be an integer in 1..{MAX_ATTEMPT_BUDGET}")


def _resolve_listener(listener: TierCallback | TierListener | None) -> TierCallback | None:
    if listener is None:
        return None
    if isinstance(listener, TierListener):
        return listener.on_tier_complete
    if callable(listener):
        return listener
    raise CertificationConfigError("on_tier_complete must be callable or a TierListener")


__all__ = [
    "CertificationConfigError",
    "CertificationEngine",
    "TierCallback",
    "TierListener",
]
