"""
mobicert — unit tests for the repair orchestrator

Purpose
- Drive the bounded repair loop with a scripted fix capability and a marker-file check.

What this test file should cover
- Resolution, budget exhaustion, non-convergence and fatal aborts.
- Retry behaviour for retryable fix failures and immediate abort for non-retryable ones.
- Patch application failures and zero-patch responses.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from mobicert.certification.repair import (
    RepairOrchestrator,
    RepairState,
    build_project_context,
)
from mobicert.certification.tier_runner import TierRunner
from mobicert.checks.base import CheckContext, CheckOutcome
from mobicert.checks.registry import CheckRegistry
from mobicert.domain.models import (
    ErrorKind,
    ErrorRecord,
    RepairOutcome,
    Severity,
    Tier,
    TierResult,
)
from mobicert.fixes.contract import (
    BackoffConfig,
    FilePatch,
    FixAuthenticationError,
    FixRateLimitError,
    FixRequest,
    FixResponse,
)


class MarkerCheck:
    """One type error per ``bug*.ts`` file in the project root."""

    name = "markers"
    tool = "typescript"

    async def run(self, context: CheckContext) -> CheckOutcome:
        records = tuple(
            ErrorRecord(kind=ErrorKind.TYPE_CHECK, message=f"bug in {path.name}", file=path.name)
            for path in sorted(context.project_path.glob("bug*.ts"))
        )
        return CheckOutcome(check_name=self.name, records=records, duration_ms=1)


class ScriptedFixer:
    """Returns (or raises) the next scripted item per call; the last item repeats."""

    def __init__(self, *script: FixResponse | Exception) -> None:
        self._script = list(script)
        self.requests: list[FixRequest] = []

    async def request_fix(self, request: FixRequest) -> FixResponse:
        self.requests.append(request)
        item = self._script.pop(0) if len(self._script) > 1 else self._script[0]
        if isinstance(item, Exception):
            raise item
        return item


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _runner() -> TierRunner:
    return TierRunner(
        check_registry=CheckRegistry({"markers": MarkerCheck}),
        tier_checks={Tier.TIER1: ("markers",)},
    )


def _orchestrator(fixer: ScriptedFixer, **kwargs: object) -> RepairOrchestrator:
    kwargs.setdefault("sleep", SleepRecorder())
    return RepairOrchestrator(fix_capability=fixer, tier_runner=_runner(), **kwargs)


async def _failing_result(project: Path, *bugs: str) -> TierResult:
    for bug in bugs:
        (project / bug).write_text("const x: number = 'a';\n", encoding="utf-8")
    return await _runner().run_tier(project, Tier.TIER1)


def _delete(*paths: str) -> FixResponse:
    return FixResponse(success=True, patches=tuple(FilePatch(path=p, delete=True) for p in paths))


async def test_resolves_in_one_attempt(tmp_path: Path) -> None:
    failing = await _failing_result(tmp_path, "bug1.ts")
    fixer = ScriptedFixer(_delete("bug1.ts"))

    report = await _orchestrator(fixer).attempt_repair(tmp_path, failing, 2)

    assert report.resolved
    assert report.final_state is RepairState.PASSED
    (attempt,) = report.attempts
    assert (attempt.attempt_number, attempt.outcome, attempt.success) == (
        1,
        RepairOutcome.RESOLVED,
        True,
    )
    assert attempt.files_modified == ("bug1.ts",)
    assert attempt.errors_before == failing.errors
    assert attempt.errors_after == ()
    assert not (tmp_path / "bug1.ts").exists()


async def test_improving_attempts_until_resolved(tmp_path: Path) -> None:
    failing = await _failing_result(tmp_path, "bug1.ts", "bug2.ts")
    fixer = ScriptedFixer(_delete("bug1.ts"), _delete("bug2.ts"))

    report = await _orchestrator(fixer).attempt_repair(tmp_path, failing, 3)

    assert [a.outcome for a in report.attempts] == [
        RepairOutcome.IMPROVED,
        RepairOutcome.RESOLVED,
    ]
    assert [r.attempt_number for r in fixer.requests] == [1, 2]
    assert fixer.requests[1].affected_files == ("bug2.ts",)


async def test_budget_is_never_exceeded(tmp_path: Path) -> None:
    failing = await _failing_result(tmp_path, "bug1.ts")
    fixer = ScriptedFixer(FixResponse(success=True, patches=(FilePatch("notes.md", "a"),)))

    report = await _orchestrator(fixer).attempt_repair(tmp_path, failing, 1)

    assert report.final_state is RepairState.EXHAUSTED
    assert [a.outcome for a in report.attempts] == [RepairOutcome.UNCHANGED]
    assert len(fixer.requests) == 1
    assert not report.resolved


async def test_same_error_set_twice_is_non_convergent(tmp_path: Path) -> None:
    failing = await _failing_result(tmp_path, "bug1.ts")
    fixer = ScriptedFixer(FixResponse(success=True, patches=(FilePatch("notes.md", "a"),)))

    report = await _orchestrator(fixer).attempt_repair(tmp_path, failing, 5)

    assert [a.outcome for a in report.attempts] == [
        RepairOutcome.UNCHANGED,
        RepairOutcome.NON_CONVERGENT,
    ]
    assert report.final_state is RepairState.ABORTED
    assert report.attempts[-1].is_terminal_failure


async def test_non_retryable_failure_aborts_after_one_call(tmp_path: Path) -> None:
    failing = await _failing_result(tmp_path, "bug1.ts")
    fixer = ScriptedFixer(FixAuthenticationError("bad key", http_status=401))
    sleep = SleepRecorder()

    report = await _orchestrator(fixer, sleep=sleep).attempt_repair(tmp_path, failing, 3)

    assert len(fixer.requests) == 1
    assert sleep.delays == []
    (attempt,) = report.attempts
    assert attempt.outcome is RepairOutcome.FATAL
    assert attempt.errors_after == failing.errors
    assert "code=auth" in (attempt.detail or "")
    assert report.final_state is RepairState.ABORTED


async def test_retryable_failure_is_retried_with_backoff(tmp_path: Path) -> None:
    failing = await _failing_result(tmp_path, "bug1.ts")
    fixer = ScriptedFixer(FixRateLimitError("slow down"), _delete("bug1.ts"))
    sleep = SleepRecorder()
    backoff = BackoffConfig(max_retries=2, initial_delay_seconds=0.25, max_delay_seconds=1.0)

    report = await _orchestrator(fixer, sleep=sleep, backoff=backoff).attempt_repair(
        tmp_path, failing, 2
    )

    assert report.resolved
    assert len(fixer.requests) == 2
    assert sleep.delays == [0.25]
    assert [a.attempt_number for a in report.attempts] == [1]


async def test_retries_exhausted_is_fatal(tmp_path: Path) -> None:
    failing = await _failing_result(tmp_path, "bug1.ts")
    fixer = ScriptedFixer(FixRateLimitError("slow down"))
    backoff = BackoffConfig(max_retries=1, initial_delay_seconds=0.0)

    report = await _orchestrator(fixer, backoff=backoff).attempt_repair(tmp_path, failing, 3)

    assert len(fixer.requests) == 2
    assert [a.outcome for a in report.attempts] == [RepairOutcome.FATAL]


async def test_slow_fix_capability_times_out(tmp_path: Path) -> None:
    failing = await _failing_result(tmp_path, "bug1.ts")

    class Hanging:
        async def request_fix(self, request: FixRequest) -> FixResponse:
            await asyncio.sleep(5)
            raise AssertionError("unreachable")

    orchestrator = RepairOrchestrator(
        fix_capability=Hanging(),
        tier_runner=_runner(),
        fix_timeout_seconds=0.05,
        backoff=BackoffConfig(max_retries=0),
        sleep=SleepRecorder(),
    )
    report = await orchestrator.attempt_repair(tmp_path, failing, 2)
    (attempt,) = report.attempts
    assert attempt.outcome is RepairOutcome.FATAL
    assert "code=timeout" in (attempt.detail or "")


async def test_patch_failure_aborts(tmp_path: Path) -> None:
    failing = await _failing_result(tmp_path, "bug1.ts")
    (tmp_path / "src").mkdir()
    fixer = ScriptedFixer(FixResponse(success=True, patches=(FilePatch("src", delete=True),)))

    report = await _orchestrator(fixer).attempt_repair(tmp_path, failing, 3)

    assert [a.outcome for a in report.attempts] == [RepairOutcome.PATCH_FAILED]
    assert report.final_state is RepairState.ABORTED
    assert (tmp_path / "src").is_dir()


async def test_patch_failure_mid_batch_leaves_project_as_reported(tmp_path: Path) -> None:
    failing = await _failing_result(tmp_path, "bug1.ts")
    (tmp_path / "marker").write_text("not a directory", encoding="utf-8")
    fixer = ScriptedFixer(
        FixResponse(
            success=True,
            patches=(
                FilePatch("bug1.ts", delete=True),
                FilePatch("marker/fix.ts", content="export {};\n"),
            ),
        )
    )

    report = await _orchestrator(fixer).attempt_repair(tmp_path, failing, 3)

    (attempt,) = report.attempts
    assert attempt.outcome is RepairOutcome.PATCH_FAILED
    assert attempt.files_modified == ()
    assert (tmp_path / "bug1.ts").exists()
    assert report.final_result.error_set() == failing.error_set()
    rerun = await _runner().run_tier(tmp_path, Tier.TIER1)
    assert rerun.error_set() == report.final_result.error_set()


class ExplodingRunner:
    async def run_tier(self, project_path, tier, check_set=None) -> TierResult:
        raise RuntimeError("disk gone")


async def test_crashing_revalidation_keeps_the_attempt(tmp_path: Path) -> None:
    failing = await _failing_result(tmp_path, "bug1.ts")
    orchestrator = RepairOrchestrator(
        fix_capability=ScriptedFixer(_delete("bug1.ts")),
        tier_runner=ExplodingRunner(),
        sleep=SleepRecorder(),
    )

    report = await orchestrator.attempt_repair(tmp_path, failing, 3)

    (attempt,) = report.attempts
    assert attempt.outcome is RepairOutcome.FATAL
    assert attempt.files_modified == ("bug1.ts",)
    assert report.final_state is RepairState.ABORTED
    (record,) = report.final_result.errors
    assert record.kind is ErrorKind.INTERNAL
    assert record.message == "tier1 re-validation could not run: RuntimeError: disk gone"


async def test_empty_unsuccessful_response_counts_as_attempt(tmp_path: Path) -> None:
    failing = await _failing_result(tmp_path, "bug1.ts")
    fixer = ScriptedFixer(FixResponse(success=False, description="no idea"))

    report = await _orchestrator(fixer).attempt_repair(tmp_path, failing, 1)

    (attempt,) = report.attempts
    assert attempt.outcome is RepairOutcome.UNCHANGED
    assert attempt.files_modified == ()
    assert attempt.detail == "no idea"


async def test_warnings_travel_with_the_fix_request(tmp_path: Path) -> None:
    failing = await _failing_result(tmp_path, "bug1.ts")
    warning = ErrorRecord(
        kind=ErrorKind.ROUTE_REGISTRATION,
        severity=Severity.WARNING,
        message="Screen 'Extra' is not registered in any navigator",
    )
    with_warning = TierResult.from_errors(Tier.TIER1, (*failing.errors, warning), 1)
    fixer = ScriptedFixer(_delete("bug1.ts"))

    report = await _orchestrator(fixer).attempt_repair(tmp_path, with_warning, 3)

    assert report.final_state is RepairState.PASSED
    (request,) = fixer.requests
    assert request.errors == failing.errors
    assert request.warnings == (warning,)


async def test_already_passing_result_needs_no_attempts(tmp_path: Path) -> None:
    passing = await _runner().run_tier(tmp_path, Tier.TIER1)
    fixer = ScriptedFixer(_delete("unused.ts"))
    report = await _orchestrator(fixer).attempt_repair(tmp_path, passing, 2)
    assert report.attempts == ()
    assert report.final_state is RepairState.PASSED
    assert fixer.requests == []


async def test_attempt_budget_bounds(tmp_path: Path) -> None:
    failing = await _failing_result(tmp_path, "bug1.ts")
    orchestrator = _orchestrator(ScriptedFixer(_delete("bug1.ts")))
    for budget in (0, 11):
        with pytest.raises(ValueError):
            await orchestrator.attempt_repair(tmp_path, failing, budget)


async def test_project_context_includes_dependencies_and_excerpts(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text(
        '{"dependencies": {"expo": "~51.0.0"}, "devDependencies": {"jest": "^29"}}',
        encoding="utf-8",
    )
    failing = await _failing_result(tmp_path, "bug1.ts")
    context = build_project_context(tmp_path, failing)
    assert context["tier"] == "tier1"
    assert context["project_root"] == str(tmp_path.resolve())
    assert context["dependencies"] == {"expo": "~51.0.0"}
    assert context["devDependencies"] == {"jest": "^29"}
    assert context["file_excerpts"] == {"bug1.ts": "const x: number = 'a';\n"}
