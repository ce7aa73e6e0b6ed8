"""
mobicert — unit tests for the certification result model

Purpose
- Pin grading, pass/fail consistency and serialization of the core value types.

What this test file should cover
- Grading examples and the "unattempted tier caps the grade" rule.
- Warnings never affect ``passed`` or the grade.
- Blocking kinds are always errors.
- Canonical JSON round-trips for the persisted types.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from mobicert.domain.models import (
    BLOCKING_KINDS,
    CertificationLevel,
    CertificationResult,
    CertificationRun,
    ErrorKind,
    ErrorRecord,
    RepairAttempt,
    RepairOutcome,
    Severity,
    Tier,
    TierResult,
    derive_level,
    error_set,
    tiers_up_to,
)


def _error(message: str = "boom", **kwargs: object) -> ErrorRecord:
    return ErrorRecord(kind=kwargs.pop("kind", ErrorKind.TYPE_CHECK), message=message, **kwargs)


def _warning(message: str = "meh") -> ErrorRecord:
    return ErrorRecord(kind=ErrorKind.LINT, message=message, severity=Severity.WARNING)


def _result(tier: Tier, passed: bool) -> TierResult:
    return TierResult.from_errors(tier, [] if passed else [_error()], 10)


@pytest.mark.parametrize(
    ("outcomes", "expected"),
    [
        ((True, True, True), CertificationLevel.GOLD),
        ((True, True, False), CertificationLevel.SILVER),
        ((True, False, True), CertificationLevel.BRONZE),
        ((True, False, False), CertificationLevel.BRONZE),
        ((False, True, True), CertificationLevel.FAILED),
        ((True,), CertificationLevel.BRONZE),
        ((True, True), CertificationLevel.SILVER),
        ((False,), CertificationLevel.FAILED),
        ((), CertificationLevel.FAILED),
    ],
)
def test_derive_level_examples(outcomes: tuple[bool, ...], expected: CertificationLevel) -> None:
    results = [_result(tier, passed) for tier, passed in zip(Tier, outcomes, strict=False)]
    assert derive_level(results) is expected
    assert CertificationResult(tier_results=tuple(results)).level is expected


@given(st.lists(st.booleans(), min_size=0, max_size=3))
def test_grade_is_a_pure_function_of_tier_results(outcomes: list[bool]) -> None:
    results = tuple(_result(tier, passed) for tier, passed in zip(Tier, outcomes, strict=False))
    first = CertificationResult(tier_results=results)
    second = CertificationResult(tier_results=results)
    assert first.level is second.level is derive_level(results)


@given(st.lists(st.booleans(), min_size=1, max_size=3))
def test_level_never_exceeds_highest_contiguous_passing_tier(outcomes: list[bool]) -> None:
    results = [_result(tier, passed) for tier, passed in zip(Tier, outcomes, strict=False)]
    contiguous = 0
    for passed in outcomes:
        if not passed:
            break
        contiguous += 1
    assert derive_level(results).rank == contiguous


def test_warnings_never_fail_a_tier_or_lower_the_grade() -> None:
    clean = [TierResult.from_errors(tier, [], 5) for tier in Tier]
    noisy = [TierResult.from_errors(tier, [_warning(), _warning("other")], 5) for tier in Tier]

    assert all(result.passed for result in noisy)
    assert derive_level(noisy) is derive_level(clean) is CertificationLevel.GOLD
    assert noisy[0].warning_count == 2
    assert noisy[0].error_count == 0


def test_passed_must_agree_with_error_records() -> None:
    with pytest.raises(ValueError, match="contradicts"):
        TierResult(tier=Tier.TIER1, passed=True, duration_ms=1, errors=(_error(),))
    with pytest.raises(ValueError, match="contradicts"):
        TierResult(tier=Tier.TIER1, passed=False, duration_ms=1, errors=(_warning(),))


@pytest.mark.parametrize("kind", sorted(BLOCKING_KINDS))
def test_blocking_kinds_are_always_errors(kind: ErrorKind) -> None:
    record = ErrorRecord(kind=kind, message="x", severity=Severity.WARNING)
    assert record.severity is Severity.ERROR
    assert record.is_error


def test_error_record_normalizes_and_validates_fields() -> None:
    record = ErrorRecord(kind="lint", message="  spaced  ", file="", line=3, severity="warning")
    assert record.kind is ErrorKind.LINT
    assert record.message == "spaced"
    assert record.file is None
    assert record.location is None

    with pytest.raises(ValueError):
        ErrorRecord(kind=ErrorKind.LINT, message="   ")
    with pytest.raises(ValueError):
        ErrorRecord(kind="not-a-kind", message="x")
    with pytest.raises(ValueError):
        ErrorRecord(kind=ErrorKind.LINT, message="x", line=0)


def test_location_formats() -> None:
    assert _error(file="a.ts").location == "a.ts"
    assert _error(file="a.ts", line=4).location == "a.ts:4"
    assert _error(file="a.ts", line=4, column=2).location == "a.ts:4:2"


def test_error_set_ignores_order_and_suggestions() -> None:
    first = _error("a", file="x.ts", line=1)
    second = _error("b", file="y.ts", line=2)
    assert error_set([first, second]) == error_set([second, first.with_suggestion("hint")])
    assert error_set([first]) != error_set([second])


def test_tier_result_views() -> None:
    result = TierResult.from_errors(
        Tier.TIER1,
        [
            _error("one", file="a.ts"),
            _error("two", file="b.ts"),
            _error("three", file="a.ts"),
            _warning("w"),
        ],
        42,
    )
    assert not result.passed
    assert result.error_count == 3
    assert result.warning_count == 1
    assert result.affected_files == ("a.ts", "b.ts")
    summary = result.summary()
    assert (summary.tier, summary.passed, summary.duration_ms, summary.error_count) == (
        Tier.TIER1,
        False,
        42,
        3,
    )


def test_certification_result_requires_contiguous_tiers() -> None:
    with pytest.raises(ValueError, match="contiguous"):
        CertificationResult(tier_results=(_result(Tier.TIER2, True),))
    with pytest.raises(ValueError, match="does not match"):
        CertificationResult(
            tier_results=(_result(Tier.TIER1, True),), level=CertificationLevel.GOLD
        )


def test_tier_parse_accepts_names_and_ranks() -> None:
    assert Tier.parse("tier2") is Tier.TIER2
    assert Tier.parse(" TIER3 ") is Tier.TIER3
    assert Tier.parse(1) is Tier.TIER1
    assert Tier.parse("2") is Tier.TIER2
    assert tiers_up_to(Tier.TIER2) == (Tier.TIER1, Tier.TIER2)
    for bad in ("tier4", 0, True, None):
        with pytest.raises(ValueError):
            Tier.parse(bad)


def test_tier_budgets_increase() -> None:
    assert [tier.budget_seconds for tier in Tier] == [30.0, 120.0, 600.0]


_messages = st.text(min_size=1, max_size=60).map(str.strip).filter(bool)
_records = st.builds(
    ErrorRecord,
    kind=st.sampled_from(list(ErrorKind)),
    message=_messages,
    severity=st.sampled_from(list(Severity)),
    file=st.none() | st.sampled_from(["App.tsx", "src/screens/Home.tsx"]),
    line=st.none() | st.integers(min_value=1, max_value=500),
    code=st.none() | st.sampled_from(["TS2307", "no-unused-vars"]),
)


@given(st.lists(_records, max_size=6), st.integers(min_value=0, max_value=10_000))
def test_tier_result_json_round_trip(records: list[ErrorRecord], duration: int) -> None:
    result = TierResult.from_errors(Tier.TIER2, records, duration)
    assert TierResult.from_json(result.to_json()) == result


def test_certification_result_json_round_trip() -> None:
    result = CertificationResult(
        tier_results=(_result(Tier.TIER1, True), _result(Tier.TIER2, False))
    )
    restored = CertificationResult.from_json(result.to_json())
    assert restored == result
    assert restored.level is CertificationLevel.BRONZE


def test_repair_attempt_terminal_failures() -> None:
    def attempt(outcome: RepairOutcome) -> RepairAttempt:
        return RepairAttempt(
            tier=Tier.TIER1,
            attempt_number=1,
            files_modified=(),
            success=False,
            errors_before=(_error(),),
            errors_after=(_error(),),
            outcome=outcome,
        )

    terminal = {outcome for outcome in RepairOutcome if attempt(outcome).is_terminal_failure}
    assert terminal == {
        RepairOutcome.FATAL,
        RepairOutcome.PATCH_FAILED,
        RepairOutcome.NON_CONVERGENT,
    }
    with pytest.raises(ValueError):
        RepairAttempt(
            tier=Tier.TIER1,
            attempt_number=0,
            files_modified=(),
            success=False,
            errors_before=(),
            errors_after=(),
            outcome=RepairOutcome.FATAL,
        )


def test_certification_run_derives_level_and_duration() -> None:
    results = (_result(Tier.TIER1, True), _result(Tier.TIER2, True))
    started = datetime(2026, 1, 1, tzinfo=UTC)
    run = CertificationRun(
        run_id="r1",
        project_path="/tmp/app",
        max_tier=Tier.TIER2,
        stop_on_failure=False,
        tier_results=results,
        repair_attempts=(),
        result=CertificationResult(tier_results=results),
        started_at=started,
        finished_at=started + timedelta(milliseconds=1500),
    )
    assert run.level is CertificationLevel.SILVER
    assert run.duration_ms == 1500
    assert run.to_dict()["result"]["level"] == "silver"

    with pytest.raises(ValueError, match="aggregate"):
        CertificationRun(
            run_id="r2",
            project_path="/tmp/app",
            max_tier=Tier.TIER2,
            stop_on_failure=False,
            tier_results=results,
            repair_attempts=(),
            result=CertificationResult(tier_results=results[:1]),
        )
