"""Dataclass result models with strict validation and canonical serialization."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields, is_dataclass, replace
from datetime import UTC, datetime
from enum import Enum, StrEnum
from typing import NoReturn, TypeVar

from mobicert.constants import REPORT_SCHEMA_VERSION, TIER_BUDGET_SECONDS

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TModel = TypeVar("TModel", bound="CanonicalModel")
TEnum = TypeVar("TEnum", bound=Enum)

_MAX_MESSAGE = 4096


class Tier(StrEnum):
    TIER1 = "tier1"
    TIER2 = "tier2"
    TIER3 = "tier3"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self) + 1

    @property
    def budget_seconds(self) -> float:
        return TIER_BUDGET_SECONDS[self.value]

    @classmethod
    def parse(cls, value: object) -> Tier:
        """Accept ``Tier`` members, ``"tier2"`` style names and bare ranks (``2``/``"2"``)."""
        if isinstance(value, Tier):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            if 1 <= value <= len(_TIER_ORDER):
                return _TIER_ORDER[value - 1]
            raise ValueError(f"invalid tier rank {value}; expected 1..{len(_TIER_ORDER)}")
        if isinstance(value, str):
            text = value.strip().lower()
            if text.isdigit():
                return cls.parse(int(text))
            try:
                return cls(text)
            except ValueError:
                pass
        expected = ", ".join(item.value for item in _TIER_ORDER)
        raise ValueError(f"invalid tier {value!r}; expected one of: {expected}")


_TIER_ORDER: tuple[Tier, ...] = (Tier.TIER1, Tier.TIER2, Tier.TIER3)


def tiers_up_to(max_tier: Tier) -> tuple[Tier, ...]:
    """Return tiers from ``tier1`` through ``max_tier`` inclusive, in order."""

    return _TIER_ORDER[: max_tier.rank]


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class ErrorKind(StrEnum):
    TYPE_CHECK = "type-check"
    LINT = "lint"
    IMPORT_RESOLUTION = "import-resolution"
    ROUTE_REGISTRATION = "route-registration"
    NATIVE_BUILD = "native-build"
    CONFIG = "config"
    PLUGIN = "plugin"
    DEPENDENCY = "dependency"
    TEST = "test"
    E2E = "e2e"
    TIMEOUT = "timeout"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


# Failures of these kinds block any build and are never reported as warnings.
BLOCKING_KINDS: frozenset[ErrorKind] = frozenset(
    {ErrorKind.NATIVE_BUILD, ErrorKind.CONFIG, ErrorKind.PLUGIN}
)


class CertificationLevel(StrEnum):
    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return {"failed": 0, "bronze": 1, "silver": 2, "gold": 3}[self.value]

    def at_least(self, other: CertificationLevel) -> bool:
        return self.rank >= other.rank


class RepairOutcome(StrEnum):
    RESOLVED = "resolved"
    IMPROVED = "improved"
    UNCHANGED = "unchanged"
    NON_CONVERGENT = "non_convergent"
    FATAL = "fatal"
    PATCH_FAILED = "patch_failed"


class CanonicalModel:
    """Mixin for canonical dict/json serialization."""

    def to_dict(self) -> dict[str, JSONValue]:
        serialized = _serialize_value(self)
        if not isinstance(serialized, dict):
            _fail(self.__class__.__name__, "serialized model must be an object")
        return serialized

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_json(cls: type[TModel], raw: str) -> TModel:
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            _fail(cls.__name__, f"invalid JSON: {exc}")
        if not isinstance(parsed, dict):
            _fail(cls.__name__, "JSON root must be an object")
        return cls.from_dict(parsed)

    @classmethod
    def from_dict(cls: type[TModel], data: Mapping[str, object]) -> TModel:
        _fail(cls.__name__, "from_dict is not implemented for this model type")


@dataclass(frozen=True, slots=True)
class ErrorRecord(CanonicalModel):
    """One normalized, tool-agnostic validation failure."""

    kind: ErrorKind
    message: str
    severity: Severity = Severity.ERROR
    file: str | None = None
    line: int | None = None
    column: int | None = None
    suggestion: str | None = None
    code: str | None = None
    source: str | None = None

    def __post_init__(self) -> None:
        kind = _as_enum(self.kind, ErrorKind, "ErrorRecord.kind")
        severity = _as_enum(self.severity, Severity, "ErrorRecord.severity")
        if kind in BLOCKING_KINDS:
            severity = Severity.ERROR
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "severity", severity)
        object.__setattr__(
            self, "message", _as_str(self.message, "ErrorRecord.message", max_len=_MAX_MESSAGE)
        )
        object.__setattr__(self, "file", _as_optional_str(self.file, "ErrorRecord.file"))
        object.__setattr__(self, "line", _as_optional_position(self.line, "ErrorRecord.line"))
        object.__setattr__(
            self, "column", _as_optional_position(self.column, "ErrorRecord.column")
        )
        object.__setattr__(
            self, "suggestion", _as_optional_str(self.suggestion, "ErrorRecord.suggestion")
        )
        object.__setattr__(self, "code", _as_optional_str(self.code, "ErrorRecord.code"))
        object.__setattr__(self, "source", _as_optional_str(self.source, "ErrorRecord.source"))

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    @property
    def location(self) -> str | None:
        if self.file is None:
            return None
        if self.line is None:
            return self.file
        if self.column is None:
            return f"{self.file}:{self.line}"
        return f"{self.file}:{self.line}:{self.column}"

    def fingerprint(self) -> tuple[str, str | None, int | None, int | None, str | None, str, str]:
        """Identity used to compare error sets across repair attempts."""
        return (
            self.kind.value,
            self.file,
            self.line,
            self.column,
            self.code,
            self.message,
            self.severity.value,
        )

    def with_suggestion(self, suggestion: str | None) -> ErrorRecord:
        return replace(self, suggestion=suggestion)

    def with_source(self, source: str) -> ErrorRecord:
        return replace(self, source=source)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> ErrorRecord:
        parsed = _expect_object(
            data,
            "ErrorRecord",
            required={"kind", "message"},
            optional={"severity", "file", "line", "column", "suggestion", "code", "source"},
        )
        return cls(
            kind=_as_enum(parsed["kind"], ErrorKind, "ErrorRecord.kind"),
            message=_as_str(parsed["message"], "ErrorRecord.message", max_len=_MAX_MESSAGE),
            severity=_as_enum(parsed.get("severity", "error"), Severity, "ErrorRecord.severity"),
            file=_as_optional_str(parsed.get("file"), "ErrorRecord.file"),
            line=_as_optional_position(parsed.get("line"), "ErrorRecord.line"),
            column=_as_optional_position(parsed.get("column"), "ErrorRecord.column"),
            suggestion=_as_optional_str(parsed.get("suggestion"), "ErrorRecord.suggestion"),
            code=_as_optional_str(parsed.get("code"), "ErrorRecord.code"),
            source=_as_optional_str(parsed.get("source"), "ErrorRecord.source"),
        )


ErrorFingerprint = tuple[str, str | None, int | None, int | None, str | None, str, str]


def error_set(records: Iterable[ErrorRecord]) -> frozenset[ErrorFingerprint]:
    return frozenset(record.fingerprint() for record in records)


@dataclass(frozen=True, slots=True)
class TierSummary(CanonicalModel):
    """Per-tier progress line for console and UI consumers."""

    tier: Tier
    passed: bool
    duration_ms: int
    error_count: int
    warning_count: int = 0


@dataclass(frozen=True, slots=True)
class TierResult(CanonicalModel):
    """Outcome of one tier's check execution.

    ``passed`` must agree with ``errors``: a tier passes exactly when none of its records has
    error severity. Use :meth:`from_errors` to derive it.
    """

    tier: Tier
    passed: bool
    duration_ms: int
    errors: tuple[ErrorRecord, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tier", Tier.parse(self.tier))
        object.__setattr__(self, "errors", tuple(self.errors))
        for index, record in enumerate(self.errors):
            if not isinstance(record, ErrorRecord):
                _fail(f"TierResult.errors[{index}]", "expected ErrorRecord")
        duration = self.duration_ms
        if isinstance(duration, bool) or not isinstance(duration, int) or duration < 0:
            _fail("TierResult.duration_ms", "must be a non-negative integer")
        expected = not any(record.is_error for record in self.errors)
        if self.passed is not expected:
            _fail(
                "TierResult.passed",
                f"passed={self.passed!r} contradicts {self.error_count} error record(s)",
            )

    @classmethod
    def from_errors(
        cls, tier: Tier, errors: Iterable[ErrorRecord], duration_ms: int
    ) -> TierResult:
        materialized = tuple(errors)
        return cls(
            tier=tier,
            passed=not any(record.is_error for record in materialized),
            duration_ms=max(0, int(duration_ms)),
            errors=materialized,
        )

    @property
    def error_count(self) -> int:
        return sum(1 for record in self.errors if record.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for record in self.errors if not record.is_error)

    @property
    def blocking_errors(self) -> tuple[ErrorRecord, ...]:
        return tuple(record for record in self.errors if record.is_error)

    @property
    def affected_files(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for record in self.errors:
            if record.is_error and record.file is not None:
                seen.setdefault(record.file, None)
        return tuple(seen)

    def error_set(self) -> frozenset[ErrorFingerprint]:
        return error_set(self.errors)

    def summary(self) -> TierSummary:
        return TierSummary(
            tier=self.tier,
            passed=self.passed,
            duration_ms=self.duration_ms,
            error_count=self.error_count,
            warning_count=self.warning_count,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> TierResult:
        parsed = _expect_object(
            data, "TierResult", required={"tier", "passed", "duration_ms"}, optional={"errors"}
        )
        raw_errors = parsed.get("errors", [])
        if not isinstance(raw_errors, list):
            _fail("TierResult.errors", "expected array")
        passed = parsed["passed"]
        if not isinstance(passed, bool):
            _fail("TierResult.passed", "expected boolean")
        return cls(
            tier=Tier.parse(parsed["tier"]),
            passed=passed,
            duration_ms=_as_int(parsed["duration_ms"], "TierResult.duration_ms"),
            errors=tuple(ErrorRecord.from_dict(item) for item in raw_errors),
        )


def derive_level(tier_results: Iterable[TierResult]) -> CertificationLevel:
    """Grade a run purely from its tier results.

    A tier that was never attempted is "not satisfied", so it caps the grade at the level below
    it. It never downgrades a lower tier that was attempted and passed.
    """

    passed = {result.tier: result.passed for result in tier_results}
    if not passed.get(Tier.TIER1, False):
        return CertificationLevel.FAILED
    if not passed.get(Tier.TIER2, False):
        return CertificationLevel.BRONZE
    if not passed.get(Tier.TIER3, False):
        return CertificationLevel.SILVER
    return CertificationLevel.GOLD


@dataclass(frozen=True, slots=True)
class CertificationResult(CanonicalModel):
    """Aggregate over attempted tiers; ``level`` is always recomputed from ``tier_results``."""

    tier_results: tuple[TierResult, ...]
    level: CertificationLevel | None = None

    def __post_init__(self) -> None:
        results = tuple(self.tier_results)
        ranks = [result.tier.rank for result in results]
        if ranks != list(range(1, len(ranks) + 1)):
            _fail("CertificationResult.tier_results", "tiers must be contiguous from tier1")
        derived = derive_level(results)
        if self.level is not None and _as_enum(
            self.level, CertificationLevel, "CertificationResult.level"
        ) is not derived:
            _fail("CertificationResult.level", f"{self.level!s} does not match derived {derived}")
        object.__setattr__(self, "tier_results", results)
        object.__setattr__(self, "level", derived)

    @property
    def attempted_tiers(self) -> tuple[Tier, ...]:
        return tuple(result.tier for result in self.tier_results)

    def result_for(self, tier: Tier) -> TierResult | None:
        for result in self.tier_results:
            if result.tier is tier:
                return result
        return None

    def meets(self, required: CertificationLevel) -> bool:
        assert self.level is not None
        return self.level.at_least(required)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> CertificationResult:
        parsed = _expect_object(
            data,
            "CertificationResult",
            required={"tier_results"},
            optional={"level", "schema_version"},
        )
        raw_results = parsed["tier_results"]
        if not isinstance(raw_results, list):
            _fail("CertificationResult.tier_results", "expected array")
        level = parsed.get("level")
        return cls(
            tier_results=tuple(TierResult.from_dict(item) for item in raw_results),
            level=None
            if level is None
            else _as_enum(level, CertificationLevel, "CertificationResult.level"),
        )


@dataclass(frozen=True, slots=True)
class RepairAttempt(CanonicalModel):
    """One bounded cycle of requesting a fix and re-validating a tier."""

    tier: Tier
    attempt_number: int
    files_modified: tuple[str, ...]
    success: bool
    errors_before: tuple[ErrorRecord, ...]
    errors_after: tuple[ErrorRecord, ...]
    outcome: RepairOutcome
    detail: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tier", Tier.parse(self.tier))
        object.__setattr__(
            self,
            "attempt_number",
            _as_int(self.attempt_number, "RepairAttempt.attempt_number", minimum=1),
        )
        object.__setattr__(self, "files_modified", tuple(self.files_modified))
        object.__setattr__(self, "errors_before", tuple(self.errors_before))
        object.__setattr__(self, "errors_after", tuple(self.errors_after))
        object.__setattr__(
            self, "outcome", _as_enum(self.outcome, RepairOutcome, "RepairAttempt.outcome")
        )

    @property
    def is_terminal_failure(self) -> bool:
        return self.outcome in {
            RepairOutcome.FATAL,
            RepairOutcome.PATCH_FAILED,
            RepairOutcome.NON_CONVERGENT,
        }


@dataclass(frozen=True, slots=True)
class CertificationRun(CanonicalModel):
    """Top-level certification session; immutable once returned to the caller."""

    run_id: str
    project_path: str
    max_tier: Tier
    stop_on_failure: bool
    tier_results: tuple[TierResult, ...]
    repair_attempts: tuple[RepairAttempt, ...]
    result: CertificationResult
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    finished_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    schema_version: int = REPORT_SCHEMA_VERSION

    def __post_init__(self) -> None:
        object.__setattr__(self, "tier_results", tuple(self.tier_results))
        object.__setattr__(self, "repair_attempts", tuple(self.repair_attempts))
        if self.result.tier_results != self.tier_results:
            _fail("CertificationRun.result", "result must aggregate the run's tier results")

    @property
    def level(self) -> CertificationLevel:
        assert self.result.level is not None
        return self.result.level

    @property
    def duration_ms(self) -> int:
        return max(0, int((self.finished_at - self.started_at).total_seconds() * 1000))

    def attempts_for(self, tier: Tier) -> tuple[RepairAttempt, ...]:
        return tuple(attempt for attempt in self.repair_attempts if attempt.tier is tier)

    def summaries(self) -> tuple[TierSummary, ...]:
        return tuple(result.summary() for result in self.tier_results)


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _serialize_value(value: object) -> JSONValue:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        out: dict[str, JSONValue] = {}
        for item in fields(value):
            out[item.name] = _serialize_value(getattr(value, item.name))
        return out
    if isinstance(value, (list, tuple)):
        return [_serialize_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): _serialize_value(item) for key, item in value.items()}
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _expect_object(
    value: object,
    path: str,
    *,
    required: set[str],
    optional: set[str] | None = None,
) -> dict[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")

    parsed: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            _fail(path, f"object keys must be strings, got {type(key).__name__}")
        parsed[key] = item

    unknown = sorted(key for key in parsed if key not in required | (optional or set()))
    if unknown:
        _fail(path, f"unexpected fields: {unknown}")

    missing = sorted(key for key in required if key not in parsed)
    if missing:
        _fail(path, f"missing required fields: {missing}")

    return parsed


def _as_str(value: object, path: str, *, max_len: int = _MAX_MESSAGE) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    normalized = value.strip()
    if not normalized:
        _fail(path, "must not be empty")
    if len(normalized) > max_len:
        normalized = normalized[: max_len - 3] + "..."
    return normalized


def _as_optional_str(value: object, path: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return _as_str(value, path)


def _as_int(value: object, path: str, *, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if value < minimum:
        _fail(path, f"must be >= {minimum}")
    return value


def _as_optional_position(value: object, path: str) -> int | None:
    if value is None:
        return None
    return _as_int(value, path, minimum=1)


def _as_enum(value: object, enum_type: type[TEnum], path: str) -> TEnum:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(str(item.value) for item in enum_type)
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


__all__ = [
    "BLOCKING_KINDS",
    "CanonicalModel",
    "CertificationLevel",
    "CertificationResult",
    "CertificationRun",
    "ErrorFingerprint",
    "ErrorKind",
    "ErrorRecord",
    "RepairAttempt",
    "RepairOutcome",
    "Severity",
    "Tier",
    "TierResult",
    "TierSummary",
    "derive_level",
    "error_set",
    "tiers_up_to",
]
