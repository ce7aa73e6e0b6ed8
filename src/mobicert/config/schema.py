"""
mobicert — configuration schema

Purpose
- Define the typed configuration shape, built-in defaults, profile overlays and validation.

Functional requirements
- Validation collects every issue with a dotted path and raises a single error.
- Unknown keys are rejected; embedded secrets are refused in favour of ``*_env`` names.
- Merging and redaction are deterministic (sorted keys, deep copies).
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, TypedDict

from mobicert.checks.registry import DEFAULT_TIER_CHECKS
from mobicert.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_ATTEMPT_BUDGET,
    DEFAULT_CHECK_TIMEOUT_SECONDS,
    DEFAULT_FIX_TIMEOUT_SECONDS,
    DEFAULT_MAX_WORKERS,
    MAX_ATTEMPT_BUDGET,
    TIER_BUDGET_SECONDS,
)
from mobicert.domain.models import Tier

BUILTIN_PROFILE_NAMES: Final[tuple[str, ...]] = ("strict", "fast", "offline")
FIX_PROVIDER_NAMES: Final[tuple[str, ...]] = ("none", "patterns", "anthropic")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_ENV_NAME_PATTERN = re.compile(r"^[A-Z_][A-Z0-9_]*$")
_PROFILE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

_SENSITIVE_KEY_TOKENS: Final[frozenset[str]] = frozenset(
    {"apikey", "key", "password", "passwd", "secret", "token", "credential", "credentials"}
)
_SENSITIVE_KEY_PHRASES: Final[tuple[str, ...]] = ("api_key", "access_key", "private_key")

PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (("observability", "log_dir"),)

_TIER_NAMES: Final[tuple[str, ...]] = tuple(tier.value for tier in Tier)


class MetaConfig(TypedDict):
    schema_version: int


class TierSettings(TypedDict):
    budget_seconds: float
    checks: list[str]


class TiersConfig(TypedDict):
    max_workers: int
    check_timeout_seconds: float
    run_e2e_flows: bool
    early_termination: bool
    tier1: TierSettings
    tier2: TierSettings
    tier3: TierSettings


class RepairConfig(TypedDict):
    enabled: bool
    attempt_budget: int
    fix_timeout_seconds: float
    max_retries: int
    initial_delay_seconds: float
    multiplier: float
    max_delay_seconds: float


class FixProviderConfig(TypedDict):
    name: str
    model: str
    api_key_env: str
    max_tokens: int
    min_confidence: float
    max_fixes: int
    dry_run: bool


class ObservabilityConfig(TypedDict):
    log_level: str
    log_dir: str
    log_to_stdout: bool
    json_logs: bool


class ProfileOverlay(TypedDict, total=False):
    tiers: dict[str, Any]
    repair: dict[str, Any]
    fix_provider: dict[str, Any]
    observability: dict[str, Any]


class MobicertConfig(TypedDict):
    meta: MetaConfig
    tiers: TiersConfig
    repair: RepairConfig
    fix_provider: FixProviderConfig
    observability: ObservabilityConfig
    profiles: dict[str, ProfileOverlay]


DEFAULT_CONFIG: Final[MobicertConfig] = {
    "meta": {"schema_version": CONFIG_SCHEMA_VERSION},
    "tiers": {
        "max_workers": DEFAULT_MAX_WORKERS,
        "check_timeout_seconds": DEFAULT_CHECK_TIMEOUT_SECONDS,
        "run_e2e_flows": False,
        "early_termination": False,
        "tier1": {
            "budget_seconds": TIER_BUDGET_SECONDS["tier1"],
            "checks": list(DEFAULT_TIER_CHECKS[Tier.TIER1]),
        },
        "tier2": {
            "budget_seconds": TIER_BUDGET_SECONDS["tier2"],
            "checks": list(DEFAULT_TIER_CHECKS[Tier.TIER2]),
        },
        "tier3": {
            "budget_seconds": TIER_BUDGET_SECONDS["tier3"],
            "checks": list(DEFAULT_TIER_CHECKS[Tier.TIER3]),
        },
    },
    "repair": {
        "enabled": True,
        "attempt_budget": DEFAULT_ATTEMPT_BUDGET,
        "fix_timeout_seconds": DEFAULT_FIX_TIMEOUT_SECONDS,
        "max_retries": 2,
        "initial_delay_seconds": 0.5,
        "multiplier": 2.0,
        "max_delay_seconds": 8.0,
    },
    "fix_provider": {
        "name": "patterns",
        "model": "claude-sonnet-4-5",
        "api_key_env": "ANTHROPIC_API_KEY",
        "max_tokens": 8192,
        "min_confidence": 0.95,
        "max_fixes": 50,
        "dry_run": False,
    },
    "observability": {
        "log_level": "INFO",
        "log_dir": ".mobicert/logs",
        "log_to_stdout": False,
        "json_logs": True,
    },
    "profiles": {
        "strict": {
            "tiers": {"run_e2e_flows": True},
            "repair": {"enabled": False},
        },
        "fast": {
            "tiers": {"max_workers": 8, "check_timeout_seconds": 60.0},
            "repair": {"attempt_budget": 1, "max_retries": 0},
        },
        "offline": {
            "fix_provider": {"name": "none"},
            "repair": {"enabled": False},
        },
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> MobicertConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < CONFIG_SCHEMA_VERSION:
        return (
            f"schema version {found_version} is older than supported {CONFIG_SCHEMA_VERSION}; "
            "update mobicert.toml to the current schema"
        )
    if found_version > CONFIG_SCHEMA_VERSION:
        return (
            f"schema version {found_version} is newer than supported {CONFIG_SCHEMA_VERSION}; "
            "upgrade mobicert"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto ``base``; lists are replaced, not concatenated."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Apply a named profile overlay and re-validate the result."""

    materialized = _deep_copy_mapping(config)
    if profile is None or not profile.strip():
        return materialized
    selected = profile.strip()

    profiles_raw = materialized.get("profiles")
    if not isinstance(profiles_raw, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", "profiles section is required"),)
        )
    overlay_raw = profiles_raw.get(selected)
    if overlay_raw is None:
        known = ", ".join(sorted(profiles_raw))
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", f"profile {selected!r} is not defined ({known})"),)
        )
    if not isinstance(overlay_raw, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue(f"profiles.{selected}", "profile overlay must be an object"),)
        )

    merged = merge_config(materialized, overlay_raw)
    return assert_valid_config(merged, active_profile=selected)


def validate_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> ConfigValidationResult:
    """Validate config and return structured issues with dotted paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, "", issues, partial=False)

    selected_profile = active_profile.strip() if isinstance(active_profile, str) else None
    if selected_profile:
        profiles = normalized.get("profiles")
        if not isinstance(profiles, Mapping) or selected_profile not in profiles:
            issues.add("profiles", f"profile {selected_profile!r} is not defined")

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(
    config: Mapping[str, object] | object,
    *,
    active_profile: str | None = None,
) -> dict[str, Any]:
    result = validate_config(config, active_profile=active_profile)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Redacted copy for display and logs; ``*_env`` values and secret-looking keys are masked."""

    if not isinstance(config, Mapping):
        return {}
    redacted = _redact_value(config, parent_key=None)
    return redacted if isinstance(redacted, dict) else {}


def _validate_root(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    sections: dict[str, Callable[..., dict[str, Any]]] = {
        "meta": _validate_meta,
        "tiers": _validate_tiers,
        "repair": _validate_repair,
        "fix_provider": _validate_fix_provider,
        "observability": _validate_observability,
    }
    if partial:
        sections.pop("meta")
    allowed = set(sections) if partial else {*sections, "profiles"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, set(sections), path, issues)

    out: dict[str, Any] = {}
    for key, validator in sections.items():
        raw = payload.get(key)
        if raw is None:
            continue
        section_path = _join(path, key)
        section = _as_object(raw, section_path, issues)
        if section is None:
            continue
        out[key] = validator(section, section_path, issues, partial=partial)

    if not partial and "profiles" in payload:
        profiles_path = _join(path, "profiles")
        profiles_obj = _as_object(payload["profiles"], profiles_path, issues)
        if profiles_obj is not None:
            out["profiles"] = _validate_profiles(profiles_obj, profiles_path, issues)

    if not partial:
        _validate_repair_cross_fields(out.get("repair"), _join(path, "repair"), issues)
    return out


def _validate_meta(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    if not partial:
        _require_keys(payload, {"schema_version"}, path, issues)

    out: dict[str, Any] = {}
    if "schema_version" in payload:
        field_path = _join(path, "schema_version")
        parsed = _as_int(payload["schema_version"], field_path, issues, minimum=1)
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != CONFIG_SCHEMA_VERSION:
                issues.add(field_path, migration_guidance(parsed))
    return out


def _validate_tiers(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    scalars = {"max_workers", "check_timeout_seconds", "run_e2e_flows", "early_termination"}
    _reject_unknown_keys(payload, {*scalars, *_TIER_NAMES}, path, issues)
    if not partial:
        _require_keys(payload, {*scalars, *_TIER_NAMES}, path, issues)

    out: dict[str, Any] = {}
    if "max_workers" in payload:
        workers = _as_int(payload["max_workers"], _join(path, "max_workers"), issues, minimum=1)
        if workers is not None:
            out["max_workers"] = workers
    if "check_timeout_seconds" in payload:
        timeout = _as_positive_float(
            payload["check_timeout_seconds"], _join(path, "check_timeout_seconds"), issues
        )
        if timeout is not None:
            out["check_timeout_seconds"] = timeout
    for key in ("run_e2e_flows", "early_termination"):
        if key in payload:
            flag = _as_bool(payload[key], _join(path, key), issues)
            if flag is not None:
                out[key] = flag

    for tier_name in _TIER_NAMES:
        raw = payload.get(tier_name)
        if raw is None:
            continue
        tier_path = _join(path, tier_name)
        section = _as_object(raw, tier_path, issues)
        if section is None:
            continue
        out[tier_name] = _validate_tier_settings(section, tier_path, issues, partial=partial)
    return out


def _validate_tier_settings(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"budget_seconds", "checks"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "budget_seconds" in payload:
        budget = _as_positive_float(
            payload["budget_seconds"], _join(path, "budget_seconds"), issues
        )
        if budget is not None:
            out["budget_seconds"] = budget
    if "checks" in payload:
        checks = _as_check_names(payload["checks"], _join(path, "checks"), issues)
        if checks is not None:
            out["checks"] = checks
    return out


def _validate_repair(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {
        "enabled",
        "attempt_budget",
        "fix_timeout_seconds",
        "max_retries",
        "initial_delay_seconds",
        "multiplier",
        "max_delay_seconds",
    }
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "enabled" in payload:
        enabled = _as_bool(payload["enabled"], _join(path, "enabled"), issues)
        if enabled is not None:
            out["enabled"] = enabled
    if "attempt_budget" in payload:
        budget_path = _join(path, "attempt_budget")
        budget = _as_int(payload["attempt_budget"], budget_path, issues, minimum=1)
        if budget is not None:
            if budget > MAX_ATTEMPT_BUDGET:
                issues.add(budget_path, f"must be <= {MAX_ATTEMPT_BUDGET}")
            else:
                out["attempt_budget"] = budget
    if "fix_timeout_seconds" in payload:
        timeout = _as_positive_float(
            payload["fix_timeout_seconds"], _join(path, "fix_timeout_seconds"), issues
        )
        if timeout is not None:
            out["fix_timeout_seconds"] = timeout
    if "max_retries" in payload:
        retries = _as_int(payload["max_retries"], _join(path, "max_retries"), issues, minimum=0)
        if retries is not None:
            out["max_retries"] = retries
    for key, minimum in (
        ("initial_delay_seconds", 0.0),
        ("multiplier", 1.0),
        ("max_delay_seconds", 0.0),
    ):
        if key in payload:
            parsed = _as_float(payload[key], _join(path, key), issues, minimum=minimum)
            if parsed is not None:
                out[key] = parsed
    return out


def _validate_fix_provider(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {
        "name",
        "model",
        "api_key_env",
        "max_tokens",
        "min_confidence",
        "max_fixes",
        "dry_run",
    }
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "name" in payload:
        name = _as_enum(
            payload["name"], _join(path, "name"), issues, allowed_values=FIX_PROVIDER_NAMES
        )
        if name is not None:
            out["name"] = name
    if "model" in payload:
        model = _as_str(payload["model"], _join(path, "model"), issues)
        if model is not None:
            out["model"] = model
    if "api_key_env" in payload:
        env_name = _as_env_name(payload["api_key_env"], _join(path, "api_key_env"), issues)
        if env_name is not None:
            out["api_key_env"] = env_name
    if "max_tokens" in payload:
        tokens = _as_int(payload["max_tokens"], _join(path, "max_tokens"), issues, minimum=1)
        if tokens is not None:
            out["max_tokens"] = tokens
    if "min_confidence" in payload:
        confidence_path = _join(path, "min_confidence")
        confidence = _as_positive_float(payload["min_confidence"], confidence_path, issues)
        if confidence is not None:
            if confidence > 1.0:
                issues.add(confidence_path, "must be <= 1.0")
            else:
                out["min_confidence"] = confidence
    if "max_fixes" in payload:
        fixes = _as_int(payload["max_fixes"], _join(path, "max_fixes"), issues, minimum=1)
        if fixes is not None:
            out["max_fixes"] = fixes
    if "dry_run" in payload:
        dry_run = _as_bool(payload["dry_run"], _join(path, "dry_run"), issues)
        if dry_run is not None:
            out["dry_run"] = dry_run
    return out


def _validate_observability(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
    *,
    partial: bool,
) -> dict[str, Any]:
    allowed = {"log_level", "log_dir", "log_to_stdout", "json_logs"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        raw_level = payload["log_level"]
        if isinstance(raw_level, str):
            raw_level = raw_level.strip().upper()
        level = _as_enum(raw_level, _join(path, "log_level"), issues, allowed_values=LOG_LEVELS)
        if level is not None:
            out["log_level"] = level
    if "log_dir" in payload:
        log_dir = _as_path_text(payload["log_dir"], _join(path, "log_dir"), issues)
        if log_dir is not None:
            out["log_dir"] = log_dir
    for key in ("log_to_stdout", "json_logs"):
        if key in payload:
            flag = _as_bool(payload[key], _join(path, key), issues)
            if flag is not None:
                out[key] = flag
    return out


def _validate_profiles(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name in sorted(payload):
        profile_path = _join(path, name)
        if not _PROFILE_NAME_PATTERN.fullmatch(name):
            issues.add(profile_path, "profile names must match [a-z][a-z0-9_-]*")
            continue
        overlay = _as_object(payload[name], profile_path, issues)
        if overlay is None:
            continue
        out[name] = _validate_root(overlay, profile_path, issues, partial=True)
    return out


def _validate_repair_cross_fields(repair: object, path: str, issues: _IssueCollector) -> None:
    if not isinstance(repair, Mapping):
        return
    initial = repair.get("initial_delay_seconds")
    maximum = repair.get("max_delay_seconds")
    if isinstance(initial, float) and isinstance(maximum, float) and initial > maximum:
        issues.add(
            _join(path, "initial_delay_seconds"), "must be <= repair.max_delay_seconds"
        )


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_env_name(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not _ENV_NAME_PATTERN.fullmatch(parsed):
        issues.add(path, "must be an env var name (example: ANTHROPIC_API_KEY)")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _as_positive_float(value: object, path: str, issues: _IssueCollector) -> float | None:
    parsed = _as_float(value, path, issues)
    if parsed is None:
        return None
    if parsed <= 0:
        issues.add(path, "must be > 0")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _as_check_names(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if not isinstance(value, (list, tuple)):
        issues.add(path, f"expected list of check names, got {type(value).__name__}")
        return None
    names: list[str] = []
    for index, item in enumerate(value):
        parsed = _as_str(item, f"{path}[{index}]", issues)
        if parsed is None:
            continue
        if parsed in names:
            issues.add(f"{path}[{index}]", f"duplicate check {parsed!r}")
            continue
        names.append(parsed)
    if not names:
        issues.add(path, "must name at least one check")
        return None
    return names


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key in allowed:
            continue
        key_path = _join(path, key)
        if _looks_sensitive_key(key):
            issues.add(
                key_path,
                "embedded secret values are forbidden; use an *_env key with an env var name",
            )
        else:
            issues.add(key_path, "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _looks_sensitive_key(key: str) -> bool:
    normalized = _normalize_key(key)
    if normalized.endswith("_env"):
        return False
    if any(phrase in normalized for phrase in _SENSITIVE_KEY_PHRASES):
        return True
    return any(token in _SENSITIVE_KEY_TOKENS for token in normalized.split("_") if token)


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            nested = _deep_copy_mapping(existing) if isinstance(existing, Mapping) else {}
            _merge_into(nested, value)
            target[key] = nested
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    return {key: _deep_copy_value(value[key]) for key in sorted(value)}


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        return {key: _deep_copy_value(item) for key, item in value.items() if isinstance(key, str)}
    if isinstance(value, (list, tuple)):
        return [_deep_copy_value(item) for item in value]
    return copy.deepcopy(value)


def _redact_value(value: object, parent_key: str | None) -> object:
    if isinstance(value, Mapping):
        out: dict[str, object] = {}
        for key in sorted(value):
            if _key_is_sensitive_for_redaction(key):
                out[key] = "<redacted>"
            else:
                out[key] = _redact_value(value[key], key)
        return out
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, parent_key) for item in value]
    return value


def _key_is_sensitive_for_redaction(key: str) -> bool:
    normalized = _normalize_key(key)
    return normalized.endswith("_env") or _looks_sensitive_key(normalized)


__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "DEFAULT_CONFIG",
    "FIX_PROVIDER_NAMES",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "MobicertConfig",
    "ProfileOverlay",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "validate_config",
]
