"""
mobicert — unit tests for the configuration schema

Purpose
- Validate defaults, strict key checking, secret refusal, range checks and profile overlays.
"""

from __future__ import annotations

import pytest

from mobicert.config.schema import (
    BUILTIN_PROFILE_NAMES,
    ConfigValidationError,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
    validate_config,
)


def _issues(overlay: dict[str, object]) -> dict[str, str]:
    result = validate_config(merge_config(default_config(), overlay))
    assert not result.is_valid
    return {issue.path: issue.message for issue in result.issues}


def test_defaults_are_valid_and_independent_copies() -> None:
    config = default_config()
    assert validate_config(config).is_valid
    config["tiers"]["tier1"]["checks"].append("extra")
    assert "extra" not in default_config()["tiers"]["tier1"]["checks"]
    assert sorted(config["profiles"]) == sorted(BUILTIN_PROFILE_NAMES)


def test_unknown_fields_are_rejected_with_paths() -> None:
    issues = _issues({"tiers": {"tier1": {"budget": 3}}, "colour": "red"})
    assert issues == {"tiers.tier1.budget": "unknown field", "colour": "unknown field"}


def test_embedded_secrets_are_refused() -> None:
    issues = _issues({"fix_provider": {"apiKey": "sk-ant-123"}})
    assert "embedded secret values are forbidden" in issues["fix_provider.apiKey"]


def test_env_var_names_are_validated() -> None:
    issues = _issues({"fix_provider": {"api_key_env": "not-an-env"}})
    assert issues["fix_provider.api_key_env"].startswith("must be an env var name")


@pytest.mark.parametrize(
    ("budget", "message"),
    [(0, "must be >= 1"), (11, "must be <= 10"), (True, "expected integer, got bool")],
)
def test_attempt_budget_range(budget: object, message: str) -> None:
    assert _issues({"repair": {"attempt_budget": budget}}) == {"repair.attempt_budget": message}


def test_all_issues_are_collected_together() -> None:
    issues = _issues(
        {
            "tiers": {"max_workers": 0, "tier2": {"budget_seconds": -1, "checks": []}},
            "repair": {"initial_delay_seconds": 10.0, "max_delay_seconds": 1.0},
            "fix_provider": {"name": "openai"},
        }
    )
    assert set(issues) == {
        "tiers.max_workers",
        "tiers.tier2.budget_seconds",
        "tiers.tier2.checks",
        "repair.initial_delay_seconds",
        "fix_provider.name",
    }
    expected = "invalid value 'openai'; expected one of: anthropic, none, patterns"
    assert issues["fix_provider.name"] == expected


def test_check_lists_reject_duplicates() -> None:
    issues = _issues({"tiers": {"tier1": {"checks": ["eslint", "eslint"]}}})
    assert issues == {"tiers.tier1.checks[1]": "duplicate check 'eslint'"}


def test_schema_version_mismatch_explains_migration() -> None:
    issues = _issues({"meta": {"schema_version": 2}})
    assert "newer than supported" in issues["meta.schema_version"]


def test_log_level_is_normalized() -> None:
    config = assert_valid_config(
        merge_config(default_config(), {"observability": {"log_level": " debug "}})
    )
    assert config["observability"]["log_level"] == "DEBUG"


def test_invalid_profile_name_is_reported() -> None:
    issues = _issues({"profiles": {"Loud": {"repair": {"enabled": True}}}})
    assert "profiles.Loud" in issues


def test_merge_replaces_lists_and_leaves_inputs_untouched() -> None:
    base = {"tiers": {"tier1": {"checks": ["manifest", "eslint"], "budget_seconds": 30.0}}}
    merged = merge_config(base, {"tiers": {"tier1": {"checks": ["typescript"]}}})
    assert merged == {"tiers": {"tier1": {"checks": ["typescript"], "budget_seconds": 30.0}}}
    assert base["tiers"]["tier1"]["checks"] == ["manifest", "eslint"]


def test_profile_overlays() -> None:
    strict = apply_profile_overlay(default_config(), "strict")
    assert strict["tiers"]["run_e2e_flows"] is True
    assert strict["repair"]["enabled"] is False

    fast = apply_profile_overlay(default_config(), "fast")
    assert (fast["tiers"]["max_workers"], fast["repair"]["attempt_budget"]) == (8, 1)

    assert apply_profile_overlay(default_config(), None) == default_config()
    with pytest.raises(ConfigValidationError, match="'turbo' is not defined"):
        apply_profile_overlay(default_config(), "turbo")


def test_redaction_masks_env_names_and_secret_keys() -> None:
    redacted = redact_config({"fix_provider": {"api_key_env": "ANTHROPIC_API_KEY", "model": "m"}})
    assert redacted == {"fix_provider": {"api_key_env": "<redacted>", "model": "m"}}
    assert redact_config(["not", "a", "mapping"]) == {}


def test_pattern_fixer_is_the_default_provider() -> None:
    provider = default_config()["fix_provider"]
    assert (provider["name"], provider["min_confidence"], provider["max_fixes"]) == (
        "patterns",
        0.95,
        50,
    )
    assert provider["dry_run"] is False
    assert default_config()["tiers"]["early_termination"] is False


@pytest.mark.parametrize(
    ("overlay", "path", "message"),
    [
        (
            {"fix_provider": {"min_confidence": 1.5}},
            "fix_provider.min_confidence",
            "must be <= 1.0",
        ),
        ({"fix_provider": {"min_confidence": 0}}, "fix_provider.min_confidence", "must be > 0"),
        ({"fix_provider": {"max_fixes": 0}}, "fix_provider.max_fixes", "must be >= 1"),
        (
            {"fix_provider": {"dry_run": "yes"}},
            "fix_provider.dry_run",
            "expected boolean, got str",
        ),
        (
            {"tiers": {"early_termination": 1}},
            "tiers.early_termination",
            "expected boolean, got int",
        ),
    ],
)
def test_pattern_and_early_termination_settings_are_checked(
    overlay: dict[str, object], path: str, message: str
) -> None:
    assert _issues(overlay) == {path: message}
