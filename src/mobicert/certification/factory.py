"""Build a wired ``CertificationEngine`` from a validated configuration mapping."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from mobicert.certification.engine import CertificationEngine
from mobicert.certification.tier_runner import TierRunner
from mobicert.checks.registry import UnknownCheckError, build_default_check_registry
from mobicert.config.schema import (
    ConfigValidationError,
    ConfigValidationIssue,
    assert_valid_config,
)
from mobicert.domain.models import Tier
from mobicert.fixes.anthropic_fixer import AnthropicFixCapability
from mobicert.fixes.contract import BackoffConfig
from mobicert.fixes.pattern_fixer import PatternFixCapability

if TYPE_CHECKING:
    from mobicert.checks.base import CommandExecutor
    from mobicert.checks.registry import CheckRegistry
    from mobicert.fixes.contract import FixCapability


def build_fix_capability(
    config: Mapping[str, Any], *, logger: Any | None = None
) -> FixCapability | None:
    provider = config["fix_provider"]
    if provider["name"] == "none":
        return None
    if provider["name"] == "patterns":
        return PatternFixCapability(
            min_confidence=provider["min_confidence"],
            max_fixes=provider["max_fixes"],
            dry_run=provider["dry_run"],
            logger=logger,
        )
    return AnthropicFixCapability(
        model=provider["model"],
        api_key_env=provider["api_key_env"],
        max_tokens=provider["max_tokens"],
        timeout_seconds=config["repair"]["fix_timeout_seconds"],
        logger=logger,
    )


def build_tier_runner(
    config: Mapping[str, Any],
    *,
    check_registry: CheckRegistry | None = None,
    executor: CommandExecutor | None = None,
    logger: Any | None = None,
) -> TierRunner:
    """Tier runner with configured budgets and check sets; unknown check names are config errors."""

    tiers = config["tiers"]
    registry = check_registry or build_default_check_registry(
        run_e2e_flows=tiers["run_e2e_flows"]
    )
    tier_checks = {tier: tuple(tiers[tier.value]["checks"]) for tier in Tier}
    known = ", ".join(registry.names())
    issues = [
        ConfigValidationIssue(
            f"tiers.{tier.value}.checks", f"unknown check {name!r}; known: {known}"
        )
        for tier, names in tier_checks.items()
        for name in registry.unknown(names)
    ]
    if issues:
        raise ConfigValidationError(issues)
    try:
        return TierRunner(
            check_registry=registry,
            tier_checks=tier_checks,
            executor=executor,
            max_workers=tiers["max_workers"],
            check_timeout_seconds=tiers["check_timeout_seconds"],
            tier_budgets={tier: tiers[tier.value]["budget_seconds"] for tier in Tier},
            early_termination=tiers["early_termination"],
            logger=logger,
        )
    except UnknownCheckError as exc:
        raise ConfigValidationError((ConfigValidationIssue("tiers", str(exc)),)) from exc


def build_engine(
    config: Mapping[str, Any],
    *,
    fix_capability: FixCapability | None = None,
    check_registry: CheckRegistry | None = None,
    executor: CommandExecutor | None = None,
    logger: Any | None = None,
) -> CertificationEngine:
    """Engine from ``config``; ``fix_capability`` overrides the configured provider."""

    validated = assert_valid_config(config)
    repair = validated["repair"]
    try:
        backoff = BackoffConfig(
            max_retries=repair["max_retries"],
            initial_delay_seconds=repair["initial_delay_seconds"],
            multiplier=repair["multiplier"],
            max_delay_seconds=repair["max_delay_seconds"],
        )
    except ValueError as exc:
        raise ConfigValidationError((ConfigValidationIssue("repair", str(exc)),)) from exc

    capability = fix_capability or build_fix_capability(validated, logger=logger)
    return CertificationEngine(
        tier_runner=build_tier_runner(
            validated, check_registry=check_registry, executor=executor, logger=logger
        ),
        fix_capability=capability,
        repair_enabled=repair["enabled"],
        attempt_budget=repair["attempt_budget"],
        fix_timeout_seconds=repair["fix_timeout_seconds"],
        backoff=backoff,
        logger=logger,
    )


__all__ = ["build_engine", "build_fix_capability", "build_tier_runner"]
