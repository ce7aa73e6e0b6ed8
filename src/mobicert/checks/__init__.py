"""Validation checks run by the tier runner."""

from mobicert.checks.base import (
    Check,
    CheckContext,
    CheckOutcome,
    CommandCheck,
    CommandExecutor,
    CommandResult,
    CommandSpec,
    LocalSubprocessExecutor,
)
from mobicert.checks.native_checks import BundleCheck, ExpoConfigCheck, JestCheck, MaestroFlowCheck
from mobicert.checks.project_checks import ImportResolutionCheck, ManifestCheck, NavigationCheck
from mobicert.checks.registry import (
    DEFAULT_TIER_CHECKS,
    CheckRegistry,
    UnknownCheckError,
    build_default_check_registry,
)
from mobicert.checks.static_checks import EslintCheck, TypeScriptCheck

__all__ = [
    "DEFAULT_TIER_CHECKS",
    "BundleCheck",
    "Check",
    "CheckContext",
    "CheckOutcome",
    "CheckRegistry",
    "CommandCheck",
    "CommandExecutor",
    "CommandResult",
    "CommandSpec",
    "EslintCheck",
    "ExpoConfigCheck",
    "ImportResolutionCheck",
    "JestCheck",
    "LocalSubprocessExecutor",
    "MaestroFlowCheck",
    "ManifestCheck",
    "NavigationCheck",
    "TypeScriptCheck",
    "UnknownCheckError",
    "build_default_check_registry",
]
