"""Check registry and the default per-tier check sets."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from types import MappingProxyType
from typing import Final

from mobicert.checks.base import Check
from mobicert.checks.native_checks import BundleCheck, ExpoConfigCheck, JestCheck, MaestroFlowCheck
from mobicert.checks.project_checks import ImportResolutionCheck, ManifestCheck, NavigationCheck
from mobicert.checks.static_checks import EslintCheck, TypeScriptCheck
from mobicert.domain.models import Tier

CheckFactory = Callable[[], Check]

_TIER1_CHECKS: Final[tuple[str, ...]] = (
    "manifest",
    "imports",
    "navigation",
    "typescript",
    "eslint",
)
_TIER2_CHECKS: Final[tuple[str, ...]] = (*_TIER1_CHECKS, "expo-config", "jest")
_TIER3_CHECKS: Final[tuple[str, ...]] = (*_TIER2_CHECKS, "bundle", "maestro")

# Each tier re-runs the lower tiers' checks so a tier result is self-contained.
DEFAULT_TIER_CHECKS: Final[Mapping[Tier, tuple[str, ...]]] = MappingProxyType(
    {
        Tier.TIER1: _TIER1_CHECKS,
        Tier.TIER2: _TIER2_CHECKS,
        Tier.TIER3: _TIER3_CHECKS,
    }
)


class UnknownCheckError(ValueError):
    """Raised when a check set names a check that is not registered."""


class CheckRegistry:
    """Name -> factory mapping; a fresh check instance is built per tier invocation."""

    def __init__(self, factories: Mapping[str, CheckFactory] | None = None) -> None:
        self._factories: dict[str, CheckFactory] = dict(factories or {})

    def register(self, name: str, factory: CheckFactory, *, replace: bool = False) -> None:
        key = name.strip()
        if not key:
            raise ValueError("check name must not be empty")
        if key in self._factories and not replace:
            raise ValueError(f"check already registered: {key!r}")
        self._factories[key] = factory

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._factories))

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def unknown(self, names: Sequence[str]) -> tuple[str, ...]:
        return tuple(name for name in names if name not in self._factories)

    def create(self, name: str) -> Check:
        factory = self._factories.get(name)
        if factory is None:
            known = ", ".join(self.names())
            raise UnknownCheckError(f"unknown check {name!r}; known checks: {known}")
        return factory()

    def build(self, names: Sequence[str]) -> tuple[Check, ...]:
        missing = self.unknown(names)
        if missing:
            raise UnknownCheckError(
                f"unknown check(s): {', '.join(missing)}; known checks: {', '.join(self.names())}"
            )
        return tuple(self.create(name) for name in names)


def build_default_check_registry(*, run_e2e_flows: bool = False) -> CheckRegistry:
    return CheckRegistry(
        {
            "manifest": ManifestCheck,
            "imports": ImportResolutionCheck,
            "navigation": NavigationCheck,
            "typescript": TypeScriptCheck,
            "eslint": EslintCheck,
            "expo-config": ExpoConfigCheck,
            "jest": JestCheck,
            "bundle": BundleCheck,
            "maestro": lambda: MaestroFlowCheck(run_flows=run_e2e_flows),
        }
    )


__all__ = [
    "DEFAULT_TIER_CHECKS",
    "CheckFactory",
    "CheckRegistry",
    "UnknownCheckError",
    "build_default_check_registry",
]
