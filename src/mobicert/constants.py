"""Stable constants shared across certification components."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1
REPORT_SCHEMA_VERSION: Final[int] = 1

# Nominal wall-clock budget per tier, in seconds.
TIER_BUDGET_SECONDS: Final[dict[str, float]] = {
    "tier1": 30.0,
    "tier2": 120.0,
    "tier3": 600.0,
}

# Repair loop defaults.
DEFAULT_ATTEMPT_BUDGET: Final[int] = 2
MAX_ATTEMPT_BUDGET: Final[int] = 10
DEFAULT_FIX_TIMEOUT_SECONDS: Final[float] = 120.0

# Check execution defaults.
DEFAULT_CHECK_TIMEOUT_SECONDS: Final[float] = 300.0
DEFAULT_MAX_WORKERS: Final[int] = 4
MAX_COMMAND_OUTPUT_CHARS: Final[int] = 200_000

# Directories never scanned by source-tree checks.
SKIPPED_SOURCE_DIRS: Final[frozenset[str]] = frozenset(
    {"node_modules", ".git", ".expo", "ios", "android", "dist", "build", "coverage"}
)
SOURCE_EXTENSIONS: Final[tuple[str, ...]] = (".ts", ".tsx", ".js", ".jsx")

# Project artifact locations (relative to the project root).
APP_MANIFEST: Final[PurePosixPath] = PurePosixPath("app.json")
PACKAGE_MANIFEST: Final[PurePosixPath] = PurePosixPath("package.json")
TSCONFIG: Final[PurePosixPath] = PurePosixPath("tsconfig.json")
MAESTRO_DIR: Final[PurePosixPath] = PurePosixPath(".maestro")
LOCKFILES: Final[tuple[str, ...]] = (
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "bun.lockb",
)

# Template catalog directories skipped by batch certification.
SKIPPED_TEMPLATE_DIRS: Final[frozenset[str]] = frozenset({"shared", "base", "node_modules"})

__all__ = [
    "APP_MANIFEST",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_ATTEMPT_BUDGET",
    "DEFAULT_CHECK_TIMEOUT_SECONDS",
    "DEFAULT_FIX_TIMEOUT_SECONDS",
    "DEFAULT_MAX_WORKERS",
    "LOCKFILES",
    "MAESTRO_DIR",
    "MAX_ATTEMPT_BUDGET",
    "MAX_COMMAND_OUTPUT_CHARS",
    "PACKAGE_MANIFEST",
    "REPORT_SCHEMA_VERSION",
    "SKIPPED_SOURCE_DIRS",
    "SKIPPED_TEMPLATE_DIRS",
    "SOURCE_EXTENSIONS",
    "TIER_BUDGET_SECONDS",
    "TSCONFIG",
]
