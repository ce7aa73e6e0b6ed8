"""Static analysis checks backed by the project's own TypeScript and ESLint installs."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from mobicert.checks.base import CommandCheck
from mobicert.constants import PACKAGE_MANIFEST, TSCONFIG
from mobicert.domain.models import ErrorKind

if TYPE_CHECKING:
    from mobicert.checks.base import CheckContext

_ESLINT_CONFIG_FILES = (
    "eslint.config.js",
    "eslint.config.mjs",
    "eslint.config.cjs",
    "eslint.config.ts",
    ".eslintrc",
    ".eslintrc.js",
    ".eslintrc.cjs",
    ".eslintrc.json",
    ".eslintrc.yaml",
    ".eslintrc.yml",
)


class TypeScriptCheck(CommandCheck):
    """``tsc --noEmit`` over the whole project."""

    name = "typescript"
    tool = "typescript"
    failure_kind = ErrorKind.TYPE_CHECK
    default_command = ("npx", "--no-install", "tsc", "--noEmit", "--pretty", "false")

    def skip_reason(self, context: CheckContext) -> str | None:
        if not (context.project_path / TSCONFIG).is_file():
            return "no tsconfig.json"
        return None


class EslintCheck(CommandCheck):
    """ESLint with the JSON formatter; warnings are reported even when the run succeeds."""

    name = "eslint"
    tool = "eslint"
    failure_kind = ErrorKind.LINT
    default_command = ("npx", "--no-install", "eslint", ".", "--format", "json")
    parse_on_success = True

    def skip_reason(self, context: CheckContext) -> str | None:
        project = context.project_path
        if any((project / name).is_file() for name in _ESLINT_CONFIG_FILES):
            return None
        try:
            package = json.loads((project / PACKAGE_MANIFEST).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return "no eslint configuration"
        if isinstance(package, dict) and "eslintConfig" in package:
            return None
        return "no eslint configuration"


__all__ = ["EslintCheck", "TypeScriptCheck"]
