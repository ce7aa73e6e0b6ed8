"""Fixed pattern-to-suggestion rules attached to normalized error records.

Suggestions are advisory text only. Rules are evaluated in declaration order and the first
match wins; a record that already carries a suggestion keeps it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from mobicert.domain.models import ErrorKind

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mobicert.domain.models import ErrorRecord


@dataclass(frozen=True, slots=True)
class SuggestionRule:
    """Match on any combination of kind, tool code and message pattern.

    ``text`` may reference capture groups of ``pattern`` positionally (``{0}``, ``{1}``).
    """

    text: str
    kind: ErrorKind | None = None
    code: str | None = None
    pattern: re.Pattern[str] | None = None

    def apply(self, record: ErrorRecord) -> str | None:
        if self.kind is not None and record.kind is not self.kind:
            return None
        if self.code is not None and record.code != self.code:
            return None
        if self.pattern is None:
            return self.text
        match = self.pattern.search(record.message)
        if match is None:
            return None
        groups = tuple(group or "" for group in match.groups())
        try:
            return self.text.format(*groups)
        except (IndexError, KeyError):
            return self.text


def _rule(
    text: str,
    *,
    kind: ErrorKind | None = None,
    code: str | None = None,
    pattern: str | None = None,
) -> SuggestionRule:
    compiled = re.compile(pattern, re.IGNORECASE) if pattern is not None else None
    return SuggestionRule(text=text, kind=kind, code=code, pattern=compiled)


DEFAULT_SUGGESTION_RULES: Final[tuple[SuggestionRule, ...]] = (
    # TypeScript diagnostics.
    _rule("Import or define '{0}'", code="TS2304", pattern=r"Cannot find name ['\"](.+?)['\"]"),
    _rule(
        "Check the import path; the file may not exist at '{0}'",
        code="TS2307",
        pattern=r"Cannot find module ['\"](\..+?)['\"]",
    ),
    _rule(
        "Install the package: npm install {0}",
        code="TS2307",
        pattern=r"Cannot find module ['\"](.+?)['\"]",
    ),
    _rule(
        "Add property '{0}' to type '{1}' or check for typos",
        code="TS2339",
        pattern=r"Property ['\"](.+?)['\"] does not exist on type ['\"](.+?)['\"]",
    ),
    _rule(
        "Check type compatibility; the value must match the expected type",
        code="TS2322",
    ),
    _rule(
        "Add the required property '{0}'",
        code="TS2741",
        pattern=r"Property ['\"](.+?)['\"] is missing",
    ),
    _rule("Add all required properties to the object", code="TS2741"),
    _rule("Check argument types match the function parameter types", code="TS2345"),
    _rule("Add a null check before accessing the property (obj?.property)", code="TS2532"),
    _rule(
        "Install types: npm install --save-dev @types/{0}",
        code="TS7016",
        pattern=r"declaration file for module ['\"](.+?)['\"]",
    ),
    # ESLint rules.
    _rule("Define or import the undefined variable", code="no-undef"),
    _rule("Remove the unused variable or use it", code="no-unused-vars"),
    _rule("Remove the unused variable or use it", code="@typescript-eslint/no-unused-vars"),
    _rule("Import the JSX component or check for typos", code="react/jsx-no-undef"),
    _rule(
        "Move the hook call out of conditionals and loops; hooks must be called at top level",
        code="react-hooks/rules-of-hooks",
    ),
    _rule("Add missing dependencies to the dependency array", code="react-hooks/exhaustive-deps"),
    _rule("Check the import path or install the missing package", code="import/no-unresolved"),
    # Manifest, native build and plugin failures.
    _rule(
        "Check platform identifiers (ios.bundleIdentifier / android.package) in app.json",
        pattern=r"bundle\s*identifier|bundleIdentifier|android\.package|applicationId",
    ),
    _rule(
        "Check the plugin name in app.json 'plugins' and that the package is installed",
        kind=ErrorKind.PLUGIN,
    ),
    _rule(
        "Run 'npx expo install --fix' to align native module versions",
        pattern=r"native module|TurboModuleRegistry|requireNativeComponent",
    ),
    _rule(
        "Check the import path or install '{0}'; then clear the Metro cache",
        pattern=r"Unable to resolve module ['\"]?([^'\"\s]+)",
    ),
    _rule(
        "Add '{0}' to package.json dependencies",
        kind=ErrorKind.DEPENDENCY,
        pattern=r"(?:Cannot find module|not declared in package\.json)[:\s]+['\"]?([^'\"\s]+)",
    ),
    _rule(
        "Check the manifest field against the Expo app config schema",
        kind=ErrorKind.CONFIG,
    ),
    # Navigation.
    _rule(
        "Register the screen in your navigator configuration",
        pattern=r"screen ['\"]?(.+?)['\"]? is not (?:in the navigator|registered)",
    ),
    _rule(
        "Create the screen component or fix the route's screen reference",
        kind=ErrorKind.ROUTE_REGISTRATION,
    ),
    # React Native runtime messages.
    _rule(
        "Wrap the text in a <Text> component",
        pattern=r"Text strings must be rendered within a <Text> component",
    ),
    _rule(
        "Add null/undefined checks before accessing properties (obj?.property)",
        pattern=r"undefined is not an object|Cannot read propert(?:y|ies) .* of (?:null|undefined)",
    ),
    _rule(
        "Replace ViewPropTypes with ViewProps from react-native",
        pattern=r"ViewPropTypes.*deprecated",
    ),
    _rule(
        "Ensure hooks are called unconditionally and in the same order every render",
        pattern=r"Hooks can only be called inside|Rendered (?:more|fewer) hooks",
    ),
    _rule(
        "Cancel async work in the useEffect cleanup to avoid updating unmounted components",
        pattern=r"unmounted component",
    ),
    _rule(
        "Check component registration and required props; see the invariant message",
        pattern=r"Invariant Violation",
    ),
    # Generic fallbacks.
    _rule("Import or define the missing symbol", pattern=r"is not defined"),
    _rule(
        "Check for syntax errors: missing brackets, semicolons or quotes",
        pattern=r"unexpected token",
    ),
    _rule("Update to the recommended alternative", pattern=r"is deprecated"),
)


def suggest(
    record: ErrorRecord, rules: Iterable[SuggestionRule] = DEFAULT_SUGGESTION_RULES
) -> str | None:
    for rule in rules:
        text = rule.apply(record)
        if text is not None:
            return text
    return None


def attach_suggestion(
    record: ErrorRecord, rules: Iterable[SuggestionRule] = DEFAULT_SUGGESTION_RULES
) -> ErrorRecord:
    if record.suggestion is not None:
        return record
    text = suggest(record, rules)
    if text is None:
        return record
    return record.with_suggestion(text)


__all__ = [
    "DEFAULT_SUGGESTION_RULES",
    "SuggestionRule",
    "attach_suggestion",
    "suggest",
]
