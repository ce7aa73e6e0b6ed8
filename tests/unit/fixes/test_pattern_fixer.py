"""
mobicert — unit tests for the deterministic pattern fix capability

Purpose
- Run every fix pattern against small project trees on disk and compare the emitted patches.

What this test file should cover
- import-path, unused-import, unregistered-route and missing-import rewrites.
- Confidence threshold, the max-fixes cap and dry-run.
- A repair loop driven by the pattern capability resolving a real import check failure.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from mobicert.certification.repair import RepairOrchestrator, RepairState
from mobicert.certification.tier_runner import TierRunner
from mobicert.checks.project_checks import ImportResolutionCheck, NavigationCheck
from mobicert.checks.registry import CheckRegistry
from mobicert.domain.models import ErrorKind, ErrorRecord, RepairOutcome, Severity, Tier
from mobicert.fixes.contract import FixInvalidRequestError, FixRequest, FixResponse
from mobicert.fixes.pattern_fixer import PatternFixCapability

NAVIGATOR = "src/navigation/index.tsx"

HOME_WITH_UNUSED = """\
import React, { useEffect, useState } from 'react';
import { Text, View } from 'react-native';
import { helper } from '../utils/helper';

export default function HomeScreen() {
  const [count] = useState(0);
  return (
    <View>
      <Text>{count}</Text>
    </View>
  );
}
"""

HOME_WITHOUT_UNUSED = """\
import React, { useState } from 'react';
import { Text, View } from 'react-native';

export default function HomeScreen() {
  const [count] = useState(0);
  return (
    <View>
      <Text>{count}</Text>
    </View>
  );
}
"""

SETTINGS_SCREEN = """\
import { Text } from 'react-native';

export default function SettingsScreen() {
  return <Text>Settings</Text>;
}
"""

COUNTER_MISSING_IMPORTS = """\
import React from 'react';
import { Text } from 'react-native';

export function Counter() {
  const [count] = useState(0);
  return <Text style={styles.label}>{count}</Text>;
}

const styles = StyleSheet.create({ label: { fontSize: 12 } });
"""


def _record(message: str, file: str, line: int | None = None, **kwargs: object) -> ErrorRecord:
    kind = kwargs.pop("kind", ErrorKind.TYPE_CHECK)
    return ErrorRecord(kind=kind, message=message, file=file, line=line, **kwargs)


def _request(
    project: Path, *errors: ErrorRecord, warnings: tuple[ErrorRecord, ...] = ()
) -> FixRequest:
    return FixRequest(
        tier=Tier.TIER1,
        errors=errors,
        affected_files=tuple(dict.fromkeys(e.file for e in errors if e.file)),
        project_context={"project_root": str(project.resolve())},
        warnings=warnings,
    )


def _patched(response: FixResponse) -> dict[str, str | None]:
    return {patch.path: patch.content for patch in response.patches}


def _break_home_import(project: Path, broken: str) -> str:
    navigator = project / NAVIGATOR
    original = navigator.read_text(encoding="utf-8")
    navigator.write_text(original.replace("../screens/HomeScreen", broken), encoding="utf-8")
    return original


async def test_import_path_fixes_case_mismatch(expo_project: Path) -> None:
    original = _break_home_import(expo_project, "../screens/homescreen")
    record = _record(
        "Cannot resolve import '../screens/homescreen'",
        NAVIGATOR,
        3,
        kind=ErrorKind.IMPORT_RESOLUTION,
    )

    response = await PatternFixCapability().request_fix(_request(expo_project, record))

    assert response.success
    assert _patched(response) == {NAVIGATOR: original}
    assert "'../screens/homescreen' -> '../screens/HomeScreen'" in response.description


async def test_import_path_follows_a_moved_module(expo_project: Path) -> None:
    (expo_project / "src" / "components").mkdir()
    (expo_project / "src" / "components" / "Card.tsx").write_text(
        "export default function Card() { return null; }\n", encoding="utf-8"
    )
    screen = "src/screens/HomeScreen.tsx"
    (expo_project / screen).write_text("import Card from './Card.js';\n", encoding="utf-8")
    record = _record("Cannot find module './Card.js' or its type declarations.", screen, 1)

    response = await PatternFixCapability().request_fix(_request(expo_project, record))

    assert _patched(response) == {screen: "import Card from '../components/Card';\n"}


async def test_ambiguous_import_target_stays_below_threshold(expo_project: Path) -> None:
    for folder in ("components", "legacy"):
        (expo_project / "src" / folder).mkdir()
        (expo_project / "src" / folder / "Card.tsx").write_text("export {};\n", encoding="utf-8")
    screen = "src/screens/HomeScreen.tsx"
    (expo_project / screen).write_text("import Card from './Card';\n", encoding="utf-8")
    record = _record("Cannot resolve import './Card'", screen, 1)

    cautious = await PatternFixCapability().request_fix(_request(expo_project, record))
    assert not cautious.success
    assert cautious.patches == ()

    relaxed = await PatternFixCapability(min_confidence=0.8).request_fix(
        _request(expo_project, record)
    )
    assert _patched(relaxed) == {screen: "import Card from '../components/Card';\n"}


async def test_unused_imports_compose_into_one_patch(expo_project: Path) -> None:
    screen = "src/screens/HomeScreen.tsx"
    (expo_project / screen).write_text(HOME_WITH_UNUSED, encoding="utf-8")
    errors = (
        _record("'useEffect' is declared but its value is never read.", screen, 1, code="TS6133"),
        _record(
            "'helper' is defined but never used.",
            screen,
            3,
            kind=ErrorKind.LINT,
            code="no-unused-vars",
        ),
    )

    response = await PatternFixCapability().request_fix(_request(expo_project, *errors))

    assert _patched(response) == {screen: HOME_WITHOUT_UNUSED}
    assert response.files_modified == (screen,)
    assert (expo_project / screen).read_text(encoding="utf-8") == HOME_WITH_UNUSED


async def test_unused_name_that_is_not_an_import_is_left_alone(expo_project: Path) -> None:
    screen = "src/screens/HomeScreen.tsx"
    record = _record("'total' is declared but its value is never read.", screen, 4)

    response = await PatternFixCapability().request_fix(_request(expo_project, record))

    assert response.patches == ()


async def test_unregistered_screen_is_added_to_the_navigator(expo_project: Path) -> None:
    screen = expo_project / "src" / "screens" / "SettingsScreen.tsx"
    screen.write_text(SETTINGS_SCREEN, encoding="utf-8")
    (warning,) = NavigationCheck().inspect(expo_project)
    assert warning.severity is Severity.WARNING
    unfixable = _record("Cannot find name 'foo'.", "App.tsx", 3, code="TS2304")

    response = await PatternFixCapability().request_fix(
        _request(expo_project, unfixable, warnings=(warning,))
    )

    content = _patched(response)[NAVIGATOR]
    assert content is not None
    assert (
        "import HomeScreen from '../screens/HomeScreen';\n"
        "import SettingsScreen from '../screens/SettingsScreen';\n"
    ) in content
    assert (
        '        <Stack.Screen name="Home" component={HomeScreen} />\n'
        '        <Stack.Screen name="Settings" component={SettingsScreen} />\n'
        "      </Stack.Navigator>"
    ) in content

    (expo_project / NAVIGATOR).write_text(content, encoding="utf-8")
    assert NavigationCheck().inspect(expo_project) == []


async def test_expo_router_projects_need_no_registration(expo_project: Path) -> None:
    (expo_project / "app").mkdir()
    record = _record(
        "Screen 'SettingsScreen' is not registered in any navigator",
        "src/screens/SettingsScreen.tsx",
        kind=ErrorKind.ROUTE_REGISTRATION,
    )

    response = await PatternFixCapability().request_fix(_request(expo_project, record))

    assert response.patches == ()


async def test_missing_well_known_imports_are_added(expo_project: Path) -> None:
    counter = "src/Counter.tsx"
    (expo_project / counter).write_text(COUNTER_MISSING_IMPORTS, encoding="utf-8")
    errors = (
        _record("Cannot find name 'useState'.", counter, 5, code="TS2304"),
        _record("Cannot find name 'StyleSheet'.", counter, 9, code="TS2304"),
        _record("Cannot find name 'fetchCount'.", counter, 5, code="TS2304"),
    )

    response = await PatternFixCapability().request_fix(_request(expo_project, *errors))

    lines = (_patched(response)[counter] or "").split("\n")
    assert lines[:3] == [
        "import React, { useState } from 'react';",
        "import { Text, StyleSheet } from 'react-native';",
        "",
    ]


async def test_max_fixes_caps_a_single_response(expo_project: Path) -> None:
    screen = "src/screens/HomeScreen.tsx"
    (expo_project / screen).write_text(HOME_WITH_UNUSED, encoding="utf-8")
    errors = (
        _record("'useEffect' is declared but its value is never read.", screen, 1),
        _record("'helper' is declared but its value is never read.", screen, 3),
    )

    response = await PatternFixCapability(max_fixes=1).request_fix(
        _request(expo_project, *errors)
    )

    content = _patched(response)[screen] or ""
    assert "useEffect" not in content
    assert "import { helper } from '../utils/helper';" in content


async def test_dry_run_describes_without_patching(expo_project: Path) -> None:
    original = _break_home_import(expo_project, "../screens/homescreen")
    record = _record("Cannot resolve import '../screens/homescreen'", NAVIGATOR, 3)

    response = await PatternFixCapability(dry_run=True).request_fix(
        _request(expo_project, record)
    )

    assert not response.success
    assert response.patches == ()
    assert response.description.startswith("[dry run] Fixed import path")
    assert (expo_project / NAVIGATOR).read_text(encoding="utf-8") != original


async def test_request_without_project_root_is_invalid() -> None:
    request = FixRequest(
        tier=Tier.TIER1,
        errors=(_record("Cannot find name 'View'.", "App.tsx"),),
        affected_files=("App.tsx",),
    )
    with pytest.raises(FixInvalidRequestError, match="project_root"):
        await PatternFixCapability().request_fix(request)


def test_settings_are_validated() -> None:
    with pytest.raises(ValueError):
        PatternFixCapability(min_confidence=1.5)
    with pytest.raises(ValueError):
        PatternFixCapability(max_fixes=0)


async def test_repair_loop_resolves_a_broken_import(expo_project: Path) -> None:
    _break_home_import(expo_project, "../screens/homescreen")
    runner = TierRunner(
        check_registry=CheckRegistry({"imports": ImportResolutionCheck}),
        tier_checks={Tier.TIER1: ("imports",)},
    )
    failing = await runner.run_tier(expo_project, Tier.TIER1)
    assert not failing.passed

    orchestrator = RepairOrchestrator(fix_capability=PatternFixCapability(), tier_runner=runner)
    report = await orchestrator.attempt_repair(expo_project, failing, 2)

    assert report.final_state is RepairState.PASSED
    (attempt,) = report.attempts
    assert attempt.outcome is RepairOutcome.RESOLVED
    assert attempt.files_modified == (NAVIGATOR,)
