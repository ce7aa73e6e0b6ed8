"""
mobicert — unit tests for command-backed checks

Purpose
- Pin how command results (failure, timeout, launch errors, clean runs) turn into records.
- Skip rules for projects without the corresponding tooling.
"""

from __future__ import annotations

import json
import os
import shutil
import time
from pathlib import Path

import pytest

from mobicert.checks.base import (
    CheckContext,
    CommandSpec,
    LocalSubprocessExecutor,
    relativize_records,
)
from mobicert.checks.native_checks import BundleCheck, ExpoConfigCheck, JestCheck
from mobicert.checks.static_checks import EslintCheck, TypeScriptCheck
from mobicert.domain.models import ErrorKind, ErrorRecord, Severity, Tier
from mobicert.taxonomy.registry import build_default_registry


def _context(project: Path, executor, tier: Tier = Tier.TIER1) -> CheckContext:
    return CheckContext(
        project_path=project,
        tier=tier,
        parsers=build_default_registry(),
        executor=executor,
        timeout_seconds=30.0,
    )


def _with_tsconfig(project: Path) -> Path:
    (project / "tsconfig.json").write_text('{"compilerOptions": {}}', encoding="utf-8")
    return project


async def test_typescript_is_skipped_without_tsconfig(
    expo_project: Path, scripted_executor
) -> None:
    outcome = await TypeScriptCheck().run(_context(expo_project, scripted_executor))
    assert outcome.skipped
    assert outcome.detail == "no tsconfig.json"
    assert outcome.passed
    assert scripted_executor.calls == []


async def test_typescript_failure_is_parsed_and_relativized(
    expo_project: Path, scripted_executor, make_result
) -> None:
    absolute = (expo_project / "src" / "App.tsx").resolve()
    scripted_executor.results["tsc"] = make_result(
        2, stdout=f"{absolute}(4,2): error TS2322: Type 'string' is not assignable.\n"
    )
    outcome = await TypeScriptCheck().run(_context(_with_tsconfig(expo_project), scripted_executor))

    (record,) = outcome.records
    assert (record.kind, record.file, record.line, record.code) == (
        ErrorKind.TYPE_CHECK,
        "src/App.tsx",
        4,
        "TS2322",
    )
    assert record.source == "typescript"
    assert record.suggestion is not None

    (spec,) = scripted_executor.calls
    assert spec.cwd == str(expo_project)
    assert spec.timeout_seconds == 30.0
    assert spec.env["CI"] == "1"


async def test_failed_command_without_recognizable_output_still_fails(
    expo_project: Path, scripted_executor, make_result
) -> None:
    scripted_executor.results["tsc"] = make_result(1)
    outcome = await TypeScriptCheck().run(_context(_with_tsconfig(expo_project), scripted_executor))
    assert [(r.kind, r.message) for r in outcome.records] == [
        (ErrorKind.TYPE_CHECK, "typescript exited with code 1")
    ]

    scripted_executor.results["tsc"] = make_result(1, stderr="Segmentation fault\n")
    outcome = await TypeScriptCheck().run(_context(expo_project, scripted_executor))
    assert [(r.kind, r.message) for r in outcome.records] == [
        (ErrorKind.UNKNOWN, "Segmentation fault")
    ]
    assert not outcome.passed


async def test_timeouts_and_launch_errors_become_records(
    expo_project: Path, scripted_executor, make_result
) -> None:
    _with_tsconfig(expo_project)
    scripted_executor.results["tsc"] = make_result(None, timed_out=True)
    outcome = await TypeScriptCheck().run(_context(expo_project, scripted_executor))
    assert [r.kind for r in outcome.records] == [ErrorKind.TIMEOUT]
    assert outcome.records[0].is_error

    scripted_executor.results["tsc"] = make_result(None, error="No such file: 'npx'")
    outcome = await TypeScriptCheck().run(_context(expo_project, scripted_executor))
    (record,) = outcome.records
    assert record.kind is ErrorKind.DEPENDENCY
    assert record.message == "unable to run npx: No such file: 'npx'"


async def test_eslint_warnings_survive_a_successful_run(
    expo_project: Path, scripted_executor, make_result
) -> None:
    (expo_project / ".eslintrc.json").write_text("{}", encoding="utf-8")
    payload = [
        {
            "filePath": str(expo_project / "App.tsx"),
            "messages": [
                {"ruleId": "no-console", "severity": 1, "message": "Unexpected console", "line": 3}
            ],
        }
    ]
    scripted_executor.results["eslint"] = make_result(0, stdout=json.dumps(payload))
    outcome = await EslintCheck().run(_context(expo_project, scripted_executor))

    assert outcome.passed
    assert [(r.severity, r.file, r.code) for r in outcome.records] == [
        (Severity.WARNING, "App.tsx", "no-console")
    ]


async def test_eslint_is_skipped_without_configuration(
    expo_project: Path, scripted_executor
) -> None:
    outcome = await EslintCheck().run(_context(expo_project, scripted_executor))
    assert outcome.skipped and outcome.detail == "no eslint configuration"

    package = json.loads((expo_project / "package.json").read_text(encoding="utf-8"))
    package["eslintConfig"] = {"extends": "expo"}
    (expo_project / "package.json").write_text(json.dumps(package), encoding="utf-8")
    outcome = await EslintCheck().run(_context(expo_project, scripted_executor))
    assert not outcome.skipped
    assert scripted_executor.ran("eslint")


async def test_jest_skip_rules(expo_project: Path, scripted_executor) -> None:
    context = _context(expo_project, scripted_executor, Tier.TIER2)
    outcome = await JestCheck().run(context)
    assert outcome.skipped and outcome.detail == "no jest configuration"

    package = json.loads((expo_project / "package.json").read_text(encoding="utf-8"))
    package["scripts"] = {"test": "jest --watchAll=false"}
    (expo_project / "package.json").write_text(json.dumps(package), encoding="utf-8")
    outcome = await JestCheck().run(context)
    assert not outcome.skipped
    assert scripted_executor.ran("jest")


async def test_expo_config_failure_is_a_config_error(
    expo_project: Path, scripted_executor, make_result
) -> None:
    scripted_executor.results["config"] = make_result(
        1, stderr='PluginError: Failed to resolve plugin for module "expo-camera"\n'
    )
    outcome = await ExpoConfigCheck().run(_context(expo_project, scripted_executor, Tier.TIER2))
    (record,) = outcome.records
    assert record.kind is ErrorKind.PLUGIN
    assert record.suggestion is not None

    (expo_project / "app.json").unlink()
    outcome = await ExpoConfigCheck().run(_context(expo_project, scripted_executor, Tier.TIER2))
    assert outcome.skipped and outcome.detail == "no Expo app config"


async def test_bundle_exports_outside_the_project(
    expo_project: Path, scripted_executor
) -> None:
    outcome = await BundleCheck().run(_context(expo_project, scripted_executor, Tier.TIER3))
    assert outcome.passed

    (spec,) = scripted_executor.calls
    output_dir = Path(spec.argv[spec.argv.index("--output-dir") + 1])
    assert expo_project.resolve() not in output_dir.resolve().parents
    assert not output_dir.exists()


def test_relativize_keeps_paths_outside_the_project(tmp_path: Path) -> None:
    project = tmp_path / "p"
    project.mkdir()
    records = [
        ErrorRecord(kind=ErrorKind.LINT, message="in", file=str(project / "src" / "a.ts")),
        ErrorRecord(kind=ErrorKind.LINT, message="out", file=str(tmp_path / "elsewhere.ts")),
        ErrorRecord(kind=ErrorKind.LINT, message="rel", file="b.ts"),
    ]
    assert [r.file for r in relativize_records(records, project)] == [
        "src/a.ts",
        str(tmp_path / "elsewhere.ts"),
        "b.ts",
    ]


def test_command_spec_validation() -> None:
    with pytest.raises(ValueError):
        CommandSpec(argv=())
    with pytest.raises(ValueError):
        CommandSpec(argv=("tsc",), timeout_seconds=0)
    spec = CommandSpec(argv=["npx", "tsc"], env={"CI": "1"})
    assert spec.argv == ("npx", "tsc")
    assert spec.build_env()["CI"] == "1"


posix_shell = pytest.mark.skipif(
    os.name != "posix" or shutil.which("sh") is None, reason="requires a POSIX shell"
)


@posix_shell
async def test_local_executor_captures_output_and_exit_code(tmp_path: Path) -> None:
    result = await LocalSubprocessExecutor().run(
        CommandSpec(argv=("sh", "-c", "echo out; echo err >&2; exit 3"), cwd=str(tmp_path))
    )
    assert (result.exit_code, result.stdout, result.stderr) == (3, "out\n", "err\n")
    assert not result.timed_out
    assert not result.is_success()


@posix_shell
async def test_local_executor_timeout_kills_grandchildren() -> None:
    # ``sleep`` runs as a grandchild holding the pipes open after ``sh`` is killed.
    started = time.monotonic()
    result = await LocalSubprocessExecutor().run(
        CommandSpec(argv=("sh", "-c", "sleep 3; true"), timeout_seconds=0.2)
    )
    assert result.timed_out
    assert result.exit_code is None
    assert time.monotonic() - started < 2.0


async def test_local_executor_reports_missing_binary() -> None:
    result = await LocalSubprocessExecutor().run(
        CommandSpec(argv=("mobicert-no-such-tool-binary",))
    )
    assert result.error is not None
    assert result.exit_code is None
