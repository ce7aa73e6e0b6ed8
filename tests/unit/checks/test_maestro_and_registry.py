"""
mobicert — unit tests for Maestro flow validation and the check registry
"""

from __future__ import annotations

from pathlib import Path

import pytest

from mobicert.checks.base import CheckContext
from mobicert.checks.native_checks import MaestroFlowCheck
from mobicert.checks.registry import (
    DEFAULT_TIER_CHECKS,
    CheckRegistry,
    UnknownCheckError,
    build_default_check_registry,
)
from mobicert.domain.models import ErrorKind, Severity, Tier
from mobicert.taxonomy.registry import build_default_registry

VALID_FLOW = """\
appId: com.example.demo
---
- launchApp
- tapOn: "Login"
- assertVisible: "Welcome"
"""


def _flows(project: Path, **files: str) -> Path:
    flows = project / ".maestro"
    flows.mkdir(exist_ok=True)
    for name, content in files.items():
        (flows / name.replace("_", ".", 1)).write_text(content, encoding="utf-8")
    return flows


def test_missing_flow_directory_is_a_warning(expo_project: Path) -> None:
    records = MaestroFlowCheck().inspect(expo_project)
    assert [(r.kind, r.severity) for r in records] == [(ErrorKind.E2E, Severity.WARNING)]

    (expo_project / ".maestro").mkdir()
    records = MaestroFlowCheck().inspect(expo_project)
    assert [r.message for r in records] == ["No Maestro test flows found in .maestro/"]


def test_valid_flow_and_ignored_config_file(expo_project: Path) -> None:
    _flows(expo_project, login_yaml=VALID_FLOW, config_yaml="flows: ['*']\n")
    assert MaestroFlowCheck().inspect(expo_project) == []


def test_flow_problems(expo_project: Path) -> None:
    _flows(
        expo_project,
        a_yaml="appId: com.other.app\n---\n- launchApp\n- swipeLeft: {}\n",
        b_yaml="- launchApp\n",
        c_yml="appId: com.example.demo\n---\n- tapOn: 'unterminated\n",
        d_yaml="appId: com.example.demo\n---\n[]\n",
    )
    records = MaestroFlowCheck().inspect(expo_project)
    by_file: dict[str, list] = {}
    for record in records:
        by_file.setdefault(record.file, []).append(record)

    assert [(r.severity, r.message) for r in by_file[".maestro/a.yaml"]] == [
        (
            Severity.WARNING,
            "appId 'com.other.app' does not match ios.bundleIdentifier/android.package in app.json",
        ),
        (Severity.WARNING, "Unknown Maestro command 'swipeLeft' (#2)"),
    ]
    assert [r.message for r in by_file[".maestro/b.yaml"]] == ["Flow header is missing 'appId'"]
    (yaml_error,) = by_file[".maestro/c.yml"]
    assert yaml_error.message.startswith("Invalid YAML")
    assert yaml_error.is_error and yaml_error.line is not None
    assert [r.message for r in by_file[".maestro/d.yaml"]] == ["Flow has no commands"]


async def test_run_flows_without_cli_degrades_to_warning(
    expo_project: Path, scripted_executor, monkeypatch: pytest.MonkeyPatch
) -> None:
    _flows(expo_project, login_yaml=VALID_FLOW)
    monkeypatch.setattr("mobicert.checks.native_checks.shutil.which", lambda name: None)
    context = CheckContext(
        project_path=expo_project,
        tier=Tier.TIER3,
        parsers=build_default_registry(),
        executor=scripted_executor,
    )
    outcome = await MaestroFlowCheck(run_flows=True).run(context)
    assert outcome.passed
    assert [r.message for r in outcome.records] == [
        "Maestro CLI not installed; flows were validated structurally only"
    ]
    assert scripted_executor.calls == []


async def test_run_flows_executes_maestro(
    expo_project: Path, scripted_executor, make_result, monkeypatch: pytest.MonkeyPatch
) -> None:
    _flows(expo_project, login_yaml=VALID_FLOW)
    monkeypatch.setattr(
        "mobicert.checks.native_checks.shutil.which", lambda name: "/usr/local/bin/maestro"
    )
    scripted_executor.results["maestro"] = make_result(
        1, stdout=".maestro/login.yaml: Assertion is false: \"Welcome\" is visible\n"
    )
    context = CheckContext(
        project_path=expo_project,
        tier=Tier.TIER3,
        parsers=build_default_registry(),
        executor=scripted_executor,
    )
    outcome = await MaestroFlowCheck(run_flows=True).run(context)

    assert not outcome.passed
    (record,) = outcome.records
    assert (record.kind, record.file) == (ErrorKind.E2E, ".maestro/login.yaml")
    assert scripted_executor.calls[0].argv == ("maestro", "test", ".maestro")


def test_default_tier_checks_are_cumulative() -> None:
    tier1, tier2, tier3 = (DEFAULT_TIER_CHECKS[tier] for tier in Tier)
    assert tier2[: len(tier1)] == tier1
    assert tier3[: len(tier2)] == tier2
    registry = build_default_check_registry()
    assert registry.unknown(tier3) == ()
    assert [check.name for check in registry.build(tier1)] == list(tier1)


def test_registry_rejects_unknown_and_duplicate_names() -> None:
    registry = CheckRegistry()
    registry.register("only", MaestroFlowCheck)
    with pytest.raises(ValueError):
        registry.register("only", MaestroFlowCheck)
    with pytest.raises(UnknownCheckError, match="nope"):
        registry.build(["only", "nope"])
    with pytest.raises(UnknownCheckError):
        registry.create("missing")
    assert "only" in registry
    assert registry.names() == ("only",)
