"""
Packaging, test and end-to-end checks for tier2 and tier3.

- ``expo-config`` (tier2): resolve the prebuild config, including config plugins, without
  writing native directories.
- ``jest`` (tier2): the project's unit test suite.
- ``bundle`` (tier3): a full Metro export into a scratch directory outside the project.
- ``maestro`` (tier3): structural validation of ``.maestro`` flows, optionally executing them.
"""

from __future__ import annotations

import asyncio
import json
import shutil
import time
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Final

import yaml

from mobicert.checks.base import CheckOutcome, CommandCheck
from mobicert.constants import APP_MANIFEST, MAESTRO_DIR, PACKAGE_MANIFEST
from mobicert.domain.models import ErrorKind, ErrorRecord, Severity
from mobicert.utils.fs import scratch_directory

if TYPE_CHECKING:
    from mobicert.checks.base import CheckContext

_MAESTRO_COMMANDS: Final[frozenset[str]] = frozenset(
    {
        "addMedia",
        "assertNotVisible",
        "assertTrue",
        "assertVisible",
        "back",
        "clearKeychain",
        "clearState",
        "copyTextFrom",
        "doubleTapOn",
        "eraseText",
        "evalScript",
        "extendedWaitUntil",
        "hideKeyboard",
        "inputRandomEmail",
        "inputRandomNumber",
        "inputRandomPersonName",
        "inputRandomText",
        "inputText",
        "killApp",
        "launchApp",
        "longPressOn",
        "openLink",
        "pasteText",
        "pressKey",
        "repeat",
        "retry",
        "runFlow",
        "runScript",
        "scroll",
        "scrollUntilVisible",
        "setLocation",
        "startRecording",
        "stopApp",
        "stopRecording",
        "swipe",
        "takeScreenshot",
        "tapOn",
        "travel",
        "waitForAnimationToEnd",
    }
)


class ExpoConfigCheck(CommandCheck):
    name = "expo-config"
    tool = "config"
    failure_kind = ErrorKind.CONFIG
    default_command = ("npx", "--no-install", "expo", "config", "--type", "prebuild", "--json")

    def skip_reason(self, context: CheckContext) -> str | None:
        project = context.project_path
        if any(
            (project / name).is_file() for name in ("app.json", "app.config.js", "app.config.ts")
        ):
            return None
        return "no Expo app config"


class JestCheck(CommandCheck):
    name = "jest"
    tool = "jest"
    failure_kind = ErrorKind.TEST
    default_command = ("npx", "--no-install", "jest", "--ci", "--json", "--passWithNoTests")

    def skip_reason(self, context: CheckContext) -> str | None:
        project = context.project_path
        if any(project.glob("jest.config.*")):
            return None
        try:
            package = json.loads((project / PACKAGE_MANIFEST).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return "no package.json"
        if not isinstance(package, dict):
            return "no package.json"
        scripts = package.get("scripts")
        test_script = scripts.get("test") if isinstance(scripts, dict) else None
        if "jest" in package or (isinstance(test_script, str) and "jest" in test_script):
            return None
        return "no jest configuration"


class BundleCheck(CommandCheck):
    """Export a production bundle; output goes to a scratch directory, never the project."""

    name = "bundle"
    tool = "native-build"
    failure_kind = ErrorKind.NATIVE_BUILD
    default_command = ("npx", "--no-install", "expo", "export", "--platform", "all")

    async def run(self, context: CheckContext) -> CheckOutcome:
        with scratch_directory(prefix="mobicert-bundle-") as output_dir:
            argv = (*self.build_command(context), "--output-dir", str(output_dir))
            return await self.execute(context, argv)


class MaestroFlowCheck:
    """Validate Maestro flows; optionally run them when the CLI is installed."""

    name = "maestro"
    tool = "maestro"

    def __init__(self, *, run_flows: bool = False) -> None:
        self._run_flows = run_flows

    async def run(self, context: CheckContext) -> CheckOutcome:
        started = time.perf_counter()
        project = context.project_path
        records = await asyncio.to_thread(self.inspect, project)
        flows_valid = not any(record.is_error for record in records)
        has_flows = bool(_flow_files(project / MAESTRO_DIR))
        if self._run_flows and flows_valid and has_flows:
            if shutil.which("maestro") is None:
                records.append(
                    ErrorRecord(
                        kind=ErrorKind.E2E,
                        file=str(MAESTRO_DIR),
                        severity=Severity.WARNING,
                        message="Maestro CLI not installed; flows were validated structurally only",
                    )
                )
            else:
                records.extend(await self._execute_flows(context))
        return CheckOutcome(
            check_name=self.name,
            records=tuple(context.parsers.enrich(records, source=self.name)),
            duration_ms=max(0, int((time.perf_counter() - started) * 1000)),
        )

    async def _execute_flows(self, context: CheckContext) -> list[ErrorRecord]:
        command = _MaestroCommand()
        outcome = await command.execute(context, ("maestro", "test", str(MAESTRO_DIR)))
        return list(outcome.records)

    def inspect(self, project: Path) -> list[ErrorRecord]:
        maestro_dir = project / MAESTRO_DIR
        if not maestro_dir.is_dir():
            return [
                ErrorRecord(
                    kind=ErrorKind.E2E,
                    file=str(MAESTRO_DIR),
                    severity=Severity.WARNING,
                    message=(
                        "No Maestro E2E flows found; add .maestro/ flows for gold certification"
                    ),
                )
            ]
        flows = _flow_files(maestro_dir)
        if not flows:
            return [
                ErrorRecord(
                    kind=ErrorKind.E2E,
                    file=str(MAESTRO_DIR),
                    severity=Severity.WARNING,
                    message="No Maestro test flows found in .maestro/",
                )
            ]
        app_ids = _manifest_app_ids(project)
        records: list[ErrorRecord] = []
        for flow in flows:
            records.extend(_validate_flow(flow, flow.relative_to(project).as_posix(), app_ids))
        return records


class _MaestroCommand(CommandCheck):
    name = "maestro"
    tool = "maestro"
    failure_kind = ErrorKind.E2E


def _flow_files(maestro_dir: Path) -> list[Path]:
    if not maestro_dir.is_dir():
        return []
    return sorted(
        path
        for path in maestro_dir.rglob("*")
        if path.suffix in {".yaml", ".yml"} and path.stem != "config" and path.is_file()
    )


def _validate_flow(flow: Path, relative: str, app_ids: set[str]) -> list[ErrorRecord]:
    def error(message: str, severity: Severity = Severity.ERROR) -> ErrorRecord:
        return ErrorRecord(kind=ErrorKind.E2E, file=relative, severity=severity, message=message)

    try:
        documents = list(yaml.safe_load_all(flow.read_text(encoding="utf-8")))
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        record = error(f"Invalid YAML: {getattr(exc, 'problem', None) or exc}")
        if mark is not None:
            record = replace(record, line=mark.line + 1, column=mark.column + 1)
        return [record]
    except OSError as exc:
        return [error(f"Unable to read flow: {exc.strerror or exc}")]

    documents = [document for document in documents if document is not None]
    if len(documents) == 1 and isinstance(documents[0], list):
        header: object = {}
        commands: object = documents[0]
    elif len(documents) == 2:
        header, commands = documents
    else:
        return [error("Flow must be an 'appId' header followed by '---' and a command list")]

    records: list[ErrorRecord] = []
    app_id = header.get("appId") if isinstance(header, dict) else None
    if not isinstance(app_id, str) or not app_id.strip():
        records.append(error("Flow header is missing 'appId'"))
    elif app_ids and app_id not in app_ids and "${" not in app_id:
        records.append(
            error(
                f"appId '{app_id}' does not match ios.bundleIdentifier/android.package in app.json",
                Severity.WARNING,
            )
        )

    if not isinstance(commands, list) or not commands:
        records.append(error("Flow has no commands"))
        return records
    for index, command in enumerate(commands, start=1):
        name = command if isinstance(command, str) else None
        if isinstance(command, dict) and len(command) == 1:
            name = next(iter(command))
        if not isinstance(name, str):
            records.append(error(f"Command #{index} is malformed"))
        elif name not in _MAESTRO_COMMANDS:
            records.append(error(f"Unknown Maestro command '{name}' (#{index})", Severity.WARNING))
    return records


def _manifest_app_ids(project: Path) -> set[str]:
    try:
        manifest = json.loads((project / APP_MANIFEST).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return set()
    expo = manifest.get("expo", manifest) if isinstance(manifest, dict) else None
    if not isinstance(expo, dict):
        return set()
    ids: set[str] = set()
    for platform, key in (("ios", "bundleIdentifier"), ("android", "package")):
        section = expo.get(platform)
        value = section.get(key) if isinstance(section, dict) else None
        if isinstance(value, str) and value:
            ids.add(value)
    return ids


__all__ = ["BundleCheck", "ExpoConfigCheck", "JestCheck", "MaestroFlowCheck"]
