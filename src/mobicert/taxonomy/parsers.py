"""
mobicert — tool output parsers

Purpose
- Normalize raw text emitted by JavaScript/React Native tooling into ``ErrorRecord``s.

Contract
- Every parser is a pure function ``(raw: str) -> list[ErrorRecord] | None``.
- ``None`` means "output not recognized"; the registry turns that into a single ``unknown``
  record. An empty list means "recognized, nothing to report".
- Parsers must not raise on malformed input. The registry still guards against it.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping
from typing import Final

from mobicert.domain.models import ErrorKind, ErrorRecord, Severity

Parser = Callable[[str], "list[ErrorRecord] | None"]

_ANSI_RE: Final = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")

_TS_PAREN_RE: Final = re.compile(
    r"^(?P<file>[^\s(][^(]*?)\((?P<line>\d+),(?P<col>\d+)\):\s+"
    r"(?P<sev>error|warning)\s+(?P<code>TS\d+):\s*(?P<msg>.*)$"
)
_TS_PRETTY_RE: Final = re.compile(
    r"^(?P<file>[^\s:][^:]*?):(?P<line>\d+):(?P<col>\d+)\s+-\s+"
    r"(?P<sev>error|warning)\s+(?P<code>TS\d+):\s*(?P<msg>.*)$"
)
_TS_GLOBAL_RE: Final = re.compile(r"^(?P<sev>error|warning)\s+(?P<code>TS\d+):\s*(?P<msg>.*)$")
_TS_SUMMARY_RE: Final = re.compile(r"^Found \d+ errors?", re.IGNORECASE)
_TS_IMPORT_CODES: Final[frozenset[str]] = frozenset({"TS2307", "TS2792"})

_ESLINT_STYLISH_RE: Final = re.compile(
    r"^\s+(?P<line>\d+):(?P<col>\d+)\s+(?P<sev>error|warning)\s+"
    r"(?P<msg>.+?)(?:\s{2,}(?P<rule>[@\w/-]+))?\s*$"
)
_ESLINT_SUMMARY_RE: Final = re.compile(
    r"^[✖x]\s+\d+\s+problems?|"
    r"^\s*\d+ errors? and \d+ warnings? potentially fixable"
)

_IMPORT_UNRESOLVED_RE: Final = re.compile(
    r"^(?P<file>[^:\s][^:]*):(?P<line>\d+):\s+(?:Cannot resolve import|Unresolved import)\s+"
    r"['\"](?P<module>[^'\"]+)['\"](?P<rest>.*)$"
)
_IMPORT_UNDECLARED_RE: Final = re.compile(
    r"^(?P<file>[^:\s][^:]*):(?P<line>\d+):\s+Package\s+['\"](?P<module>[^'\"]+)['\"]\s+"
    r"is not declared in package\.json(?P<rest>.*)$"
)
_METRO_UNRESOLVED_RE: Final = re.compile(
    r"Unable to resolve module\s+['\"]?(?P<module>[^'\"\s]+)['\"]?"
    r"\s+from\s+['\"]?(?P<file>[^'\"\s:]+)['\"]?:?\s*(?P<rest>.*)$"
)

_ROUTE_MISSING_RE: Final = re.compile(
    r"^(?P<file>[^:\s][^:]*?)(?::(?P<line>\d+))?:\s+route\s+['\"](?P<route>[^'\"]+)['\"]\s+"
    r"references missing screen\s+['\"](?P<screen>[^'\"]+)['\"]"
)
_SCREEN_UNREGISTERED_RE: Final = re.compile(
    r"^(?P<file>[^:\s][^:]*?)(?::(?P<line>\d+))?:\s+screen\s+['\"](?P<screen>[^'\"]+)['\"]\s+"
    r"is not registered"
)
_NAV_CONFIG_MISSING_RE: Final = re.compile(
    r"^(?:warning:\s*)?no navigation configuration found", re.I
)
_NAV_RUNTIME_RE: Final = re.compile(
    r"The screen ['\"](?P<screen>[^'\"]+)['\"] is not in the navigator|"
    r"The action ['\"]NAVIGATE['\"] with payload "
    r".*?['\"]name['\"]:\s*['\"](?P<target>[^'\"]+)['\"].* was not handled"
)

_GRADLE_KOTLIN_RE: Final = re.compile(
    r"^e:\s+(?:file://)?(?P<file>[^:]+):(?P<line>\d+):(?P<col>\d+)\s+(?P<msg>.+)$"
)
_XCODE_RE: Final = re.compile(
    r"^(?P<file>/[^:]+):(?P<line>\d+):(?P<col>\d+):\s+(?:fatal\s+)?error:\s+(?P<msg>.+)$"
)
_GRADLE_WHAT_WENT_WRONG: Final = "* What went wrong:"
_METRO_SYNTAX_RE: Final = re.compile(
    r"SyntaxError:\s+(?P<file>[^:]+):\s+(?P<msg>.+?)\s+\((?P<line>\d+):(?P<col>\d+)\)"
)
_NPM_ERR_RE: Final = re.compile(r"^npm ERR!\s+(?P<msg>.+)$")
_CLI_ERROR_RE: Final = re.compile(
    r"^(?:CommandError|Error|BUILD FAILED|FAILURE):?\s*(?P<msg>.+)$", re.IGNORECASE
)

_PLUGIN_RE: Final = re.compile(
    r"PluginError:\s*(?P<msg>.+)|(?P<resolve>Failed to resolve plugin for module\s+.+)|"
    r"(?P<plugin>.*config plugin.*(?:failed|error|not found).*)",
    re.IGNORECASE,
)
_CONFIG_FILE_RE: Final = re.compile(
    r"^(?:Error:\s*)?(?P<file>app\.(?:json|config\.[jt]s))[:\s]+(?P<msg>.+)$"
)
_CONFIG_READ_RE: Final = re.compile(
    r"Error reading Expo config at\s+(?P<file>\S+?):?\s+(?P<msg>.+)$"
)
_CONFIG_ERROR_RE: Final = re.compile(r"^(?:ConfigError|ValidationError):\s*(?P<msg>.+)$")
_DOCTOR_FAIL_RE: Final = re.compile(r"^\s*[✖✗×]\s+(?P<msg>.+)$")
_DOCTOR_EXPECTED_RE: Final = re.compile(
    r"(?:expected|Expected)\s+(?:package\s+)?(?P<pkg>[@\w/.-]+)\s+(?:to be|version)\s+(?P<want>\S+)"
)

_MISSING_MODULE_RE: Final = re.compile(r"Cannot find module\s+['\"](?P<module>[^'\"]+)['\"]")
_PEER_DEP_RE: Final = re.compile(
    r"(?:ERESOLVE|Could not resolve dependency|conflicting peer dependency|"
    r"unable to resolve dependency tree)(?P<rest>.*)",
    re.IGNORECASE,
)
_PEER_WARN_RE: Final = re.compile(r"^npm WARN\s+.*peer.*$", re.IGNORECASE)
_TOOL_MISSING_RE: Final = re.compile(
    r"(?:command not found:\s*(?P<a>\S+)|(?P<b>\S+):\s+(?:command\s+)?not found$|"
    r"could not determine executable to run)",
    re.IGNORECASE,
)

_JEST_FAIL_FILE_RE: Final = re.compile(r"^\s*FAIL\s+(?P<file>\S+)")
_JEST_BULLET_RE: Final = re.compile(r"^\s*●\s+(?P<name>.+)$")
_JEST_SUMMARY_RE: Final = re.compile(r"^\s*(?:Tests|Test Suites|Snapshots|Time):", re.I)

_MAESTRO_FLOW_RE: Final = re.compile(
    r"^(?:(?P<warn>warning):\s*)?(?P<file>[^:\s]+\.ya?ml):\s*(?P<msg>.+)$", re.I
)
_MAESTRO_CLI_FAIL_RE: Final = re.compile(r"^\s*(?:❌|FAILED|Flow failed:?)\s*(?P<msg>.+)$")


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


def first_line(text: str) -> str | None:
    for line in strip_ansi(text).splitlines():
        stripped = line.strip()
        if stripped:
            return stripped
    return None


def unknown_record(raw: str, *, source: str | None = None) -> ErrorRecord | None:
    """Best-effort record for unrecognized output; ``None`` when ``raw`` is blank."""

    line = first_line(raw)
    if line is None:
        return None
    return ErrorRecord(kind=ErrorKind.UNKNOWN, message=line, source=source)


def parse_typescript(raw: str) -> list[ErrorRecord] | None:
    records: list[ErrorRecord] = []
    recognized = False
    pending: dict[str, object] | None = None

    def flush() -> None:
        nonlocal pending
        if pending is not None:
            records.append(ErrorRecord(**pending))  # type: ignore[arg-type]
            pending = None

    for line in strip_ansi(raw).splitlines():
        if not line.strip():
            continue
        match = _TS_PAREN_RE.match(line) or _TS_PRETTY_RE.match(line)
        if match is not None:
            flush()
            recognized = True
            code = match["code"]
            pending = {
                "kind": _ts_kind(code),
                "file": match["file"].strip(),
                "line": int(match["line"]),
                "column": int(match["col"]),
                "severity": Severity(match["sev"]),
                "code": code,
                "message": match["msg"].strip() or code,
            }
            continue
        global_match = _TS_GLOBAL_RE.match(line.strip())
        if global_match is not None:
            flush()
            recognized = True
            code = global_match["code"]
            pending = {
                "kind": _ts_kind(code),
                "severity": Severity(global_match["sev"]),
                "code": code,
                "message": global_match["msg"].strip() or code,
            }
            continue
        if _TS_SUMMARY_RE.match(line.strip()):
            recognized = True
            continue
        if pending is not None and line[:1].isspace():
            # Multi-line diagnostics continue on indented lines.
            pending["message"] = f"{pending['message']} {line.strip()}"
            continue
    flush()
    return records if recognized else None


def _ts_kind(code: str) -> ErrorKind:
    if code in _TS_IMPORT_CODES:
        return ErrorKind.IMPORT_RESOLUTION
    return ErrorKind.TYPE_CHECK


def parse_eslint(raw: str) -> list[ErrorRecord] | None:
    text = strip_ansi(raw).strip()
    if not text:
        return []
    payload = _load_json_array(text)
    if payload is not None:
        return _eslint_from_json(payload)
    return _eslint_from_stylish(text)


def _eslint_from_json(payload: list[object]) -> list[ErrorRecord] | None:
    records: list[ErrorRecord] = []
    for entry in payload:
        if not isinstance(entry, Mapping):
            return None
        file_path = entry.get("filePath")
        messages = entry.get("messages", [])
        if not isinstance(messages, list):
            continue
        for message in messages:
            if not isinstance(message, Mapping):
                continue
            text = str(message.get("message") or "").strip()
            if not text:
                continue
            fatal = bool(message.get("fatal"))
            rule = message.get("ruleId")
            records.append(
                ErrorRecord(
                    kind=ErrorKind.LINT,
                    file=file_path if isinstance(file_path, str) else None,
                    line=_positive_int(message.get("line")),
                    column=_positive_int(message.get("column")),
                    severity=Severity.ERROR
                    if fatal or message.get("severity") == 2
                    else Severity.WARNING,
                    code=rule if isinstance(rule, str) else None,
                    message=text,
                )
            )
    return records


def _eslint_from_stylish(text: str) -> list[ErrorRecord] | None:
    records: list[ErrorRecord] = []
    recognized = False
    current_file: str | None = None
    for line in text.splitlines():
        if not line.strip():
            continue
        match = _ESLINT_STYLISH_RE.match(line)
        if match is not None:
            recognized = True
            records.append(
                ErrorRecord(
                    kind=ErrorKind.LINT,
                    file=current_file,
                    line=int(match["line"]),
                    column=int(match["col"]),
                    severity=Severity(match["sev"]),
                    code=match["rule"],
                    message=match["msg"].strip(),
                )
            )
            continue
        if _ESLINT_SUMMARY_RE.match(line.strip()):
            recognized = True
            continue
        if not line[:1].isspace():
            current_file = line.strip()
    return records if recognized else None


def parse_imports(raw: str) -> list[ErrorRecord] | None:
    records: list[ErrorRecord] = []
    recognized = False
    for line in strip_ansi(raw).splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        match = _IMPORT_UNRESOLVED_RE.match(stripped)
        if match is not None:
            recognized = True
            records.append(
                ErrorRecord(
                    kind=ErrorKind.IMPORT_RESOLUTION,
                    file=match["file"],
                    line=int(match["line"]),
                    message=f"Cannot resolve import '{match['module']}'{match['rest']}",
                )
            )
            continue
        match = _IMPORT_UNDECLARED_RE.match(stripped)
        if match is not None:
            recognized = True
            records.append(
                ErrorRecord(
                    kind=ErrorKind.DEPENDENCY,
                    file=match["file"],
                    line=int(match["line"]),
                    message=f"Package '{match['module']}' is not declared in package.json",
                )
            )
            continue
        match = _METRO_UNRESOLVED_RE.search(stripped)
        if match is not None:
            recognized = True
            records.append(
                ErrorRecord(
                    kind=ErrorKind.IMPORT_RESOLUTION,
                    file=match["file"],
                    message=f"Unable to resolve module '{match['module']}'",
                )
            )
            continue
        ts_match = _TS_PAREN_RE.match(stripped) or _TS_PRETTY_RE.match(stripped)
        if ts_match is not None and ts_match["code"] in _TS_IMPORT_CODES:
            recognized = True
            records.append(
                ErrorRecord(
                    kind=ErrorKind.IMPORT_RESOLUTION,
                    file=ts_match["file"].strip(),
                    line=int(ts_match["line"]),
                    column=int(ts_match["col"]),
                    code=ts_match["code"],
                    message=ts_match["msg"].strip(),
                )
            )
    return records if recognized else None


def parse_navigation(raw: str) -> list[ErrorRecord] | None:
    records: list[ErrorRecord] = []
    recognized = False
    for line in strip_ansi(raw).splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        match = _ROUTE_MISSING_RE.match(stripped)
        if match is not None:
            recognized = True
            records.append(
                ErrorRecord(
                    kind=ErrorKind.ROUTE_REGISTRATION,
                    file=match["file"],
                    line=_positive_int(match["line"]),
                    message=(
                        f"Route '{match['route']}' references missing screen '{match['screen']}'"
                    ),
                )
            )
            continue
        match = _SCREEN_UNREGISTERED_RE.match(stripped)
        if match is not None:
            recognized = True
            records.append(
                ErrorRecord(
                    kind=ErrorKind.ROUTE_REGISTRATION,
                    file=match["file"],
                    line=_positive_int(match["line"]),
                    severity=Severity.WARNING,
                    message=f"Screen '{match['screen']}' is not registered in any navigator",
                )
            )
            continue
        if _NAV_CONFIG_MISSING_RE.match(stripped):
            recognized = True
            records.append(
                ErrorRecord(
                    kind=ErrorKind.ROUTE_REGISTRATION,
                    severity=Severity.WARNING,
                    message="No navigation configuration found",
                )
            )
            continue
        runtime = _NAV_RUNTIME_RE.search(stripped)
        if runtime is not None:
            recognized = True
            screen = runtime["screen"] or runtime["target"]
            records.append(
                ErrorRecord(
                    kind=ErrorKind.ROUTE_REGISTRATION,
                    message=f"The screen '{screen}' is not in the navigator",
                )
            )
    return records if recognized else None


def parse_native_build(raw: str) -> list[ErrorRecord] | None:
    records: list[ErrorRecord] = []
    npm_errors: list[str] = []
    lines = strip_ansi(raw).splitlines()
    expect_what_went_wrong = False
    for line in lines:
        stripped = line.strip()
        if not stripped:
            continue
        if expect_what_went_wrong:
            expect_what_went_wrong = False
            records.append(ErrorRecord(kind=ErrorKind.NATIVE_BUILD, message=stripped))
            continue
        if stripped == _GRADLE_WHAT_WENT_WRONG:
            expect_what_went_wrong = True
            continue
        match = _GRADLE_KOTLIN_RE.match(stripped) or _XCODE_RE.match(stripped)
        if match is not None:
            records.append(
                ErrorRecord(
                    kind=ErrorKind.NATIVE_BUILD,
                    file=match["file"],
                    line=int(match["line"]),
                    column=int(match["col"]),
                    message=match["msg"].strip(),
                )
            )
            continue
        syntax = _METRO_SYNTAX_RE.search(stripped)
        if syntax is not None:
            records.append(
                ErrorRecord(
                    kind=ErrorKind.NATIVE_BUILD,
                    file=syntax["file"].strip(),
                    line=int(syntax["line"]),
                    column=int(syntax["col"]),
                    code="SyntaxError",
                    message=syntax["msg"].strip(),
                )
            )
            continue
        unresolved = _METRO_UNRESOLVED_RE.search(stripped)
        if unresolved is not None:
            records.append(
                ErrorRecord(
                    kind=ErrorKind.IMPORT_RESOLUTION,
                    file=unresolved["file"],
                    message=f"Unable to resolve module '{unresolved['module']}'",
                )
            )
            continue
        npm = _NPM_ERR_RE.match(stripped)
        if npm is not None:
            npm_errors.append(npm["msg"].strip())
            continue
        cli = _CLI_ERROR_RE.match(stripped)
        if cli is not None and not records:
            records.append(ErrorRecord(kind=ErrorKind.NATIVE_BUILD, message=cli["msg"].strip()))
    if npm_errors:
        detail = "; ".join(item for item in npm_errors[:3] if item)
        records.append(ErrorRecord(kind=ErrorKind.NATIVE_BUILD, code="npm", message=detail))
    return records or None


def parse_config(raw: str) -> list[ErrorRecord] | None:
    records: list[ErrorRecord] = []
    for line in strip_ansi(raw).splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        plugin = _PLUGIN_RE.search(stripped)
        if plugin is not None:
            message = plugin["msg"] or plugin["resolve"] or plugin["plugin"] or stripped
            records.append(ErrorRecord(kind=ErrorKind.PLUGIN, message=message.strip()))
            continue
        match = _CONFIG_READ_RE.search(stripped) or _CONFIG_FILE_RE.match(stripped)
        if match is not None:
            records.append(
                ErrorRecord(kind=ErrorKind.CONFIG, file=match["file"], message=match["msg"].strip())
            )
            continue
        match = _CONFIG_ERROR_RE.match(stripped)
        if match is not None:
            records.append(ErrorRecord(kind=ErrorKind.CONFIG, message=match["msg"].strip()))
            continue
        expected = _DOCTOR_EXPECTED_RE.search(stripped)
        if expected is not None:
            records.append(
                ErrorRecord(
                    kind=ErrorKind.DEPENDENCY,
                    file="package.json",
                    message=f"Expected {expected['pkg']} version {expected['want']}",
                )
            )
            continue
        doctor = _DOCTOR_FAIL_RE.match(stripped)
        if doctor is not None:
            records.append(ErrorRecord(kind=ErrorKind.CONFIG, message=doctor["msg"].strip()))
    return records or None


def parse_dependency(raw: str) -> list[ErrorRecord] | None:
    records: list[ErrorRecord] = []
    for line in strip_ansi(raw).splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        missing = _MISSING_MODULE_RE.search(stripped)
        if missing is not None:
            records.append(
                ErrorRecord(
                    kind=ErrorKind.DEPENDENCY,
                    message=f"Cannot find module '{missing['module']}'",
                )
            )
            continue
        undeclared = _IMPORT_UNDECLARED_RE.match(stripped)
        if undeclared is not None:
            records.append(
                ErrorRecord(
                    kind=ErrorKind.DEPENDENCY,
                    file=undeclared["file"],
                    line=int(undeclared["line"]),
                    message=f"Package '{undeclared['module']}' is not declared in package.json",
                )
            )
            continue
        if _PEER_WARN_RE.match(stripped):
            records.append(
                ErrorRecord(kind=ErrorKind.DEPENDENCY, severity=Severity.WARNING, message=stripped)
            )
            continue
        peer = _PEER_DEP_RE.search(stripped)
        if peer is not None:
            records.append(ErrorRecord(kind=ErrorKind.DEPENDENCY, message=stripped))
            continue
        tool = _TOOL_MISSING_RE.search(stripped)
        if tool is not None:
            name = tool["a"] or tool["b"]
            message = f"Required tool is not installed: {name}" if name else stripped
            records.append(ErrorRecord(kind=ErrorKind.DEPENDENCY, message=message))
    return records or None


def parse_jest(raw: str) -> list[ErrorRecord] | None:
    text = strip_ansi(raw).strip()
    if not text:
        return []
    payload = _load_json_object(text)
    if payload is not None and "testResults" in payload:
        return _jest_from_json(payload)
    return _jest_from_text(text)


def _jest_from_json(payload: Mapping[str, object]) -> list[ErrorRecord]:
    records: list[ErrorRecord] = []
    results = payload.get("testResults")
    if not isinstance(results, list):
        return records
    for suite in results:
        if not isinstance(suite, Mapping):
            continue
        suite_file = suite.get("name") if isinstance(suite.get("name"), str) else None
        assertions = suite.get("assertionResults")
        failed_assertions = [
            item
            for item in (assertions if isinstance(assertions, list) else [])
            if isinstance(item, Mapping) and item.get("status") == "failed"
        ]
        for assertion in failed_assertions:
            name = str(assertion.get("fullName") or assertion.get("title") or "test").strip()
            messages = assertion.get("failureMessages")
            detail = None
            if isinstance(messages, list) and messages:
                detail = first_line(str(messages[0]))
            location = assertion.get("location")
            line = column = None
            if isinstance(location, Mapping):
                line = _positive_int(location.get("line"))
                column = _positive_int(location.get("column"))
            records.append(
                ErrorRecord(
                    kind=ErrorKind.TEST,
                    file=suite_file,
                    line=line,
                    column=column,
                    message=f"{name}: {detail}" if detail else name,
                )
            )
        if suite.get("status") == "failed" and not failed_assertions:
            detail = first_line(str(suite.get("message") or "")) or "test suite failed to run"
            records.append(ErrorRecord(kind=ErrorKind.TEST, file=suite_file, message=detail))
    return records


def _jest_from_text(text: str) -> list[ErrorRecord] | None:
    records: list[ErrorRecord] = []
    recognized = False
    current_file: str | None = None
    for line in text.splitlines():
        fail = _JEST_FAIL_FILE_RE.match(line)
        if fail is not None:
            recognized = True
            current_file = fail["file"]
            continue
        bullet = _JEST_BULLET_RE.match(line)
        if bullet is not None:
            recognized = True
            name = bullet["name"].strip()
            if name.lower().startswith("console."):
                continue
            records.append(ErrorRecord(kind=ErrorKind.TEST, file=current_file, message=name))
            continue
        if _JEST_SUMMARY_RE.match(line) or line.strip().startswith("PASS "):
            recognized = True
    return records if recognized else None


def parse_maestro(raw: str) -> list[ErrorRecord] | None:
    records: list[ErrorRecord] = []
    for line in strip_ansi(raw).splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        flow = _MAESTRO_FLOW_RE.match(stripped)
        if flow is not None:
            records.append(
                ErrorRecord(
                    kind=ErrorKind.E2E,
                    file=flow["file"],
                    severity=Severity.WARNING if flow["warn"] else Severity.ERROR,
                    message=flow["msg"].strip(),
                )
            )
            continue
        failed = _MAESTRO_CLI_FAIL_RE.match(stripped)
        if failed is not None:
            records.append(ErrorRecord(kind=ErrorKind.E2E, message=failed["msg"].strip()))
    return records or None


def _load_json_array(text: str) -> list[object] | None:
    start = text.find("[")
    end = text.rfind("]")
    if start < 0 or end <= start:
        return None
    try:
        parsed = json.loads(text[start : end + 1])
    except ValueError:
        return None
    return parsed if isinstance(parsed, list) else None


def _load_json_object(text: str) -> dict[str, object] | None:
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None
    try:
        parsed = json.loads(text[start : end + 1])
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _positive_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.isdigit():
        value = int(value)
    if isinstance(value, int) and value > 0:
        return value
    return None


BUILTIN_PARSERS: Final[dict[str, Parser]] = {
    "typescript": parse_typescript,
    "eslint": parse_eslint,
    "imports": parse_imports,
    "navigation": parse_navigation,
    "native-build": parse_native_build,
    "config": parse_config,
    "dependency": parse_dependency,
    "jest": parse_jest,
    "maestro": parse_maestro,
}

__all__ = [
    "BUILTIN_PARSERS",
    "Parser",
    "first_line",
    "parse_config",
    "parse_dependency",
    "parse_eslint",
    "parse_imports",
    "parse_jest",
    "parse_maestro",
    "parse_native_build",
    "parse_navigation",
    "parse_typescript",
    "strip_ansi",
    "unknown_record",
]
