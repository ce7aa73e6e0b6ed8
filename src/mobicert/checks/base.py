"""
mobicert — check interface and command execution

Purpose
- Define the ``Check`` protocol run by the tier runner and its invocation context.
- Provide the async subprocess executor and a shared command-backed check.

Functional requirements
- Checks treat the project directory as read-only.
- A failing command always produces at least one error-severity record.
- Tool output is normalized through the parser registry; command problems become records.
"""

from __future__ import annotations

import asyncio
import os
import signal
import time
from contextlib import suppress
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

from mobicert.constants import MAX_COMMAND_OUTPUT_CHARS
from mobicert.domain.models import ErrorKind, ErrorRecord

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from mobicert.domain.models import Tier
    from mobicert.taxonomy.registry import ParserRegistry

# Non-interactive, colourless tool output keeps parsing deterministic.
_TOOL_ENV: dict[str, str] = {
    "CI": "1",
    "FORCE_COLOR": "0",
    "NO_COLOR": "1",
    "EXPO_NO_TELEMETRY": "1",
}

# Bound on reading leftover output once a timed-out process group has been killed.
_DRAIN_TIMEOUT_SECONDS: Final[float] = 2.0


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """Portable command invocation contract used by command checks."""

    argv: tuple[str, ...]
    cwd: str | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    timeout_seconds: float | None = None
    allowed_exit_codes: tuple[int, ...] = (0,)

    def __post_init__(self) -> None:
        argv = tuple(self.argv)
        if not argv or not all(isinstance(part, str) and part for part in argv):
            raise ValueError("CommandSpec.argv must be a non-empty sequence of strings")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("CommandSpec.timeout_seconds must be > 0")
        object.__setattr__(self, "argv", argv)
        object.__setattr__(self, "allowed_exit_codes", tuple(self.allowed_exit_codes))

    def build_env(self) -> dict[str, str]:
        env = dict(os.environ)
        env.update(self.env)
        return env


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Command execution outcome."""

    argv: tuple[str, ...]
    exit_code: int | None
    stdout: str
    stderr: str
    duration_ms: int
    timed_out: bool = False
    error: str | None = None

    def is_success(self, spec: CommandSpec | None = None) -> bool:
        if self.timed_out or self.error is not None or self.exit_code is None:
            return False
        if spec is None:
            return self.exit_code == 0
        return self.exit_code in spec.allowed_exit_codes

    @property
    def output(self) -> str:
        parts = [part for part in (self.stdout, self.stderr) if part.strip()]
        return "\n".join(parts)


@runtime_checkable
class CommandExecutor(Protocol):
    """Pluggable async command execution interface."""

    async def run(self, spec: CommandSpec) -> CommandResult: ...


class LocalSubprocessExecutor(CommandExecutor):
    """Async local subprocess executor with capture, timeout and output truncation."""

    def __init__(self, *, max_output_chars: int | None = MAX_COMMAND_OUTPUT_CHARS) -> None:
        if max_output_chars is not None and max_output_chars <= 0:
            raise ValueError("max_output_chars must be > 0")
        self._max_output_chars = max_output_chars

    async def run(self, spec: CommandSpec) -> CommandResult:
        started_ns = time.monotonic_ns()
        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                cwd=spec.cwd,
                env=spec.build_env(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=os.name == "posix",
            )
        except OSError as exc:
            return CommandResult(
                argv=spec.argv,
                exit_code=None,
                stdout="",
                stderr="",
                duration_ms=_elapsed_ms(started_ns),
                error=str(exc),
            )

        try:
            stdout_bytes, stderr_bytes = await _communicate_with_timeout(
                process, spec.timeout_seconds
            )
            timed_out = False
            exit_code = process.returncode
            error_text: str | None = None
        except _CommandTimeoutError as exc:
            stdout_bytes, stderr_bytes = exc.stdout, exc.stderr
            timed_out = True
            exit_code = None
            error_text = f"command timed out after {spec.timeout_seconds:.3f}s"

        return CommandResult(
            argv=spec.argv,
            exit_code=exit_code,
            stdout=_truncate_text(_normalize_output_text(stdout_bytes), self._max_output_chars),
            stderr=_truncate_text(_normalize_output_text(stderr_bytes), self._max_output_chars),
            duration_ms=_elapsed_ms(started_ns),
            timed_out=timed_out,
            error=error_text,
        )


@dataclass(frozen=True, slots=True)
class CheckContext:
    """Everything a check needs, passed by value for one tier invocation."""

    project_path: Path
    tier: Tier
    parsers: ParserRegistry
    executor: CommandExecutor
    timeout_seconds: float | None = None


@dataclass(frozen=True, slots=True)
class CheckOutcome:
    check_name: str
    records: tuple[ErrorRecord, ...]
    duration_ms: int
    skipped: bool = False
    detail: str | None = None

    @property
    def passed(self) -> bool:
        return not any(record.is_error for record in self.records)


@runtime_checkable
class Check(Protocol):
    """Independent, read-only validation of one project aspect."""

    name: str
    tool: str

    async def run(self, context: CheckContext) -> CheckOutcome: ...


class CommandCheck:
    """Shared check implementation backed by one external command.

    Subclasses set ``name``, ``tool`` (the parser name), ``failure_kind`` and either
    ``default_command`` or :meth:`build_command`.
    """

    name: str = "command"
    tool: str = "unknown"
    failure_kind: ErrorKind = ErrorKind.UNKNOWN
    default_command: tuple[str, ...] = ()
    allowed_exit_codes: tuple[int, ...] = (0,)
    parse_on_success: bool = False

    def __init__(self, command: Iterable[str] | None = None) -> None:
        self._command = tuple(command) if command is not None else None

    def build_command(self, context: CheckContext) -> tuple[str, ...]:
        return self._command or self.default_command

    def skip_reason(self, context: CheckContext) -> str | None:
        """Return why the check does not apply to this project, or ``None`` to run it."""
        return None

    async def run(self, context: CheckContext) -> CheckOutcome:
        reason = self.skip_reason(context)
        if reason is not None:
            return self.skipped(reason)
        return await self.execute(context, self.build_command(context))

    def skipped(self, reason: str) -> CheckOutcome:
        return CheckOutcome(
            check_name=self.name, records=(), duration_ms=0, skipped=True, detail=reason
        )

    async def execute(self, context: CheckContext, argv: tuple[str, ...]) -> CheckOutcome:
        started_ns = time.monotonic_ns()
        spec = CommandSpec(
            argv=argv,
            cwd=str(context.project_path),
            env=_TOOL_ENV,
            timeout_seconds=context.timeout_seconds,
            allowed_exit_codes=self.allowed_exit_codes,
        )
        result = await context.executor.run(spec)
        records = self.interpret(result, spec, context)
        return CheckOutcome(
            check_name=self.name,
            records=tuple(relativize_records(records, context.project_path)),
            duration_ms=_elapsed_ms(started_ns),
        )

    def interpret(
        self, result: CommandResult, spec: CommandSpec, context: CheckContext
    ) -> list[ErrorRecord]:
        command_text = " ".join(spec.argv)
        if result.timed_out:
            return [
                ErrorRecord(
                    kind=ErrorKind.TIMEOUT,
                    message=f"{self.name} timed out: {command_text}",
                    source=self.name,
                )
            ]
        if result.error is not None:
            return [
                context.parsers.failure_record(
                    self.name, ErrorKind.DEPENDENCY, f"unable to run {spec.argv[0]}", result.error
                )
            ]

        if result.is_success(spec):
            if not self.parse_on_success:
                return []
            return [
                record
                for record in context.parsers.parse(self.tool, result.output)
                if record.kind is not ErrorKind.UNKNOWN
            ]

        records = context.parsers.parse(self.tool, result.output)
        if not any(record.is_error for record in records):
            records.append(
                context.parsers.failure_record(
                    self.name,
                    self.failure_kind,
                    f"{self.name} exited with code {result.exit_code}",
                    result.output,
                )
            )
        return records


def relativize_records(records: Iterable[ErrorRecord], project_path: Path) -> list[ErrorRecord]:
    """Rewrite absolute in-project file paths as project-relative POSIX paths."""

    root = project_path.resolve()
    out: list[ErrorRecord] = []
    for record in records:
        if record.file is not None and os.path.isabs(record.file):
            candidate = Path(record.file)
            with suppress(ValueError):
                record = replace(record, file=candidate.resolve().relative_to(root).as_posix())
        out.append(record)
    return out


@dataclass(slots=True)
class _CommandTimeoutError(Exception):
    stdout: bytes
    stderr: bytes


async def _communicate_with_timeout(
    process: asyncio.subprocess.Process, timeout_seconds: float | None
) -> tuple[bytes, bytes]:
    try:
        if timeout_seconds is None:
            return await process.communicate()
        return await asyncio.wait_for(process.communicate(), timeout=timeout_seconds)
    except TimeoutError as exc:
        stdout_bytes, stderr_bytes = await _kill_and_drain(process)
        raise _CommandTimeoutError(stdout=stdout_bytes, stderr=stderr_bytes) from exc
    except asyncio.CancelledError:
        await _kill_and_drain(process)
        raise


async def _kill_and_drain(process: asyncio.subprocess.Process) -> tuple[bytes, bytes]:
    """Kill the whole process group, then collect whatever output is left, boundedly.

    Tools launched through ``npx`` or a shell leave grandchildren holding the pipes open;
    killing only the direct child would make the drain wait for them.
    """

    if os.name == "posix":
        with suppress(ProcessLookupError, PermissionError):
            os.killpg(process.pid, signal.SIGKILL)
    with suppress(ProcessLookupError):
        process.kill()
    try:
        return await asyncio.wait_for(process.communicate(), timeout=_DRAIN_TIMEOUT_SECONDS)
    except TimeoutError:
        return b"", b""


def _elapsed_ms(started_ns: int) -> int:
    return max(0, (time.monotonic_ns() - started_ns) // 1_000_000)


def _normalize_output_text(raw: bytes) -> str:
    text = raw.decode("utf-8", errors="replace")
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _truncate_text(text: str, max_chars: int | None) -> str:
    if max_chars is None or len(text) <= max_chars:
        return text
    omitted = len(text) - max_chars
    return f"{text[:max_chars]}\n...[truncated {omitted} chars]"


__all__ = [
    "Check",
    "CheckContext",
    "CheckOutcome",
    "CommandCheck",
    "CommandExecutor",
    "CommandResult",
    "CommandSpec",
    "LocalSubprocessExecutor",
    "relativize_records",
]
