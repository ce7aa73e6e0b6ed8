"""Command-line interface router for mobicert."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mobicert.certification import (
    CertificationConfigError,
    build_engine,
    certify_all,
)
from mobicert.config import (
    ConfigLoadError,
    ConfigValidationError,
    effective_config,
    load_config_with_sources,
)
from mobicert.domain.models import CertificationLevel, Tier
from mobicert.fixes.anthropic_fixer import AnthropicFixCapability
from mobicert.observability import setup_logging, shutdown_logging
from mobicert.reporting import (
    batch_document,
    dumps_document,
    error_line,
    render_batch_markdown,
    repair_line,
    run_document,
    run_error_lines,
    tier_status_line,
    write_document,
)
from mobicert.taxonomy import build_default_registry
from mobicert.ui.render import CLIRenderer, create_renderer
from mobicert.utils.fs import atomic_write

if TYPE_CHECKING:
    from mobicert.certification import CertificationEngine, TemplateCertification, TemplateInfo
    from mobicert.config import LoadedConfig
    from mobicert.domain.models import CertificationRun, TierResult


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mobicert",
        description=(
            "mobicert - progressive certification for generated React Native / Expo projects.\n\n"
            "Common workflows:\n"
            "  mobicert certify ./my-app             Certify one project up to tier3\n"
            "  mobicert certify-all ./templates      Certify every template in a catalog\n"
            "  mobicert parse typescript build.log   Normalize saved tool output\n"
            "  mobicert config --show-source         Show effective configuration\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to mobicert TOML config (default: ./mobicert.toml if present).",
    )
    common.add_argument("--profile", default=None, help="Config profile overlay name.")
    common.add_argument(
        "--verbose", "-v", action="store_true", default=False, help="Show detailed output."
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # certify -------------------------------------------------------------
    certify_parser = subparsers.add_parser(
        "certify",
        parents=[common],
        help="Certify one project directory",
        description=(
            "Run tiers in order against a project, repairing failures when a fix provider\n"
            "is configured, and print the resulting level.\n\n"
            "Examples:\n"
            "  mobicert certify ./my-app\n"
            "  mobicert certify ./my-app --max-tier tier1 --no-repair\n"
            "  mobicert certify ./my-app --require silver --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    certify_parser.add_argument("project_path", help="Project directory to certify")
    _add_tier_options(certify_parser, default_tier=Tier.TIER3)
    certify_parser.add_argument(
        "--no-repair", action="store_true", default=False, help="Disable auto-repair."
    )
    certify_parser.add_argument(
        "--attempt-budget",
        type=int,
        default=None,
        help="Repair attempts per failed tier (1..10).",
    )
    certify_parser.add_argument("--json", action="store_true", help="Emit the run as JSON")
    certify_parser.set_defaults(handler=_cmd_certify)

    # certify-all ---------------------------------------------------------
    batch_parser = subparsers.add_parser(
        "certify-all",
        parents=[common],
        help="Certify every template directory in a catalog",
        description=(
            "Certify each template directory (skipping shared, base and hidden entries)\n"
            "and write a markdown report.\n\n"
            "Examples:\n"
            "  mobicert certify-all ./templates\n"
            "  mobicert certify-all ./templates --max-tier tier3 --report docs/cert.md\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    batch_parser.add_argument("catalog_dir", help="Directory containing template directories")
    _add_tier_options(batch_parser, default_tier=Tier.TIER2)
    batch_parser.add_argument(
        "--report",
        default="certification-report.md",
        help="Markdown report path (default: certification-report.md).",
    )
    batch_parser.add_argument("--json-report", default=None, help="Optional JSON report path.")
    batch_parser.add_argument(
        "--concurrency", type=int, default=1, help="Templates certified at once (default: 1)."
    )
    batch_parser.set_defaults(handler=_cmd_certify_all)

    # parse ---------------------------------------------------------------
    parse_parser = subparsers.add_parser(
        "parse",
        parents=[common],
        help="Normalize saved tool output into error records",
        description=(
            "Run a registered parser over saved output.\n\n"
            "Examples:\n"
            "  mobicert parse typescript build.log\n"
            "  npx eslint . | mobicert parse eslint -\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parse_parser.add_argument(
        "tool", help="Parser name (typescript, eslint, native-build, jest, ...)"
    )
    parse_parser.add_argument("source", help="File with tool output, or - for stdin")
    parse_parser.add_argument("--json", action="store_true", help="Emit records as JSON")
    parse_parser.set_defaults(handler=_cmd_parse)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration (redacted)",
        description=(
            "Display the effective config after merging defaults, file, profile and env.\n"
            "Sensitive values are redacted.\n\n"
            "Examples:\n"
            "  mobicert config\n"
            "  mobicert config --show-source\n"
            "  mobicert config --profile fast --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.add_argument(
        "--show-source", action="store_true", help="Show which layer set each value"
    )
    config_parser.add_argument("--json", action="store_true", help="Emit JSON output")
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def _add_tier_options(parser: argparse.ArgumentParser, *, default_tier: Tier) -> None:
    parser.add_argument(
        "--max-tier",
        default=default_tier.value,
        help=f"Highest tier to attempt: tier1, tier2 or tier3 (default: {default_tier.value}).",
    )
    parser.add_argument(
        "--stop-on-failure",
        action="store_true",
        default=False,
        help="Stop at the first tier that still fails after repair.",
    )
    parser.add_argument(
        "--require",
        default=CertificationLevel.BRONZE.value,
        choices=[level.value for level in CertificationLevel],
        help="Minimum level for a zero exit code (default: bronze).",
    )


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return the process exit code."""

    parser = build_parser()
    try:
        namespace = parser.parse_args(list(argv) if argv is not None else None)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 2
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_certify(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {}
    if _flag(args, "no_repair"):
        overrides["repair.enabled"] = False
    if args.attempt_budget is not None:
        overrides["repair.attempt_budget"] = args.attempt_budget
    loaded = _load_effective_config(args, overrides)
    max_tier = _parse_tier(args.max_tier)
    required = CertificationLevel(args.require)
    emit_json = _flag(args, "json")
    renderer = _get_renderer(args, stream=sys.stderr if emit_json else None)

    setup_logging(loaded.config["observability"], verbose=_flag(args, "verbose"))
    try:
        engine = _build_engine(loaded.config)
        renderer.heading(f"Certifying {args.project_path} up to {max_tier.value}")
        if engine.repair_available:
            renderer.text(renderer.style("auto-repair enabled", "dim"))

        def on_tier_complete(tier: Tier, result: TierResult) -> None:
            _render_tier(renderer, tier, result)

        try:
            run = asyncio.run(
                engine.certify(
                    args.project_path,
                    max_tier=max_tier,
                    stop_on_failure=_flag(args, "stop_on_failure"),
                    on_tier_complete=on_tier_complete,
                )
            )
        except CertificationConfigError as exc:
            raise CLIError(str(exc), exit_code=2) from exc
    finally:
        shutdown_logging()

    if emit_json:
        print(dumps_document(run_document(run)), end="")
    _render_run(renderer, run, required)
    return 0 if run.result.meets(required) else 1


def _cmd_certify_all(args: argparse.Namespace) -> int:
    loaded = _load_effective_config(args, {})
    max_tier = _parse_tier(args.max_tier)
    required = CertificationLevel(args.require)
    if args.concurrency < 1:
        raise CLIError("--concurrency must be >= 1", exit_code=2)
    catalog = Path(args.catalog_dir).expanduser()
    if not catalog.is_dir():
        raise CLIError(f"template catalog is not a directory: {catalog}", exit_code=2)
    renderer = _get_renderer(args)

    def on_template_start(template: TemplateInfo) -> None:
        renderer.section(f"{template.name} ({template.template_id})")

    def on_tier_complete(template: TemplateInfo) -> Any:
        def callback(tier: Tier, result: TierResult) -> None:
            _render_tier(renderer, tier, result)

        return callback

    def on_template_complete(certification: TemplateCertification) -> None:
        if certification.error is not None:
            renderer.fail(f"could not certify: {certification.error}")
        renderer.text(f"  level: {renderer.level(certification.level)}")

    setup_logging(loaded.config["observability"], verbose=_flag(args, "verbose"))
    try:
        engine = _build_engine(loaded.config)
        report = asyncio.run(
            certify_all(
                engine,
                catalog,
                max_tier=max_tier,
                stop_on_failure=_flag(args, "stop_on_failure"),
                max_concurrency=args.concurrency,
                on_template_start=None if args.concurrency > 1 else on_template_start,
                on_tier_complete=None if args.concurrency > 1 else on_tier_complete,
                on_template_complete=None if args.concurrency > 1 else on_template_complete,
            )
        )
    finally:
        shutdown_logging()

    report_path = Path(args.report)
    atomic_write(report_path, render_batch_markdown(report))
    if args.json_report:
        write_document(args.json_report, batch_document(report))

    counts = report.counts_by_level()
    renderer.section("Summary")
    renderer.table(
        ["Level", "Templates"],
        [[level.value, str(counts[level])] for level in CertificationLevel],
    )
    renderer.kv("Pass rate", f"{report.pass_rate() * 100:.1f}%")
    renderer.kv("Report", str(report_path))
    return 0 if report.all_reached(required) else 1


def _cmd_parse(args: argparse.Namespace) -> int:
    registry = build_default_registry()
    if args.tool not in registry:
        raise CLIError(
            f"unknown tool {args.tool!r}; known tools: {', '.join(registry.names())}",
            exit_code=2,
        )
    raw = _read_source(args.source)
    records = registry.parse(args.tool, raw)

    if _flag(args, "json"):
        _emit_json({"tool": args.tool, "records": [record.to_dict() for record in records]})
        return 0

    renderer = _get_renderer(args)
    if not records:
        renderer.text("no records")
        return 0
    for record in records:
        renderer.text(error_line(record))
        if record.suggestion and renderer.verbose:
            renderer.text(renderer.style(f"    hint: {record.suggestion}", "dim"))
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    loaded = _load_effective_config(args, {})
    redacted = effective_config(loaded.config)
    payload: dict[str, object] = {
        "command": "config",
        "config_path": str(loaded.config_path) if loaded.config_path else None,
        "active_profile": loaded.profile,
        "config": redacted,
    }
    if _flag(args, "show_source"):
        payload["sources"] = loaded.sources

    if _flag(args, "json"):
        _emit_json(payload)
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Config file", payload["config_path"] or "(none)")
    renderer.kv("Active profile", loaded.profile or "(default)")
    if _flag(args, "show_source"):
        renderer.blank()
        rows = [
            [key, _display_value(_lookup(redacted, key)), source]
            for key, source in loaded.sources.items()
        ]
        renderer.table(["Key", "Value", "Source"], rows)
        return 0
    renderer.text(json.dumps(redacted, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace, *, stream: Any | None = None) -> CLIRenderer:
    return create_renderer(
        no_color=_flag(args, "no_color"), verbose=_flag(args, "verbose"), stream=stream
    )


def _render_tier(renderer: CLIRenderer, tier: Tier, result: TierResult) -> None:
    if result.passed:
        renderer.ok(tier_status_line(tier, result))
    else:
        renderer.fail(tier_status_line(tier, result))


def _render_run(
    renderer: CLIRenderer, run: CertificationRun, required: CertificationLevel
) -> None:
    if run.repair_attempts:
        renderer.section("Repair attempts")
        renderer.items([repair_line(attempt) for attempt in run.repair_attempts])

    lines, omitted = run_error_lines(run, include_warnings=renderer.verbose)
    if lines:
        renderer.section("Errors" if not renderer.verbose else "Errors and warnings")
        renderer.items(lines)
        if omitted:
            renderer.text(f"  ... and {omitted} more")

    renderer.section(f"Level: {renderer.level(run.level)}")
    renderer.kv("Duration", f"{run.duration_ms}ms")
    if not run.result.meets(required):
        renderer.warning(f"below required level {required.value}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_effective_config(
    args: argparse.Namespace, overrides: Mapping[str, object]
) -> LoadedConfig:
    try:
        return load_config_with_sources(
            _optional_str(getattr(args, "config_path", None)),
            profile=_optional_str(getattr(args, "profile", None)),
            cli_overrides=overrides,
        )
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _build_engine(config: Mapping[str, Any]) -> CertificationEngine:
    try:
        engine = build_engine(config)
    except (ConfigValidationError, ValueError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc
    capability = engine.fix_capability
    if engine.repair_available and isinstance(capability, AnthropicFixCapability):
        # FixUnavailableError propagates to the entrypoint as a provider failure.
        capability.ensure_available()
    return engine


def _parse_tier(raw: object) -> Tier:
    try:
        return Tier.parse(raw)
    except ValueError as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    path = Path(source).expanduser()
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise CLIError(f"unable to read {path}: {exc}", exit_code=2) from exc


def _lookup(payload: Mapping[str, object], dotted: str) -> object:
    cursor: object = payload
    for part in dotted.split("."):
        if not isinstance(cursor, Mapping):
            return None
        cursor = cursor.get(part)
    return cursor


def _display_value(value: object) -> str:
    if isinstance(value, list):
        return ",".join(str(item) for item in value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _optional_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "main", "run_cli"]
