"""Parser registry keyed by tool name.

The registry is an explicit object built once at startup and handed to the checks; there is no
module-level mutable registration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from mobicert.domain.models import ErrorKind, ErrorRecord
from mobicert.taxonomy.parsers import BUILTIN_PARSERS, first_line, unknown_record
from mobicert.taxonomy.suggestions import DEFAULT_SUGGESTION_RULES, attach_suggestion

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from mobicert.taxonomy.parsers import Parser
    from mobicert.taxonomy.suggestions import SuggestionRule


class ParserRegistry:
    """Map tool names to pure parsers and normalize their output."""

    def __init__(
        self,
        parsers: Mapping[str, Parser] | None = None,
        *,
        suggestion_rules: Iterable[SuggestionRule] = DEFAULT_SUGGESTION_RULES,
        logger: Any | None = None,
    ) -> None:
        self._parsers: dict[str, Parser] = dict(parsers or {})
        self._rules = tuple(suggestion_rules)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def register(self, tool_name: str, parser: Parser, *, replace: bool = False) -> None:
        name = tool_name.strip()
        if not name:
            raise ValueError("tool_name must not be empty")
        if name in self._parsers and not replace:
            raise ValueError(f"parser already registered for {name!r}")
        self._parsers[name] = parser

    def names(self) -> tuple[str, ...]:
        return tuple(sorted(self._parsers))

    def __contains__(self, tool_name: object) -> bool:
        return tool_name in self._parsers

    def parse(self, tool_name: str, raw_output: str) -> list[ErrorRecord]:
        """Normalize ``raw_output``; never raises.

        Unrecognized or unparseable output collapses to at most one ``unknown`` record carrying
        the first non-blank line. Blank output yields no records.
        """

        text = raw_output if isinstance(raw_output, str) else str(raw_output or "")
        parser = self._parsers.get(tool_name)
        records: list[ErrorRecord] | None = None
        if parser is not None:
            try:
                records = parser(text)
            except Exception as exc:  # noqa: BLE001 - parser failures are data.
                self._logger.warning(
                    "parser_failed",
                    tool=tool_name,
                    error=f"{type(exc).__name__}: {exc}",
                )
                records = None
        if records is None:
            fallback = unknown_record(text, source=tool_name)
            return [] if fallback is None else [fallback]
        return self.enrich(records, source=tool_name)

    def enrich(
        self, records: Iterable[ErrorRecord], *, source: str | None = None
    ) -> list[ErrorRecord]:
        """Attach suggestions (and a source tag when missing) to already-built records."""

        enriched: list[ErrorRecord] = []
        for record in records:
            if source is not None and record.source is None:
                record = record.with_source(source)
            enriched.append(attach_suggestion(record, self._rules))
        return enriched

    def failure_record(
        self, tool_name: str, kind: ErrorKind, summary: str, raw_output: str = ""
    ) -> ErrorRecord:
        """Record for a tool that failed without any recognizable error line."""

        detail = first_line(raw_output)
        message = f"{summary}: {detail}" if detail else summary
        record = ErrorRecord(kind=kind, message=message, source=tool_name)
        return attach_suggestion(record, self._rules)


def build_default_registry(*, logger: Any | None = None) -> ParserRegistry:
    return ParserRegistry(BUILTIN_PARSERS, logger=logger)


__all__ = ["ParserRegistry", "build_default_registry"]
