"""
mobicert — unit tests for the parser registry and suggestion rules

Purpose
- The registry never raises, collapses unrecognized output to one ``unknown`` record and
  attaches fix suggestions.
"""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from mobicert.domain.models import ErrorKind, ErrorRecord
from mobicert.taxonomy.parsers import BUILTIN_PARSERS
from mobicert.taxonomy.registry import ParserRegistry, build_default_registry
from mobicert.taxonomy.suggestions import SuggestionRule, attach_suggestion, suggest

EXPECTED_TOOLS = (
    "config",
    "dependency",
    "eslint",
    "imports",
    "jest",
    "maestro",
    "native-build",
    "navigation",
    "typescript",
)


def test_default_registry_knows_every_builtin_tool() -> None:
    registry = build_default_registry()
    assert registry.names() == EXPECTED_TOOLS
    assert "typescript" in registry
    assert "tsc" not in registry


def test_unrecognized_output_becomes_single_unknown_record() -> None:
    registry = build_default_registry()
    records = registry.parse("typescript", "\n\ngarbage text\nmore garbage\n")
    assert len(records) == 1
    assert records[0].kind is ErrorKind.UNKNOWN
    assert records[0].message == "garbage text"
    assert records[0].source == "typescript"


def test_unknown_tool_uses_fallback() -> None:
    records = build_default_registry().parse("swiftc", "something broke")
    assert [(r.kind, r.message) for r in records] == [(ErrorKind.UNKNOWN, "something broke")]


@pytest.mark.parametrize("tool", EXPECTED_TOOLS)
def test_blank_output_yields_no_records(tool: str) -> None:
    assert build_default_registry().parse(tool, "  \n\t\n") == []


def test_crashing_parser_is_contained() -> None:
    def explode(raw: str) -> list[ErrorRecord] | None:
        raise RuntimeError("bad parser")

    registry = ParserRegistry({"boom": explode})
    records = registry.parse("boom", "first line\nsecond")
    assert [(r.kind, r.message) for r in records] == [(ErrorKind.UNKNOWN, "first line")]


@given(tool=st.sampled_from(sorted(BUILTIN_PARSERS)), raw=st.text(max_size=400))
def test_parse_never_raises_on_arbitrary_text(tool: str, raw: str) -> None:
    records = build_default_registry().parse(tool, raw)
    assert isinstance(records, list)
    assert all(isinstance(record, ErrorRecord) for record in records)


def test_register_rejects_duplicates_and_blank_names() -> None:
    registry = ParserRegistry()
    registry.register("x", lambda raw: [])
    with pytest.raises(ValueError):
        registry.register("x", lambda raw: None)
    registry.register("x", lambda raw: None, replace=True)
    with pytest.raises(ValueError):
        registry.register("  ", lambda raw: [])


def test_parse_attaches_suggestions_and_source() -> None:
    raw = (
        "src/App.tsx(1,20): error TS2307: Cannot find module './screens/Gone'.\n"
        "src/App.tsx(2,20): error TS2307: Cannot find module 'lodash'.\n"
        "src/App.tsx(3,1): error TS2304: Cannot find name 'Foo'.\n"
    )
    records = build_default_registry().parse("typescript", raw)
    assert [r.suggestion for r in records] == [
        "Check the import path; the file may not exist at './screens/Gone'",
        "Install the package: npm install lodash",
        "Import or define 'Foo'",
    ]
    assert {r.source for r in records} == {"typescript"}


def test_suggestion_rules_are_first_match_and_keep_existing() -> None:
    record = ErrorRecord(kind=ErrorKind.LINT, message="x is unused", code="no-unused-vars")
    assert suggest(record) == "Remove the unused variable or use it"

    kept = attach_suggestion(record.with_suggestion("custom"))
    assert kept.suggestion == "custom"

    rules = (
        SuggestionRule(text="first", kind=ErrorKind.LINT),
        SuggestionRule(text="second"),
    )
    assert suggest(record, rules) == "first"
    other = ErrorRecord(kind=ErrorKind.TEST, message="y")
    assert suggest(other, rules) == "second"
    assert suggest(other, ()) is None


def test_navigation_records_get_registration_hint() -> None:
    records = build_default_registry().parse(
        "navigation", "src/screens/Orphan.tsx: screen 'Orphan' is not registered"
    )
    assert records[0].suggestion == "Register the screen in your navigator configuration"


def test_failure_record_includes_first_output_line() -> None:
    registry = build_default_registry()
    record = registry.failure_record(
        "jest", ErrorKind.TEST, "jest exited with code 1", "\n  Segmentation fault\n"
    )
    assert record.message == "jest exited with code 1: Segmentation fault"
    assert record.source == "jest"
    assert registry.failure_record("jest", ErrorKind.TEST, "failed").message == "failed"
