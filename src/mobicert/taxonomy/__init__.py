"""Error taxonomy: tool output parsers, suggestion rules and the parser registry."""

from mobicert.taxonomy.parsers import BUILTIN_PARSERS, Parser, strip_ansi, unknown_record
from mobicert.taxonomy.registry import ParserRegistry, build_default_registry
from mobicert.taxonomy.suggestions import (
    DEFAULT_SUGGESTION_RULES,
    SuggestionRule,
    attach_suggestion,
    suggest,
)

__all__ = [
    "BUILTIN_PARSERS",
    "DEFAULT_SUGGESTION_RULES",
    "Parser",
    "ParserRegistry",
    "SuggestionRule",
    "attach_suggestion",
    "build_default_registry",
    "strip_ansi",
    "suggest",
    "unknown_record",
]
