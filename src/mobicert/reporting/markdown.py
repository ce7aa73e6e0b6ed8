"""
mobicert — markdown batch report

Purpose
- Render a catalog-wide certification report: level counts, pass rates, a per-template tier
  table, detailed failures with error samples, and prioritized recommendations.

Functional requirements
- Output depends only on the report contents; two renders of one report are identical.
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Any, Final

from jinja2 import Environment, StrictUndefined

from mobicert.certification.batch import sample_errors
from mobicert.domain.models import CertificationLevel, Tier, tiers_up_to

if TYPE_CHECKING:
    from mobicert.certification.batch import BatchReport, TemplateCertification

LEVEL_DESCRIPTIONS: Final[dict[CertificationLevel, str]] = {
    CertificationLevel.GOLD: "tier3: native bundle exports and E2E flows are valid",
    CertificationLevel.SILVER: "tier2: app config resolves and unit tests pass",
    CertificationLevel.BRONZE: "tier1: compiles, lints, imports and routes resolve",
    CertificationLevel.FAILED: "tier1 did not pass",
}

BATCH_REPORT_TEMPLATE: Final[str] = """\
# Template Certification Report

**Generated:** {{ generated_at }}
**Highest tier attempted:** {{ max_tier }}

## Summary

- **Total templates:** {{ total }}
{% for row in levels -%}
- **{{ row.label }}:** {{ row.count }} ({{ row.description }})
{% endfor %}
**Pass rate (bronze or better):** {{ pass_rate }}%
**Silver or better:** {{ silver_rate }}%

## Templates

| Template | Level |{% for tier in tiers %} {{ tier }} |{% endfor %} Errors | Warnings |
|---|---|{% for tier in tiers %}---|{% endfor %}---|---|
{% for row in rows -%}
| {{ row.name }} (`{{ row.id }}`) | {{ row.level }} |\
{% for cell in row.cells %} {{ cell }} |{% endfor %} {{ row.errors }} | {{ row.warnings }} |
{% endfor %}
## Detailed Results
{% for detail in details %}
### {{ detail.name }} ({{ detail.id }})

**Certification:** {{ detail.level }}
{% if detail.error %}
- could not certify: {{ detail.error }}
{% endif -%}
{% for tier in detail.tiers %}
- **{{ tier.tier }}:** {{ "PASS" if tier.passed else "FAIL" }} ({{ tier.duration_ms }}ms)\
{% for kind, count in tier.kinds %}
  - {{ kind }}: {{ count }} error(s)\
{% endfor %}
{% endfor %}
{%- if detail.samples %}
Sample errors:
{% for sample in detail.samples %}
- {{ sample }}
{%- endfor %}
{% endif %}
{%- if detail.repairs %}
Repair attempts: {{ detail.repairs }}
{% endif %}
{%- endfor %}
## Recommendations

### Priority actions
{% if not failed and not bronze_only %}
- No templates below silver.
{% endif -%}
{% for item in failed %}
- **{{ item.name }}**: does not pass tier1\
{% if item.primary %} (primary issue: {{ item.primary }}){% endif %}
{%- endfor %}
{% for item in bronze_only %}
- **{{ item.name }}**: passes tier1 but fails tier2\
{% if item.primary %} (issue: {{ item.primary }}){% endif %}
{%- endfor %}

### Path to gold

1. Fix every tier1 failure first; nothing above it is graded until it passes.
2. Make `expo config` resolve and add unit tests for templates stuck at bronze.
3. Add Maestro flows under `.maestro/` and keep the native bundle exporting.
"""

_ENVIRONMENT: Final = Environment(
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
    trim_blocks=False,
    newline_sequence="\n",
)
_TEMPLATE: Final = _ENVIRONMENT.from_string(BATCH_REPORT_TEMPLATE)


def render_batch_markdown(report: BatchReport) -> str:
    tiers = tiers_up_to(report.max_tier)
    counts = report.counts_by_level()
    context: dict[str, Any] = {
        "generated_at": report.generated_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
        "max_tier": report.max_tier.value,
        "total": report.total,
        "levels": [
            {
                "label": level.value.capitalize(),
                "count": counts[level],
                "description": LEVEL_DESCRIPTIONS[level],
            }
            for level in CertificationLevel
        ],
        "pass_rate": _percent(report.pass_rate(CertificationLevel.BRONZE)),
        "silver_rate": _percent(report.pass_rate(CertificationLevel.SILVER)),
        "tiers": [tier.value for tier in tiers],
        "rows": [_table_row(item, tiers) for item in report.results],
        "details": [_detail(item) for item in report.results],
        "failed": [
            _recommendation(item)
            for item in report.results
            if item.level is CertificationLevel.FAILED
        ],
        "bronze_only": [
            _recommendation(item)
            for item in report.results
            if item.level is CertificationLevel.BRONZE and Tier.TIER2 in tiers
        ],
    }
    return _TEMPLATE.render(**context)


def _percent(rate: float) -> str:
    return f"{rate * 100:.1f}"


def _table_row(item: TemplateCertification, tiers: tuple[Tier, ...]) -> dict[str, Any]:
    results = {result.tier: result for result in item.run.tier_results} if item.run else {}
    cells = []
    for tier in tiers:
        result = results.get(tier)
        if result is None:
            cells.append("-")
        else:
            cells.append("pass" if result.passed else "FAIL")
    return {
        "name": item.template.name,
        "id": item.template.template_id,
        "level": item.level.value,
        "cells": cells,
        "errors": item.error_count,
        "warnings": item.warning_count,
    }


def _detail(item: TemplateCertification) -> dict[str, Any]:
    tiers: list[dict[str, Any]] = []
    if item.run is not None:
        for result in item.run.tier_results:
            kinds = Counter(record.kind.value for record in result.blocking_errors)
            tiers.append(
                {
                    "tier": result.tier.value,
                    "passed": result.passed,
                    "duration_ms": result.duration_ms,
                    "kinds": sorted(kinds.items()),
                }
            )
    samples: list[str] = []
    if item.run is not None:
        for tier, text in sample_errors(item):
            samples.append(f"{tier.value}: {text}" if tier is not None else text)
    return {
        "name": item.template.name,
        "id": item.template.template_id,
        "level": item.level.value.upper(),
        "error": item.error,
        "tiers": tiers,
        "samples": samples,
        "repairs": len(item.run.repair_attempts) if item.run is not None else 0,
    }


def _recommendation(item: TemplateCertification) -> dict[str, Any]:
    primary: str | None = None
    if item.run is None:
        primary = item.error
    else:
        failing = next((result for result in item.run.tier_results if not result.passed), None)
        if failing is not None and failing.blocking_errors:
            kind, count = Counter(
                record.kind.value for record in failing.blocking_errors
            ).most_common(1)[0]
            primary = f"{kind} ({count} errors)"
    return {"name": item.template.name, "primary": primary}


__all__ = ["BATCH_REPORT_TEMPLATE", "LEVEL_DESCRIPTIONS", "render_batch_markdown"]
