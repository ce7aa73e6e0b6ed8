"""JSON documents for single runs and batch reports."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mobicert.constants import REPORT_SCHEMA_VERSION
from mobicert.utils.fs import atomic_write

if TYPE_CHECKING:
    from collections.abc import Mapping

    from mobicert.certification.batch import BatchReport, TemplateCertification
    from mobicert.domain.models import CertificationRun


def run_document(run: CertificationRun) -> dict[str, Any]:
    """Full run payload plus the per-tier summaries consumers usually want first."""

    payload = run.to_dict()
    payload["level"] = run.level.value
    payload["duration_ms"] = run.duration_ms
    payload["summaries"] = [summary.to_dict() for summary in run.summaries()]
    return payload


def template_document(certification: TemplateCertification) -> dict[str, Any]:
    template = certification.template
    return {
        "template_id": template.template_id,
        "name": template.name,
        "path": str(template.path),
        "level": certification.level.value,
        "passed_tiers": [tier.value for tier in certification.passed_tiers],
        "error_count": certification.error_count,
        "warning_count": certification.warning_count,
        "error": certification.error,
        "run": run_document(certification.run) if certification.run is not None else None,
    }


def batch_document(report: BatchReport) -> dict[str, Any]:
    return {
        "schema_version": REPORT_SCHEMA_VERSION,
        "generated_at": report.generated_at.isoformat(),
        "max_tier": report.max_tier.value,
        "total": report.total,
        "summary": {level.value: count for level, count in report.counts_by_level().items()},
        "pass_rate": round(report.pass_rate(), 4),
        "templates": [template_document(item) for item in report.results],
    }


def dumps_document(payload: Mapping[str, object], *, compact: bool = False) -> str:
    if compact:
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return json.dumps(payload, sort_keys=True, indent=2, ensure_ascii=False) + "\n"


def write_document(path: str | Path, payload: Mapping[str, object]) -> Path:
    target = Path(path)
    atomic_write(target, dumps_document(payload))
    return target


__all__ = [
    "batch_document",
    "dumps_document",
    "run_document",
    "template_document",
    "write_document",
]
