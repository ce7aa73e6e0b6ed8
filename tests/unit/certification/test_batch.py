"""
mobicert — unit tests for batch catalog certification
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mobicert.certification.batch import (
    TemplateCertification,
    TemplateInfo,
    certify_all,
    discover_templates,
    read_template_info,
    sample_errors,
)
from mobicert.certification.engine import CertificationEngine
from mobicert.certification.tier_runner import TierRunner
from mobicert.checks.base import CheckContext, CheckOutcome
from mobicert.checks.registry import CheckRegistry
from mobicert.domain.models import CertificationLevel, ErrorKind, ErrorRecord, Tier


class BrokenFileCheck:
    """Reports ``BROKEN`` files at the template root as tier-specific type errors."""

    tool = "typescript"

    def __init__(self, name: str) -> None:
        self.name = name

    async def run(self, context: CheckContext) -> CheckOutcome:
        marker = context.project_path / f"BROKEN.{self.name}"
        records: tuple[ErrorRecord, ...] = ()
        if marker.exists():
            records = (
                ErrorRecord(
                    kind=ErrorKind.TYPE_CHECK,
                    message=marker.read_text(encoding="utf-8"),
                    file="App.tsx",
                    line=3,
                ),
            )
        return CheckOutcome(check_name=self.name, records=records, duration_ms=1)


def _engine() -> CertificationEngine:
    names = ("t1", "t2", "t3")
    runner = TierRunner(
        check_registry=CheckRegistry({n: (lambda n=n: BrokenFileCheck(n)) for n in names}),
        tier_checks=dict(zip(Tier, ((n,) for n in names), strict=True)),
    )
    return CertificationEngine(tier_runner=runner)


def _catalog(root: Path) -> Path:
    catalog = root / "templates"
    for name in ("alpha", "beta", "gamma", "shared", "base", ".cache", "node_modules"):
        (catalog / name).mkdir(parents=True)
    (catalog / "README.md").write_text("docs", encoding="utf-8")
    (catalog / "beta" / "BROKEN.t1").write_text("Cannot find name 'foo'.", encoding="utf-8")
    (catalog / "gamma" / "BROKEN.t2").write_text("Type 'string' is not 'number'.", encoding="utf-8")
    return catalog


def test_discovery_skips_shared_hidden_and_files(tmp_path: Path) -> None:
    catalog = _catalog(tmp_path)
    assert [t.template_id for t in discover_templates(catalog)] == ["alpha", "beta", "gamma"]


def test_discovery_rejects_missing_catalog(tmp_path: Path) -> None:
    with pytest.raises(NotADirectoryError):
        discover_templates(tmp_path / "nope")


def test_template_identity_sources(tmp_path: Path) -> None:
    from_json = tmp_path / "fitness-tracker"
    from_json.mkdir()
    (from_json / "template.json").write_text(
        json.dumps({"id": "fitness", "name": "Fitness Tracker"}), encoding="utf-8"
    )
    assert read_template_info(from_json) == TemplateInfo("fitness", "Fitness Tracker", from_json)

    from_ts = tmp_path / "recipes"
    from_ts.mkdir()
    (from_ts / "template.json").write_text("{not json", encoding="utf-8")
    (from_ts / "template.config.ts").write_text(
        "export default {\n  id: 'recipe-box',\n  name: \"Recipe Box\",\n};\n",
        encoding="utf-8",
    )
    assert read_template_info(from_ts) == TemplateInfo("recipe-box", "Recipe Box", from_ts)

    bare = tmp_path / "social-feed-app"
    bare.mkdir()
    assert read_template_info(bare) == TemplateInfo("social-feed-app", "Social Feed App", bare)


async def test_certify_all_aggregates_levels(tmp_path: Path) -> None:
    catalog = _catalog(tmp_path)
    started: list[str] = []
    completed: list[str] = []
    tiers: list[tuple[str, Tier]] = []

    report = await certify_all(
        _engine(),
        catalog,
        max_tier=Tier.TIER3,
        max_concurrency=2,
        on_template_start=lambda template: started.append(template.template_id),
        on_tier_complete=lambda template: (
            lambda tier, result: tiers.append((template.template_id, tier))
        ),
        on_template_complete=lambda outcome: completed.append(outcome.template.template_id),
    )

    assert [item.template.template_id for item in report.results] == ["alpha", "beta", "gamma"]
    assert [item.level for item in report.results] == [
        CertificationLevel.GOLD,
        CertificationLevel.FAILED,
        CertificationLevel.BRONZE,
    ]
    counts = report.counts_by_level()
    assert counts[CertificationLevel.GOLD] == 1
    assert counts[CertificationLevel.SILVER] == 0
    assert report.total == 3
    assert report.pass_rate() == pytest.approx(2 / 3)
    assert report.pass_rate(CertificationLevel.GOLD) == pytest.approx(1 / 3)
    assert not report.all_reached()
    assert sorted(started) == sorted(completed) == ["alpha", "beta", "gamma"]
    assert len(tiers) == 9

    gamma = report.results[2]
    assert gamma.passed_tiers == (Tier.TIER1, Tier.TIER3)
    assert (gamma.error_count, gamma.warning_count) == (1, 0)
    assert sample_errors(gamma) == [(Tier.TIER2, "App.tsx:3 - Type 'string' is not 'number'.")]


async def test_empty_catalog_reports_nothing(tmp_path: Path) -> None:
    report = await certify_all(_engine(), tmp_path)
    assert report.total == 0
    assert report.pass_rate() == 0.0
    assert report.all_reached()


def test_samples_for_templates_that_never_ran(tmp_path: Path) -> None:
    skipped = TemplateCertification(
        template=TemplateInfo("x", "X", tmp_path), run=None, error="project path missing"
    )
    assert skipped.level is CertificationLevel.FAILED
    assert skipped.error_count == 1
    assert sample_errors(skipped) == [(None, "project path missing")]
