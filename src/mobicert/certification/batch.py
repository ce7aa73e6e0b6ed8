"""Batch certification of every template directory in a catalog."""

from __future__ import annotations

import json
import re
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import structlog

from mobicert.constants import SKIPPED_TEMPLATE_DIRS
from mobicert.domain.models import CertificationLevel, Tier
from mobicert.utils.concurrency import WorkerPool

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mobicert.certification.engine import CertificationEngine, TierCallback
    from mobicert.domain.models import CertificationRun

_CONFIG_ID_RE: Final = re.compile(r"""\bid:\s*['"]([^'"]+)['"]""")
_CONFIG_NAME_RE: Final = re.compile(r"""\bname:\s*['"]([^'"]+)['"]""")


@dataclass(frozen=True, slots=True)
class TemplateInfo:
    template_id: str
    name: str
    path: Path


@dataclass(frozen=True, slots=True)
class TemplateCertification:
    """One template's outcome; ``run`` is ``None`` when certification could not start."""

    template: TemplateInfo
    run: CertificationRun | None
    error: str | None = None

    @property
    def level(self) -> CertificationLevel:
        return self.run.level if self.run is not None else CertificationLevel.FAILED

    @property
    def passed_tiers(self) -> tuple[Tier, ...]:
        if self.run is None:
            return ()
        return tuple(result.tier for result in self.run.tier_results if result.passed)

    @property
    def error_count(self) -> int:
        if self.run is None:
            return 1
        return sum(result.error_count for result in self.run.tier_results)

    @property
    def warning_count(self) -> int:
        if self.run is None:
            return 0
        return sum(result.warning_count for result in self.run.tier_results)


@dataclass(frozen=True, slots=True)
class BatchReport:
    results: tuple[TemplateCertification, ...]
    max_tier: Tier
    generated_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def total(self) -> int:
        return len(self.results)

    def counts_by_level(self) -> dict[CertificationLevel, int]:
        counts = Counter(item.level for item in self.results)
        return {level: counts.get(level, 0) for level in CertificationLevel}

    def pass_rate(self, minimum: CertificationLevel = CertificationLevel.BRONZE) -> float:
        if not self.results:
            return 0.0
        reached = sum(1 for item in self.results if item.level.at_least(minimum))
        return reached / len(self.results)

    def all_reached(self, minimum: CertificationLevel = CertificationLevel.BRONZE) -> bool:
        return all(item.level.at_least(minimum) for item in self.results)


def discover_templates(catalog_dir: str | Path) -> tuple[TemplateInfo, ...]:
    """List template directories in name order, skipping shared/base and hidden entries."""

    root = Path(catalog_dir)
    if not root.is_dir():
        raise NotADirectoryError(f"template catalog is not a directory: {root}")
    templates: list[TemplateInfo] = []
    for entry in sorted(root.iterdir(), key=lambda path: path.name):
        if not entry.is_dir() or entry.name.startswith(".") or entry.name in SKIPPED_TEMPLATE_DIRS:
            continue
        templates.append(read_template_info(entry))
    return tuple(templates)


def read_template_info(template_dir: Path) -> TemplateInfo:
    """Identity from ``template.json``, then ``template.config.ts``, then the directory name."""

    try:
        data = json.loads((template_dir / "template.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        data = None
    if isinstance(data, dict):
        template_id, name = data.get("id"), data.get("name")
        if isinstance(template_id, str) and isinstance(name, str) and template_id and name:
            return TemplateInfo(template_id=template_id, name=name, path=template_dir)

    try:
        config_text = (template_dir / "template.config.ts").read_text(encoding="utf-8")
    except OSError:
        config_text = ""
    id_match, name_match = _CONFIG_ID_RE.search(config_text), _CONFIG_NAME_RE.search(config_text)
    if id_match and name_match:
        return TemplateInfo(
            template_id=id_match.group(1), name=name_match.group(1), path=template_dir
        )

    dir_name = template_dir.name
    title = " ".join(part.capitalize() for part in dir_name.split("-") if part)
    return TemplateInfo(template_id=dir_name, name=title or dir_name, path=template_dir)


async def certify_all(
    engine: CertificationEngine,
    catalog_dir: str | Path,
    *,
    max_tier: Tier = Tier.TIER2,
    stop_on_failure: bool = False,
    max_concurrency: int = 1,
    on_template_start: Callable[[TemplateInfo], None] | None = None,
    on_tier_complete: Callable[[TemplateInfo], TierCallback] | None = None,
    on_template_complete: Callable[[TemplateCertification], None] | None = None,
    logger: Any | None = None,
) -> BatchReport:
    """Certify every template in ``catalog_dir``; results keep discovery order."""

    log = logger if logger is not None else structlog.get_logger(__name__)
    templates = discover_templates(catalog_dir)
    log.info("batch_started", catalog=str(catalog_dir), templates=len(templates))

    async def certify_one(
        index: int, template: TemplateInfo
    ) -> tuple[int, TemplateCertification]:
        if on_template_start is not None:
            on_template_start(template)
        listener = on_tier_complete(template) if on_tier_complete is not None else None
        try:
            run = await engine.certify(
                template.path,
                max_tier=max_tier,
                stop_on_failure=stop_on_failure,
                on_tier_complete=listener,
            )
            outcome = TemplateCertification(template=template, run=run)
        except ValueError as exc:
            log.error("template_rejected", template=template.template_id, error=str(exc))
            outcome = TemplateCertification(template=template, run=None, error=str(exc))
        if on_template_complete is not None:
            on_template_complete(outcome)
        return index, outcome

    pool: WorkerPool[tuple[int, TemplateCertification]] = WorkerPool(
        max_concurrency=max(1, min(max_concurrency, len(templates) or 1))
    )
    collected: dict[int, TemplateCertification] = {}
    async for index, outcome in pool.run(
        certify_one(index, template) for index, template in enumerate(templates)
    ):
        collected[index] = outcome

    report = BatchReport(
        results=tuple(collected[index] for index in sorted(collected)), max_tier=max_tier
    )
    log.info(
        "batch_finished",
        templates=report.total,
        pass_rate=round(report.pass_rate(), 4),
        **{level.value: count for level, count in report.counts_by_level().items()},
    )
    return report


def sample_errors(
    certification: TemplateCertification, *, limit: int = 3
) -> Sequence[tuple[Tier | None, str]]:
    """First few error lines per template, for reports."""

    if certification.run is None:
        return [(None, certification.error or "certification did not run")]
    samples: list[tuple[Tier | None, str]] = []
    for result in certification.run.tier_results:
        for record in result.blocking_errors:
            if len(samples) >= limit:
                return samples
            location = f"{record.location} - " if record.location else ""
            samples.append((result.tier, f"{location}{record.message}"))
    return samples


__all__ = [
    "BatchReport",
    "TemplateCertification",
    "TemplateInfo",
    "certify_all",
    "discover_templates",
    "read_template_info",
    "sample_errors",
]
