"""Certification engine, tier runner, repair loop and batch runner."""

from mobicert.certification.batch import (
    BatchReport,
    TemplateCertification,
    TemplateInfo,
    certify_all,
    discover_templates,
)
from mobicert.certification.engine import (
    CertificationConfigError,
    CertificationEngine,
    TierCallback,
    TierListener,
)
from mobicert.certification.factory import build_engine, build_fix_capability, build_tier_runner
from mobicert.certification.repair import (
    RepairOrchestrator,
    RepairReport,
    RepairState,
    build_project_context,
)
from mobicert.certification.tier_runner import TierRunner

__all__ = [
    "BatchReport",
    "CertificationConfigError",
    "CertificationEngine",
    "RepairOrchestrator",
    "RepairReport",
    "RepairState",
    "TemplateCertification",
    "TemplateInfo",
    "TierCallback",
    "TierListener",
    "TierRunner",
    "build_engine",
    "build_fix_capability",
    "build_project_context",
    "build_tier_runner",
    "certify_all",
    "discover_templates",
]
