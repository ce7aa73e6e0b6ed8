"""Typed certification result model."""

from mobicert.domain.models import (
    BLOCKING_KINDS,
    CertificationLevel,
    CertificationResult,
    CertificationRun,
    ErrorKind,
    ErrorRecord,
    RepairAttempt,
    RepairOutcome,
    Severity,
    Tier,
    TierResult,
    TierSummary,
    derive_level,
    error_set,
    tiers_up_to,
)

__all__ = [
    "BLOCKING_KINDS",
    "CertificationLevel",
    "CertificationResult",
    "CertificationRun",
    "ErrorKind",
    "ErrorRecord",
    "RepairAttempt",
    "RepairOutcome",
    "Severity",
    "Tier",
    "TierResult",
    "TierSummary",
    "derive_level",
    "error_set",
    "tiers_up_to",
]
