"""Automated fix capability contract, patch application and backends."""

from mobicert.fixes.anthropic_fixer import AnthropicFixCapability, parse_fix_reply
from mobicert.fixes.contract import (
    BackoffConfig,
    FilePatch,
    FixAuthenticationError,
    FixCapability,
    FixCapabilityError,
    FixInvalidRequestError,
    FixRateLimitError,
    FixRequest,
    FixResponse,
    FixResponseError,
    FixServiceError,
    FixTimeoutError,
    FixUnavailableError,
    compute_backoff_delay,
    is_retryable_error,
    run_with_retries,
)
from mobicert.fixes.patches import PatchApplicationError, apply_patches
from mobicert.fixes.pattern_fixer import PatternFixCapability
from mobicert.fixes.prompt import render_fix_prompt

__all__ = [
    "AnthropicFixCapability",
    "BackoffConfig",
    "FilePatch",
    "FixAuthenticationError",
    "FixCapability",
    "FixCapabilityError",
    "FixInvalidRequestError",
    "FixRateLimitError",
    "FixRequest",
    "FixResponse",
    "FixResponseError",
    "FixServiceError",
    "FixTimeoutError",
    "FixUnavailableError",
    "PatchApplicationError",
    "PatternFixCapability",
    "apply_patches",
    "compute_backoff_delay",
    "is_retryable_error",
    "parse_fix_reply",
    "render_fix_prompt",
]
