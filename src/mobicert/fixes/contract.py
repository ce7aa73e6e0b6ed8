"""
mobicert — fix capability contract

Purpose
- Request/response models exchanged with an automated fix capability.
- Error taxonomy with retryability classification and bounded retry helpers.

Functional requirements
- Fix capabilities are injected; the repair loop never knows which backend it talks to.
- Non-retryable failures surface after exactly one call.
"""

from __future__ import annotations

import asyncio
import random as random_module
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Protocol, TypeAlias, TypeVar, runtime_checkable

from mobicert.domain.models import CanonicalModel, ErrorRecord, Tier

JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

SleepFn: TypeAlias = Callable[[float], Awaitable[None]]
RandomFn: TypeAlias = Callable[[], float]


def _normalize_relative_path(value: str, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    normalized = value.strip().replace("\\", "/")
    path = PurePosixPath(normalized)
    if path.is_absolute() or ".." in path.parts:
        raise ValueError(f"{field_name} must be a project-relative path: {value!r}")
    return path.as_posix()


@dataclass(frozen=True, slots=True)
class FilePatch(CanonicalModel):
    """Full replacement content for one project file, or its deletion."""

    path: str
    content: str | None = None
    delete: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", _normalize_relative_path(self.path, "FilePatch.path"))
        if self.delete and self.content is not None:
            raise ValueError("FilePatch cannot both delete and carry content")
        if not self.delete and not isinstance(self.content, str):
            raise ValueError("FilePatch.content must be a string unless delete=True")


@dataclass(frozen=True, slots=True)
class FixRequest(CanonicalModel):
    """Everything a fix capability receives for one repair attempt."""

    tier: Tier
    errors: tuple[ErrorRecord, ...]
    affected_files: tuple[str, ...]
    project_context: Mapping[str, JSONValue] = field(default_factory=dict)
    attempt_number: int = 1
    # Non-blocking records of the same tier; capabilities may fix them opportunistically.
    warnings: tuple[ErrorRecord, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tier", Tier.parse(self.tier))
        object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "warnings", tuple(self.warnings))
        object.__setattr__(self, "affected_files", tuple(self.affected_files))
        object.__setattr__(self, "project_context", dict(self.project_context))
        if not self.errors:
            raise ValueError("FixRequest.errors must not be empty")
        if self.attempt_number < 1:
            raise ValueError("FixRequest.attempt_number must be >= 1")


@dataclass(frozen=True, slots=True)
class FixResponse(CanonicalModel):
    success: bool
    patches: tuple[FilePatch, ...] = ()
    files_modified: tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        patches = tuple(self.patches)
        object.__setattr__(self, "patches", patches)
        # files_modified defaults to the patched paths, in patch order.
        modified = tuple(self.files_modified) or tuple(patch.path for patch in patches)
        object.__setattr__(self, "files_modified", modified)


@runtime_checkable
class FixCapability(Protocol):
    """Injected automated-fix backend."""

    async def request_fix(self, request: FixRequest) -> FixResponse:
        """Return patches intended to resolve ``request.errors``."""


FixCapabilityFactory: TypeAlias = Callable[[], FixCapability]


class FixCapabilityError(RuntimeError):
    """Base normalized fix-capability error with machine-readable fields."""

    def __init__(
        self,
        *,
        provider: str,
        code: str,
        detail: str,
        retryable: bool,
        http_status: int | None = None,
    ) -> None:
        self.provider = provider.strip() or "provider"
        self.code = code
        self.detail = " ".join(str(detail).split()) or "<no detail>"
        self.retryable = bool(retryable)
        self.http_status = http_status

        parts = [
            f"provider={self.provider}",
            f"code={self.code}",
            f"retryable={str(self.retryable).lower()}",
        ]
        if self.http_status is not None:
            parts.append(f"http_status={self.http_status}")
        parts.append(f"detail={self.detail}")
        super().__init__(" ".join(parts))


class FixUnavailableError(FixCapabilityError):
    """Raised when the fix backend (SDK, credentials) is unavailable."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="unavailable", detail=detail, retryable=False)


class FixAuthenticationError(FixCapabilityError):
    def __init__(
        self, detail: str, *, provider: str = "provider", http_status: int | None = None
    ) -> None:
        super().__init__(
            provider=provider,
            code="auth",
            detail=detail,
            retryable=False,
            http_status=http_status,
        )


class FixInvalidRequestError(FixCapabilityError):
    def __init__(
        self, detail: str, *, provider: str = "provider", http_status: int | None = None
    ) -> None:
        super().__init__(
            provider=provider,
            code="invalid_request",
            detail=detail,
            retryable=False,
            http_status=http_status,
        )


class FixRateLimitError(FixCapabilityError):
    def __init__(
        self, detail: str, *, provider: str = "provider", http_status: int | None = 429
    ) -> None:
        super().__init__(
            provider=provider,
            code="rate_limit",
            detail=detail,
            retryable=True,
            http_status=http_status,
        )


class FixTimeoutError(FixCapabilityError):
    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="timeout", detail=detail, retryable=True)


class FixServiceError(FixCapabilityError):
    def __init__(
        self,
        detail: str,
        *,
        provider: str = "provider",
        retryable: bool = True,
        http_status: int | None = None,
    ) -> None:
        super().__init__(
            provider=provider,
            code="service",
            detail=detail,
            retryable=retryable,
            http_status=http_status,
        )


class FixResponseError(FixCapabilityError):
    """Raised when a fix reply cannot be normalized into patches."""

    def __init__(self, detail: str, *, provider: str = "provider") -> None:
        super().__init__(provider=provider, code="response_invalid", detail=detail, retryable=False)


def is_retryable_error(error: BaseException) -> bool:
    return isinstance(error, FixCapabilityError) and error.retryable


def map_unexpected_exception(exc: Exception) -> FixCapabilityError:
    """Normalize exceptions raised by capabilities that do not use this taxonomy."""

    if isinstance(exc, FixCapabilityError):
        return exc
    if isinstance(exc, TimeoutError):
        return FixTimeoutError(str(exc) or "fix request timed out")
    return FixServiceError(f"{type(exc).__name__}: {exc}", retryable=False)


@dataclass(frozen=True, slots=True)
class BackoffConfig:
    """Bounded exponential backoff policy."""

    max_retries: int = 2
    initial_delay_seconds: float = 0.5
    multiplier: float = 2.0
    max_delay_seconds: float = 8.0
    jitter_ratio: float = 0.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must be >= 0")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if self.max_delay_seconds < 0:
            raise ValueError("max_delay_seconds must be >= 0")
        if self.initial_delay_seconds > self.max_delay_seconds:
            raise ValueError("initial_delay_seconds must be <= max_delay_seconds")
        if not (0.0 <= self.jitter_ratio <= 1.0):
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")


def compute_backoff_delay(
    *,
    retry_number: int,
    config: BackoffConfig,
    random_fn: RandomFn = random_module.random,
) -> float:
    """Return the bounded exponential backoff delay for retry N (1-based)."""

    if retry_number <= 0:
        raise ValueError("retry_number must be > 0")

    base_delay = config.initial_delay_seconds * (config.multiplier ** (retry_number - 1))
    bounded_delay = min(base_delay, config.max_delay_seconds)
    if config.jitter_ratio == 0.0:
        return bounded_delay

    random_value = random_fn()
    if not (0.0 <= random_value <= 1.0):
        raise ValueError("random_fn must return values in [0.0, 1.0]")
    max_jitter = bounded_delay * config.jitter_ratio
    jitter = ((random_value * 2.0) - 1.0) * max_jitter
    return max(0.0, min(config.max_delay_seconds, bounded_delay + jitter))


_ResultT = TypeVar("_ResultT")
RetryCallback: TypeAlias = Callable[[int, FixCapabilityError, float], None]


async def run_with_retries(
    operation: Callable[[], Awaitable[_ResultT]],
    *,
    backoff: BackoffConfig,
    map_exception: Callable[[Exception], FixCapabilityError] = map_unexpected_exception,
    sleep: SleepFn = asyncio.sleep,
    random_fn: RandomFn = random_module.random,
    on_retry: RetryCallback | None = None,
) -> _ResultT:
    """Run ``operation`` with bounded retries on retryable ``FixCapabilityError``s."""

    retry_count = 0
    while True:
        try:
            return await operation()
        except Exception as exc:  # noqa: BLE001
            mapped = map_exception(exc)
            if not isinstance(mapped, FixCapabilityError):
                raise TypeError("map_exception must return FixCapabilityError") from exc

            if not mapped.retryable or retry_count >= backoff.max_retries:
                if mapped is exc:
                    raise
                raise mapped from exc

            retry_count += 1
            delay_seconds = compute_backoff_delay(
                retry_number=retry_count, config=backoff, random_fn=random_fn
            )
            if on_retry is not None:
                on_retry(retry_count, mapped, delay_seconds)
            await sleep(delay_seconds)


__all__ = [
    "BackoffConfig",
    "FilePatch",
    "FixAuthenticationError",
    "FixCapability",
    "FixCapabilityError",
    "FixCapabilityFactory",
    "FixInvalidRequestError",
    "FixRateLimitError",
    "FixRequest",
    "FixResponse",
    "FixResponseError",
    "FixServiceError",
    "FixTimeoutError",
    "FixUnavailableError",
    "RetryCallback",
    "compute_backoff_delay",
    "is_retryable_error",
    "map_unexpected_exception",
    "run_with_retries",
]
