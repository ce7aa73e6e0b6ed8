"""
mobicert — Anthropic-backed fix capability

Purpose
- Request repair patches from a Claude-class model through the Anthropic messages API.

Functional requirements
- The SDK is optional and imported lazily; a missing SDK or key is a non-retryable failure.
- SDK exceptions are normalized into the fix error taxonomy by HTTP status.
- API keys are never logged.
"""

from __future__ import annotations

import asyncio
import importlib
import json
import os
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, cast

import structlog

from mobicert.fixes.contract import (
    FilePatch,
    FixAuthenticationError,
    FixCapabilityError,
    FixInvalidRequestError,
    FixRateLimitError,
    FixRequest,
    FixResponse,
    FixResponseError,
    FixServiceError,
    FixTimeoutError,
    FixUnavailableError,
)
from mobicert.fixes.prompt import render_fix_prompt

DEFAULT_MODEL = "claude-sonnet-4-5"
DEFAULT_API_KEY_ENV = "ANTHROPIC_API_KEY"


class _AnthropicMessagesAPI(Protocol):
    async def create(self, **kwargs: object) -> object: ...


class _AnthropicClient(Protocol):
    messages: _AnthropicMessagesAPI


class AnthropicFixCapability:
    """Fix capability backed by the ``anthropic`` SDK; accepts an injected client for tests."""

    provider_name = "anthropic"

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        api_key_env: str = DEFAULT_API_KEY_ENV,
        max_tokens: int = 8192,
        timeout_seconds: float | None = None,
        client: _AnthropicClient | None = None,
        logger: Any | None = None,
    ) -> None:
        if not model.strip():
            raise ValueError("model cannot be empty")
        if max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self.model = model.strip()
        self._api_key_env = api_key_env
        self._max_tokens = max_tokens
        self._timeout_seconds = timeout_seconds
        self._client = client
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def request_fix(self, request: FixRequest) -> FixResponse:
        client = self._ensure_client()
        prompt = render_fix_prompt(request)
        self._logger.debug(
            "fix_request_sent",
            provider=self.provider_name,
            model=self.model,
            tier=request.tier.value,
            errors=len(request.errors),
            prompt_chars=len(prompt),
        )
        try:
            raw = await client.messages.create(
                model=self.model,
                max_tokens=self._max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except FixCapabilityError:
            raise
        except Exception as exc:  # noqa: BLE001 - SDK errors are normalized below.
            raise self._map_exception(exc) from exc
        return parse_fix_reply(_extract_text(raw))

    def ensure_available(self) -> None:
        """Raise ``FixUnavailableError`` now if the SDK or API key is missing."""

        self._ensure_client()

    def _ensure_client(self) -> _AnthropicClient:
        if self._client is None:
            self._client = self._create_default_client()
        return self._client

    def _create_default_client(self) -> _AnthropicClient:
        try:
            anthropic_module = importlib.import_module("anthropic")
        except ImportError as exc:
            raise FixUnavailableError(
                "anthropic SDK is not installed; install mobicert[anthropic]",
                provider=self.provider_name,
            ) from exc

        async_anthropic = getattr(anthropic_module, "AsyncAnthropic", None)
        if async_anthropic is None:
            raise FixUnavailableError(
                "anthropic SDK does not expose AsyncAnthropic", provider=self.provider_name
            )

        api_key = os.getenv(self._api_key_env)
        if api_key is None or not api_key.strip():
            raise FixUnavailableError(
                f"missing Anthropic API key; set {self._api_key_env}",
                provider=self.provider_name,
            )
        init_kwargs: dict[str, object] = {"api_key": api_key}
        if self._timeout_seconds is not None:
            init_kwargs["timeout"] = self._timeout_seconds
        return cast("_AnthropicClient", async_anthropic(**init_kwargs))

    def _map_exception(self, exc: Exception) -> FixCapabilityError:
        status_code = _read_status_code(exc)
        class_name = exc.__class__.__name__.lower()
        detail = _exception_detail(exc)
        provider = self.provider_name

        if status_code in {401, 403} or "auth" in class_name or "permission" in class_name:
            return FixAuthenticationError(detail, provider=provider, http_status=status_code)
        if status_code == 429 or "ratelimit" in class_name:
            return FixRateLimitError(detail, provider=provider, http_status=status_code)
        if isinstance(exc, asyncio.TimeoutError) or "timeout" in class_name:
            return FixTimeoutError(detail, provider=provider)
        if status_code in {400, 404, 409, 422} or "badrequest" in class_name:
            return FixInvalidRequestError(detail, provider=provider, http_status=status_code)
        if status_code is not None and status_code >= 500:
            return FixServiceError(
                detail, provider=provider, retryable=True, http_status=status_code
            )
        if "connection" in class_name or "overloaded" in class_name:
            return FixServiceError(detail, provider=provider, retryable=True)
        return FixServiceError(detail, provider=provider, retryable=False)


def parse_fix_reply(text: str) -> FixResponse:
    """Turn the model's JSON reply into a ``FixResponse``; anything malformed is fatal."""

    payload = _load_reply_object(text)
    raw_patches = payload.get("patches", [])
    if not isinstance(raw_patches, list):
        raise FixResponseError("'patches' must be an array", provider="anthropic")

    patches: list[FilePatch] = []
    for index, item in enumerate(raw_patches):
        if not isinstance(item, Mapping):
            raise FixResponseError(f"patch #{index} must be an object", provider="anthropic")
        try:
            patches.append(
                FilePatch(
                    path=cast("str", item.get("path")),
                    content=cast("str | None", item.get("content")),
                    delete=bool(item.get("delete", False)),
                )
            )
        except ValueError as exc:
            raise FixResponseError(f"patch #{index}: {exc}", provider="anthropic") from exc

    description = payload.get("description")
    return FixResponse(
        success=bool(patches),
        patches=tuple(patches),
        description=description.strip() if isinstance(description, str) else "",
    )


def _load_reply_object(text: str) -> dict[str, object]:
    stripped = text.strip()
    if stripped.startswith("```"):
        # Tolerate a single fenced block around the JSON object.
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        stripped = stripped.rsplit("```", 1)[0]
    start, end = stripped.find("{"), stripped.rfind("}")
    if start < 0 or end <= start:
        raise FixResponseError("reply does not contain a JSON object", provider="anthropic")
    try:
        payload = json.loads(stripped[start : end + 1])
    except json.JSONDecodeError as exc:
        raise FixResponseError(f"reply is not valid JSON: {exc}", provider="anthropic") from exc
    if not isinstance(payload, dict):
        raise FixResponseError("reply JSON root must be an object", provider="anthropic")
    return payload


def _extract_text(raw_response: object) -> str:
    content = _read_value(raw_response, "content")
    chunks: list[str] = []
    if isinstance(content, Sequence) and not isinstance(content, (str, bytes)):
        for block in content:
            if (_read_value(block, "type") or "text") == "text":
                text = _read_value(block, "text")
                if isinstance(text, str):
                    chunks.append(text)
    elif isinstance(content, str):
        chunks.append(content)
    combined = "\n".join(chunk for chunk in chunks if chunk.strip())
    if not combined:
        raise FixResponseError("response does not contain text", provider="anthropic")
    return combined


def _read_value(value: object, key: str) -> object | None:
    if isinstance(value, Mapping):
        return cast("object | None", value.get(key))
    return cast("object | None", getattr(value, key, None))


def _exception_detail(exc: BaseException) -> str:
    text = str(exc).strip()
    if text:
        return " ".join(text.split())
    return exc.__class__.__name__


def _read_status_code(exc: BaseException) -> int | None:
    for key in ("status_code", "status", "http_status"):
        value = getattr(exc, key, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    if response is not None:
        nested = getattr(response, "status_code", None)
        if isinstance(nested, int):
            return nested
    return None


__all__ = ["DEFAULT_API_KEY_ENV", "DEFAULT_MODEL", "AnthropicFixCapability", "parse_fix_reply"]
