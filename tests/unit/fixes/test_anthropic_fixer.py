"""
Unit tests for the Anthropic-backed fix capability.

Coverage:
- Request shape sent to the messages API and reply normalization into patches.
- SDK exception mapping into the fix error taxonomy.
- Missing credentials surface as a non-retryable unavailable error.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

import pytest

from mobicert.domain.models import ErrorKind, ErrorRecord, Tier
from mobicert.fixes.anthropic_fixer import AnthropicFixCapability, parse_fix_reply
from mobicert.fixes.contract import (
    FilePatch,
    FixAuthenticationError,
    FixInvalidRequestError,
    FixRateLimitError,
    FixRequest,
    FixResponseError,
    FixServiceError,
    FixTimeoutError,
    FixUnavailableError,
)


@dataclass(slots=True)
class _ScriptedMessages:
    outcomes: deque[object | Exception]
    calls: list[dict[str, object]] = field(default_factory=list)

    async def create(self, **kwargs: object) -> object:
        self.calls.append(dict(kwargs))
        outcome = self.outcomes.popleft()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@dataclass(slots=True)
class _FakeClient:
    messages: _ScriptedMessages


@dataclass(slots=True)
class _TextBlock:
    text: str
    type: str = "text"


@dataclass(slots=True)
class _Message:
    content: list[object]


class RateLimitError(Exception):
    status_code = 429


class AuthenticationError(Exception):
    status_code = 401


class BadRequestError(Exception):
    status_code = 400


class InternalServerError(Exception):
    status_code = 529


class APIConnectionError(Exception):
    pass


class APITimeoutError(Exception):
    pass


def _request() -> FixRequest:
    return FixRequest(
        tier=Tier.TIER1,
        errors=(
            ErrorRecord(
                kind=ErrorKind.TYPE_CHECK,
                message="Cannot find name 'foo'.",
                file="App.tsx",
                line=4,
                code="TS2304",
            ),
        ),
        affected_files=("App.tsx",),
    )


def _capability(*outcomes: object | Exception) -> tuple[AnthropicFixCapability, _ScriptedMessages]:
    messages = _ScriptedMessages(outcomes=deque(outcomes))
    capability = AnthropicFixCapability(
        model="claude-test", max_tokens=512, client=_FakeClient(messages=messages)
    )
    return capability, messages


async def test_request_fix_sends_prompt_and_parses_patches() -> None:
    reply = _Message(
        content=[
            _TextBlock(
                text='{"description": "declare foo", '
                '"patches": [{"path": "App.tsx", "content": "const foo = 1;\\n"}]}'
            )
        ]
    )
    capability, messages = _capability(reply)

    response = await capability.request_fix(_request())

    assert response.success
    assert response.patches == (FilePatch(path="App.tsx", content="const foo = 1;\n"),)
    assert response.files_modified == ("App.tsx",)
    assert response.description == "declare foo"
    (call,) = messages.calls
    assert call["model"] == "claude-test"
    assert call["max_tokens"] == 512
    prompt = call["messages"][0]["content"]
    assert "App.tsx:4: Cannot find name 'foo'." in prompt


@pytest.mark.parametrize(
    ("raised", "expected", "retryable"),
    [
        (RateLimitError("slow down"), FixRateLimitError, True),
        (AuthenticationError("bad key"), FixAuthenticationError, False),
        (BadRequestError("prompt too long"), FixInvalidRequestError, False),
        (InternalServerError("overloaded"), FixServiceError, True),
        (APIConnectionError("reset by peer"), FixServiceError, True),
        (APITimeoutError("read timed out"), FixTimeoutError, True),
        (ValueError("weird"), FixServiceError, False),
    ],
)
async def test_sdk_errors_are_normalized(raised, expected, retryable) -> None:
    capability, _ = _capability(raised)
    with pytest.raises(expected) as excinfo:
        await capability.request_fix(_request())
    assert excinfo.value.retryable is retryable
    assert excinfo.value.provider == "anthropic"


async def test_missing_api_key_is_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MOBICERT_TEST_MISSING_KEY", raising=False)
    capability = AnthropicFixCapability(api_key_env="MOBICERT_TEST_MISSING_KEY")
    with pytest.raises(FixUnavailableError) as excinfo:
        capability.ensure_available()
    assert not excinfo.value.retryable
    assert excinfo.value.code == "unavailable"


def test_constructor_validation() -> None:
    with pytest.raises(ValueError):
        AnthropicFixCapability(model="  ")
    with pytest.raises(ValueError):
        AnthropicFixCapability(max_tokens=0)
    with pytest.raises(ValueError):
        AnthropicFixCapability(timeout_seconds=0)


def test_parse_fix_reply_accepts_fenced_json_and_deletes() -> None:
    response = parse_fix_reply(
        '```json\n{"patches": [{"path": "src/old.ts", "delete": true}]}\n```'
    )
    assert response.patches == (FilePatch(path="src/old.ts", delete=True),)
    assert response.description == ""


def test_parse_fix_reply_without_patches_is_unsuccessful() -> None:
    response = parse_fix_reply('{"description": "cannot fix this", "patches": []}')
    assert not response.success
    assert response.description == "cannot fix this"


@pytest.mark.parametrize(
    "reply",
    [
        "I could not find a fix.",
        '{"patches": {"path": "a.ts"}}',
        '{"patches": ["a.ts"]}',
        '{"patches": [{"path": "../outside.ts", "content": "x"}]}',
        '{"patches": [{"path": "a.ts"}]}',
        "{not json}",
    ],
)
def test_malformed_replies_are_fatal(reply: str) -> None:
    with pytest.raises(FixResponseError) as excinfo:
        parse_fix_reply(reply)
    assert excinfo.value.code == "response_invalid"
    assert not excinfo.value.retryable
