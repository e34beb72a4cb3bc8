from __future__ import annotations

import pytest

from compatchat.llm.client import parse_max_tokens_budget_error, should_retry_budget
from compatchat.llm.errors import ProviderHTTPError
from compatchat.llm.types import CallRequest

from tests.utils import OK_PAYLOAD, ScriptedTransport, json_response

OVERFLOW_MESSAGE = (
    "'max_tokens' is too large: 8000. This model's maximum context length is 32768 tokens "
    "and your request has 25060 input tokens (8000 > 32768-25060)."
)


def _overflow(asked: int, ctx: int, input_tokens: int):
    message = (
        f"'max_tokens' or 'max_completion_tokens' is too large: {asked}. This model's maximum "
        f"context length is {ctx} tokens and your request has {input_tokens} input tokens "
        f"({asked} > {ctx} - {input_tokens})."
    )
    return json_response(400, {"error": {"message": message}})


def _request(max_tokens) -> CallRequest:
    return CallRequest(messages=[{"role": "user", "content": "hi"}], max_tokens=max_tokens)


def test_parse_budget_error_computes_margin() -> None:
    assert parse_max_tokens_budget_error(OVERFLOW_MESSAGE) == 32768 - 25060 - 256


def test_parse_budget_error_is_case_insensitive_and_spans_lines() -> None:
    message = "TOO LARGE: 10\nMaximum Context Length Is 1000 Tokens\nyour Request Has 100 Input Tokens"
    assert parse_max_tokens_budget_error(message) == 1000 - 100 - 256


def test_parse_budget_error_floors_at_one() -> None:
    message = "too large: 500. maximum context length is 1000 tokens, request has 900 input tokens"
    assert parse_max_tokens_budget_error(message) == 1


def test_parse_budget_error_returns_zero_when_input_fills_context() -> None:
    message = "too large: 500. maximum context length is 1000 tokens, request has 1000 input tokens"
    assert parse_max_tokens_budget_error(message) == 0


@pytest.mark.parametrize(
    "message",
    [
        "",
        None,
        "rate limited",
        "too large: 500. maximum context length is 0 tokens, request has 10 input tokens",
        "prompt is too long for this model",
    ],
)
def test_parse_budget_error_ignores_other_messages(message) -> None:
    assert parse_max_tokens_budget_error(message) is None


@pytest.mark.parametrize(
    ("clamp", "current", "retries", "expected"),
    [
        (100, 200, 0, True),
        (100, 200, 1, False),
        (200, 200, 0, False),
        (300, 200, 0, False),
        (0, 200, 0, False),
        (None, 200, 0, False),
        (100, None, 0, False),
        (100, 200.5, 0, False),
        (100, 200.0, 0, True),
        (100, True, 0, False),
    ],
)
def test_should_retry_budget(clamp, current, retries, expected) -> None:
    assert should_retry_budget(clamp, current, retries) is expected


@pytest.mark.asyncio
async def test_overflow_retries_once_with_clamped_budget(make_client) -> None:
    transport = ScriptedTransport(
        json_response(400, {"error": {"message": OVERFLOW_MESSAGE}}),
        json_response(200, OK_PAYLOAD),
    )
    result = await make_client(transport).chat_completions(_request(8000))

    assert [body["max_tokens"] for body in transport.bodies] == [8000, 7452]
    assert result.retries == 1
    assert result.max_tokens == 7452
    assert result.content == "hello"


@pytest.mark.asyncio
async def test_whole_float_budget_is_retried(make_client) -> None:
    transport = ScriptedTransport(
        json_response(400, {"error": {"message": OVERFLOW_MESSAGE}}),
        json_response(200, OK_PAYLOAD),
    )
    result = await make_client(transport).chat_completions(_request(8000.0))

    assert [body["max_tokens"] for body in transport.bodies] == [8000, 7452]
    assert result.retries == 1
    assert result.content == "hello"


@pytest.mark.asyncio
async def test_retry_rebuilds_only_the_budget_field(make_client) -> None:
    transport = ScriptedTransport(_overflow(4000, 8192, 6000), json_response(200, OK_PAYLOAD))
    request = CallRequest(
        messages=[{"role": "user", "content": "hi"}],
        max_tokens=4000,
        temperature=0.3,
        extra_body={"seed": 7},
    )
    await make_client(transport).chat_completions(request)

    first, second = transport.bodies
    assert second["max_tokens"] == 8192 - 6000 - 256
    first.pop("max_tokens")
    second.pop("max_tokens")
    assert first == second


@pytest.mark.asyncio
async def test_retry_counter_is_capped_at_one(make_client) -> None:
    transport = ScriptedTransport(
        _overflow(8000, 32768, 25060),
        _overflow(7452, 32768, 32000),
    )
    with pytest.raises(ProviderHTTPError) as excinfo:
        await make_client(transport).chat_completions(_request(8000))

    assert len(transport.requests) == 2
    assert excinfo.value.status_code == 400


@pytest.mark.asyncio
async def test_no_retry_when_clamp_is_not_smaller(make_client) -> None:
    transport = ScriptedTransport(_overflow(100, 32768, 1000))
    with pytest.raises(ProviderHTTPError):
        await make_client(transport).chat_completions(_request(100))
    assert len(transport.requests) == 1


@pytest.mark.asyncio
async def test_no_retry_when_context_is_exhausted(make_client) -> None:
    transport = ScriptedTransport(_overflow(8000, 4096, 5000))
    with pytest.raises(ProviderHTTPError):
        await make_client(transport).chat_completions(_request(8000))
    assert len(transport.requests) == 1


@pytest.mark.asyncio
async def test_no_retry_without_requested_budget(make_client) -> None:
    transport = ScriptedTransport(_overflow(8000, 32768, 25060))
    with pytest.raises(ProviderHTTPError):
        await make_client(transport).chat_completions(_request(None))
    assert len(transport.requests) == 1
    assert "max_tokens" not in transport.bodies[0]


@pytest.mark.asyncio
async def test_other_http_errors_surface_immediately(make_client) -> None:
    transport = ScriptedTransport(json_response(429, {"error": {"message": "rate limited"}}))
    with pytest.raises(ProviderHTTPError) as excinfo:
        await make_client(transport).chat_completions(_request(8000))

    error = excinfo.value
    assert str(error) == "LLM error: rate limited"
    assert error.status_code == 429
    assert error.body == {"error": {"message": "rate limited"}}
    assert len(transport.requests) == 1
