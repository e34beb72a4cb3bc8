"""Client for OpenAI-compatible ``/chat/completions`` endpoints."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import time
from typing import Any

from compatchat.llm.cancellation import composed_cancellation, run_cancellable
from compatchat.llm.client import (
    CHAT_COMPLETIONS_PATH,
    build_request_body,
    build_url,
    extract_error_message,
    malformed_response_hint,
    parse_json_body,
    parse_max_tokens_budget_error,
    should_retry_budget,
)
from compatchat.llm.errors import MalformedResponseError, MissingConfigError, ProviderHTTPError
from compatchat.llm.headers import headers_for_url
from compatchat.llm.tool_calls import extract_tool_calls
from compatchat.llm.types import (
    CallRequest,
    CallResult,
    HeaderSelector,
    ToolCallExtractor,
    Transport,
    TransportRequest,
    TransportResponse,
)

logger = logging.getLogger(__name__)

MAX_BUDGET_RETRIES = 1
DEFAULT_TIMEOUT_S = 120.0


@dataclass(frozen=True)
class ClientConfig:
    base_url: str
    api_key: str = ""
    default_model: str = ""
    timeout_s: float | None = DEFAULT_TIMEOUT_S
    tool_format: str = "tools"
    transport: Transport | None = None
    header_selector: HeaderSelector = field(default=headers_for_url)
    tool_call_extractor: ToolCallExtractor = field(default=extract_tool_calls)

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", str(self.base_url or "").strip())
        object.__setattr__(self, "api_key", str(self.api_key or "").strip())
        object.__setattr__(self, "default_model", str(self.default_model or "").strip())
        tool_format = str(self.tool_format or "").strip()
        object.__setattr__(self, "tool_format", "functions" if tool_format == "functions" else "tools")


class ChatCompletionClient:
    """Chat-completion client with a single budget-overflow retry.

    Holds no per-call state, so one instance can serve concurrent calls.
    """

    def __init__(self, config: ClientConfig) -> None:
        self._config = config
        self._owns_transport = config.transport is None
        if config.transport is None:
            from compatchat.llm.transport import HttpxTransport

            self._transport: Transport = HttpxTransport()
        else:
            self._transport = config.transport

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def chat_completions(self, request: CallRequest) -> CallResult:
        url = build_url(self._config.base_url, CHAT_COMPLETIONS_PATH)
        model = (str(request.model).strip() if request.model else "") or self._config.default_model
        if not model:
            raise MissingConfigError("Missing LLM model")

        max_tokens = request.max_tokens
        retries = 0
        start = time.monotonic()
        response = await self._attempt(url, model, request, max_tokens)
        payload = parse_json_body(response.text)

        while not response.is_success:
            message = extract_error_message(payload, response.text, response.status_code)
            clamp = parse_max_tokens_budget_error(message)
            if not should_retry_budget(clamp, max_tokens, retries, MAX_BUDGET_RETRIES):
                raise ProviderHTTPError(
                    f"LLM error: {message}",
                    status_code=response.status_code,
                    body=payload if payload is not None else response.text,
                )
            logger.warning(
                "max_tokens=%s exceeds remaining context; retrying with max_tokens=%s",
                max_tokens,
                clamp,
            )
            retries += 1
            max_tokens = clamp
            response = await self._attempt(url, model, request, max_tokens)
            payload = parse_json_body(response.text)

        if not isinstance(payload, dict):
            hint = malformed_response_hint(response.status_code, response.header("content-type"), response.text)
            raise MalformedResponseError(
                f"LLM error: {hint}",
                status_code=response.status_code,
                body=response.text,
            )

        result = self._build_result(payload, retries=retries, max_tokens=max_tokens)
        logger.info(
            "Chat completion: finish=%s, tool_calls=%d, retries=%d, latency=%.0fms",
            result.finish_reason,
            len(result.tool_calls),
            retries,
            1000 * (time.monotonic() - start),
        )
        return result

    async def _attempt(
        self,
        url: str,
        model: str,
        request: CallRequest,
        max_tokens: int | None,
    ) -> TransportResponse:
        body, overrides = build_request_body(
            request,
            model=model,
            tool_format=self._config.tool_format,
            max_tokens=max_tokens,
        )
        if overrides:
            logger.debug("extra_body overrides computed fields: %s", ", ".join(overrides))
        logger.debug(
            "Calling chat completions: model=%s, messages=%d, tools=%d, max_tokens=%s",
            model,
            len(body["messages"]),
            len(request.tools or []),
            body.get("max_tokens"),
        )

        headers = {"Content-Type": "application/json"}
        headers.update(self._config.header_selector(url))
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        transport_request = TransportRequest(
            method="POST",
            url=url,
            headers=headers,
            content=json.dumps(body),
        )
        with composed_cancellation(request.cancel_token, self._config.timeout_s) as token:
            return await run_cancellable(self._transport(transport_request, token), token)

    def _build_result(self, payload: dict[str, Any], *, retries: int, max_tokens: int | None) -> CallResult:
        tool_calls = self._config.tool_call_extractor(payload)
        choices = payload.get("choices")
        choice = choices[0] if isinstance(choices, list) and choices else None
        if not isinstance(choice, dict):
            choice = {}
        message = choice.get("message")
        if not isinstance(message, dict):
            message = None
        content = message.get("content") if message else None
        return CallResult(
            raw=payload,
            message=message,
            content=content if isinstance(content, str) else "",
            tool_calls=list(tool_calls),
            finish_reason=choice.get("finish_reason"),
            usage=payload.get("usage"),
            retries=retries,
            max_tokens=max_tokens if max_tokens and max_tokens > 0 else None,
        )

    async def aclose(self) -> None:
        if self._owns_transport:
            await self._transport.aclose()  # type: ignore[attr-defined]

    async def __aenter__(self) -> "ChatCompletionClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
