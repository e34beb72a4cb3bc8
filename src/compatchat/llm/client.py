"""Client interface and shared helpers for chat-completion requests."""

from __future__ import annotations

import json
import re
from typing import Any, Protocol, runtime_checkable

from compatchat.llm.errors import InputValidationError, MissingConfigError
from compatchat.llm.types import CallRequest, CallResult

CHAT_COMPLETIONS_PATH = "/chat/completions"
BUDGET_MARGIN_TOKENS = 256
HTML_SNIFF_CHARS = 400

_BUDGET_ERROR_RE = re.compile(
    r"too large:\s*(\d+).+maximum context length is\s*(\d+)\s*tokens.+request has\s*(\d+)\s*input tokens",
    re.IGNORECASE | re.DOTALL,
)


@runtime_checkable
class LLMClient(Protocol):
    async def chat_completions(self, request: CallRequest) -> CallResult:
        """Execute a single chat-completion call."""

    async def aclose(self) -> None:
        """Release any underlying transport resources."""


def create_client(mode: str, **kwargs: Any) -> LLMClient:
    if mode == "mock":
        from compatchat.llm.mock import MockTransport
        from compatchat.llm.openai_compatible import ChatCompletionClient, ClientConfig

        kwargs.setdefault("base_url", "http://mock.local/v1")
        return ChatCompletionClient(ClientConfig(transport=MockTransport(), **kwargs))
    if mode == "remote":
        from compatchat.llm.openai_compatible import ChatCompletionClient, ClientConfig

        return ChatCompletionClient(ClientConfig(**kwargs))
    raise ValueError(f"Unsupported LLM mode: {mode}")


def build_url(base_url: str | None, path: str) -> str:
    base = str(base_url or "").strip()
    if not base:
        raise MissingConfigError("Missing LLM base_url")
    if not base.endswith("/"):
        base = f"{base}/"
    return base + path.lstrip("/")


def tools_to_legacy_functions(tools: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Flatten ``{"type": "function", "function": {...}}`` entries for the legacy dialect."""
    functions = []
    for tool in tools or []:
        if not isinstance(tool, dict) or tool.get("type") != "function":
            continue
        function = tool.get("function")
        if not isinstance(function, dict) or not isinstance(function.get("name"), str):
            continue
        functions.append(
            {
                "name": function["name"],
                "description": function.get("description"),
                "parameters": function.get("parameters"),
            }
        )
    return functions


def build_request_body(
    request: CallRequest,
    *,
    model: str,
    tool_format: str = "tools",
    max_tokens: int | None = None,
) -> tuple[dict[str, Any], list[str]]:
    """Map a call description onto the wire body.

    ``max_tokens`` is the working budget for this attempt. Returns the body and
    the names of computed fields that ``extra_body`` overrode.
    """
    if not model:
        raise MissingConfigError("Missing LLM model")
    if not isinstance(request.messages, (list, tuple)):
        raise InputValidationError("messages must be a list")

    overrides: list[str] = []
    body: dict[str, Any] = {
        "model": model,
        "messages": list(request.messages),
        "stream": False,
    }

    def add_optional(key: str, value: Any) -> None:
        if value is not None:
            body[key] = value

    if max_tokens and max_tokens > 0:
        body["max_tokens"] = max_tokens
    add_optional("temperature", request.temperature)
    add_optional("top_p", request.top_p)
    add_optional("top_k", request.top_k)
    add_optional("min_p", request.min_p)
    add_optional("repetition_penalty", request.repetition_penalty)

    if request.tools:
        if tool_format == "functions":
            body["functions"] = tools_to_legacy_functions(request.tools)
            add_optional("function_call", request.tool_choice)
        else:
            body["tools"] = request.tools
            add_optional("tool_choice", request.tool_choice)

    for key, value in (request.extra_body or {}).items():
        if value is None:
            continue
        if key in body:
            overrides.append(key)
        body[key] = value

    return body, overrides


def parse_max_tokens_budget_error(message: str | None) -> int | None:
    """Return a safe ``max_tokens`` for a context-overflow rejection, or ``None``.

    Recognizes messages such as "'max_tokens' is too large: 8000. This model's
    maximum context length is 32768 tokens and your request has 25060 input
    tokens". Returns 0 when the input alone fills the context.
    """
    match = _BUDGET_ERROR_RE.search(str(message or ""))
    if match is None:
        return None
    _asked, context_length, input_tokens = (int(group) for group in match.groups())
    if context_length <= 0:
        return None
    remaining = context_length - input_tokens
    if remaining <= 0:
        return 0
    return max(1, remaining - BUDGET_MARGIN_TOKENS)


def should_retry_budget(clamp: int | None, current: Any, retries: int, max_retries: int = 1) -> bool:
    if retries >= max_retries:
        return False
    if not isinstance(clamp, int) or isinstance(clamp, bool) or clamp <= 0:
        return False
    if isinstance(current, bool) or not isinstance(current, (int, float)):
        return False
    if isinstance(current, float) and not current.is_integer():
        return False
    return clamp < current


def parse_json_body(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


def extract_error_message(payload: Any, text: str, status_code: int) -> str:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if payload.get("message"):
            return str(payload["message"])
    if text:
        return text
    return f"HTTP {status_code}"


def looks_like_html(content_type: str | None, text: str) -> bool:
    if "text/html" in str(content_type or "").lower():
        return True
    snippet = (text or "")[:HTML_SNIFF_CHARS].lower()
    return snippet.startswith("<!doctype html") or "<html" in snippet


def malformed_response_hint(status_code: int, content_type: str | None, text: str) -> str:
    snippet = (text or "")[:HTML_SNIFF_CHARS]
    if looks_like_html(content_type, text):
        return (
            "LLM endpoint returned HTML (not JSON). This usually means the base_url is wrong, "
            "the endpoint is not OpenAI-compatible, or an ngrok interstitial is being served. "
            "Verify the server responds with JSON to POST /v1/chat/completions."
        )
    return f"invalid JSON response (status={status_code}, content-type={content_type or 'unknown'}): {snippet}"
