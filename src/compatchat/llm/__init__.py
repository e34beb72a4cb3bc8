"""Chat-completion client for OpenAI-compatible endpoints."""

from compatchat.llm.cancellation import CancellationToken, compose_cancellation, composed_cancellation
from compatchat.llm.client import (
    LLMClient,
    build_request_body,
    build_url,
    create_client,
    parse_max_tokens_budget_error,
    tools_to_legacy_functions,
)
from compatchat.llm.errors import (
    CallError,
    ConfigurationError,
    InputValidationError,
    MalformedResponseError,
    MissingConfigError,
    ProviderHTTPError,
    RequestCancelledError,
    RequestTimeoutError,
)
from compatchat.llm.headers import headers_for_url
from compatchat.llm.mock import MockTransport
from compatchat.llm.openai_compatible import ChatCompletionClient, ClientConfig
from compatchat.llm.tool_calls import extract_tool_calls
from compatchat.llm.transport import HttpxTransport
from compatchat.llm.types import CallRequest, CallResult, ToolCall, TransportRequest, TransportResponse

__all__ = [
    "CallError",
    "CallRequest",
    "CallResult",
    "CancellationToken",
    "ChatCompletionClient",
    "ClientConfig",
    "ConfigurationError",
    "HttpxTransport",
    "InputValidationError",
    "LLMClient",
    "MalformedResponseError",
    "MissingConfigError",
    "MockTransport",
    "ProviderHTTPError",
    "RequestCancelledError",
    "RequestTimeoutError",
    "ToolCall",
    "TransportRequest",
    "TransportResponse",
    "build_request_body",
    "build_url",
    "compose_cancellation",
    "composed_cancellation",
    "create_client",
    "extract_tool_calls",
    "headers_for_url",
    "parse_max_tokens_budget_error",
    "tools_to_legacy_functions",
]
