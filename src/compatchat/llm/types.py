"""Core request/response types for chat-completion calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Literal, Mapping, Sequence

if TYPE_CHECKING:
    from compatchat.llm.cancellation import CancellationToken

ToolFormat = Literal["tools", "functions"]


@dataclass(frozen=True)
class ToolCall:
    name: str
    arguments: dict[str, Any]
    id: str | None = None


@dataclass(frozen=True)
class TransportRequest:
    method: str
    url: str
    headers: dict[str, str]
    content: str


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    text: str
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


Transport = Callable[[TransportRequest, "CancellationToken | None"], Awaitable[TransportResponse]]
HeaderSelector = Callable[[str], Mapping[str, str]]
ToolCallExtractor = Callable[[dict[str, Any]], list[ToolCall]]


@dataclass
class CallRequest:
    messages: Sequence[dict[str, Any]]
    model: str | None = None
    tools: list[dict[str, Any]] | None = None
    tool_choice: dict[str, Any] | str | None = "auto"
    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    min_p: float | None = None
    repetition_penalty: float | None = None
    extra_body: dict[str, Any] = field(default_factory=dict)
    cancel_token: CancellationToken | None = None


@dataclass
class CallResult:
    raw: dict[str, Any]
    message: dict[str, Any] | None
    content: str
    tool_calls: list[ToolCall]
    finish_reason: str | None
    usage: dict[str, Any] | None
    retries: int = 0
    max_tokens: int | None = None
