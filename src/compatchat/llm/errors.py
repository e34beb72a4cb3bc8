"""Error taxonomy for chat-completion calls."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class ConfigurationError(ValueError):
    """Raised before any network call when the client cannot build a request."""


class MissingConfigError(ConfigurationError):
    pass


class InputValidationError(ValueError):
    pass


@dataclass(eq=False)
class CallError(RuntimeError):
    message: str
    status_code: int | None = None
    body: Any = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ProviderHTTPError(CallError):
    """Non-2xx response that was not recovered by the budget retry."""


class MalformedResponseError(CallError):
    """2xx response whose body is not a JSON object."""


class RequestCancelledError(RuntimeError):
    def __init__(self, reason: Any = None) -> None:
        self.reason = reason
        super().__init__(f"LLM request cancelled: {reason}" if reason is not None else "LLM request cancelled")


class RequestTimeoutError(RequestCancelledError):
    def __init__(self, message: str = "LLM request timed out") -> None:
        RuntimeError.__init__(self, message)
        self.reason = message
