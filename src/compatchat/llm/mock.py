"""Mock transport for offline use and testing."""

from __future__ import annotations

import asyncio
import hashlib
import json
from typing import Any, Iterable

from compatchat.llm.cancellation import CancellationToken, run_cancellable
from compatchat.llm.types import TransportRequest, TransportResponse


class MockTransport:
    """Answers chat-completion requests without network access.

    Scripted responses are served first, in order; once exhausted, a stable
    reply derived from the request body is generated.
    """

    def __init__(
        self,
        responses: Iterable[TransportResponse] | None = None,
        *,
        latency_ms: int = 0,
    ) -> None:
        self._responses = list(responses or [])
        self._latency_ms = latency_ms
        self.requests: list[TransportRequest] = []

    @property
    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    async def __call__(
        self,
        request: TransportRequest,
        cancel_token: CancellationToken | None = None,
    ) -> TransportResponse:
        self.requests.append(request)
        if self._latency_ms > 0:
            await run_cancellable(asyncio.sleep(self._latency_ms / 1000.0), cancel_token)
        if self._responses:
            return self._responses.pop(0)
        body = json.loads(request.content)
        return TransportResponse(
            status_code=200,
            text=json.dumps(_mock_completion(body)),
            headers={"content-type": "application/json"},
        )

    async def aclose(self) -> None:
        return


def _mock_completion(body: dict[str, Any]) -> dict[str, Any]:
    model = str(body.get("model", ""))
    messages = body.get("messages") or []
    text = _mock_text(model, messages)
    prompt_text = " ".join(str(message) for message in messages)
    prompt_tokens = max(1, len(prompt_text) // 4)
    completion_tokens = max(1, len(text) // 4)
    max_tokens = body.get("max_tokens")
    finish_reason = "stop"
    if isinstance(max_tokens, int) and completion_tokens > max_tokens:
        finish_reason = "length"
    return {
        "id": "mock",
        "object": "chat.completion",
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": text},
                "finish_reason": finish_reason,
            }
        ],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }


def _mock_text(model: str, messages: list[Any]) -> str:
    hasher = hashlib.sha256()
    hasher.update(model.encode("utf-8"))
    for message in messages:
        hasher.update(str(message).encode("utf-8"))
    return f"Mock reply {hasher.hexdigest()[:8]} from {model or 'unknown model'}."
