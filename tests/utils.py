from __future__ import annotations

import json
from typing import Any

from compatchat.llm.cancellation import CancellationToken
from compatchat.llm.types import TransportRequest, TransportResponse

OK_PAYLOAD = {
    "choices": [{"message": {"content": "hello"}, "finish_reason": "stop"}],
    "usage": {"total_tokens": 5},
}


def json_response(status_code: int, payload: Any, content_type: str = "application/json") -> TransportResponse:
    return TransportResponse(
        status_code=status_code,
        text=json.dumps(payload),
        headers={"content-type": content_type},
    )


class ScriptedTransport:
    """Replays canned responses and records every request it receives."""

    def __init__(self, *responses: TransportResponse) -> None:
        self._responses = list(responses)
        self.requests: list[TransportRequest] = []
        self.tokens: list[CancellationToken | None] = []

    @property
    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    async def __call__(
        self,
        request: TransportRequest,
        cancel_token: CancellationToken | None = None,
    ) -> TransportResponse:
        self.requests.append(request)
        self.tokens.append(cancel_token)
        if not self._responses:
            raise AssertionError("ScriptedTransport ran out of responses")
        return self._responses.pop(0)
