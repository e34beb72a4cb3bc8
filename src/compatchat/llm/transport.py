"""httpx-backed transport for chat-completion calls."""

from __future__ import annotations

import httpx

from compatchat.llm.cancellation import CancellationToken, run_cancellable
from compatchat.llm.types import TransportRequest, TransportResponse


class HttpxTransport:
    """Performs one HTTP exchange per call and returns the raw response text.

    Timeouts are enforced by the caller's cancellation token, so the underlying
    client is created without one unless ``timeout_s`` is given. An owned client
    follows redirects; ``http_transport`` swaps its network layer.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout_s,
            follow_redirects=True,
            transport=http_transport,
        )

    async def __call__(
        self,
        request: TransportRequest,
        cancel_token: CancellationToken | None = None,
    ) -> TransportResponse:
        response = await run_cancellable(
            self._client.request(
                request.method,
                request.url,
                content=request.content.encode("utf-8"),
                headers=request.headers,
            ),
            cancel_token,
        )
        return TransportResponse(
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
