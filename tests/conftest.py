from __future__ import annotations

from typing import Any

import pytest
import pytest_asyncio

from compatchat.llm.openai_compatible import ChatCompletionClient, ClientConfig

from tests.utils import OK_PAYLOAD, ScriptedTransport, json_response


@pytest.fixture
def make_client():
    def _make(transport, **kwargs: Any) -> ChatCompletionClient:
        kwargs.setdefault("base_url", "http://llm.local/v1")
        kwargs.setdefault("default_model", "m")
        return ChatCompletionClient(ClientConfig(transport=transport, **kwargs))

    return _make


@pytest_asyncio.fixture
async def ok_transport():
    return ScriptedTransport(json_response(200, OK_PAYLOAD))
