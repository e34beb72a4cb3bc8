"""Normalize tool invocations out of a chat-completion payload."""

from __future__ import annotations

import json
import logging
from typing import Any

from compatchat.llm.types import ToolCall

logger = logging.getLogger(__name__)


def extract_tool_calls(payload: dict[str, Any]) -> list[ToolCall]:
    """Return tool calls from ``choices[0].message`` in either dialect.

    Modern ``tool_calls`` entries come first; a legacy ``function_call`` is
    appended when present. Entries without a name are skipped.
    """
    message = _first_message(payload)
    if message is None:
        return []

    calls: list[ToolCall] = []
    for entry in message.get("tool_calls") or []:
        if not isinstance(entry, dict):
            continue
        function = entry.get("function")
        if not isinstance(function, dict):
            continue
        name = function.get("name")
        if not isinstance(name, str) or not name:
            continue
        call_id = entry.get("id")
        calls.append(
            ToolCall(
                name=name,
                arguments=_parse_arguments(function.get("arguments"), name),
                id=call_id if isinstance(call_id, str) else None,
            )
        )

    legacy = message.get("function_call")
    if isinstance(legacy, dict):
        name = legacy.get("name")
        if isinstance(name, str) and name:
            calls.append(ToolCall(name=name, arguments=_parse_arguments(legacy.get("arguments"), name)))

    return calls


def _first_message(payload: dict[str, Any]) -> dict[str, Any] | None:
    choices = payload.get("choices") if isinstance(payload, dict) else None
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    message = choice.get("message")
    return message if isinstance(message, dict) else None


def _parse_arguments(raw: Any, name: str) -> dict[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Failed to parse arguments for tool %s: %s", name, raw)
            return {}
        if isinstance(parsed, dict):
            return parsed
    logger.warning("Ignoring non-object arguments for tool %s: %r", name, raw)
    return {}
