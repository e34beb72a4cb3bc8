"""Settings models and loaders for the ``llm`` setup block."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import math
import os
from pathlib import Path
from typing import Any, Mapping, Sequence

from compatchat.llm.errors import ConfigurationError, MissingConfigError
from compatchat.llm.openai_compatible import ClientConfig
from compatchat.llm.types import CallRequest, Transport

DEFAULT_SETUP_PATH = "compatchat.setup.json"
DEFAULT_TIMEOUT_MS = 120_000
ENV_PREFIX = "COMPATCHAT_"

_EMPTY_API_KEYS = {"not-required", "none", "null", "undefined"}


@dataclass(frozen=True)
class LLMSettings:
    base_url: str
    model: str
    api_key: str = ""
    max_tokens: int = 0
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    min_p: float | None = None
    repetition_penalty: float | None = None
    tool_format: str = "tools"
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    response_format: dict[str, Any] | None = None
    extra_body: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "base_url": self.base_url,
            "model": self.model,
            "api_key_present": bool(self.api_key),
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "top_k": self.top_k,
            "min_p": self.min_p,
            "repetition_penalty": self.repetition_penalty,
            "tool_format": self.tool_format,
            "timeout_ms": self.timeout_ms,
            "response_format": self.response_format,
            "extra_body": self.extra_body,
        }

    def client_config(self, *, transport: Transport | None = None) -> ClientConfig:
        return ClientConfig(
            base_url=self.base_url,
            api_key=self.api_key,
            default_model=self.model,
            timeout_s=self.timeout_ms / 1000.0 if self.timeout_ms > 0 else None,
            tool_format=self.tool_format,
            transport=transport,
        )

    def call_request(self, messages: Sequence[dict[str, Any]], **overrides: Any) -> CallRequest:
        extra_body = dict(self.extra_body)
        if self.response_format is not None:
            extra_body.setdefault("response_format", self.response_format)
        values: dict[str, Any] = {
            "messages": messages,
            "max_tokens": self.max_tokens or None,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "top_k": self.top_k,
            "min_p": self.min_p,
            "repetition_penalty": self.repetition_penalty,
            "extra_body": extra_body,
        }
        values.update(overrides)
        return CallRequest(**values)


def load_llm_settings(path: Path) -> LLMSettings:
    try:
        raw = json.loads(path.read_text(encoding="utf-8").strip() or "{}")
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Setup file not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Invalid JSON: {path}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Setup must be a JSON object: {path}")
    llm = raw.get("llm")
    return settings_from_mapping(llm if isinstance(llm, dict) else {}, source=str(path))


def settings_from_env(environ: Mapping[str, str] | None = None) -> LLMSettings:
    env = os.environ if environ is None else environ
    data = {
        "base_url": env.get(f"{ENV_PREFIX}BASE_URL"),
        "api_key": env.get(f"{ENV_PREFIX}API_KEY"),
        "model": env.get(f"{ENV_PREFIX}MODEL"),
        "max_tokens": env.get(f"{ENV_PREFIX}MAX_TOKENS"),
        "tool_format": env.get(f"{ENV_PREFIX}TOOL_FORMAT"),
        "timeout_ms": env.get(f"{ENV_PREFIX}TIMEOUT_MS"),
    }
    return settings_from_mapping(data, source="environment")


def settings_from_mapping(data: Mapping[str, Any], *, source: str = "config") -> LLMSettings:
    base_url = _normalize_string(data.get("base_url"))
    model = _normalize_string(data.get("model"))
    if not base_url:
        raise MissingConfigError(f"Missing llm.base_url in {source}")
    if not model:
        raise MissingConfigError(f"Missing llm.model in {source}")

    response_format = data.get("response_format")
    extra_body = data.get("extra_body")
    return LLMSettings(
        base_url=base_url,
        model=model,
        api_key=normalize_api_key(data.get("api_key")),
        max_tokens=parse_int_like(data.get("max_tokens"), 0) or 0,
        temperature=parse_float_like(data.get("temperature")),
        top_p=parse_float_like(data.get("top_p")),
        top_k=parse_int_like(data.get("top_k")),
        min_p=parse_float_like(data.get("min_p")),
        repetition_penalty=parse_float_like(data.get("repetition_penalty")),
        tool_format=_normalize_string(data.get("tool_format")) or "tools",
        timeout_ms=parse_int_like(data.get("timeout_ms"), DEFAULT_TIMEOUT_MS),
        response_format=response_format if isinstance(response_format, dict) else None,
        extra_body=dict(extra_body) if isinstance(extra_body, dict) else {},
    )


def normalize_api_key(value: Any) -> str:
    key = _normalize_string(value)
    if key.lower() in _EMPTY_API_KEYS:
        return ""
    return key


def parse_int_like(value: Any, fallback: int | None = None) -> int | None:
    if value is None or value == "" or isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else fallback
    try:
        return int(str(value).strip())
    except ValueError:
        return fallback


def parse_float_like(value: Any, fallback: float | None = None) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return fallback
    try:
        number = float(str(value).strip()) if not isinstance(value, (int, float)) else float(value)
    except ValueError:
        return fallback
    return number if math.isfinite(number) else fallback


def _normalize_string(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
