from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from compatchat.config import (
    DEFAULT_TIMEOUT_MS,
    load_llm_settings,
    normalize_api_key,
    parse_float_like,
    parse_int_like,
    settings_from_env,
)
from compatchat.env import load_dotenv
from compatchat.llm.errors import ConfigurationError, MissingConfigError


def _write(tmp_path: Path, payload) -> Path:
    path = tmp_path / "setup.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_llm_settings_parses_lenient_values(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        {
            "llm": {
                "base_url": " http://127.0.0.1:8000/v1 ",
                "api_key": "not-required",
                "model": "qwen",
                "max_tokens": "8000",
                "temperature": "0.4",
                "top_k": 20,
                "min_p": "nope",
                "tool_format": "functions",
                "timeout_ms": 30000,
                "response_format": {"type": "json_object"},
                "extra_body": {"chat_template_kwargs": {"enable_thinking": False}},
            }
        },
    )
    settings = load_llm_settings(path)

    assert settings.base_url == "http://127.0.0.1:8000/v1"
    assert settings.api_key == ""
    assert settings.max_tokens == 8000
    assert settings.temperature == 0.4
    assert settings.top_k == 20
    assert settings.min_p is None
    assert settings.tool_format == "functions"
    assert settings.to_dict()["api_key_present"] is False
    assert "api_key" not in settings.to_dict()

    config = settings.client_config()
    assert config.timeout_s == 30.0
    assert config.tool_format == "functions"
    assert config.default_model == "qwen"

    request = settings.call_request([{"role": "user", "content": "hi"}], max_tokens=100)
    assert request.max_tokens == 100
    assert request.temperature == 0.4
    assert request.extra_body == {
        "chat_template_kwargs": {"enable_thinking": False},
        "response_format": {"type": "json_object"},
    }


def test_defaults_when_optional_fields_missing(tmp_path: Path) -> None:
    settings = load_llm_settings(_write(tmp_path, {"llm": {"base_url": "http://h/v1", "model": "m"}}))
    assert settings.timeout_ms == DEFAULT_TIMEOUT_MS
    assert settings.tool_format == "tools"
    assert settings.max_tokens == 0
    assert settings.call_request([]).max_tokens is None


def test_zero_timeout_disables_client_timeout(tmp_path: Path) -> None:
    settings = load_llm_settings(
        _write(tmp_path, {"llm": {"base_url": "http://h/v1", "model": "m", "timeout_ms": 0}})
    )
    assert settings.client_config().timeout_s is None


@pytest.mark.parametrize(
    "llm",
    [
        {"model": "m"},
        {"base_url": "http://h/v1"},
        {"base_url": "   ", "model": "m"},
    ],
)
def test_missing_required_fields(tmp_path: Path, llm: dict) -> None:
    with pytest.raises(MissingConfigError):
        load_llm_settings(_write(tmp_path, {"llm": llm}))


def test_invalid_files_raise_configuration_error(tmp_path: Path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("{nope", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_llm_settings(bad)
    with pytest.raises(ConfigurationError):
        load_llm_settings(_write(tmp_path, [1, 2]))
    with pytest.raises(ConfigurationError):
        load_llm_settings(tmp_path / "missing.json")


def test_settings_from_env() -> None:
    settings = settings_from_env(
        {
            "COMPATCHAT_BASE_URL": "http://h/v1",
            "COMPATCHAT_MODEL": "m",
            "COMPATCHAT_API_KEY": "sk-1",
            "COMPATCHAT_MAX_TOKENS": "512",
        }
    )
    assert settings.api_key == "sk-1"
    assert settings.max_tokens == 512
    with pytest.raises(MissingConfigError):
        settings_from_env({})


@pytest.mark.parametrize(
    ("value", "expected"),
    [("NONE", ""), (" Null ", ""), ("undefined", ""), (None, ""), (" sk-abc ", "sk-abc")],
)
def test_normalize_api_key(value, expected: str) -> None:
    assert normalize_api_key(value) == expected


def test_number_parsing_helpers() -> None:
    assert parse_int_like("12") == 12
    assert parse_int_like(12.9) == 12
    assert parse_int_like("x", 3) == 3
    assert parse_int_like(float("nan"), 4) == 4
    assert parse_int_like(True, 5) == 5
    assert parse_float_like("0.5") == 0.5
    assert parse_float_like("inf") is None
    assert parse_float_like("", 1.0) == 1.0


def test_load_dotenv_does_not_override(tmp_path: Path, monkeypatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# comment\nexport COMPATCHAT_MODEL='from-file'\nCOMPATCHAT_BASE_URL=http://file/v1\nEMPTY=\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("COMPATCHAT_BASE_URL", "http://env/v1")
    monkeypatch.setenv("COMPATCHAT_MODEL", "unset")
    monkeypatch.delenv("COMPATCHAT_MODEL")
    monkeypatch.setenv("EMPTY", "unset")
    monkeypatch.delenv("EMPTY")

    assert load_dotenv(str(env_file)) is True
    assert os.environ["COMPATCHAT_MODEL"] == "from-file"
    assert os.environ["COMPATCHAT_BASE_URL"] == "http://env/v1"
    assert "EMPTY" not in os.environ
    assert load_dotenv(str(tmp_path / "absent.env")) is False
