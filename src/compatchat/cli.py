"""CLI entrypoint for compatchat."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import httpx
import typer
from rich.logging import RichHandler

from compatchat.config import DEFAULT_SETUP_PATH, LLMSettings, load_llm_settings, settings_from_env
from compatchat.env import load_dotenv
from compatchat.llm.client import build_request_body
from compatchat.llm.errors import CallError, ConfigurationError, InputValidationError, RequestCancelledError
from compatchat.llm.mock import MockTransport
from compatchat.llm.openai_compatible import ChatCompletionClient
from compatchat.llm.types import CallResult
from compatchat.ui.console import get_error_console
from compatchat.ui.progress import status_spinner
from compatchat.ui.render import (
    render_banner,
    render_error,
    render_info,
    render_json,
    render_success,
    render_summary_table,
    render_validation_panel,
    render_warning,
)

app = typer.Typer(add_completion=False, help="Client for OpenAI-compatible chat-completion endpoints.")
llm_app = typer.Typer(add_completion=False, help="LLM calls and diagnostics.")
config_app = typer.Typer(add_completion=False, help="Setup file helpers and validation.")
app.add_typer(llm_app, name="llm")
app.add_typer(config_app, name="config")

ECHO_TOOL = {
    "type": "function",
    "function": {
        "name": "echo",
        "description": "Echo the given text back to the user.",
        "parameters": {
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        },
    },
}


@app.callback(invoke_without_command=True)
def root(
    ctx: typer.Context,
    log_level: str = typer.Option("WARNING", "--log-level", help="Python logging level."),
) -> None:
    """compatchat CLI."""
    load_dotenv()
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=get_error_console(), show_path=False)],
    )
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


@llm_app.command("dry-run")
def llm_dry_run(
    prompt: str = typer.Option("Say hello in one sentence.", "--prompt"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c"),
    tool_format: Optional[str] = typer.Option(None, "--tool-format", help="tools or functions"),
    with_tools: bool = typer.Option(False, "--with-tools", help="Attach a sample echo tool."),
) -> None:
    """Build and display a chat-completion request body without network access."""
    settings = _resolve_settings(config_path)
    render_banner("compatchat", "LLM dry-run request preview")
    config = settings.client_config()
    request = settings.call_request(
        [{"role": "user", "content": prompt}],
        tools=[ECHO_TOOL] if with_tools else None,
    )
    try:
        body, overrides = build_request_body(
            request,
            model=config.default_model,
            tool_format=tool_format or config.tool_format,
            max_tokens=request.max_tokens,
        )
    except (ConfigurationError, InputValidationError) as exc:
        render_error(str(exc))
        raise typer.Exit(code=1) from exc
    render_json(body, "POST chat/completions")
    if overrides:
        render_warning(f"Overrides applied: {', '.join(sorted(overrides))}")
    else:
        render_info("No overrides detected.")


@llm_app.command("chat")
def llm_chat(
    prompt: str = typer.Argument(..., help="User message to send."),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c"),
    system: Optional[str] = typer.Option(None, "--system", help="Optional system message."),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens"),
    mock: bool = typer.Option(False, "--mock", help="Answer from the offline mock transport."),
) -> None:
    """Send one chat-completion request and print the reply."""
    settings = _resolve_settings(config_path, mock=mock)
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    overrides = {"max_tokens": max_tokens} if max_tokens is not None else {}
    request = settings.call_request(messages, **overrides)
    transport = MockTransport() if mock else None

    try:
        with status_spinner(f"Calling {settings.model}"):
            result = asyncio.run(_run_chat(settings, request, transport))
    except (ConfigurationError, InputValidationError, CallError, RequestCancelledError, httpx.HTTPError) as exc:
        render_error(str(exc))
        raise typer.Exit(code=1) from exc

    _render_result(result)


@config_app.command("validate")
def config_validate(path: Path = typer.Option(Path(DEFAULT_SETUP_PATH), "--path", "-p")) -> None:
    """Validate a setup file's llm block."""
    try:
        settings = load_llm_settings(path)
    except ConfigurationError as exc:
        render_validation_panel("INVALID", [str(exc)], style="error")
        raise typer.Exit(code=1) from exc

    render_summary_table(_settings_rows(settings), title="Resolved settings")

    warnings = []
    if settings.tool_format not in {"tools", "functions"}:
        warnings.append(f"Unknown tool_format {settings.tool_format!r}; 'tools' will be used.")
    if not settings.api_key:
        warnings.append("No api_key configured; requests will be sent without Authorization.")
    if warnings:
        render_validation_panel("VALID (with warnings)", warnings, style="warning")
    else:
        render_validation_panel("VALID", ["No issues found."], style="success")


def _settings_rows(settings: LLMSettings) -> list[tuple[str, str]]:
    rows = []
    for key, value in settings.to_dict().items():
        if value is None or value == {}:
            continue
        rows.append((key, json.dumps(value) if isinstance(value, (dict, bool)) else str(value)))
    return rows


async def _run_chat(settings: LLMSettings, request, transport) -> CallResult:
    async with ChatCompletionClient(settings.client_config(transport=transport)) as client:
        return await client.chat_completions(request)


def _resolve_settings(config_path: Path | None, *, mock: bool = False) -> LLMSettings:
    try:
        if config_path is not None:
            return load_llm_settings(config_path)
        default_path = Path(DEFAULT_SETUP_PATH)
        if default_path.exists():
            return load_llm_settings(default_path)
        if mock:
            return LLMSettings(base_url="http://mock.local/v1", model="mock-model")
        return settings_from_env()
    except ConfigurationError as exc:
        render_error(str(exc))
        raise typer.Exit(code=1) from exc


def _render_result(result: CallResult) -> None:
    if result.content:
        render_success(result.content)
    for call in result.tool_calls:
        render_json(call.arguments, f"tool call · {call.name}")
    usage = result.usage or {}
    render_summary_table(
        {
            "finish": result.finish_reason or "n/a",
            "tool calls": str(len(result.tool_calls)),
            "total tokens": str(usage.get("total_tokens", "n/a")),
            "max_tokens": str(result.max_tokens) if result.max_tokens else "unset",
            "budget retries": str(result.retries),
        },
        title="Result",
    )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
