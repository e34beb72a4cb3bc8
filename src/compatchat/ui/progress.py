"""Status helpers for the compatchat CLI."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from compatchat.ui.console import get_error_console


@contextmanager
def status_spinner(message: str) -> Iterator[object]:
    console = get_error_console()
    with console.status(message, spinner="dots", spinner_style="accent") as status:
        yield status
