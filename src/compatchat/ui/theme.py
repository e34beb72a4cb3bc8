"""Rich theme for the compatchat CLI."""

from __future__ import annotations

from rich.theme import Theme

THEME = Theme(
    {
        "accent": "cyan",
        "heading": "bold cyan",
        "muted": "grey62",
        "label": "grey62",
        "value": "default",
        "border": "grey42",
        "warning": "yellow3",
        "success": "green3",
        "error": "bold red3",
    }
)
