"""Boxed startup message shown in the console when the server starts."""

import unicodedata

INNER_WIDTH = 63


def display_width(text: str) -> int:
    """Terminal column width, counting wide (e.g. CJK) characters as two."""
    return sum(2 if unicodedata.east_asian_width(ch) in ("W", "F") else 1 for ch in text)


def center(text: str, width: int = INNER_WIDTH) -> str:
    pad = max(width - display_width(text), 0)
    left = pad // 2
    return " " * left + text + " " * (pad - left)


def render_startup_banner(version: str, login_path: str, title: str = "Now Playing Backend") -> str:
    """Build the startup box with the version and the admin login path."""
    blank = "│" + " " * INNER_WIDTH + "│"
    lines = [
        "┌" + "─" * INNER_WIDTH + "┐",
        "│" + center(f"{title} - {version}") + "│",
        "│" + center("Powered by FastAPI") + "│",
        blank,
        "│" + center(f"Login Path: {login_path}") + "│",
        blank,
        "└" + "─" * INNER_WIDTH + "┘",
    ]
    return "\n".join(lines)
