# SPDX-License-Identifier: AGPL-3.0-only
# Copyright (c) 2026 sol pbc

"""Job and stage status glyphs and emphasis."""

# Status -> glyph (Unicode symbols, no emoji)
GLYPHS = {
    "SUCCESS": "✓",
    "FAILED": "✗",
    "RUNNING": "●",
    "PENDING": "○",
    "SKIPPED": "⊘",
    "CANCELED": "⊘",
    "MANUAL": "▶",
    "CREATED": "○",
    "WAITING_FOR_RESOURCE": "○",
    "PREPARING": "○",
    "SCHEDULED": "◷",
}

UNKNOWN_GLYPH = "?"

# Emphasis categories
OK = "ok"
ERROR = "error"
INFO = "info"
MUTED = "muted"
WARNING = "warning"
HINT = "hint"
NEUTRAL = "neutral"

EMPHASIS = {
    "SUCCESS": OK,
    "FAILED": ERROR,
    "RUNNING": INFO,
    "PENDING": MUTED,
    "SKIPPED": MUTED,
    "CANCELED": WARNING,
    "MANUAL": HINT,
    "CREATED": MUTED,
    "WAITING_FOR_RESOURCE": MUTED,
    "PREPARING": INFO,
    "SCHEDULED": HINT,
}

# Category -> Rich style
CATEGORY_STYLES = {
    OK: "bright_green",
    ERROR: "bright_red",
    INFO: "bright_blue",
    MUTED: "bright_black",
    WARNING: "bright_yellow",
    HINT: "bright_magenta",
    NEUTRAL: "",
}

# Statuses whose log is still growing
ACTIVE_STATUSES = frozenset({"RUNNING", "PENDING"})


def glyph(status: str) -> str:
    """Get the display glyph for a status, '?' if unknown."""
    return GLYPHS.get(status, UNKNOWN_GLYPH)


def emphasis(status: str) -> str:
    """Get the emphasis category for a status, neutral if unknown."""
    return EMPHASIS.get(status, NEUTRAL)


def style_for(status: str) -> str:
    """Get the Rich style used to color a status glyph."""
    return CATEGORY_STYLES[emphasis(status)]


def is_active(status: str) -> bool:
    return status in ACTIVE_STATUSES
