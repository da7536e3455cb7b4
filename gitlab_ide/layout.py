# SPDX-License-Identifier: AGPL-3.0-only
# Copyright (c) 2026 sol pbc

"""Stage column geometry and stage pane content."""

from dataclasses import dataclass

from rich.text import Text

from gitlab_ide.models import Stage
from gitlab_ide.status import glyph, style_for

GRID_WIDTH_RATIO = 0.8
GRID_HEIGHT_RATIO = 0.7
LOG_RATIO = 0.85
GUTTER = 2  # between columns
COLUMN_MARGIN = 2  # subtracted from the grid height

RULE = "─" * 30
HINT = " ⏎:log c:cancel x:retry C/X:pipeline"


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    width: int
    height: int


def compute_layout(width: int, height: int, stage_count: int) -> list[Rect]:
    """Lay out one column per stage, left to right, centered in the view.

    Args:
        width: Available width in cells.
        height: Available height in cells.
        stage_count: Number of stage columns, at least 1.

    Returns:
        One Rect per stage in stage order.

    Raises:
        ValueError: If stage_count is less than 1.
    """
    if stage_count < 1:
        raise ValueError("stage_count must be at least 1")

    total_width = int(width * GRID_WIDTH_RATIO)
    total_height = int(height * GRID_HEIGHT_RATIO)
    column_width = max(1, (total_width - (stage_count - 1) * GUTTER) // stage_count)
    column_height = max(1, total_height - COLUMN_MARGIN)

    start_x = (width - total_width) // 2
    start_y = (height - total_height) // 2

    return [
        Rect(
            x=start_x + i * (column_width + GUTTER),
            y=start_y,
            width=column_width,
            height=column_height,
        )
        for i in range(stage_count)
    ]


def log_rect(width: int, height: int) -> Rect:
    """Centered rectangle for the log pane."""
    log_width = int(width * LOG_RATIO)
    log_height = int(height * LOG_RATIO)
    return Rect(
        x=(width - log_width) // 2,
        y=(height - log_height) // 2,
        width=log_width,
        height=log_height,
    )


def render_stage(stage: Stage) -> Text:
    """Build the full content of a stage pane.

    Lines: header, rule, one line per job, blank, key hint. A fresh Text is
    built on every call so no styling carries over from a previous render.
    """
    text = Text()
    text.append(" ")
    text.append(glyph(stage.status), style=style_for(stage.status))
    text.append(f" {stage.name} ", style="bold")
    text.append("\n")
    text.append(RULE + "\n", style="bright_black")

    for job in stage.jobs:
        text.append("  ")
        text.append(glyph(job.status), style=style_for(job.status))
        text.append(f" {job.name}\n")

    text.append("\n")
    text.append(HINT, style="bright_black italic")
    return text
