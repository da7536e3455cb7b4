# SPDX-License-Identifier: AGPL-3.0-only
# Copyright (c) 2026 sol pbc

"""Pipeline view TUI using Textual."""

import asyncio
import logging

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.screen import ModalScreen
from textual.theme import Theme
from textual.widget import Widget
from textual.widgets import Button, Footer, Header, Log, Static

from gitlab_ide import config, layout
from gitlab_ide.api import GitLabClient
from gitlab_ide.config import ApiContext
from gitlab_ide.controller import PipelineViewController, ViewMode
from gitlab_ide.errors import ApiError
from gitlab_ide.layout import Rect, log_rect
from gitlab_ide.models import JOB_LINE_OFFSET, Pipeline, Stage

logger = logging.getLogger(__name__)

# GitLab-inspired theme
GITLAB_THEME = Theme(
    name="gitlab",
    primary="#fc6d26",  # GitLab orange - focused pane borders
    secondary="#6b4fbb",  # GitLab purple
    accent="#fca326",  # Light orange - key hints
    foreground="#ffffff",
    background="#000000",
    surface="#1a1a1a",  # Very dark gray - pane backgrounds
    panel="#262626",  # Dark gray - unfocused borders
    success="#55ff55",
    warning="#ffff55",
    error="#ff5555",
    dark=True,
    variables={
        "footer-key-foreground": "#fca326",
        "footer-description-foreground": "#888888",
    },
)

CLOSED_HINT = "Pipeline view closed · o to open · Q to quit"

# Action -> modes in which its binding is live
ACTION_MODES = {
    "prev_column": {ViewMode.GRID},
    "next_column": {ViewMode.GRID},
    "open_log": {ViewMode.GRID},
    "cancel_job": {ViewMode.GRID},
    "retry_job": {ViewMode.GRID},
    "cancel_pipeline": {ViewMode.GRID},
    "retry_pipeline": {ViewMode.GRID},
    "refresh": {ViewMode.GRID, ViewMode.LOG},
    "back": {ViewMode.GRID, ViewMode.LOG},
    "close_view": {ViewMode.GRID, ViewMode.LOG},
    "open_pipeline": {ViewMode.CLOSED},
}


class ConfirmScreen(ModalScreen[bool]):
    """Yes/No prompt guarding a destructive action. Anything but Yes declines."""

    BINDINGS = [
        Binding("escape", "decline", "Cancel"),
        Binding("y", "accept", "Yes", show=False),
        Binding("n", "decline", "No", show=False),
    ]

    CSS = """
    ConfirmScreen {
        align: center middle;
        height: 100%;
    }

    #confirm-container {
        width: 60;
        height: auto;
        background: $surface;
        border: solid $primary;
        padding: 1 2;
    }

    #confirm-title {
        text-align: center;
        text-style: bold;
        color: $text;
        padding-bottom: 1;
    }

    #confirm-buttons {
        height: auto;
        align: center middle;
    }

    #confirm-buttons Button {
        margin: 0 1;
    }

    #confirm-buttons Button:focus {
        text-style: bold reverse;
    }
    """

    def __init__(self, prompt: str):
        super().__init__()
        self._prompt = prompt

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-container"):
            yield Static(Text(self._prompt), id="confirm-title")
            with Horizontal(id="confirm-buttons"):
                yield Button("No", id="btn-no", variant="default")
                yield Button("Yes", id="btn-yes", variant="error")

    def on_mount(self) -> None:
        self.query_one("#btn-no").focus()

    def on_key(self, event: events.Key) -> None:
        focused = self.focused
        buttons = list(self.query("#confirm-buttons Button"))

        if event.key == "right" and focused in buttons:
            event.prevent_default()
            event.stop()
            idx = buttons.index(focused)
            buttons[(idx + 1) % len(buttons)].focus()
        elif event.key == "left" and focused in buttons:
            event.prevent_default()
            event.stop()
            idx = buttons.index(focused)
            buttons[(idx - 1) % len(buttons)].focus()

    def action_accept(self) -> None:
        self.dismiss(True)

    def action_decline(self) -> None:
        self.dismiss(False)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "btn-yes")


class StagePane(Widget, can_focus=True):
    """One stage column: header, rule, jobs and a line cursor."""

    DEFAULT_CSS = """
    StagePane {
        position: absolute;
        border: round $panel;
        border-title-align: center;
        background: $surface;
    }

    StagePane:focus {
        border: round $primary;
    }
    """

    BINDINGS = [
        Binding("up,k", "cursor_up", "Up", show=False),
        Binding("down,j", "cursor_down", "Down", show=False),
        Binding("home,g", "cursor_home", "Top", show=False),
        Binding("end,G", "cursor_end", "Bottom", show=False),
    ]

    def __init__(self, stage: Stage, column: int, **kwargs):
        super().__init__(**kwargs)
        self.column = column
        self._stage = stage
        self._content = layout.render_stage(stage)
        self._line_count = len(self._content.plain.split("\n"))
        self._cursor_row = JOB_LINE_OFFSET if stage.jobs else 0

    def on_mount(self) -> None:
        self.border_title = Text(f" {self._stage.name} ")

    @property
    def cursor_row(self) -> int:
        return self._cursor_row

    def render_stage(self, stage: Stage) -> None:
        """Replace the whole pane content with a stage."""
        self._stage = stage
        self._content = layout.render_stage(stage)
        self._line_count = len(self._content.plain.split("\n"))
        self._cursor_row = min(self._cursor_row, self._line_count - 1)
        self.border_title = Text(f" {stage.name} ")
        self.refresh()

    def render(self) -> Text:
        text = self._content.copy()
        if self.has_focus:
            lines = text.plain.split("\n")
            start = sum(len(line) + 1 for line in lines[: self._cursor_row])
            text.stylize("reverse", start, start + max(1, len(lines[self._cursor_row])))
        return text

    def _move_cursor(self, row: int) -> None:
        self._cursor_row = min(max(row, 0), self._line_count - 1)
        self.refresh()

    def action_cursor_up(self) -> None:
        self._move_cursor(self._cursor_row - 1)

    def action_cursor_down(self) -> None:
        self._move_cursor(self._cursor_row + 1)

    def action_cursor_home(self) -> None:
        self._move_cursor(0)

    def action_cursor_end(self) -> None:
        self._move_cursor(self._line_count - 1)

    def on_focus(self) -> None:
        self.app.controller.focus_column(self.column)
        self.refresh()

    def on_blur(self) -> None:
        self.refresh()

    def dispose(self) -> None:
        if self.has_focus:
            # Otherwise focus moves to a sibling pane that is also going away
            self.screen.set_focus(None)
        self.remove()


class LogPane(Log):
    """Full-screen job log with tail-follow."""

    DEFAULT_CSS = """
    LogPane {
        position: absolute;
        border: round $primary;
        border-title-align: center;
        border-subtitle-align: center;
        background: $surface;
    }
    """

    def __init__(self, title: str, footer: str, **kwargs):
        super().__init__(highlight=False, auto_scroll=False, **kwargs)
        self._title = title
        self._footer = footer
        # Content set before mount, applied in on_mount
        self._pending: list[str] | None = None
        self._pending_scroll = False

    def on_mount(self) -> None:
        self.border_title = Text(self._title)
        self.border_subtitle = Text(self._footer)
        if self._pending is not None:
            self.write("\n".join(self._pending))
            self._pending = None
        if self._pending_scroll:
            self.call_after_refresh(self.scroll_end, animate=False)

    def set_lines(self, lines: list[str]) -> None:
        """Replace the whole log content."""
        if not self.is_mounted:
            self._pending = list(lines)
            return
        self.clear()
        # write_lines would drop blank lines
        self.write("\n".join(lines))

    def scroll_to_end(self) -> None:
        if not self.is_mounted:
            self._pending_scroll = True
            return
        self.scroll_end(animate=False)

    def dispose(self) -> None:
        if self.has_focus:
            # Keys must reach the app bindings once the pane is gone
            self.screen.set_focus(None)
        self.remove()


class GitLabIdeApp(App):
    """Pipeline view for one project and branch."""

    TITLE = "GITLAB-IDE"

    CSS = """
    Screen {
        layout: vertical;
        background: $background;
    }

    Header {
        background: $surface;
        color: $text;
    }

    Footer {
        background: $surface;
    }

    #view {
        height: 1fr;
    }

    #closed-hint {
        width: 100%;
        height: 100%;
        content-align: center middle;
        color: $text-muted;
    }
    """

    BINDINGS = [
        Binding("Q", "quit", "Quit"),
        Binding("ctrl+c", "quit", "Quit", show=False, priority=True),
        Binding("h,left", "prev_column", "Prev", show=False),
        Binding("l,right", "next_column", "Next", show=False),
        Binding("enter", "open_log", "Log"),
        Binding("c", "cancel_job", "Cancel"),
        Binding("x", "retry_job", "Retry"),
        Binding("C", "cancel_pipeline", "Cancel pipeline"),
        Binding("X", "retry_pipeline", "Retry failed"),
        Binding("r", "refresh", "Refresh"),
        Binding("q", "back", "Back"),
        Binding("backspace", "back", "Back", show=False),
        Binding("escape", "close_view", "Close"),
        Binding("o", "open_pipeline", "Open"),
    ]

    def __init__(self, api_context: ApiContext, branch: str, client_factory=None):
        super().__init__()
        self.api_context = api_context
        self.branch = branch
        self._client_factory = client_factory or GitLabClient.from_context
        self.controller = PipelineViewController(self, self._client_factory)
        self.sub_title = f"{api_context.project_path} @ {branch}"

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="view"):
            yield Static(CLOSED_HINT, id="closed-hint")
        yield Footer()

    def on_mount(self) -> None:
        self.register_theme(GITLAB_THEME)
        self.theme = "gitlab"
        self.action_open_pipeline()

    # ViewHost

    @property
    def view_size(self) -> tuple[int, int]:
        size = self.query_one("#view", Container).size
        if not size.width or not size.height:
            # Not laid out yet
            size = self.size
        return size.width, size.height

    def _place(self, widget: Widget, rect: Rect) -> Widget:
        widget.styles.offset = (rect.x, rect.y)
        widget.styles.width = rect.width
        widget.styles.height = rect.height
        self.query_one("#view", Container).mount(widget)
        return widget

    def mount_stage_pane(self, stage: Stage, rect: Rect, column: int) -> StagePane:
        return self._place(StagePane(stage, column), rect)

    def mount_log_pane(self, title: str, footer: str) -> LogPane:
        return self._place(LogPane(title, footer), log_rect(*self.view_size))

    def focus_pane(self, pane: Widget) -> None:
        pane.focus()

    def report(self, message: str, severity: str = "information") -> None:
        self.notify(message, severity=severity, markup=False)

    async def confirm(self, prompt: str) -> bool:
        answer: asyncio.Future[bool] = asyncio.get_running_loop().create_future()

        def on_answer(result: bool | None) -> None:
            if not answer.done():
                answer.set_result(result is True)

        self.push_screen(ConfirmScreen(prompt), on_answer)
        return await answer

    def spawn(self, coro):
        return self.run_worker(coro, group="gitlab", exit_on_error=False)

    def mode_changed(self, mode: ViewMode) -> None:
        self.query_one("#closed-hint", Static).display = mode is ViewMode.CLOSED
        self.refresh_bindings()

    # Bindings

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        if action not in ACTION_MODES:
            return True
        if isinstance(self.screen, ModalScreen):
            return False
        return self.controller.mode in ACTION_MODES[action]

    async def _fetch_pipeline(self) -> Pipeline:
        client = self._client_factory(self.api_context)
        return await client.fetch_pipeline(self.branch)

    async def _open_pipeline(self) -> None:
        try:
            pipeline = await self._fetch_pipeline()
        except ApiError as e:
            logger.error(f"pipeline fetch failed: {e}")
            self.report(str(e), severity="error")
            return
        self.controller.open(pipeline, self._fetch_pipeline, self.api_context)

    def action_open_pipeline(self) -> None:
        """Open the pipeline view for the current branch."""
        self.report(f"Fetching pipeline for {self.api_context.project_path} @ {self.branch}...")
        self.run_worker(self._open_pipeline(), group="open", exclusive=True, exit_on_error=False)

    def action_prev_column(self) -> None:
        self.controller.move_focus(-1)

    def action_next_column(self) -> None:
        self.controller.move_focus(1)

    def action_open_log(self) -> None:
        self.controller.open_log()

    def action_cancel_job(self) -> None:
        self.spawn(self.controller.cancel_job())

    def action_retry_job(self) -> None:
        self.spawn(self.controller.retry_job())

    def action_cancel_pipeline(self) -> None:
        self.spawn(self.controller.cancel_pipeline())

    def action_retry_pipeline(self) -> None:
        self.spawn(self.controller.retry_pipeline())

    def action_refresh(self) -> None:
        if self.controller.mode is ViewMode.LOG:
            self.controller.refresh_log()
        else:
            self.controller.request_refresh()

    def action_back(self) -> None:
        """Log view: back to the grid. Grid: close the view."""
        if self.controller.mode is ViewMode.LOG:
            self.controller.back_to_grid()
        else:
            self.controller.close()

    def action_close_view(self) -> None:
        self.controller.close()


def run_tui(api_context: ApiContext, branch: str) -> int:
    """Run the TUI application.

    Args:
        api_context: Resolved GitLab URL, token and project.
        branch: Ref whose latest pipeline is shown.

    Returns:
        Exit code (0 for success).
    """
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(config.LOG_FILE)
    handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        "%(asctime)s.%(msecs)03d %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    app_logger = logging.getLogger("gitlab_ide")
    app_logger.setLevel(logging.DEBUG)
    app_logger.addHandler(handler)

    try:
        logger.info(f"tui start project={api_context.project_path} branch={branch}")
        app = GitLabIdeApp(api_context, branch)
        app.run()
        return 0
    finally:
        app_logger.removeHandler(handler)
        handler.close()
