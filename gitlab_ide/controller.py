# SPDX-License-Identifier: AGPL-3.0-only
# Copyright (c) 2026 sol pbc

"""Pipeline view state machine.

The controller is the only writer of ViewState. It moves between three modes:

    CLOSED --open--> GRID --open_log--> LOG
       ^               |                 |
       +----close------+---back_to_grid--+ (LOG -> GRID)
       +----------------------close------+

Background work (refreshes, mutations, log fetches) captures the CancelToken
of the view it started under and drops its result once that token has been
cancelled by a transition.
"""

import logging
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from gitlab_ide.api import GitLabClient
from gitlab_ide.config import ApiContext
from gitlab_ide.errors import ApiError
from gitlab_ide.layout import Rect, compute_layout
from gitlab_ide.logview import LogPaneController, LogSession
from gitlab_ide.models import CancelToken, Job, Pipeline, Stage
from gitlab_ide.status import glyph

logger = logging.getLogger(__name__)

RefreshFn = Callable[[], Awaitable[Pipeline]]


class ViewMode(Enum):
    CLOSED = "closed"
    GRID = "grid"
    LOG = "log"


class ViewHost(Protocol):
    """What the controller needs from the windowing toolkit."""

    @property
    def view_size(self) -> tuple[int, int]: ...

    def mount_stage_pane(self, stage: Stage, rect: Rect, column: int) -> Any: ...

    def mount_log_pane(self, title: str, footer: str) -> Any: ...

    def focus_pane(self, pane: Any) -> None: ...

    def report(self, message: str, severity: str = "information") -> None: ...

    async def confirm(self, prompt: str) -> bool: ...

    def set_interval(self, interval: float, callback: Callable[[], Any]) -> Any: ...

    def spawn(self, coro: Coroutine) -> Any: ...

    def mode_changed(self, mode: ViewMode) -> None: ...


@dataclass
class ViewState:
    """Everything the open view owns.

    Invariant: panes is non-empty only in GRID, log_session is set only in LOG.
    api_context and refresh_fn outlive teardown so a later refresh can reopen.
    """

    mode: ViewMode = ViewMode.CLOSED
    focused_column: int = 0
    panes: list = field(default_factory=list)
    pipeline: Pipeline | None = None
    api_context: ApiContext | None = None
    refresh_fn: RefreshFn | None = None
    log_session: LogSession | None = None
    grid_token: CancelToken | None = None

    def check_invariants(self) -> None:
        """Raise RuntimeError if panes or log session disagree with the mode."""
        if self.mode is ViewMode.GRID:
            ok = bool(self.panes) and self.log_session is None
        elif self.mode is ViewMode.LOG:
            ok = not self.panes and self.log_session is not None
        else:
            ok = not self.panes and self.log_session is None
        if not ok:
            raise RuntimeError(
                f"inconsistent view state: mode={self.mode.value} panes={len(self.panes)} "
                f"log_session={self.log_session is not None}"
            )


class PipelineViewController:
    """Owns the pipeline view and drives every transition."""

    def __init__(self, host: ViewHost, client_factory: Callable = GitLabClient.from_context):
        self.host = host
        self.state = ViewState()
        self._client_factory = client_factory
        self.logs = LogPaneController(host, client_factory)

    @property
    def mode(self) -> ViewMode:
        return self.state.mode

    def _set_mode(self, mode: ViewMode) -> None:
        self.state.mode = mode
        self.state.check_invariants()
        self.host.mode_changed(mode)

    # Grid lifecycle

    def open(
        self,
        pipeline: Pipeline,
        refresh_fn: RefreshFn | None = None,
        api_context: ApiContext | None = None,
    ) -> None:
        """Open the stage grid for a pipeline, replacing whatever was shown."""
        st = self.state
        refresh_fn = refresh_fn or st.refresh_fn
        api_context = api_context or st.api_context
        self.close()

        st.pipeline = pipeline
        st.refresh_fn = refresh_fn
        st.api_context = api_context

        if not pipeline.stages:
            logger.info(f"pipeline #{pipeline.iid} has no stages")
            self.host.report("No stages found in pipeline", severity="warning")
            return

        self._build_grid(pipeline, focus=0)
        self.host.report(
            f"Pipeline #{pipeline.iid} {glyph(pipeline.status)} {pipeline.status} "
            f"(created: {pipeline.created_date})"
        )

    def _build_grid(self, pipeline: Pipeline, focus: int) -> None:
        st = self.state
        width, height = self.host.view_size
        rects = compute_layout(width, height, len(pipeline.stages))
        if st.grid_token is None:
            st.grid_token = CancelToken()
        st.panes = [
            self.host.mount_stage_pane(stage, rect, column)
            for column, (stage, rect) in enumerate(zip(pipeline.stages, rects))
        ]
        st.focused_column = min(max(focus, 0), len(st.panes) - 1)
        self._set_mode(ViewMode.GRID)
        self.host.focus_pane(st.panes[st.focused_column])
        logger.info(f"grid open pipeline=#{pipeline.iid} stages={len(st.panes)}")

    def _dispose_panes(self) -> None:
        for pane in self.state.panes:
            pane.dispose()
        self.state.panes = []

    def _dispose_grid(self) -> None:
        """End the grid view: cancel its token, then dispose its panes."""
        st = self.state
        if st.grid_token is not None:
            st.grid_token.cancel()
            st.grid_token = None
        self._dispose_panes()

    def refresh(self, pipeline: Pipeline) -> None:
        """Show freshly fetched pipeline data.

        With no grid on screen this behaves as open(). When the stage count
        changed the grid is laid out again; otherwise panes are re-rendered
        in place.
        """
        st = self.state
        if st.mode is ViewMode.LOG:
            # Keep the snapshot for back navigation; the log stays up.
            st.pipeline = pipeline
            return
        if not st.panes:
            self.open(pipeline, st.refresh_fn, st.api_context)
            return

        st.pipeline = pipeline
        if len(pipeline.stages) != len(st.panes):
            logger.info(f"stage count changed {len(st.panes)} -> {len(pipeline.stages)}")
            if not pipeline.stages:
                self._dispose_grid()
                self._set_mode(ViewMode.CLOSED)
                self.host.report("No stages found in pipeline", severity="warning")
                return
            # Same grid view, new panes: work in flight keeps its token.
            self._dispose_panes()
            self._build_grid(pipeline, focus=st.focused_column)
        else:
            for pane, stage in zip(st.panes, pipeline.stages):
                pane.render_stage(stage)

        self.host.report(
            f"Pipeline #{pipeline.iid} {glyph(pipeline.status)} {pipeline.status} (refreshed)"
        )

    def close(self) -> None:
        """Tear down the log session and grid. Safe to call in any mode."""
        st = self.state
        if st.log_session is not None:
            self.logs.close(st.log_session)
            st.log_session = None
        self._dispose_grid()
        was_open = st.mode is not ViewMode.CLOSED
        st.focused_column = 0
        st.pipeline = None
        if was_open:
            logger.info("view closed")
            self._set_mode(ViewMode.CLOSED)
        else:
            st.mode = ViewMode.CLOSED

    # Navigation

    def move_focus(self, delta: int) -> None:
        """Move to another stage column, wrapping around at either end."""
        st = self.state
        if not st.panes:
            return
        st.focused_column = (st.focused_column + delta) % len(st.panes)
        self.host.focus_pane(st.panes[st.focused_column])

    def focus_column(self, column: int) -> None:
        """Record that a column received focus by other means (mouse, tab)."""
        if 0 <= column < len(self.state.panes):
            self.state.focused_column = column

    def focused_job(self) -> Job | None:
        """Get the job under the cursor in the focused column."""
        st = self.state
        if not st.panes or st.pipeline is None:
            return None
        column = st.focused_column
        if column >= len(st.pipeline.stages):
            return None
        stage = st.pipeline.stages[column]
        return stage.job_at_line(st.panes[column].cursor_row)

    # Log view

    def open_log(self) -> None:
        """Drill into the focused job's log."""
        st = self.state
        if st.mode is not ViewMode.GRID:
            return
        job = self.focused_job()
        if job is None:
            self.host.report("No job under cursor", severity="warning")
            return
        if st.api_context is None:
            self.host.report("API context not available", severity="error")
            return
        self._dispose_grid()
        st.log_session = self.logs.open(job, st.api_context)
        self._set_mode(ViewMode.LOG)

    def back_to_grid(self) -> None:
        """Leave the log and reopen the grid from the last known pipeline."""
        st = self.state
        if st.mode is not ViewMode.LOG:
            return
        pipeline = st.pipeline
        self.close()
        if pipeline is not None:
            self.open(pipeline, st.refresh_fn, st.api_context)

    def refresh_log(self) -> None:
        if self.state.log_session is not None:
            self.logs.refresh(self.state.log_session)

    # Background refresh

    def request_refresh(self) -> None:
        """Fetch the pipeline again and re-render the grid."""
        st = self.state
        if st.mode is not ViewMode.GRID or st.refresh_fn is None:
            return
        self.host.spawn(self._refresh(st.grid_token))

    async def _refresh(self, token: CancelToken) -> None:
        refresh_fn = self.state.refresh_fn
        if refresh_fn is None:
            return
        try:
            pipeline = await refresh_fn()
        except ApiError as e:
            if token.cancelled:
                logger.debug(f"discarding stale refresh error: {e}")
                return
            logger.warning(f"refresh failed: {e}")
            self.host.report(str(e), severity="error")
            return
        if token.cancelled:
            logger.debug(f"discarding stale refresh pipeline=#{pipeline.iid}")
            return
        self.refresh(pipeline)

    # Mutations

    async def cancel_job(self) -> None:
        job = self.focused_job()
        if job is None:
            self.host.report("No job under cursor", severity="warning")
            return
        await self._mutate(
            prompt=f"Cancel job '{job.name}'?",
            call=lambda client: client.cancel_job(job.id),
            failure="Cancel failed",
            success=f"Job '{job.name}' canceled",
        )

    async def retry_job(self) -> None:
        job = self.focused_job()
        if job is None:
            self.host.report("No job under cursor", severity="warning")
            return
        await self._mutate(
            prompt=None,
            call=lambda client: client.retry_job(job.id),
            failure="Retry failed",
            success=f"Job '{job.name}' retried",
        )

    async def cancel_pipeline(self) -> None:
        pipeline = self.state.pipeline
        if pipeline is None:
            self.host.report("No pipeline or API context", severity="warning")
            return
        await self._mutate(
            prompt=f"Cancel pipeline #{pipeline.iid}?",
            call=lambda client: client.cancel_pipeline(pipeline.id),
            failure="Cancel pipeline failed",
            success=f"Pipeline #{pipeline.iid} canceled",
        )

    async def retry_pipeline(self) -> None:
        """Retry the failed jobs of the pipeline."""
        pipeline = self.state.pipeline
        if pipeline is None:
            self.host.report("No pipeline or API context", severity="warning")
            return
        await self._mutate(
            prompt=None,
            call=lambda client: client.retry_pipeline(pipeline.id),
            failure="Retry pipeline failed",
            success=f"Pipeline #{pipeline.iid} retried",
        )

    async def _mutate(
        self,
        prompt: str | None,
        call: Callable[[Any], Awaitable[Any]],
        failure: str,
        success: str,
    ) -> None:
        """Run one control call against the grid that is showing now.

        Targets are resolved by the caller before any prompt so the answer
        applies to what was under the cursor when the key was pressed.
        """
        st = self.state
        ctx = st.api_context
        token = st.grid_token
        if ctx is None or token is None:
            self.host.report("No pipeline or API context", severity="warning")
            return

        if prompt is not None and not await self.host.confirm(prompt):
            logger.debug(f"declined: {prompt}")
            return
        if token.cancelled:
            return

        logger.info(f"mutation start: {success}")
        try:
            await call(self._client_factory(ctx))
        except ApiError as e:
            if token.cancelled:
                logger.debug(f"discarding stale mutation error: {e}")
                return
            logger.warning(f"{failure}: {e}")
            self.host.report(f"{failure}: {e}", severity="error")
            return

        if token.cancelled:
            logger.debug(f"view gone after mutation: {success}")
            return
        self.host.report(success)
        await self._refresh(token)
