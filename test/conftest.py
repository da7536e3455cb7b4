"""Shared pytest fixtures for all tests."""

import asyncio

import pytest

from gitlab_ide import config
from gitlab_ide.config import ApiContext
from gitlab_ide.models import JOB_LINE_OFFSET, Job, Pipeline, Stage


@pytest.fixture(autouse=True)
def isolate_config(tmp_path, monkeypatch):
    """Isolate all tests from the real config directory and token env vars.

    This fixture runs automatically for every test, ensuring that:
    - config.json is never read from or written to the real data dir
    - a token exported in the developer's shell cannot leak into tests
    """
    monkeypatch.setattr(config, "DATA_DIR", tmp_path)
    monkeypatch.setattr(config, "CONFIG_FILE", tmp_path / "config.json")
    monkeypatch.setattr(config, "LOG_FILE", tmp_path / "gitlab-ide.log")
    for var in config.TOKEN_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def temp_config(isolate_config):
    """Alias for isolate_config for tests that need the path."""
    return isolate_config


def make_pipeline(iid: str = "42", status: str = "RUNNING", stages=None) -> Pipeline:
    """Build a pipeline: Build (1 running), Test (2 pending), Deploy (1 created)."""
    if stages is None:
        stages = (
            Stage("build", "RUNNING", (Job("gid://gitlab/Ci::Build/1", "compile", "RUNNING"),)),
            Stage(
                "test",
                "PENDING",
                (
                    Job("gid://gitlab/Ci::Build/2", "unit", "PENDING"),
                    Job("gid://gitlab/Ci::Build/3", "lint", "PENDING"),
                ),
            ),
            Stage("deploy", "CREATED", (Job("gid://gitlab/Ci::Build/4", "deploy", "CREATED"),)),
        )
    return Pipeline(
        id=f"gid://gitlab/Ci::Pipeline/{iid}00",
        iid=iid,
        status=status,
        created_at="2026-03-01T10:20:30Z",
        stages=tuple(stages),
    )


@pytest.fixture
def pipeline():
    return make_pipeline()


@pytest.fixture
def api_context():
    return ApiContext(base_url="https://gitlab.example.com", token="tok", project_path="grp/proj")


class FakePane:
    """Records what the controller writes to a pane."""

    def __init__(self, stage=None, rect=None, column=None, title=None, footer=None):
        self.stage = stage
        self.rect = rect
        self.column = column
        self.title = title
        self.footer = footer
        self.cursor_row = JOB_LINE_OFFSET
        self.lines: list[str] = []
        self.renders = 0
        self.scrolled = False
        self.disposed = False

    def render_stage(self, stage):
        assert not self.disposed, "render into disposed pane"
        self.stage = stage
        self.renders += 1

    def set_lines(self, lines):
        assert not self.disposed, "write into disposed pane"
        self.lines = list(lines)

    def scroll_to_end(self):
        assert not self.disposed, "scroll of disposed pane"
        self.scrolled = True

    def dispose(self):
        self.disposed = True


class FakeTimer:
    def __init__(self, interval, callback):
        self.interval = interval
        self.callback = callback
        self.stopped = False

    def stop(self):
        self.stopped = True

    def fire(self):
        assert not self.stopped, "tick after stop"
        self.callback()


class FakeHost:
    """In-memory ViewHost: panes, timers and tasks are recorded for inspection."""

    def __init__(self):
        self.view_size = (100, 40)
        self.stage_panes: list[FakePane] = []
        self.log_panes: list[FakePane] = []
        self.focused = None
        self.reports: list[tuple[str, str]] = []
        self.prompts: list[str] = []
        self.answers: list[bool] = []
        self.timers: list[FakeTimer] = []
        self.tasks: list[asyncio.Task] = []
        self.modes = []

    def mount_stage_pane(self, stage, rect, column):
        pane = FakePane(stage=stage, rect=rect, column=column)
        self.stage_panes.append(pane)
        return pane

    def mount_log_pane(self, title, footer):
        pane = FakePane(title=title, footer=footer)
        self.log_panes.append(pane)
        return pane

    def focus_pane(self, pane):
        self.focused = pane

    def report(self, message, severity="information"):
        self.reports.append((message, severity))

    async def confirm(self, prompt):
        self.prompts.append(prompt)
        return self.answers.pop(0) if self.answers else False

    def set_interval(self, interval, callback):
        timer = FakeTimer(interval, callback)
        self.timers.append(timer)
        return timer

    def spawn(self, coro):
        task = asyncio.ensure_future(coro)
        self.tasks.append(task)
        return task

    def mode_changed(self, mode):
        self.modes.append(mode)

    async def drain(self):
        """Wait for every spawned task, including ones spawned while waiting."""
        while self.tasks:
            tasks, self.tasks = self.tasks, []
            await asyncio.gather(*tasks)

    @property
    def messages(self) -> list[str]:
        return [message for message, _ in self.reports]

    @property
    def live_stage_panes(self) -> list[FakePane]:
        return [p for p in self.stage_panes if not p.disposed]


class FakeClient:
    """Stands in for GitLabClient; records calls and returns canned data."""

    def __init__(self, pipeline=None, log_text="line 1\nline 2"):
        self.pipeline = pipeline
        self.log_text = log_text
        self.calls: list[tuple] = []
        self.errors: dict[str, Exception] = {}

    async def _call(self, name, *args):
        self.calls.append((name, *args))
        error = self.errors.get(name)
        if error is not None:
            raise error

    async def fetch_pipeline(self, ref):
        await self._call("fetch_pipeline", ref)
        return self.pipeline

    async def fetch_job_log(self, job_gid):
        await self._call("fetch_job_log", job_gid)
        return self.log_text

    async def cancel_job(self, job_gid):
        await self._call("cancel_job", job_gid)
        return {}

    async def retry_job(self, job_gid):
        await self._call("retry_job", job_gid)
        return {}

    async def cancel_pipeline(self, pipeline_gid):
        await self._call("cancel_pipeline", pipeline_gid)
        return {}

    async def retry_pipeline(self, pipeline_gid):
        await self._call("retry_pipeline", pipeline_gid)
        return {}

    def called(self, name) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def client(pipeline):
    return FakeClient(pipeline=pipeline)


@pytest.fixture
def build_pipeline():
    """Factory fixture for pipelines with custom stages."""
    return make_pipeline
