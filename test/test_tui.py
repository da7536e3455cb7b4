# SPDX-License-Identifier: AGPL-3.0-only
# Copyright (c) 2026 sol pbc

"""Tests for the Textual app driving the pipeline view."""

import pytest
from textual.widgets import Static

from gitlab_ide.controller import ViewMode
from gitlab_ide.errors import NoPipelinesError
from gitlab_ide.tui import ConfirmScreen, GitLabIdeApp, LogPane, StagePane


@pytest.fixture
def app(api_context, client):
    return GitLabIdeApp(api_context, "main", client_factory=lambda ctx: client)


async def settle(app, pilot):
    await app.workers.wait_for_complete()
    await pilot.pause()


@pytest.mark.asyncio
async def test_opens_grid_on_start(app, client):
    async with app.run_test(size=(120, 40)) as pilot:
        await settle(app, pilot)

        assert app.controller.mode is ViewMode.GRID
        panes = list(app.query(StagePane))
        assert [p.column for p in panes] == [0, 1, 2]
        assert app.focused is panes[0]
        assert app.sub_title == "grp/proj @ main"
        assert client.called("fetch_pipeline") == [("fetch_pipeline", "main")]
        assert not app.query_one("#closed-hint", Static).display


@pytest.mark.asyncio
async def test_column_navigation_wraps(app):
    async with app.run_test(size=(120, 40)) as pilot:
        await settle(app, pilot)

        await pilot.press("l")
        assert app.controller.state.focused_column == 1
        await pilot.press("h", "h")
        assert app.controller.state.focused_column == 2
        assert app.focused is list(app.query(StagePane))[2]


@pytest.mark.asyncio
async def test_cursor_moves_within_stage(app):
    async with app.run_test(size=(120, 40)) as pilot:
        await settle(app, pilot)

        await pilot.press("l", "j")
        assert app.controller.focused_job().name == "lint"
        await pilot.press("k", "k")
        assert app.controller.focused_job() is None


@pytest.mark.asyncio
async def test_log_drill_down_and_back(app, client):
    async with app.run_test(size=(120, 40)) as pilot:
        await settle(app, pilot)

        await pilot.press("enter")
        await settle(app, pilot)
        assert app.controller.mode is ViewMode.LOG
        assert list(app.query(StagePane)) == []
        log_pane = app.query_one(LogPane)
        assert list(log_pane.lines) == ["line 1", "line 2"]
        assert client.called("fetch_job_log") == [("fetch_job_log", "gid://gitlab/Ci::Build/1")]

        await pilot.press("q")
        await pilot.pause()
        assert app.controller.mode is ViewMode.GRID
        assert list(app.query(LogPane)) == []
        assert len(app.query(StagePane)) == 3


@pytest.mark.asyncio
async def test_escape_closes_and_o_reopens(app, client):
    async with app.run_test(size=(120, 40)) as pilot:
        await settle(app, pilot)

        await pilot.press("escape")
        await pilot.pause()
        assert app.controller.mode is ViewMode.CLOSED
        assert app.focused is None
        assert list(app.query(StagePane)) == []
        assert app.query_one("#closed-hint", Static).display
        assert app.check_action("open_log", ()) is False

        await pilot.press("o")
        await settle(app, pilot)
        assert app.controller.mode is ViewMode.GRID
        assert len(client.called("fetch_pipeline")) == 2


@pytest.mark.asyncio
async def test_cancel_job_confirmed(app, client):
    async with app.run_test(size=(120, 40)) as pilot:
        await settle(app, pilot)

        await pilot.press("c")
        await pilot.pause()
        assert isinstance(app.screen, ConfirmScreen)
        assert app.check_action("retry_job", ()) is False

        await pilot.press("y")
        await settle(app, pilot)
        assert client.called("cancel_job") == [("cancel_job", "gid://gitlab/Ci::Build/1")]
        assert not isinstance(app.screen, ConfirmScreen)


@pytest.mark.asyncio
async def test_cancel_job_declined(app, client):
    async with app.run_test(size=(120, 40)) as pilot:
        await settle(app, pilot)

        await pilot.press("c")
        await pilot.pause()
        await pilot.press("n")
        await settle(app, pilot)
        assert client.called("cancel_job") == []


@pytest.mark.asyncio
async def test_retry_pipeline_without_prompt(app, client):
    async with app.run_test(size=(120, 40)) as pilot:
        await settle(app, pilot)

        await pilot.press("X")
        await settle(app, pilot)
        assert client.called("retry_pipeline") == [
            ("retry_pipeline", "gid://gitlab/Ci::Pipeline/4200")
        ]


@pytest.mark.asyncio
async def test_fetch_failure_stays_closed(app, client):
    client.errors["fetch_pipeline"] = NoPipelinesError("No pipelines found for branch: main")
    async with app.run_test(size=(120, 40)) as pilot:
        await settle(app, pilot)

        assert app.controller.mode is ViewMode.CLOSED
        assert app.query_one("#closed-hint", Static).display


@pytest.mark.asyncio
async def test_close_from_grid_releases_focus(app, client):
    async with app.run_test(size=(120, 40)) as pilot:
        await settle(app, pilot)

        await pilot.press("l", "l")
        await pilot.press("q")
        await pilot.pause()
        assert app.controller.mode is ViewMode.CLOSED
        assert app.focused is None

        await pilot.press("o")
        await settle(app, pilot)
        assert app.controller.mode is ViewMode.GRID
        assert app.focused is list(app.query(StagePane))[0]


@pytest.mark.asyncio
async def test_quit_after_close(app):
    async with app.run_test(size=(120, 40)) as pilot:
        await settle(app, pilot)

        await pilot.press("escape")
        await pilot.pause()
        await pilot.press("Q")
        await pilot.pause()
        assert app._exit
