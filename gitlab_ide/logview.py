# SPDX-License-Identifier: AGPL-3.0-only
# Copyright (c) 2026 sol pbc

"""Job log pane: initial load, manual refresh and polling for active jobs."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from gitlab_ide.errors import ApiError
from gitlab_ide.models import CancelToken, Job
from gitlab_ide.status import glyph, is_active

logger = logging.getLogger(__name__)

LOG_POLL_INTERVAL = 5.0  # seconds
LOADING_TEXT = "Loading job log..."
LOG_FOOTER = " q:back r:refresh Esc:close "

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")


def strip_ansi(text: str) -> str:
    """Remove ANSI escape codes (ESC [ params letter) from text."""
    return _ANSI_ESCAPE.sub("", text)


def log_lines(raw: str) -> list[str]:
    """Strip control sequences and split a raw trace into lines, keeping blanks."""
    return strip_ansi(raw).split("\n")


def log_title(job: Job) -> str:
    return f" {glyph(job.status)} {job.name} [{job.status}] "


@dataclass
class LogSession:
    """One open log pane for one job."""

    job: Job
    pane: Any  # LogPaneHandle
    api_context: Any  # ApiContext
    token: CancelToken = field(default_factory=CancelToken)
    timer: Any = None  # present iff the job was active when the session opened


class LogPaneController:
    """Creates, feeds and tears down log sessions.

    Fetch results are written only while the session's token is live; after
    close() any late result is dropped.
    """

    def __init__(self, host, client_factory: Callable, poll_interval: float = LOG_POLL_INTERVAL):
        self.host = host
        self._client_factory = client_factory
        self.poll_interval = poll_interval

    def open(self, job: Job, api_context) -> LogSession:
        """Open a log pane for a job and start loading its trace."""
        pane = self.host.mount_log_pane(log_title(job), LOG_FOOTER)
        pane.set_lines([LOADING_TEXT])
        session = LogSession(job=job, pane=pane, api_context=api_context)
        logger.info(f"log open job={job.name} status={job.status}")

        self.host.spawn(self._load(session, inline_errors=True))
        if is_active(job.status):
            session.timer = self.host.set_interval(self.poll_interval, lambda: self._tick(session))
        self.host.focus_pane(pane)
        return session

    def refresh(self, session: LogSession) -> None:
        """Reload the log on request; failures are reported, not written to the pane."""
        if session.token.cancelled:
            return
        self.host.spawn(self._load(session, inline_errors=False))

    def close(self, session: LogSession) -> None:
        """End a session: cancel its token, stop the timer, then dispose the pane."""
        session.token.cancel()
        if session.timer is not None:
            session.timer.stop()
            session.timer = None
        session.pane.dispose()
        logger.info(f"log close job={session.job.name}")

    def _tick(self, session: LogSession) -> None:
        if session.token.cancelled:
            return
        self.host.spawn(self._load(session, inline_errors=True))

    async def _load(self, session: LogSession, inline_errors: bool) -> None:
        token = session.token
        client = self._client_factory(session.api_context)
        try:
            raw = await client.fetch_job_log(session.job.id)
        except ApiError as e:
            if token.cancelled:
                logger.debug(f"discarding stale log error job={session.job.name}")
                return
            logger.warning(f"log fetch failed job={session.job.name}: {e}")
            if inline_errors:
                session.pane.set_lines([f"Error fetching log: {e}"])
            else:
                self.host.report(f"Log refresh failed: {e}", severity="error")
            return

        if token.cancelled:
            logger.debug(f"discarding stale log job={session.job.name}")
            return
        lines = log_lines(raw)
        session.pane.set_lines(lines)
        session.pane.scroll_to_end()
