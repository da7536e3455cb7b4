"""Tests for the gitlab-ide CLI."""

import sys
from unittest.mock import patch

from gitlab_ide.cli import COMMANDS, main
from gitlab_ide.config import ApiContext, load_config, save_config
from gitlab_ide.errors import ResolutionError


def run(*args):
    with patch.object(sys, "argv", ["gitlab-ide", *args]):
        with patch("gitlab_ide.cli.setproctitle.setproctitle"):
            return main()


def test_commands_registered():
    assert set(COMMANDS) == {"pipeline", "config"}


def test_help(capsys):
    assert run() == 0
    out = capsys.readouterr().out
    assert "Usage: gitlab-ide <command> [options]" in out
    assert "pipeline" in out


def test_version(capsys):
    from gitlab_ide import __version__

    assert run("--version") == 0
    assert capsys.readouterr().out.strip() == f"gitlab-ide {__version__}"


def test_unknown_command(capsys):
    assert run("bogus") == 1
    assert "unknown command: bogus" in capsys.readouterr().out


class TestPipeline:
    def test_opens_tui(self):
        ctx = ApiContext("https://gitlab.com", "tok", "grp/proj")
        with patch("gitlab_ide.config.resolve_context", return_value=(ctx, "main")) as resolve:
            with patch("gitlab_ide.tui.run_tui", return_value=0) as run_tui:
                assert run("pipeline", "--remote", "upstream", "-C", "/repo") == 0
        settings, repo_dir = resolve.call_args[0]
        assert settings.remote == "upstream"
        assert repo_dir == "/repo"
        run_tui.assert_called_once_with(ctx, "main")

    def test_gitlab_url_flag(self):
        ctx = ApiContext("https://git.corp", "tok", "grp/proj")
        with patch("gitlab_ide.config.resolve_context", return_value=(ctx, "main")) as resolve:
            with patch("gitlab_ide.tui.run_tui", return_value=0):
                run("pipeline", "--gitlab-url", "https://git.corp")
        assert resolve.call_args[0][0].gitlab_url == "https://git.corp"

    def test_resolution_error(self, capsys):
        error = ResolutionError("Detached HEAD; check out a branch first")
        with patch("gitlab_ide.config.resolve_context", side_effect=error):
            with patch("gitlab_ide.tui.run_tui") as run_tui:
                assert run("pipeline") == 1
        assert "gitlab-ide: Detached HEAD" in capsys.readouterr().out
        run_tui.assert_not_called()

    def test_bad_option(self, capsys):
        assert run("pipeline", "--remote") == 1
        assert "error:" in capsys.readouterr().out


class TestConfig:
    def test_empty(self, capsys):
        assert run("config") == 0
        assert "No config set" in capsys.readouterr().out

    def test_set_and_get(self, capsys):
        assert run("config", "remote", "upstream") == 0
        assert load_config() == {"remote": "upstream"}
        capsys.readouterr()

        assert run("config", "remote") == 0
        assert capsys.readouterr().out.strip() == "upstream"

    def test_token_is_masked(self, capsys):
        assert run("config", "token", "glpat-secret") == 0
        assert "glpat-secret" not in capsys.readouterr().out
        assert run("config") == 0
        assert capsys.readouterr().out.strip() == "token=********"

    def test_unknown_key(self, capsys):
        assert run("config", "colour", "red") == 1
        assert "Unknown config key: colour" in capsys.readouterr().out

    def test_unset(self, capsys):
        save_config({"gitlab_url": "https://git.corp"})
        assert run("config", "gitlab_url", "--unset") == 0
        assert load_config() == {}
        assert run("config", "gitlab_url", "--unset") == 1

    def test_get_missing(self, capsys):
        assert run("config", "token") == 1
        assert "not set" in capsys.readouterr().out
