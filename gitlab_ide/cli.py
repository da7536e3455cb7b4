import argparse
import sys
from collections.abc import Callable

import setproctitle

from gitlab_ide import __version__

# Command registry: name -> (handler, description)
# Handler signature: (args: list[str]) -> int
COMMANDS: dict[str, tuple[Callable[[list[str]], int], str]] = {}


def command(name: str, description: str):
    """Decorator to register a command."""

    def decorator(func):
        COMMANDS[name] = (func, description)
        return func

    return decorator


class ArgumentError(Exception):
    """Raised when argument parsing fails."""

    pass


def make_parser(cmd: str, description: str) -> argparse.ArgumentParser:
    """Create an argument parser for a subcommand.

    Returns a parser configured with:
    - prog set to 'gitlab-ide <cmd>' for proper usage lines
    - exit_on_error=False so we can handle errors gracefully
    """
    return argparse.ArgumentParser(
        prog=f"gitlab-ide {cmd}",
        description=description,
        exit_on_error=False,
    )


def parse_args(parser: argparse.ArgumentParser, args: list[str]) -> argparse.Namespace:
    """Parse arguments, raising ArgumentError on failure."""
    try:
        return parser.parse_args(args)
    except argparse.ArgumentError as e:
        raise ArgumentError(str(e)) from e
    except SystemExit:
        # Raised by argparse for --help (exits with 0)
        raise


def print_help() -> None:
    """Print help text."""
    print(f"gitlab-ide v{__version__} - GitLab CI pipeline view for the current branch")
    print()
    print("Usage: gitlab-ide <command> [options]")
    print()
    print("Commands:")
    for name, (_, desc) in COMMANDS.items():
        print(f"  {name:<12} {desc}")
    print()
    print("Options:")
    print("  -h, --help   Show this help message")
    print("  --version    Show version number")


@command("pipeline", "Open the pipeline view for the current branch")
def cmd_pipeline(args: list[str]) -> int:
    """Resolve the project from git and open the TUI."""
    from gitlab_ide.config import Settings, resolve_context
    from gitlab_ide.errors import ResolutionError
    from gitlab_ide.tui import run_tui

    parser = make_parser(
        "pipeline",
        "Open the latest pipeline of the current branch. "
        "The token is read from GITLAB_TOKEN, GITLAB_PAT or the config file.",
    )
    parser.add_argument("--remote", help="Git remote to resolve the project from (default: origin)")
    parser.add_argument("--gitlab-url", help="GitLab base URL (default: detect from remote)")
    parser.add_argument("-C", dest="repo_dir", metavar="DIR", help="Run as if started in DIR")
    try:
        parsed = parse_args(parser, args)
    except SystemExit:
        return 0
    except ArgumentError as e:
        print(f"error: {e}")
        parser.print_usage()
        return 1

    settings = Settings.load(remote=parsed.remote, gitlab_url=parsed.gitlab_url)
    try:
        api_context, branch = resolve_context(settings, parsed.repo_dir)
    except ResolutionError as e:
        print(f"gitlab-ide: {e}")
        return 1

    return run_tui(api_context, branch)


@command("config", "Get or set config values")
def cmd_config(args: list[str]) -> int:
    """Get or set config values (remote, gitlab_url, token)."""
    from gitlab_ide.config import CONFIG_KEYS, load_config, save_config

    parser = make_parser(
        "config",
        f"Get or set config values. Keys: {', '.join(CONFIG_KEYS)}.",
    )
    parser.add_argument("name", nargs="?", help="Config key name")
    parser.add_argument("value", nargs="?", help="Value to set")
    parser.add_argument("--unset", action="store_true", help="Remove the key")
    try:
        parsed = parse_args(parser, args)
    except SystemExit:
        return 0
    except ArgumentError as e:
        print(f"error: {e}")
        parser.print_usage()
        return 1

    config = load_config()

    # No args: list all config
    if not parsed.name:
        if not config:
            print("No config set. Use: gitlab-ide config <name> <value>")
            return 0
        for key, value in sorted(config.items()):
            if key == "token":
                value = "********"
            print(f"{key}={value}")
        return 0

    if parsed.name not in CONFIG_KEYS:
        print(f"Unknown config key: {parsed.name}")
        print(f"Valid keys: {', '.join(CONFIG_KEYS)}")
        return 1

    if parsed.unset:
        if config.pop(parsed.name, None) is None:
            print(f"Config '{parsed.name}' not set.")
            return 1
        save_config(config)
        print(f"Unset {parsed.name}")
        return 0

    # One arg: get value
    if not parsed.value:
        if parsed.name in config:
            print(config[parsed.name])
        else:
            print(f"Config '{parsed.name}' not set.")
            return 1
        return 0

    # Two args: set value
    config[parsed.name] = parsed.value
    save_config(config)
    shown = "********" if parsed.name == "token" else parsed.value
    print(f"{parsed.name}={shown}")
    return 0


def main() -> int:
    """Main entry point with command dispatch."""
    args = sys.argv[1:]

    # No args or help flags -> show help
    if not args or args[0] in ("-h", "--help", "help"):
        print_help()
        return 0

    # Version flag
    if args[0] == "--version":
        print(f"gitlab-ide {__version__}")
        return 0

    cmd = args[0]
    cmd_args = args[1:]

    # Check for unknown commands
    if cmd not in COMMANDS:
        print(f"unknown command: {cmd}")
        print()
        print_help()
        return 1

    # Set process title
    setproctitle.setproctitle(f"gitlab-ide:{cmd}")

    # Dispatch to command handler
    handler, _ = COMMANDS[cmd]
    return handler(cmd_args)
