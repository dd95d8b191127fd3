import argparse
import datetime
import logging
import subprocess
import sys
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

from . import api
from .config import ConfigStore
from .constants import APP_NAME, LOG_BACKUP_COUNT, LOG_FILE, LOG_MAX_BYTES

logger = logging.getLogger(APP_NAME)
console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configures the logging subsystem.

    Args:
        verbose (bool): If True, also echo log records to stderr.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    if verbose:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    try:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT
        )
    except OSError as e:
        console.print(f"[yellow]Logging to file disabled: {e}[/yellow]")
        return
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)


def _positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: '{value}'") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _print_save_response(response: dict[str, Any]) -> None:
    """Renders a save_log response and exits non-zero on failure."""
    if not response["success"]:
        console.print(f"[bold red]ERROR:[/bold red] {response['error']}")
        sys.exit(1)

    console.print(f"[bold green]SUCCESS:[/bold green] Saved to {response['path']}")
    if error := response.get("error"):
        console.print(f"[bold yellow]WARNING:[/bold yellow] {error}")


def show_config(store: ConfigStore | None = None) -> None:
    """Displays the current save directory and remote."""
    config = api.get_config(store)

    content = Text()
    content.append("Save path: ", style="bold")
    if config["savePath"]:
        content.append(config["savePath"] + "\n", style="cyan")
    else:
        content.append("Not configured\n", style="bold red")
    content.append("Remote:    ", style="bold")
    if config["gitRepoUrl"]:
        content.append(config["gitRepoUrl"], style="cyan")
    else:
        content.append("None (local only)", style="dim")

    console.print(Panel(content, title="Journal Configuration", expand=False))


def select_directory() -> str | None:
    """Asks for a save directory interactively.

    Returns:
        str | None: The chosen absolute path, or None if the prompt was
        cancelled or left empty.
    """
    try:
        answer = Prompt.ask("Directory to store session notes in", default="")
    except (KeyboardInterrupt, EOFError):
        console.print("\nCancelled.", style="dim")
        return None

    answer = answer.strip()
    if not answer:
        return None
    path = Path(answer).expanduser().resolve()
    if path.exists() and not path.is_dir():
        console.print(f"[bold red]ERROR:[/bold red] {path} is not a directory.")
        return None
    return str(path)


def update_config(
    path: str | None,
    remote: str | None,
    local_only: bool = False,
    store: ConfigStore | None = None,
) -> None:
    """Merges the given values into the saved config and verifies the remote.

    Args:
        path (str | None): New save directory, or None to keep the current one.
        remote (str | None): New remote URL, or None to keep the current one.
        local_only (bool): Clear the remote URL.
        store (ConfigStore | None): Config source.
    """
    payload = api.get_config(store)
    if path is not None:
        payload["savePath"] = path
    if remote is not None:
        payload["gitRepoUrl"] = remote
    if local_only:
        payload["gitRepoUrl"] = ""

    with console.status("[bold blue]Checking remote...[/bold blue]", spinner="dots"):
        response = api.save_config(payload, store)

    if not response["success"]:
        console.print(f"[bold red]ERROR:[/bold red] {response['error']}")
        sys.exit(1)

    console.print("[bold green]SUCCESS:[/bold green] Configuration saved.")
    if error := response.get("error"):
        console.print(f"[bold yellow]WARNING:[/bold yellow] {error}")


def save_entry(
    topic: str,
    minutes: int,
    acquisition: str = "",
    debt: str = "",
    next_action: str = "",
    started_at: datetime.datetime | None = None,
    store: ConfigStore | None = None,
) -> None:
    """Persists one finished session and reports the outcome."""
    payload: dict[str, Any] = {
        "topic": topic,
        "duration": minutes,
        "acquisition": acquisition,
        "debt": debt,
        "nextAction": next_action,
    }
    if started_at is not None:
        payload["date"] = started_at.isoformat(timespec="seconds")

    with console.status("[bold blue]Saving session...[/bold blue]", spinner="dots"):
        response = api.save_log(payload, store)
    _print_save_response(response)


def run_timer(
    topic: str,
    minutes: int,
    acquisition: str = "",
    debt: str = "",
    next_action: str = "",
    store: ConfigStore | None = None,
) -> None:
    """Runs a countdown, then asks for a reflection and saves the session.

    Interrupting the countdown (Ctrl+C) discards the session entirely.
    """
    if minutes <= 0:
        console.print("[bold red]ERROR:[/bold red] Minutes must be greater than zero.")
        sys.exit(1)

    started_at = datetime.datetime.now().replace(microsecond=0)
    total = minutes * 60

    try:
        with console.status("", spinner="dots") as status:
            for remaining in range(total, 0, -1):
                mins, secs = divmod(remaining, 60)
                status.update(
                    f"[bold blue]{topic}[/bold blue]  {mins:02d}:{secs:02d} remaining"
                )
                time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n[bold red]ABORTED.[/bold red] Nothing was saved.")
        sys.exit(0)

    console.print(f"[bold green]Time's up![/bold green] {minutes} minutes of {topic}.")
    try:
        acquisition = Prompt.ask("What did you understand?", default=acquisition)
        debt = Prompt.ask("What is still unclear?", default=debt)
        next_action = Prompt.ask("What is the next action?", default=next_action)
    except (KeyboardInterrupt, EOFError):
        console.print("\n[bold red]ABORTED.[/bold red] Nothing was saved.")
        sys.exit(0)

    save_entry(
        topic,
        minutes,
        acquisition=acquisition,
        debt=debt,
        next_action=next_action,
        started_at=started_at,
        store=store,
    )


def show_history(limit: int | None = None, store: ConfigStore | None = None) -> None:
    """Lists saved sessions, newest first."""
    entries = api.get_logs(store)
    if not entries:
        console.print("[yellow]No sessions recorded yet.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Date", style="dim")
    table.add_column("Topic", style="cyan")
    table.add_column("Minutes", justify="right")
    table.add_column("Acquisition")

    shown = entries[:limit] if limit is not None else entries
    for entry in shown:
        acquisition = entry["acquisition"].splitlines()[0] if entry["acquisition"] else ""
        table.add_row(
            entry["date"] or "-",
            entry["topic"] or "-",
            str(entry["duration"]),
            acquisition,
        )

    console.print(table)
    total = sum(int(e["duration"]) for e in entries)
    console.print(f"[dim]{len(entries)} session(s), {total} minutes in total.[/dim]")


def tail_log() -> None:
    """Follows the application log file in real-time."""
    if not LOG_FILE.exists():
        console.print(f"[red]No log file found yet at {LOG_FILE}.[/red]")
        return

    console.print(f"Tailing [bold cyan]{LOG_FILE}[/bold cyan] (Ctrl+C to stop)...")
    try:
        subprocess.run(["tail", "-n", "200", "-f", str(LOG_FILE)])
    except KeyboardInterrupt:
        console.print("\nStopped.", style="dim")


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Study Journal CLI."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME, description="Timed study sessions, journaled to git."
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Echo log output to stderr"
    )
    subparsers = parser.add_subparsers(dest="command")

    config_parser = subparsers.add_parser(
        "config", help="Show or change the save directory and remote"
    )
    config_parser.add_argument("--path", help="Directory to store session notes in")
    config_parser.add_argument(
        "--choose", action="store_true", help="Pick the save directory interactively"
    )
    remote_group = config_parser.add_mutually_exclusive_group()
    remote_group.add_argument("--remote", help="Git remote URL to push to")
    remote_group.add_argument(
        "--local-only", action="store_true", help="Stop pushing to a remote"
    )

    def add_session_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("topic", help="What you are studying")
        p.add_argument(
            "--minutes", "-m", type=int, default=25, help="Session length (default: 25)"
        )
        p.add_argument("--acquisition", "-a", default="", help="What you understood")
        p.add_argument("--debt", "-d", default="", help="What is still unclear")
        p.add_argument("--next", "-n", dest="next_action", default="", help="Next step")

    save_parser = subparsers.add_parser("save", help="Record a finished session")
    add_session_args(save_parser)

    start_parser = subparsers.add_parser("start", help="Start a timed session")
    add_session_args(start_parser)

    history_parser = subparsers.add_parser("history", help="List recorded sessions")
    history_parser.add_argument(
        "--limit",
        type=_positive_int,
        default=None,
        help="Show only the newest N sessions",
    )

    subparsers.add_parser("log", help="Tail the application log file")

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if args.command == "config":
        if args.choose:
            args.path = select_directory()
            if args.path is None:
                return
        if args.path is None and args.remote is None and not args.local_only:
            show_config()
        else:
            update_config(args.path, args.remote, args.local_only)
        return
    elif args.command == "save":
        save_entry(
            args.topic,
            args.minutes,
            acquisition=args.acquisition,
            debt=args.debt,
            next_action=args.next_action,
        )
        return
    elif args.command == "start":
        run_timer(
            args.topic,
            args.minutes,
            acquisition=args.acquisition,
            debt=args.debt,
            next_action=args.next_action,
        )
        return
    elif args.command == "history":
        show_history(args.limit)
        return
    elif args.command == "log":
        tail_log()
        return

    parser.print_help()


if __name__ == "__main__":
    main()
