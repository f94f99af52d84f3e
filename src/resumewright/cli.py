"""Command-line interface for inspecting and editing watch progress."""
import argparse
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .core import insights
from .core.records import ProgressRecord
from .core.store import ProgressStore
from .exceptions import ResumewrightError
from .persistence.backends import create_backend
from .utils.config_file import ConfigFileManager
from .utils.logging import configure_logging, get_logger

console = Console()
logger = get_logger("cli")


def _config_manager(args) -> ConfigFileManager:
    if getattr(args, "config_manager", None) is not None:
        return args.config_manager
    manager = ConfigFileManager()
    if getattr(args, "config", None):
        manager.project_config_path = Path(args.config)
    manager.load()
    for error in manager.get_validation_errors():
        console.print(f"[yellow]Config warning:[/yellow] {error.path}: {escape(error.message)}")
    return manager


@contextmanager
def open_store(args) -> Iterator[ProgressStore]:
    """Build the store from config files and CLI overrides, closing it afterwards."""
    manager = _config_manager(args)
    config = manager.store_config(
        backend=args.backend,
        data_dir=args.data_dir,
        write_mode="sync",
    )
    backend = create_backend(config.backend, config.data_dir)
    store = ProgressStore(backend, config)
    try:
        yield store
    finally:
        store.close()


def _records_table(records: List[ProgressRecord], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Content ID", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Show", style="magenta")
    table.add_column("Position", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_column("Progress", justify="right", style="green")
    table.add_column("Last watched", style="dim")

    for record in records:
        table.add_row(
            record.content_id,
            record.title,
            record.show_name or "-",
            f"{record.formatted_current_time} / {record.formatted_duration}",
            f"-{record.formatted_remaining_time}",
            f"{record.progress_percentage:.0f}%",
            record.last_watched.strftime("%Y-%m-%d %H:%M"),
        )
    return table


def list_progress(args) -> int:
    with open_store(args) as store:
        if args.show:
            records = store.get_continue_watching_for_show(args.show)
            console.print(_records_table(records, f"Continue Watching: {args.show}"))
        elif args.by_show:
            for show, records in store.get_continue_watching_by_show(args.limit).items():
                console.print(_records_table(records, show))
        else:
            records = store.get_continue_watching_list(args.limit)
            console.print(_records_table(records, "Continue Watching"))
        logger.debug("Listed progress", count=len(store))
    return 0


def show_progress(args) -> int:
    with open_store(args) as store:
        record = store.get_progress(args.content_id)
        if record is None:
            console.print(f"[yellow]No saved progress for {args.content_id}[/yellow]")
            return 1
        body = "\n".join([
            f"[bold]{record.title}[/bold]",
            f"Show: {record.show_name or '-'}",
            f"Progress: {store.get_progress_text(args.content_id)}",
            f"Remaining: {record.formatted_remaining_time}",
            f"Last watched: {record.last_watched.isoformat()}",
        ])
        console.print(Panel(body, title=record.content_id, border_style="cyan"))
    return 0


def update_progress(args) -> int:
    with open_store(args) as store:
        store.update_progress(args.content_id, args.current_time, args.duration, args.title, args.show)
        text = store.get_progress_text(args.content_id)
    if text is None:
        console.print(f"[dim]{args.content_id} is not in progress (outside the tracking band)[/dim]")
    else:
        console.print(f"[green]Saved[/green] {args.content_id}: {text}")
    return 0


def remove_progress(args) -> int:
    with open_store(args) as store:
        existed = store.has_progress(args.content_id)
        store.remove_progress(args.content_id)
    if existed:
        console.print(f"[green]Removed[/green] {args.content_id}")
    else:
        console.print(f"[dim]Nothing saved for {args.content_id}[/dim]")
    return 0


def clear_progress(args) -> int:
    if not args.yes:
        console.print("[yellow]Refusing to clear without --yes[/yellow]")
        return 1
    with open_store(args) as store:
        if args.show:
            removed = store.clear_progress_for_show(args.show)
            console.print(f"[green]Removed {removed} item(s) for {args.show}[/green]")
        else:
            store.clear_all()
            console.print("[green]Cleared all watch progress[/green]")
    return 0


def show_stats(args) -> int:
    with open_store(args) as store:
        records = list(store.snapshot().values())

    stats = insights.watch_statistics(records)
    table = Table(title="Watch Statistics", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Items in progress", str(stats["total_episodes_in_progress"]))
    table.add_row("Watch time (hours)", f"{stats['total_watch_time_hours']:.1f}")
    table.add_row("Average completion", f"{stats['average_completion_percentage']:.0f}%")
    table.add_row("Shows being watched", str(stats["shows_being_watched"]))
    table.add_row("Most recent", stats["most_recent_episode"])
    table.add_row("Most watched show", stats["most_watched_show"])
    console.print(table)

    binge = insights.binge_watching(records)
    if binge:
        console.print(f"Binge-watching: {', '.join(binge)}")
    for suggestion in insights.recommendations(records):
        console.print(f"[cyan]*[/cyan] {suggestion}")
    return 0


def config_show(args) -> int:
    manager = _config_manager(args)
    console.print(manager.show_config())
    return 0


def config_init(args) -> int:
    manager = ConfigFileManager()
    path = manager.init_config("project" if args.project else "user")
    console.print(f"[green]Wrote default configuration to {path}[/green]")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="resumewright",
        description="ResumeWright - watch progress and continue-watching state",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show the continue-watching row
  resumewright list --limit 5

  # Record a position (seconds) for an episode
  resumewright update vidA 600 3600 --title "Sermon 1" --show "Sunday Service"

  # Forget one item, or everything for a show
  resumewright remove vidA
  resumewright clear --show "Sunday Service" --yes
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--backend", choices=["memory", "file", "sqlite"], help="Storage backend")
    parser.add_argument("--data-dir", type=str, help="Directory for file/sqlite storage")
    parser.add_argument("--config", type=str, help="Path to a YAML config file")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level")
    parser.add_argument("--log-format", choices=["text", "json"], help="Log output format")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    list_parser = subparsers.add_parser("list", help="Show the continue-watching list")
    list_parser.add_argument("--limit", type=int, default=None, help="Maximum items (default from config)")
    list_parser.add_argument("--show", type=str, help="Only items from this show")
    list_parser.add_argument("--by-show", action="store_true", help="Group items by show")
    list_parser.set_defaults(func=list_progress)

    show_parser = subparsers.add_parser("show", help="Show saved progress for one item")
    show_parser.add_argument("content_id")
    show_parser.set_defaults(func=show_progress)

    update_parser = subparsers.add_parser("update", help="Record a playback position")
    update_parser.add_argument("content_id")
    update_parser.add_argument("current_time", type=float, help="Position in seconds")
    update_parser.add_argument("duration", type=float, help="Duration in seconds")
    update_parser.add_argument("--title", required=True)
    update_parser.add_argument("--show", default=None)
    update_parser.set_defaults(func=update_progress)

    remove_parser = subparsers.add_parser("remove", help="Forget saved progress for one item")
    remove_parser.add_argument("content_id")
    remove_parser.set_defaults(func=remove_progress)

    clear_parser = subparsers.add_parser("clear", help="Forget all saved progress")
    clear_parser.add_argument("--show", type=str, help="Only clear this show")
    clear_parser.add_argument("--yes", action="store_true", help="Confirm")
    clear_parser.set_defaults(func=clear_progress)

    stats_parser = subparsers.add_parser("stats", help="Viewing statistics and suggestions")
    stats_parser.set_defaults(func=show_stats)

    config_parser = subparsers.add_parser("config", help="Manage configuration files")
    config_subparsers = config_parser.add_subparsers(dest="config_action")
    config_show_parser = config_subparsers.add_parser("show", help="Display merged configuration")
    config_show_parser.set_defaults(func=config_show)
    config_init_parser = config_subparsers.add_parser("init", help="Create default configuration file")
    config_init_parser.add_argument("--project", action="store_true", help="Write .resumewright.yaml here")
    config_init_parser.set_defaults(func=config_init)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        manager = _config_manager(args)
        args.config_manager = manager
        configure_logging(manager.log_config(log_level=args.log_level, log_format=args.log_format))
    except ResumewrightError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 2

    if not getattr(args, "func", None):
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except ResumewrightError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
