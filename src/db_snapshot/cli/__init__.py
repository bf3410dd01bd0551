"""CLI for full-dataset snapshots and atomic restores.

Usage:
    DB_PROFILE=local db-snapshot connect
    db-snapshot status
    db-snapshot profiles
    db-snapshot order
    db-snapshot backup
    db-snapshot backup --output backups/manual.json
    db-snapshot list --limit 10
    db-snapshot restore backups/manual.json
    db-snapshot restore --id 3f2a... --yes
    db-snapshot validate backups/manual.json
    db-snapshot delete 3f2a...
    db-snapshot prune --keep 30

Commands:
    connect   - Connect to a profile and check registry coverage
    status    - Show current connection status
    profiles  - List available profiles
    order     - Show the restore insert order
    backup    - Build a snapshot and store it
    list      - List stored snapshots
    restore   - Replace all data with a snapshot
    validate  - Validate a snapshot file
    delete    - Delete a stored snapshot
    prune     - Delete all but the newest snapshots
"""

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from db_snapshot.cli import snapshots
from db_snapshot.config.loader import load_db_config
from db_snapshot.factory import connect_and_validate, read_profile_lock
from db_snapshot.registry.business import BUSINESS_REGISTRY
from db_snapshot.registry.sequencer import DependencySequencer

console = Console()


def configure_logging(verbose: bool = False) -> None:
    """Route log records through rich, on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=verbose)],
        force=True,
    )


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_connect(args: argparse.Namespace) -> int:
    """Connect to the active profile and check registry coverage.

    Returns:
        0 on success, 1 on failure.
    """
    env_prefix = getattr(args, "env_prefix", "")

    previous_profile = read_profile_lock()

    console.print("Connecting to database...", style="dim")

    result = await connect_and_validate(env_prefix=env_prefix)

    if result.success:
        console.print()
        console.print(
            f"[bold green]v[/bold green] Connected to profile: "
            f"[bold cyan]{result.profile_name}[/bold cyan]"
        )
        console.print("  Registry coverage: [green]PASSED[/green]")

        if previous_profile and previous_profile != result.profile_name:
            console.print(
                f"\n[dim]Switched from[/dim] [bold]{previous_profile}[/bold] "
                f"[dim]to[/dim] [bold cyan]{result.profile_name}[/bold cyan]"
            )
        return 0

    console.print()
    console.print(f"[bold red]x[/bold red] {result.error}")
    if result.coverage_report:
        console.print("\n[bold]Registry coverage report:[/bold]")
        console.print(result.coverage_report.format_report())
    return 1


# ============================================================================
# Sync command wrappers (status, profiles and order read local state only)
# ============================================================================


def cmd_connect(args: argparse.Namespace) -> int:
    """Connect to database and check registry coverage."""
    return asyncio.run(_async_connect(args))


def cmd_status(args: argparse.Namespace) -> int:
    """Show current connection status.

    Reads only local files (lock file and TOML config) -- no database calls.

    Returns:
        0 always (informational command).
    """
    profile = read_profile_lock()

    if not profile:
        console.print("[yellow]No connected profile.[/yellow]")
        console.print("[dim]Run:[/dim] [cyan]DB_PROFILE=<name> db-snapshot connect[/cyan]")
        return 0

    table = Table(title="Connection Status", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Current profile", f"[bold cyan]{profile}[/bold cyan]")
    table.add_row("Profile source", ".db-profile")

    try:
        config = load_db_config()
    except (FileNotFoundError, ValueError):
        table.add_row("Warning", "[yellow]db.toml not found or invalid[/yellow]")
    else:
        if profile in config.profiles:
            p = config.profiles[profile]
            table.add_row("Provider", p.provider)
            if p.description:
                table.add_row("Description", p.description)
        table.add_row("Snapshot store", config.snapshot.store)
        if config.snapshot.store == "file":
            table.add_row("Directory", config.snapshot.directory)
        table.add_row("Keep last", str(config.snapshot.keep_last or "all"))

    console.print(table)
    return 0


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Returns:
        0 on success, 1 if db.toml not found.
    """
    try:
        config = load_db_config()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    current = read_profile_lock()

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        table.add_row(
            marker,
            f"[bold cyan]{name}[/bold cyan]" if name == current else name,
            profile.provider,
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = current profile")
    return 0


def cmd_order(args: argparse.Namespace) -> int:
    """Show the order in which a restore inserts entity and join types."""
    sequencer = DependencySequencer(BUSINESS_REGISTRY)
    registry = sequencer.registry

    table = Table(title="Restore Order", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Type")
    table.add_column("Table")
    table.add_column("Depends on")

    joins = {j.name: j for j in sequencer.joins_in_insert_order()}
    for position, name in enumerate(sequencer.insert_order, start=1):
        if name in joins:
            join = joins[name]
            depends = f"{join.left.entity}, {join.right.entity}"
            table.add_row(str(position), f"[magenta]{name}[/magenta] (join)", join.table, depends)
            continue
        entity = registry.get(name)
        depends = ", ".join(registry.dependencies_of(name))
        if entity.self_reference:
            depends = f"{depends} (+ self via {entity.self_reference})".strip()
        table.add_row(str(position), name, entity.table, depends)

    console.print(table)
    console.print("[dim]Deletes run in reverse order.[/dim]")
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="db-snapshot",
        description="Full-dataset snapshot and atomic restore",
    )

    # Global options
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_connect = subparsers.add_parser(
        "connect",
        help="Connect to database and check registry coverage",
    )
    p_connect.set_defaults(func=cmd_connect)

    p_status = subparsers.add_parser("status", help="Show current connection status")
    p_status.set_defaults(func=cmd_status)

    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    p_order = subparsers.add_parser("order", help="Show the restore insert order")
    p_order.set_defaults(func=cmd_order)

    snapshots.register(subparsers)

    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
