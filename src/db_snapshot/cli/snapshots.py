"""Snapshot commands: backup, list, restore, validate, delete, prune.

Registered on the main ``db-snapshot`` parser by ``db_snapshot.cli``.
"""

import argparse
import asyncio
from pathlib import Path

from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from db_snapshot.engine import SnapshotEngine
from db_snapshot.errors import SnapshotError
from db_snapshot.factory import ProfileNotFoundError, get_engine
from db_snapshot.registry.business import BUSINESS_REGISTRY
from db_snapshot.snapshot.restore import RestoreResult
from db_snapshot.snapshot.validation import validate_snapshot

console = Console()


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def _counts_table(title: str, counts: dict[str, int]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Entity")
    table.add_column("Records", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    return table


async def _open_engine(args: argparse.Namespace) -> SnapshotEngine | None:
    """Engine for the active profile, or None after printing why not."""
    try:
        return await get_engine(env_prefix=getattr(args, "env_prefix", ""))
    except (ProfileNotFoundError, KeyError, FileNotFoundError, ValueError, SnapshotError) as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return None


def _print_restore_result(result: RestoreResult) -> int:
    console.print()
    if not result.success:
        console.print(f"[bold red]x[/bold red] Restore failed ({result.error_code}): {result.error}")
        console.print("[dim]The database was not modified.[/dim]")
        return 1

    console.print("[bold green]v[/bold green] Restore complete")
    console.print(_counts_table("Restored records", result.inserted))
    for table, count in result.linked.items():
        console.print(f"  Linked {count} rows in [cyan]{table}[/cyan]")
    return 0


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_backup(args: argparse.Namespace) -> int:
    engine = await _open_engine(args)
    if engine is None:
        return 1

    try:
        if args.output:
            try:
                snapshot = await engine.build()
            except SnapshotError as e:
                console.print(f"[bold red]x[/bold red] Backup failed: {e}")
                return 1
            path = Path(args.output)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(snapshot.to_json(), encoding="utf-8")
            console.print(f"[bold green]v[/bold green] Snapshot written to [cyan]{path}[/cyan]")
            console.print(_counts_table("Snapshot contents", snapshot.counts()))
            return 0

        result = await engine.backup()
        if not result.success:
            console.print(f"[bold red]x[/bold red] Backup failed ({result.error_code}): {result.error}")
            return 1

        descriptor = result.descriptor
        console.print(
            f"[bold green]v[/bold green] Snapshot [bold cyan]{descriptor.id}[/bold cyan] "
            f"saved ({_format_size(descriptor.size_bytes)})"
        )
        if result.pruned:
            console.print(f"  Pruned {len(result.pruned)} older snapshots")
        return 0
    finally:
        await engine.close()


async def _async_list(args: argparse.Namespace) -> int:
    engine = await _open_engine(args)
    if engine is None:
        return 1

    try:
        descriptors = await engine.store.list(limit=args.limit)
    except SnapshotError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1
    finally:
        await engine.close()

    if not descriptors:
        console.print("[yellow]No snapshots stored.[/yellow]")
        return 0

    table = Table(title="Snapshots", show_header=True, header_style="bold")
    table.add_column("Id")
    table.add_column("Created")
    table.add_column("Size", justify="right")
    table.add_column("Filename", style="dim")
    for d in descriptors:
        table.add_row(
            d.id,
            d.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            _format_size(d.size_bytes),
            d.filename,
        )
    console.print(table)
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    source = args.id if args.id else args.file
    if not args.yes:
        console.print(f"[bold yellow]This will replace ALL data with snapshot:[/bold yellow] {source}")
        if not Confirm.ask("Continue?", default=False, console=console):
            console.print("Cancelled.")
            return 0

    payload: bytes | None = None
    if not args.id:
        try:
            payload = Path(args.file).read_bytes()
        except OSError as e:
            console.print(f"[bold red]x[/bold red] Cannot read {args.file}: {e}")
            return 1

    engine = await _open_engine(args)
    if engine is None:
        return 1

    try:
        if args.id:
            result = await engine.restore_by_id(args.id)
        else:
            result = await engine.restore_document(payload)
    finally:
        await engine.close()

    return _print_restore_result(result)


async def _async_delete(args: argparse.Namespace) -> int:
    engine = await _open_engine(args)
    if engine is None:
        return 1

    try:
        await engine.store.delete(args.snapshot_id)
    except SnapshotError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1
    finally:
        await engine.close()

    console.print(f"[bold green]v[/bold green] Deleted snapshot {args.snapshot_id}")
    return 0


async def _async_prune(args: argparse.Namespace) -> int:
    engine = await _open_engine(args)
    if engine is None:
        return 1

    try:
        removed = await engine.store.prune(args.keep)
    except SnapshotError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1
    finally:
        await engine.close()

    console.print(f"[bold green]v[/bold green] Removed {len(removed)} snapshots, kept {args.keep}")
    return 0


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_backup(args: argparse.Namespace) -> int:
    """Build a snapshot and store it (or write it to ``--output``)."""
    return asyncio.run(_async_backup(args))


def cmd_list(args: argparse.Namespace) -> int:
    """List stored snapshots, newest first."""
    return asyncio.run(_async_list(args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore from a snapshot file or a stored snapshot id."""
    return asyncio.run(_async_restore(args))


def cmd_delete(args: argparse.Namespace) -> int:
    return asyncio.run(_async_delete(args))


def cmd_prune(args: argparse.Namespace) -> int:
    return asyncio.run(_async_prune(args))


def cmd_validate(args: argparse.Namespace) -> int:
    """Check a snapshot file without restoring it.

    Reads only the local file -- no database calls.
    """
    try:
        text = Path(args.file).read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[bold red]x[/bold red] Cannot read {args.file}: {e}")
        return 1

    report = validate_snapshot(text, BUSINESS_REGISTRY)
    console.print(f"Validating: [cyan]{args.file}[/cyan]")

    if report["errors"]:
        console.print(f"\n[bold red]Found {len(report['errors'])} errors:[/bold red]")
        for error in report["errors"]:
            console.print(f"  - {error}")

    if report["warnings"]:
        console.print(f"\n[yellow]Found {len(report['warnings'])} warnings:[/yellow]")
        for warning in report["warnings"]:
            console.print(f"  - {warning}")

    if not report["valid"]:
        console.print("\n[bold red]x[/bold red] Snapshot is invalid")
        return 1

    console.print(_counts_table("Snapshot contents", report["counts"]))
    console.print("\n[bold green]v[/bold green] Snapshot is valid")
    return 0


def register(subparsers: argparse._SubParsersAction) -> None:
    """Add the snapshot commands to the main parser."""
    p_backup = subparsers.add_parser("backup", help="Build a snapshot and store it")
    p_backup.add_argument(
        "--output",
        "-o",
        help="Write the snapshot to this JSON file instead of the snapshot store",
    )
    p_backup.set_defaults(func=cmd_backup)

    p_list = subparsers.add_parser("list", help="List stored snapshots")
    p_list.add_argument("--limit", "-n", type=int, default=None, help="Show at most N snapshots")
    p_list.set_defaults(func=cmd_list)

    p_restore = subparsers.add_parser(
        "restore",
        help="Replace all data with a snapshot (atomic)",
    )
    source = p_restore.add_mutually_exclusive_group(required=True)
    source.add_argument("file", nargs="?", help="Path to snapshot JSON file")
    source.add_argument("--id", help="Id of a stored snapshot")
    p_restore.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")
    p_restore.set_defaults(func=cmd_restore)

    p_validate = subparsers.add_parser("validate", help="Validate a snapshot file")
    p_validate.add_argument("file", help="Path to snapshot JSON file")
    p_validate.set_defaults(func=cmd_validate)

    p_delete = subparsers.add_parser("delete", help="Delete a stored snapshot")
    p_delete.add_argument("snapshot_id", help="Id of the snapshot to delete")
    p_delete.set_defaults(func=cmd_delete)

    p_prune = subparsers.add_parser("prune", help="Delete all but the newest snapshots")
    p_prune.add_argument("--keep", type=int, required=True, help="Number of snapshots to keep")
    p_prune.set_defaults(func=cmd_prune)
