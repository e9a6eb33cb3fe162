"""
CLI command implementations.

Every command loads the albums document, runs one operation and prints a
report. Fatal document errors and interrupts are handled in ``main``.
"""

from __future__ import annotations

import argparse
from typing import Dict, Union

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from photofolio import config
from photofolio.analysis import AnalysisError, ExifOnlyAnalyzer, SceneAnalyzer
from photofolio.cleanup import run_cleanup
from photofolio.document import load_document, save_document, sort_photos
from photofolio.enhance import enhance_document
from photofolio.importer import AlbumNotFoundError, PhotoImporter
from photofolio.layout import LayoutConfig, items_from_photos, layout
from photofolio.log import get_logger
from photofolio.protocols import PortfolioPaths
from photofolio.reorder import ReorderSession
from photofolio.sync import AMBIGUOUS, MOVE_FAILED, RENAME, SyncError, sync_albums

LOGGER = get_logger(__name__)

_console = Console()


def _paths(args: argparse.Namespace) -> PortfolioPaths:
    return PortfolioPaths.from_root(args.root)


def _stats_table(title: str, stats: Dict[str, int]) -> Table:
    table = Table(title=f"[bold cyan]{title}[/]")
    table.add_column("[bold]Metric[/]", style="bold yellow")
    table.add_column("[bold]Count[/]", style="white", justify="right")
    for name, value in stats.items():
        table.add_row(name.replace("_", " ").capitalize(), str(value))
    return table


def make_analyzer(paths: PortfolioPaths, no_ai: bool = False) -> Union[SceneAnalyzer, ExifOnlyAnalyzer]:
    """Analysis collaborator for import and enhance.

    Falls back to EXIF-only analysis when AI is disabled or the analysis
    service cannot be reached.
    """
    if no_ai:
        LOGGER.info("AI analysis disabled, using EXIF data only")
        return ExifOnlyAnalyzer()

    analyzer = SceneAnalyzer(cache_dir=paths.cache_dir if config.ANALYSIS_CACHE else None)
    try:
        analyzer.initialize()
    except AnalysisError as exc:
        LOGGER.warning("%s; continuing with EXIF data only", exc)
        analyzer.close()
        return ExifOnlyAnalyzer()
    return analyzer


def cmd_import(args: argparse.Namespace) -> int:
    """Import new photos from album folders."""
    paths = _paths(args)
    importer = PhotoImporter(
        paths,
        analyzer=make_analyzer(paths, no_ai=args.no_ai),
        progress=not args.quiet,
    )
    try:
        stats = importer.run(args.album)
    except AlbumNotFoundError as exc:
        _console.print(f"[red]Error:[/] {exc}")
        if exc.available:
            _console.print("Available folders: " + ", ".join(exc.available))
        return 1
    finally:
        importer.close()

    _console.print(Panel.fit(_stats_table("Import Summary", stats)))
    if stats["imported"]:
        _console.print(
            "\n[dim]Next: review data/albums.json, then run 'folio sync --dry-run' "
            "to check album folders[/]"
        )
    return 0


def _parse_renames(pairs: list[str]) -> Dict[str, str]:
    renames = {}
    for pair in pairs or []:
        old, sep, new = pair.partition("=")
        if not sep or not old or not new:
            raise SyncError(f"Invalid rename '{pair}', expected OLD=NEW")
        renames[old] = new
    return renames


def cmd_sync(args: argparse.Namespace) -> int:
    """Detect renamed album folders and re-key the document."""
    paths = _paths(args)
    try:
        changes = sync_albums(
            paths, dry_run=args.dry_run, overrides=_parse_renames(args.rename)
        )
    except SyncError as exc:
        _console.print(f"[red]Error:[/] {exc}")
        return 1
    except FileNotFoundError as exc:
        _console.print(f"[red]Error:[/] {exc}")
        return 1

    if not changes:
        _console.print("[green]Albums are in sync with folders[/]")
        return 0

    table = Table(title="[bold cyan]Detected Changes[/]")
    table.add_column("[bold]Type[/]", style="bold yellow")
    table.add_column("[bold]Details[/]", style="white")
    for change in changes:
        table.add_row(change.type, change.describe())
    _console.print(Panel.fit(table))

    renames = [c for c in changes if c.type == RENAME]
    if args.dry_run:
        _console.print("\n[yellow]Dry run - no changes made[/]")
    elif renames:
        _console.print(f"\n[green]Applied {len(renames)} rename(s)[/]")
    if any(c.type == AMBIGUOUS for c in changes):
        _console.print(
            "\n[dim]Resolve ambiguous renames with --rename OLD=NEW[/]"
        )
    if any(c.type == MOVE_FAILED for c in changes):
        _console.print("\n[red]Some derived folders could not be moved; move them by hand[/]")
        return 1
    return 0


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Remove orphaned photos and albums."""
    paths = _paths(args)
    dry_run = args.dry_run or not args.confirm
    try:
        report = run_cleanup(
            paths,
            albums=args.albums,
            dry_run=dry_run,
            remove_processed=not args.keep_processed,
            show_new_albums=not args.no_new_albums,
        )
    except FileNotFoundError as exc:
        _console.print(f"[red]Error:[/] {exc}")
        return 1

    if report.orphaned_albums or report.orphaned_photos:
        table = Table(title="[bold cyan]Orphaned Entries[/]")
        table.add_column("[bold]Album[/]", style="bold yellow")
        table.add_column("[bold]Photo[/]", style="white")
        table.add_column("[bold]Original file[/]", style="dim")
        for key in report.orphaned_albums:
            table.add_row(key, "(whole album)", "")
        for key, photo in report.orphaned_photos:
            table.add_row(
                key,
                str(photo.get("title") or photo.get("id")),
                str((photo.get("metadata") or {}).get("originalFilename", "")),
            )
        _console.print(Panel.fit(table))

    if report.new_albums:
        table = Table(title="[bold cyan]Album Folders Not In Document[/]")
        table.add_column("[bold]Folder[/]", style="bold yellow")
        table.add_column("[bold]Images[/]", justify="right")
        for name, count in report.new_albums:
            table.add_row(name, str(count))
        _console.print(Panel.fit(table))
        _console.print("[dim]Run 'folio import <album>' to add them[/]")

    _console.print(Panel.fit(_stats_table("Cleanup Summary", report.stats)))
    if dry_run and report.has_orphans:
        _console.print("\n[yellow]Dry run - run with --confirm to remove orphans[/]")
    elif not report.has_orphans:
        _console.print("\n[green]No orphaned entries found[/]")
    return 0


def cmd_reorder(args: argparse.Namespace) -> int:
    """Interactively reorder the photos of an album."""
    ReorderSession(_paths(args), console=_console).run(args.album)
    return 0


def cmd_enhance(args: argparse.Namespace) -> int:
    """Backfill enhanced metadata for existing photos."""
    paths = _paths(args)
    document = load_document(paths.document)
    if not document:
        _console.print("[yellow]No albums to enhance[/]")
        return 0

    analyzer = make_analyzer(paths, no_ai=args.no_ai)
    try:
        stats = enhance_document(document, paths, analyzer, albums=args.albums or None)
    finally:
        analyzer.close()

    _console.print(Panel.fit(_stats_table("Enhancement Summary", stats)))
    if args.dry_run:
        _console.print("\n[yellow]Dry run - no changes saved[/]")
    elif stats["updated"]:
        save_document(document, paths.document)
        _console.print(f"\n[green]Saved {stats['updated']} enhanced photo(s)[/]")
    return 0


def cmd_layout(args: argparse.Namespace) -> int:
    """Preview the masonry placement of an album's photos."""
    paths = _paths(args)
    document = load_document(paths.document)
    if args.album not in document:
        _console.print(f"[red]Error:[/] Album '{args.album}' not found")
        return 1

    photos = sort_photos(document[args.album].get("images", []))
    viewport = args.viewport if args.viewport is not None else args.width
    result = layout(items_from_photos(photos), args.width, viewport, LayoutConfig())

    table = Table(
        title=(
            f"[bold cyan]{args.album}[/]: {result.column_count} column(s) of "
            f"{result.column_width:.2f}px, height {result.height:.0f}px"
        )
    )
    for name in ("#", "Photo", "Column", "Span", "X", "Y", "Width", "Height"):
        table.add_column(f"[bold]{name}[/]", justify="left" if name == "Photo" else "right")
    for number, placement in enumerate(result.placements, start=1):
        table.add_row(
            str(number),
            placement.id,
            str(placement.column + 1),
            str(placement.span),
            f"{placement.x:.1f}",
            f"{placement.y:.1f}",
            f"{placement.width:.1f}",
            f"{placement.height:.1f}",
        )
    _console.print(table)
    return 0
