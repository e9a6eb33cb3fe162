"""
Argument parser for CLI commands.
"""

from __future__ import annotations

import argparse

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from photofolio import config

from .commands import (
    cmd_cleanup,
    cmd_enhance,
    cmd_import,
    cmd_layout,
    cmd_reorder,
    cmd_sync,
)

_console = Console()


def _print_help_for(parser: argparse.ArgumentParser):
    def _f(args: argparse.Namespace) -> int:
        prog = parser.prog or "folio"
        desc = parser.description or ""
        table = Table(title=f"[bold cyan]{prog}[/] - {desc}")
        table.add_column("[bold]Command[/]", style="bold yellow")
        table.add_column("[bold]Description[/]", style="white")

        subparsers_actions = [
            action
            for action in parser._actions
            if isinstance(action, argparse._SubParsersAction)
        ]
        if not subparsers_actions:
            parser.print_help()
            return 2
        for subparsers_action in subparsers_actions:
            for name, sp in subparsers_action.choices.items():
                help_text = (
                    getattr(sp, "description", None)
                    or sp.format_help().splitlines()[0]
                )
                table.add_row(f"{name}", help_text)

        # Global options, without help and the subcommand action itself
        opts = []
        for action in parser._actions:
            if isinstance(action, argparse._SubParsersAction):
                continue
            if any(s in ("-h", "--help") for s in action.option_strings):
                continue
            if action.option_strings:
                opts.append((", ".join(action.option_strings), action.help or ""))

        if opts:
            opt_table = Table(title="[bold magenta]Global options[/]")
            opt_table.add_column("[bold]Option[/]", style="bold cyan")
            opt_table.add_column("[bold]Description[/]", style="white")
            for name, help_text in opts:
                opt_table.add_row(name, help_text)
            _console.print(Panel.fit(opt_table))

        _console.print(Panel.fit(table, title=f"[bold green]{prog} help[/]"))
        return 2

    return _f


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    p = argparse.ArgumentParser(
        prog="folio",
        description="photofolio CLI - keep a photo portfolio in sync with its albums",
    )
    p.add_argument(
        "--root",
        default=str(config.PORTFOLIO_ROOT),
        help="Portfolio root containing data/albums.json and assets/images (default: PORTFOLIO_ROOT or .)",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Show debug logging",
    )
    p.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only show warnings and errors, no progress bars",
    )
    sub = p.add_subparsers(dest="command")
    sub.required = False

    # import
    p_imp = sub.add_parser(
        "import",
        help="Import new photos from album folders",
        description="Import new photos from album folders, generating thumbnails, full-size images and metadata",
    )
    p_imp.add_argument(
        "album",
        nargs="?",
        help="Album folder to import (default: every folder under assets/images/albums)",
    )
    p_imp.add_argument(
        "--no-ai",
        action="store_true",
        help="Skip AI alt text and scene analysis, use EXIF data only",
    )
    p_imp.set_defaults(func=cmd_import)

    # sync
    p_sync = sub.add_parser(
        "sync",
        help="Detect renamed album folders",
        description="Compare album keys with album folders and apply detected renames",
    )
    p_sync.add_argument(
        "--dry-run",
        action="store_true",
        help="Report changes without writing anything",
    )
    p_sync.add_argument(
        "--rename",
        action="append",
        metavar="OLD=NEW",
        help="Rename album OLD to folder NEW explicitly (repeatable); resolves ambiguous matches",
    )
    p_sync.set_defaults(func=cmd_sync)

    # cleanup
    p_clean = sub.add_parser(
        "cleanup",
        help="Remove orphaned photos and albums",
        description="Remove document entries and derived images whose source photos are gone",
    )
    p_clean.add_argument(
        "albums",
        nargs="*",
        help="Albums to check (default: all)",
    )
    p_clean.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report orphans (the default unless --confirm is given)",
    )
    p_clean.add_argument(
        "--confirm",
        "--execute",
        dest="confirm",
        action="store_true",
        help="Actually remove orphaned entries",
    )
    p_clean.add_argument(
        "--keep-processed",
        action="store_true",
        help="Keep thumbnail and full-size files of removed entries",
    )
    p_clean.add_argument(
        "--no-new-albums",
        action="store_true",
        help="Do not report album folders missing from the document",
    )
    p_clean.set_defaults(func=cmd_cleanup)

    # reorder
    p_re = sub.add_parser(
        "reorder",
        help="Interactively reorder photos in an album",
        description="Interactively set, move, swap or clear the display order of an album's photos",
    )
    p_re.add_argument(
        "album",
        nargs="?",
        help="Album to reorder (default: choose from a list)",
    )
    p_re.set_defaults(func=cmd_reorder)

    # enhance
    p_enh = sub.add_parser(
        "enhance",
        help="Add missing metadata to existing photos",
        description="Analyze existing photos that lack accessibility, technical or metadata fields",
    )
    p_enh.add_argument(
        "albums",
        nargs="*",
        help="Albums to enhance (default: all)",
    )
    p_enh.add_argument(
        "--dry-run",
        action="store_true",
        help="Analyze but do not save",
    )
    p_enh.add_argument(
        "--no-ai",
        action="store_true",
        help="Use EXIF data only",
    )
    p_enh.set_defaults(func=cmd_enhance)

    # layout
    p_lay = sub.add_parser(
        "layout",
        help="Preview the masonry layout of an album",
        description="Show where each photo of an album lands in the masonry grid",
    )
    p_lay.add_argument(
        "album",
        help="Album to lay out",
    )
    p_lay.add_argument(
        "--width",
        type=float,
        default=1200,
        help="Container width in pixels (default: 1200)",
    )
    p_lay.add_argument(
        "--viewport",
        type=float,
        help="Viewport width in pixels (default: same as --width)",
    )
    p_lay.set_defaults(func=cmd_layout)

    return p


def _expand_abbreviations(
    argv: list[str], parser: argparse.ArgumentParser
) -> list[str]:
    """Expand unique-prefix abbreviations for subcommands (e.g., sy->sync).

    The first token that is not an option is taken as the subcommand, so
    global options may come before it.
    """
    if not argv:
        return argv

    sub_actions = [
        a for a in parser._actions if isinstance(a, argparse._SubParsersAction)
    ]
    if not sub_actions:
        return argv
    choices = sub_actions[0].choices

    index = 0
    while index < len(argv) and argv[index].startswith("-"):
        # --root takes a value
        if argv[index] == "--root":
            index += 1
        index += 1
    if index >= len(argv):
        return argv

    token = argv[index]
    if token not in choices:
        matches = [name for name in choices if name.startswith(token)]
        if len(matches) == 1:
            argv = argv[:index] + [matches[0]] + argv[index + 1 :]
    return argv
