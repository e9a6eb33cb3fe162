"""
Main entry point for CLI.
"""

from __future__ import annotations

import sys
from typing import Optional

from photofolio.document import DocumentError
from photofolio.log import get_logger, setup_logging

from .parser import build_parser, _expand_abbreviations, _print_help_for

LOGGER = get_logger(__name__)


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    argv = sys.argv[1:] if argv is None else argv
    argv = _expand_abbreviations(argv, parser)
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        # Top-level invoked without subcommand: show the rich help
        return _print_help_for(parser)(args)

    setup_logging(-1 if args.quiet else args.verbose)
    try:
        return int(args.func(args))
    except DocumentError as exc:
        LOGGER.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        LOGGER.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
