"""
CLI module for photofolio.

This module provides the command-line interface for maintaining a portfolio.
"""

from .main import main
from .parser import _expand_abbreviations, _print_help_for, build_parser
from .commands import (
    cmd_cleanup,
    cmd_enhance,
    cmd_import,
    cmd_layout,
    cmd_reorder,
    cmd_sync,
)

__all__ = [
    "build_parser",
    "main",
    "cmd_import",
    "cmd_sync",
    "cmd_cleanup",
    "cmd_reorder",
    "cmd_enhance",
    "cmd_layout",
    "_expand_abbreviations",
    "_print_help_for",
]
