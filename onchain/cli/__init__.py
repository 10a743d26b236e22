"""Command-line interface."""

from onchain.cli.main import async_main, create_parser, main, setup_logging

__all__ = [
    "async_main",
    "create_parser",
    "main",
    "setup_logging",
]
