"""
CLI commands for runnerfleet.
"""

from runnerfleet.cli.main import build_parser, main

__all__ = ["build_parser", "main"]
