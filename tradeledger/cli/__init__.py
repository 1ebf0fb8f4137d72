"""CLI commands for tradeledger.

This package provides the command-line interface for tradeledger,
including P/L recalculation, symbol fixes and instrument lookups.
"""

from tradeledger.cli.main import cli, main

__all__ = ["cli", "main"]
