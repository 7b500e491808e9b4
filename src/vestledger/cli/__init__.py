"""
vestledger Command Line Interface.

Operator commands over a local ledger state file, built on click and rich.
"""

from .vesting_commands import cli

__all__ = ["cli"]
