"""
Main CLI entry point for vestledger.
"""

import logging
import sys

import click

from .vesting_commands import cli, console, _handle_cli_error

# Configure module logger
logger = logging.getLogger(__name__)


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)
    except (click.ClickException, ValueError, KeyError, TypeError) as exc:
        _handle_cli_error(exc)


if __name__ == "__main__":
    sys.exit(main() or 0)
