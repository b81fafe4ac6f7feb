"""
godl CLI argument parser.

This module implements the maintenance command-line interface using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from godl import __version__

logger = logging.getLogger(__name__)


class CLI:
    """godl command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="godl",
            description="godl - run pinned toolchain releases",
            epilog='Use "godl COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"godl {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--root",
            type=Path,
            metavar="PATH",
            help="Cache root directory (default: $GODL_ROOT or ~/sdk)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_run_command(subparsers)
        self._add_download_command(subparsers)
        self._add_list_command(subparsers)
        self._add_purge_command(subparsers)
        self._add_cleanup_command(subparsers)

        return parser

    def _add_run_command(self, subparsers):
        """Add 'run' subcommand."""
        parser = subparsers.add_parser(
            "run",
            help="Run a pinned version, downloading it first if needed",
            description="Run VERSION with ARGS exactly like a per-version stub",
        )
        parser.add_argument("version", metavar="VERSION", help="e.g. go1.19.5")
        parser.add_argument(
            "args",
            nargs=argparse.REMAINDER,
            metavar="ARGS",
            help="Arguments passed to the toolchain",
        )

    def _add_download_command(self, subparsers):
        """Add 'download' subcommand."""
        parser = subparsers.add_parser(
            "download",
            help="Download pinned versions without running them",
        )
        parser.add_argument(
            "versions", nargs="+", metavar="VERSION", help="e.g. go1.19.5"
        )

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        parser = subparsers.add_parser(
            "list",
            help="List installed versions",
        )
        parser.add_argument(
            "--size", action="store_true", help="Show disk usage of each version"
        )

    def _add_purge_command(self, subparsers):
        """Add 'purge' subcommand."""
        parser = subparsers.add_parser(
            "purge",
            help="Remove installed versions",
        )
        parser.add_argument(
            "versions", nargs="+", metavar="VERSION", help="e.g. go1.19.5"
        )

    def _add_cleanup_command(self, subparsers):
        """Add 'cleanup' subcommand."""
        parser = subparsers.add_parser(
            "cleanup",
            help="Remove leftovers of interrupted downloads",
        )
        parser.add_argument(
            "--older-than",
            type=float,
            metavar="HOURS",
            help="Minimum age of leftovers to remove "
            "(default: stale_scratch_max_age_hours from godl.yaml, 24)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be removed without removing it",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except Exception as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "run": "godl.cli.commands.run",
            "download": "godl.cli.commands.download",
            "list": "godl.cli.commands.list",
            "purge": "godl.cli.commands.purge",
            "cleanup": "godl.cli.commands.cleanup",
        }

        module = importlib.import_module(command_map[args.command])
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
