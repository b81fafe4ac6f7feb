"""
List command implementation.

Shows installed versions and their cache status.
"""

import logging

from godl.cli.utils import format_size, open_store
from godl.toolchain.cleanup import CacheCleanupManager

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the list command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    store, _config = open_store(args.root)
    installed = CacheCleanupManager(store).list_installed(with_size=args.size)

    if not installed:
        print(f"No versions installed in {store.root}")
        return 0

    for item in installed:
        line = f"{item.version:<16} {item.status:<10}"
        if args.size:
            line += f" {format_size(item.size):>10}"
        line += f" {item.path}"
        print(line)

    return 0
