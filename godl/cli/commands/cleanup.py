"""
Cleanup command implementation.

Removes scratch directories and partial downloads left by interrupted
acquisitions.
"""

import logging

from godl.cli.utils import format_size, open_store
from godl.toolchain.cleanup import CacheCleanupManager

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the cleanup command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    store, config = open_store(args.root)
    older_than = (
        args.older_than
        if args.older_than is not None
        else config.stale_scratch_max_age_hours
    )

    result = CacheCleanupManager(store).cleanup(older_than, dry_run=args.dry_run)

    verb = "Would remove" if args.dry_run else "Removed"
    for path in result.removed:
        print(f"{verb} {path.name}")
    print(
        f"{verb} {len(result.removed)} entries "
        f"({format_size(result.space_reclaimed)})"
    )
    return 0
