"""
Purge command implementation.

Removes installed versions from the cache root.
"""

import logging

from godl.cli.utils import open_store, print_error
from godl.core.exceptions import GodlError
from godl.core.version import parse_version

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the purge command.

    Args:
        args: Parsed command-line arguments

    Returns:
        0 if every version was removed or absent, 1 otherwise
    """
    store, _config = open_store(args.root)

    status = 0
    for version in args.versions:
        try:
            parse_version(version)
            if store.purge(version):
                print(f"Removed {version}")
            else:
                print(f"{version}: not installed")
        except GodlError as e:
            print_error(f"{version}: {e.phase}: {e}")
            status = 1
    return status
