"""
Download command implementation.

Acquires one or more pinned versions without running them.
"""

import logging
import sys

from godl.cli.utils import open_store, print_error
from godl.core.exceptions import GodlError
from godl.toolchain.acquisition import Acquirer
from godl.toolchain.launcher import Launcher, ProgressPrinter

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the download command.

    Args:
        args: Parsed command-line arguments

    Returns:
        0 if every version is available, 1 otherwise
    """
    try:
        store, config = open_store(args.root)
    except GodlError as e:
        print_error(f"{e.phase}: {e}")
        return 1

    progress = ProgressPrinter(sys.stderr)
    launcher = Launcher(
        Acquirer(store, config, progress_callback=progress), progress=progress
    )

    status = 0
    for version in args.versions:
        if launcher.download(version) != 0:
            status = 1
    return status
