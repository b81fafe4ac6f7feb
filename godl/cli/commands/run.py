"""
Run command implementation.

Behaves exactly like a per-version stub: 'download' acquires only, anything
else is forwarded to the toolchain.
"""

import logging

from godl.cli.utils import resolve_root
from godl.toolchain.launcher import run as launch

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the run command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code of the toolchain, or 1 on godl failures
    """
    forwarded = list(args.args)
    if forwarded[:1] == ["--"]:
        forwarded = forwarded[1:]
    logger.debug(f"Running {args.version} with {forwarded}")
    return launch(args.version, forwarded, cache_root=resolve_root(args.root))
