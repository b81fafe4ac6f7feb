"""
Shared utilities for CLI commands.

Provides common functionality used across multiple CLI commands to
eliminate duplication and ensure consistent behavior.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

from godl.core.cache_store import CacheStore
from godl.core.config import GodlConfig
from godl.core.directory import get_cache_root, load_root_config

logger = logging.getLogger(__name__)


def resolve_root(root: Optional[Path]) -> Path:
    """Cache root from --root, else $GODL_ROOT, else ~/sdk."""
    return Path(root).expanduser() if root else get_cache_root()


def open_store(root: Optional[Path]) -> Tuple[CacheStore, GodlConfig]:
    """
    Open the cache store and its configuration.

    Raises:
        ConfigError: If godl.yaml is invalid
    """
    cache_root = resolve_root(root)
    logger.debug(f"Using cache root {cache_root}")
    return CacheStore(cache_root), load_root_config(cache_root)


def format_size(size_bytes: int) -> str:
    """
    Format a byte count for display.

    Example:
        >>> format_size(1536 * 1024)
        '1.5 MB'
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    size = size_bytes / 1024
    for unit in ("KB", "MB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    print("godl: " + " ".join(message.split()), file=sys.stderr)
