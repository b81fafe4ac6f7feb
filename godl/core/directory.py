"""
Cache root resolution for godl.

Directory Structure:
    Cache root (~/sdk/ by default, or $GODL_ROOT):
        - <version>/        : Extracted toolchain plus the .unpacked-success sentinel
        - .tmp/             : Private scratch directories and partial downloads
        - godl.yaml         : Optional configuration
"""

import logging
import os
from pathlib import Path
from typing import Optional

from godl.core.config import CONFIG_FILENAME, GodlConfig, load_config

logger = logging.getLogger(__name__)

ROOT_ENV_VAR = "GODL_ROOT"


def get_cache_root(environ: Optional[dict] = None) -> Path:
    """
    Get the cache root directory path.

    Args:
        environ: Environment mapping to consult (default: os.environ)

    Returns:
        Path: $GODL_ROOT if set and non-empty, otherwise ~/sdk

    Example:
        >>> get_cache_root({"GODL_ROOT": "/opt/sdk"})
        PosixPath('/opt/sdk')
    """
    environ = os.environ if environ is None else environ

    override = environ.get(ROOT_ENV_VAR)
    if override:
        return Path(override).expanduser()

    return Path.home() / "sdk"


def load_root_config(cache_root: Path) -> GodlConfig:
    """Load <cache_root>/godl.yaml, falling back to defaults when absent."""
    return load_config(cache_root / CONFIG_FILENAME)


__all__ = [
    "ROOT_ENV_VAR",
    "get_cache_root",
    "load_root_config",
]
