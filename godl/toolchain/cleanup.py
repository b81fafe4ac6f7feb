"""
godl/toolchain/cleanup.py

Disk hygiene for the cache root.

Interrupted acquisitions leave private scratch directories and partial
downloads under <root>/.tmp. They are never visible as installed versions,
so correctness does not depend on removing them; this module reclaims the
space and reports what is installed.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from godl.core.cache_store import CacheEntry, CacheStore

logger = logging.getLogger(__name__)


@dataclass
class InstalledVersion:
    """Information about one version directory for listing purposes."""

    version: str
    path: Path
    status: str
    size: int
    digest: str


@dataclass
class CleanupResult:
    """Result of cleanup operation."""

    removed: List[Path] = field(default_factory=list)
    space_reclaimed: int = 0


def directory_size(path: Path) -> int:
    """Total size in bytes of regular files under path (symlinks not followed)."""
    total = 0
    for item in path.rglob("*"):
        try:
            if item.is_file() and not item.is_symlink():
                total += item.stat().st_size
        except OSError:
            continue
    return total


def _entry_size(path: Path) -> int:
    if path.is_dir() and not path.is_symlink():
        return directory_size(path)
    try:
        return path.lstat().st_size
    except OSError:
        return 0


class CacheCleanupManager:
    """Lists installed versions and removes orphaned scratch state."""

    def __init__(self, store: CacheStore):
        self.store = store

    def list_installed(self, with_size: bool = False) -> List[InstalledVersion]:
        """
        List version directories under the cache root.

        Args:
            with_size: Compute directory sizes (walks every file)
        """
        installed = []
        for entry in self.store.list_entries():
            installed.append(self._describe(entry, with_size))
        return installed

    def _describe(self, entry: CacheEntry, with_size: bool) -> InstalledVersion:
        return InstalledVersion(
            version=entry.version,
            path=entry.path,
            status=entry.status.value,
            size=directory_size(entry.path) if with_size else 0,
            digest=self.store.read_sentinel(entry.version) if entry.is_ready else "",
        )

    def cleanup(self, older_than_hours: float, dry_run: bool = False) -> CleanupResult:
        """
        Remove scratch state older than the given age.

        Args:
            older_than_hours: Minimum age of entries to remove
            dry_run: If True, only report what would be removed

        Returns:
            CleanupResult
        """
        result = CleanupResult()
        max_age = older_than_hours * 3600

        if dry_run:
            for path in self.store.stale_scratch(max_age):
                result.removed.append(path)
                result.space_reclaimed += _entry_size(path)
            logger.info(f"[DRY RUN] Would remove {len(result.removed)} entries")
            return result

        sizes = {path: _entry_size(path) for path in self.store.stale_scratch(max_age)}
        for path in self.store.remove_stale_scratch(max_age):
            result.removed.append(path)
            result.space_reclaimed += sizes.get(path, 0)

        logger.info(
            f"Removed {len(result.removed)} stale entries, "
            f"reclaimed {result.space_reclaimed / 1024 / 1024:.1f} MB"
        )
        return result


__all__ = [
    "InstalledVersion",
    "CleanupResult",
    "CacheCleanupManager",
    "directory_size",
]
