"""
On-disk store of installed toolchain versions.

Layout under the cache root:

    <root>/<version>/                   installed tree
    <root>/<version>/.unpacked-success  completion sentinel
    <root>/.tmp/                        private scratch dirs and partial downloads

A version is READY only when its directory exists and holds the sentinel.
The sentinel is written into the scratch tree *before* promotion, and the
scratch tree is promoted with a single os.rename, so every observer sees
either no install directory or a complete one. No lock files are used: at
most one rename can win for a given destination, and losers discard their
scratch work.
"""

import logging
import os
import re
import secrets
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from godl.core.exceptions import CacheIOError, CommitError, InvalidVersionError
from godl.core.filesystem import atomic_write, safe_rmtree
from godl.core.version import parse_version

logger = logging.getLogger(__name__)

SENTINEL_NAME = ".unpacked-success"
SCRATCH_DIR_NAME = ".tmp"


class CacheStatus(Enum):
    """Lifecycle state of a version in the cache."""

    ABSENT = "absent"
    INSTALLING = "installing"
    READY = "ready"
    CORRUPT = "corrupt"


@dataclass
class CacheEntry:
    """Snapshot of one version's state on disk."""

    version: str
    path: Path
    status: CacheStatus

    @property
    def is_ready(self) -> bool:
        return self.status is CacheStatus.READY


class CacheStore:
    """
    Owns the cache root and every mutation of per-version directories.

    Example:
        >>> store = CacheStore(Path.home() / "sdk")
        >>> entry = store.lookup("go1.19.5", probe="bin/go")
        >>> entry.status
        <CacheStatus.READY: 'ready'>
    """

    def __init__(self, root: Path):
        """
        Initialize cache store.

        Args:
            root: Cache root directory (created lazily)
        """
        self.root = Path(root)
        self.scratch_root = self.root / SCRATCH_DIR_NAME

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def install_path(self, version: str) -> Path:
        """Directory a version is installed into."""
        if not version or version.startswith(".") or "/" in version or "\\" in version:
            raise InvalidVersionError(f"invalid version directory name {version!r}")
        return self.root / version

    def sentinel_path(self, version: str) -> Path:
        return self.install_path(version) / SENTINEL_NAME

    def _unique_suffix(self) -> str:
        return f"{os.getpid()}-{secrets.token_hex(4)}"

    def new_scratch(self, version: str) -> Path:
        """
        Create a private scratch directory for one install attempt.

        Raises:
            CacheIOError: If the directory cannot be created
        """
        self.install_path(version)
        scratch = self.scratch_root / f"{version}.{self._unique_suffix()}"
        try:
            scratch.mkdir(parents=True)
        except OSError as e:
            raise CacheIOError(
                f"cannot create scratch directory {scratch}: {e}", phase="extract"
            ) from e
        logger.debug(f"Created scratch directory {scratch}")
        return scratch

    def new_download_path(self, filename: str) -> Path:
        """Private path, on the cache filesystem, for one downloaded artifact."""
        return self.scratch_root / f"{filename}.{self._unique_suffix()}"

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def lookup(self, version: str, probe: Optional[str] = None) -> CacheEntry:
        """
        Inspect the on-disk state of a version.

        Args:
            version: Version identifier
            probe: Optional path relative to the install dir that must exist
                for the entry to count as READY (e.g. 'bin/go')

        Returns:
            CacheEntry
        """
        path = self.install_path(version)

        if not path.exists() and not path.is_symlink():
            status = (
                CacheStatus.INSTALLING
                if self._scratch_dirs_for(version)
                else CacheStatus.ABSENT
            )
            return CacheEntry(version, path, status)

        if path.is_dir() and (path / SENTINEL_NAME).is_file():
            if probe is None or (path / probe).exists():
                return CacheEntry(version, path, CacheStatus.READY)
            logger.warning(f"{version}: install is missing {probe}")

        return CacheEntry(version, path, CacheStatus.CORRUPT)

    def _scratch_dirs_for(self, version: str) -> List[Path]:
        if not self.scratch_root.is_dir():
            return []
        pattern = re.compile(re.escape(version) + r"\.(purge-)?\d+-[0-9a-f]+$")
        return [
            p
            for p in self._scratch_children()
            if p.is_dir() and pattern.match(p.name)
        ]

    def _scratch_children(self) -> List[Path]:
        try:
            return list(self.scratch_root.iterdir())
        except OSError as e:
            raise CacheIOError(f"cannot list {self.scratch_root}: {e}") from e

    def list_entries(self) -> List[CacheEntry]:
        """All version directories under the root, sorted by name."""
        if not self.root.is_dir():
            return []

        entries = []
        for child in sorted(self.root.iterdir()):
            if child.name.startswith(".") or not child.is_dir():
                continue
            try:
                parse_version(child.name)
            except InvalidVersionError:
                continue
            entries.append(self.lookup(child.name))
        return entries

    def read_sentinel(self, version: str) -> str:
        """Digest recorded at commit time, '' if unknown."""
        try:
            return self.sentinel_path(version).read_text(encoding="utf-8").strip()
        except OSError:
            return ""

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def commit(
        self,
        version: str,
        scratch: Path,
        digest: str = "",
        probe: Optional[str] = None,
    ) -> Path:
        """
        Promote a verified, fully extracted scratch tree to the install path.

        The sentinel is written inside scratch first, then scratch is renamed
        onto the install path. If another process already installed the
        version, this attempt's scratch is discarded and the existing install
        is returned. A CORRUPT leftover at the destination is purged and the
        rename retried once.

        Args:
            version: Version identifier
            scratch: Scratch directory from new_scratch()
            digest: Archive digest recorded in the sentinel
            probe: Relative path that must exist in the tree (e.g. 'bin/go')

        Returns:
            Install path

        Raises:
            CommitError: If the tree is incomplete or promotion fails
        """
        destination = self.install_path(version)

        if probe is not None and not (scratch / probe).exists():
            self.discard(scratch)
            raise CommitError(
                f"{version}: extracted archive does not contain {probe}"
            )

        try:
            atomic_write(scratch / SENTINEL_NAME, f"{digest}\n" if digest else "")
        except OSError as e:
            self.discard(scratch)
            raise CommitError(f"{version}: cannot write sentinel: {e}") from e

        for attempt in range(2):
            try:
                os.rename(scratch, destination)
                logger.debug(f"Committed {version} to {destination}")
                return destination
            except OSError as e:
                rename_error = e

            entry = self.lookup(version, probe)
            if entry.is_ready:
                logger.info(f"{version} was installed concurrently, discarding scratch")
                self.discard(scratch)
                return destination
            if entry.status is CacheStatus.CORRUPT and attempt == 0:
                logger.warning(f"{version}: replacing corrupt install at {destination}")
                self.purge(version, only_corrupt=True, probe=probe)
                continue
            break

        self.discard(scratch)
        raise CommitError(
            f"{version}: cannot promote {scratch} to {destination}: {rename_error}"
        )

    def purge(
        self, version: str, only_corrupt: bool = False, probe: Optional[str] = None
    ) -> bool:
        """
        Remove a version's install directory, returning it to ABSENT.

        The directory is first renamed aside so no reader ever sees a
        half-deleted tree. With only_corrupt, a directory that turns out to be
        READY after the rename (another process committed it meanwhile) is put
        back. READY is judged as in lookup(): the sentinel and, when given,
        probe must both be present.

        Returns:
            True if something was removed

        Raises:
            CacheIOError: If the directory cannot be removed
        """
        path = self.install_path(version)
        if not path.exists() and not path.is_symlink():
            return False

        aside = self.scratch_root / f"{version}.purge-{self._unique_suffix()}"
        try:
            self.scratch_root.mkdir(parents=True, exist_ok=True)
            os.rename(path, aside)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CacheIOError(
                f"cannot remove {path}: {e}", phase="commit"
            ) from e

        if only_corrupt and self._is_complete(aside, probe):
            try:
                os.rename(aside, path)
                return False
            except OSError:
                # A fresh install took the slot; ours is redundant.
                pass

        try:
            safe_rmtree(aside, require_prefix=self.scratch_root)
        except OSError as e:
            raise CacheIOError(f"cannot remove {aside}: {e}", phase="commit") from e

        logger.info(f"Removed {version} from {self.root}")
        return True

    @staticmethod
    def _is_complete(tree: Path, probe: Optional[str]) -> bool:
        if not (tree / SENTINEL_NAME).is_file():
            return False
        return probe is None or (tree / probe).exists()

    def discard(self, path: Path) -> None:
        """Best-effort removal of a private scratch dir or temp file."""
        try:
            safe_rmtree(path, require_prefix=self.scratch_root)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not remove {path}: {e}")

    # ------------------------------------------------------------------
    # Hygiene
    # ------------------------------------------------------------------

    def stale_scratch(self, max_age_seconds: float) -> List[Path]:
        """Scratch dirs and partial downloads older than max_age_seconds."""
        if not self.scratch_root.is_dir():
            return []

        cutoff = time.time() - max_age_seconds
        stale = []
        for child in self._scratch_children():
            try:
                if child.lstat().st_mtime < cutoff:
                    stale.append(child)
            except FileNotFoundError:
                continue
        return sorted(stale)

    def remove_stale_scratch(self, max_age_seconds: float) -> List[Path]:
        """
        Remove orphaned scratch state left by interrupted attempts.

        Returns:
            Paths that were removed
        """
        removed = []
        for path in self.stale_scratch(max_age_seconds):
            logger.debug(f"Removing stale scratch {path.name}")
            self.discard(path)
            if not path.exists() and not path.is_symlink():
                removed.append(path)
        return removed


__all__ = [
    "SENTINEL_NAME",
    "SCRATCH_DIR_NAME",
    "CacheStatus",
    "CacheEntry",
    "CacheStore",
]
