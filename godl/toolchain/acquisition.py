"""
Toolchain acquisition: describe, fetch, verify, extract, commit.

This module orchestrates materializing one pinned version in the cache,
coordinating the downloader, the checksum verifier, the archive extractor
and the cache store. It is a no-op when the version is already READY.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from godl.core.cache_store import CacheStatus, CacheStore
from godl.core.config import GodlConfig
from godl.core.download import (
    DownloadProgress,
    HTTPStatusError,
    fetch,
    fetch_text,
)
from godl.core.exceptions import (
    ChecksumMismatchError,
    VersionNotAvailableError,
)
from godl.core.filesystem import extract_archive
from godl.core.platform import PlatformInfo, detect_platform
from godl.core.verification import parse_digest_text, verify_file
from godl.core.version import ArchiveDescriptor, describe_for_platform

logger = logging.getLogger(__name__)


@dataclass
class AcquireResult:
    """Result of an acquisition."""

    version: str
    """Version identifier"""

    path: Path
    """Install directory"""

    was_cached: bool
    """Whether the version was already READY (no network or disk work)"""

    digest: str = ""
    """Verified archive digest, '' when was_cached"""

    download_time: float = 0.0
    extraction_time: float = 0.0


def binary_relpath(descriptor: ArchiveDescriptor) -> str:
    """Toolchain executable relative to the install directory."""
    suffix = ".exe" if descriptor.os == "windows" else ""
    return f"bin/{descriptor.profile.binary}{suffix}"


class Acquirer:
    """
    Materializes pinned toolchain versions on first use.

    Example:
        >>> acquirer = Acquirer(CacheStore(Path.home() / "sdk"))
        >>> result = acquirer.acquire("go1.19.5")
        >>> print(result.path)
        /home/user/sdk/go1.19.5
    """

    def __init__(
        self,
        store: CacheStore,
        config: Optional[GodlConfig] = None,
        platform_info: Optional[PlatformInfo] = None,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
        verify_retries: int = 1,
    ):
        """
        Initialize acquirer.

        Args:
            store: Cache store owning the install directories
            config: Runtime configuration (defaults if None)
            platform_info: Target platform (detected if None)
            progress_callback: Optional download progress callback
            verify_retries: Fresh re-downloads allowed after a checksum mismatch
        """
        self.store = store
        self.config = config or GodlConfig()
        self.platform_info = platform_info or detect_platform()
        self.progress_callback = progress_callback
        self.verify_retries = verify_retries

    def describe(self, version: str) -> ArchiveDescriptor:
        return describe_for_platform(version, self.platform_info, self.config)

    def acquire(self, version: str) -> AcquireResult:
        """
        Ensure version is installed and READY.

        Args:
            version: Version identifier, e.g. 'go1.19.5'

        Returns:
            AcquireResult

        Raises:
            InvalidVersionError: Malformed version or unsupported platform
            NetworkError: Download failed
            ChecksumMismatchError: Archive did not match its trusted digest
            ArchiveExtractionError: Archive could not be unpacked
            CommitError: Install could not be promoted
            CacheIOError: Disk failure
        """
        descriptor = self.describe(version)
        probe = binary_relpath(descriptor)

        entry = self.store.lookup(version, probe=probe)
        if entry.is_ready:
            logger.debug(f"{version} already installed at {entry.path}")
            return AcquireResult(version=version, path=entry.path, was_cached=True)

        if entry.status is CacheStatus.CORRUPT:
            logger.warning(f"{version}: removing incomplete install at {entry.path}")
            self.store.purge(version, only_corrupt=True, probe=probe)

        self._remove_stale_scratch()

        expected = self._trusted_digest(descriptor)

        attempts = self.verify_retries + 1
        for attempt in range(attempts):
            try:
                return self._install(descriptor, expected, probe)
            except ChecksumMismatchError as e:
                if attempt == attempts - 1:
                    raise
                logger.warning(f"{e}; downloading a fresh copy")

        raise AssertionError("unreachable")

    def _install(
        self, descriptor: ArchiveDescriptor, expected: str, probe: str
    ) -> AcquireResult:
        """One fetch/verify/extract/commit attempt with fresh bytes."""
        version = str(descriptor.version)
        archive = self.store.new_download_path(descriptor.filename)
        scratch = None

        try:
            start = time.time()
            self._fetch(descriptor, archive)
            download_time = time.time() - start

            digest = verify_file(archive, expected)

            start = time.time()
            scratch = self.store.new_scratch(version)
            logger.info(f"Unpacking {descriptor.filename} ...")
            extract_archive(
                archive,
                scratch,
                descriptor.kind,
                strip_prefix=descriptor.profile.archive_prefix,
            )
            extraction_time = time.time() - start
        except BaseException:
            if scratch is not None:
                self.store.discard(scratch)
            raise
        finally:
            self.store.discard(archive)

        # commit() discards scratch on every failure path itself
        path = self.store.commit(version, scratch, digest=digest, probe=probe)
        logger.info(f"Installed {version} at {path}")

        return AcquireResult(
            version=version,
            path=path,
            was_cached=False,
            digest=digest,
            download_time=download_time,
            extraction_time=extraction_time,
        )

    def _fetch(self, descriptor: ArchiveDescriptor, destination: Path) -> None:
        try:
            fetch(
                descriptor.url,
                destination,
                timeout=(self.config.connect_timeout, self.config.timeout),
                max_retries=self.config.max_retries,
                backoff_factor=self.config.backoff_factor,
                progress_callback=self.progress_callback,
            )
        except HTTPStatusError as e:
            self._raise_if_missing(descriptor, e)
            raise

    def _trusted_digest(self, descriptor: ArchiveDescriptor) -> str:
        """Pinned digest from configuration, else the release .sha256 sidecar."""
        if descriptor.expected_sha256:
            logger.debug(f"Using pinned digest for {descriptor.filename}")
            return descriptor.expected_sha256

        try:
            text = fetch_text(
                descriptor.checksum_url,
                timeout=(self.config.connect_timeout, self.config.timeout),
                max_retries=self.config.max_retries,
                backoff_factor=self.config.backoff_factor,
            )
        except HTTPStatusError as e:
            self._raise_if_missing(descriptor, e)
            raise

        return parse_digest_text(text, descriptor.filename)

    def _raise_if_missing(
        self, descriptor: ArchiveDescriptor, error: HTTPStatusError
    ) -> None:
        if error.status_code == 404:
            raise VersionNotAvailableError(
                str(descriptor.version), descriptor.os, descriptor.arch, descriptor.url
            ) from error

    def _remove_stale_scratch(self) -> None:
        max_age = self.config.stale_scratch_max_age_hours * 3600
        removed = self.store.remove_stale_scratch(max_age)
        if removed:
            logger.debug(f"Removed {len(removed)} stale scratch entries")


__all__ = [
    "AcquireResult",
    "Acquirer",
    "binary_relpath",
]
