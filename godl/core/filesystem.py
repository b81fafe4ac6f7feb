"""
File system utilities for godl.

This module provides:
- Archive extraction (tar.gz, zip) selected by declared kind, never sniffed
- Preservation of executable bits and symbolic links from archives
- Directory traversal protection
- Safe file operations (atomic writes, safe deletion)
"""

import logging
import os
import shutil
import stat
import sys
import tarfile
import tempfile
import zipfile
import zlib
from pathlib import Path, PurePosixPath
from typing import Callable, Optional, Union

from godl.core.exceptions import (
    ArchiveExtractionError,
    InsecureArchiveError,
    UnsupportedArchiveFormat,
)

logger = logging.getLogger(__name__)

IS_WINDOWS = os.name == "nt"


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if path is relative to (under) parent directory.

    Example:
        >>> is_relative_to(Path("/home/user/project/file.txt"), Path("/home/user"))
        True
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def _strip_member_name(name: str, strip_prefix: Optional[str]) -> Optional[str]:
    """
    Map an archive member name to its path under the destination.

    Returns None for members that should not be extracted: the stripped
    top-level directory itself, and anything outside strip_prefix.
    """
    name = name.replace("\\", "/")
    while name.startswith("./"):
        name = name[2:]

    if strip_prefix:
        prefix = strip_prefix.rstrip("/") + "/"
        if not name.startswith(prefix):
            if name.rstrip("/") != prefix.rstrip("/"):
                logger.debug(f"Skipping archive member outside {prefix}: {name}")
            return None
        name = name[len(prefix):]

    name = name.rstrip("/")
    return name or None


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    pure = PurePosixPath(path)
    if pure.is_absolute() or ".." in pure.parts or (len(path) > 1 and path[1] == ":"):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )

    member_path = (destination / path).resolve()
    if not is_relative_to(member_path, destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )


def _validate_link_target(name: str, target: str, destination: Path) -> None:
    """Symbolic links must stay inside the extracted tree."""
    if PurePosixPath(target).is_absolute():
        raise InsecureArchiveError(
            f"Archive member '{name}' is an absolute symlink to '{target}'"
        )
    resolved = (destination / name).parent / target
    if not is_relative_to(Path(os.path.normpath(resolved)), destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{name}' links outside the destination: '{target}'"
        )


# ============================================================================
# Archive Extraction
# ============================================================================


def extract_archive(
    archive_path: Union[str, Path],
    destination: Union[str, Path],
    kind: str,
    strip_prefix: Optional[str] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> None:
    """
    Extract an archive to a destination directory.

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to (a private scratch directory)
        kind: Container kind declared by the archive descriptor ('tar.gz', 'zip')
        strip_prefix: Top-level directory to strip from member names, e.g. 'go/'
        progress_callback: Optional callback(current, total) for progress

    Raises:
        UnsupportedArchiveFormat: If kind is not recognized
        ArchiveExtractionError: If extraction fails
        InsecureArchiveError: If archive contains malicious paths

    Example:
        >>> extract_archive('go1.19.5.linux-amd64.tar.gz', scratch, 'tar.gz', 'go/')
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    extractors = {
        "tar.gz": _extract_tar_gz,
        "tgz": _extract_tar_gz,
        "zip": _extract_zip,
    }
    extractor = extractors.get(kind)
    if extractor is None:
        raise UnsupportedArchiveFormat(
            f"Unsupported archive kind: {kind!r}. Supported: tar.gz, zip"
        )

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")

    try:
        destination.mkdir(parents=True, exist_ok=True)
        extractor(archive_path, destination, strip_prefix, progress_callback)
    except ArchiveExtractionError:
        raise
    except (OSError, tarfile.TarError, zipfile.BadZipFile, EOFError, zlib.error) as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path.name}: {e}") from e


def _extract_tar_gz(
    archive_path: Path,
    destination: Path,
    strip_prefix: Optional[str],
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> None:
    """Extract a .tar.gz archive, keeping file modes and symlinks."""
    with tarfile.open(archive_path, "r:gz") as tar:
        members = []
        for member in tar.getmembers():
            name = _strip_member_name(member.name, strip_prefix)
            if name is None:
                continue
            _validate_archive_path(name, destination)
            if member.issym():
                _validate_link_target(name, member.linkname, destination)
            elif member.islnk():
                link = _strip_member_name(member.linkname, strip_prefix)
                if link is None:
                    raise InsecureArchiveError(
                        f"Archive member '{member.name}' hard-links outside "
                        f"{strip_prefix}: '{member.linkname}'"
                    )
                _validate_archive_path(link, destination)
                member.linkname = link
            elif not (member.isfile() or member.isdir()):
                logger.debug(f"Skipping special archive member: {member.name}")
                continue
            member.name = name
            members.append(member)

        total = len(members)
        for i, member in enumerate(members):
            # Extract with filter for security (Python 3.12+)
            # For older Python, member paths have been validated above
            if sys.version_info >= (3, 12):
                tar.extract(member, destination, filter="data")
            else:
                tar.extract(member, destination)
            if progress_callback:
                progress_callback(i + 1, total)


def _extract_zip(
    archive_path: Path,
    destination: Path,
    strip_prefix: Optional[str],
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> None:
    """
    Extract a ZIP archive.

    zipfile.extract() ignores Unix permission bits and writes symlinks as
    plain files, so members are materialized by hand from external_attr.
    """
    with zipfile.ZipFile(archive_path, "r") as zf:
        infos = []
        for info in zf.infolist():
            name = _strip_member_name(info.filename, strip_prefix)
            if name is None:
                continue
            _validate_archive_path(name, destination)
            infos.append((name, info))

        total = len(infos)
        for i, (name, info) in enumerate(infos):
            target = destination / name
            mode = (info.external_attr >> 16) & 0xFFFF

            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
            elif stat.S_ISLNK(mode) and not IS_WINDOWS:
                link_target = zf.read(info).decode("utf-8")
                _validate_link_target(name, link_target, destination)
                target.parent.mkdir(parents=True, exist_ok=True)
                os.symlink(link_target, target)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                permissions = stat.S_IMODE(mode)
                if permissions and not IS_WINDOWS:
                    os.chmod(target, permissions & 0o777)

            if progress_callback:
                progress_callback(i + 1, total)


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    This ensures the file is never in a partially-written state.
    If the write fails, the original file (if any) remains unchanged.

    Example:
        >>> atomic_write('sentinel', '')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Create temp file in same directory (ensures same filesystem)
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        OSError: If deletion fails

    Example:
        >>> safe_rmtree('/home/u/sdk/.tmp/go1.19.5.123-ab12', require_prefix='/home/u/sdk')
    """
    path = Path(path)

    # Safety check: require path to be under specified prefix
    if require_prefix is not None:
        resolved_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path.parent.resolve() / path.name, resolved_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix "
                f"'{resolved_prefix}'"
            )

    if path.is_symlink() or path.is_file():
        path.unlink()
        return

    if not path.exists():
        return

    def handle_remove_readonly(func, target, exc):
        """Retry once after making a read-only entry writable."""
        if not os.access(target, os.W_OK):
            os.chmod(target, stat.S_IWUSR | stat.S_IRUSR | stat.S_IXUSR)
            func(target)
        else:
            raise exc

    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=handle_remove_readonly)
    else:
        shutil.rmtree(
            path,
            onerror=lambda func, target, exc_info: handle_remove_readonly(
                func, target, exc_info[1]
            ),
        )


__all__ = [
    "IS_WINDOWS",
    "is_relative_to",
    "extract_archive",
    "atomic_write",
    "safe_rmtree",
]
