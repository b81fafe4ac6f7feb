"""
Checksum verification for downloaded archives.

Archives are verified with SHA-256 over the full file. The trusted digest
comes either from configuration or from the release server's ``.sha256``
sidecar, which holds the bare hex digest (optionally followed by a filename,
sha256sum style).
"""

import hashlib
import logging
import secrets
from pathlib import Path
from typing import Optional

from godl.core.exceptions import ChecksumMismatchError

logger = logging.getLogger(__name__)

DIGEST_ALGORITHM = "sha256"
_HEX_LENGTH = 64
_HEX_DIGITS = frozenset("0123456789abcdef")


def compute_file_hash(file_path: Path, algorithm: str = DIGEST_ALGORITHM) -> str:
    """
    Compute cryptographic hash of file.

    Args:
        file_path: Path to file
        algorithm: Any algorithm known to hashlib

    Returns:
        Hex string of hash

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If algorithm is not supported
    """
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    try:
        hasher = hashlib.new(algorithm)
    except ValueError:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")

    with open(file_path, "rb") as f:
        while chunk := f.read(64 * 1024):
            hasher.update(chunk)

    return hasher.hexdigest()


def is_valid_digest(digest: str) -> bool:
    """True if digest looks like a lowercase-able SHA-256 hex string."""
    digest = digest.lower()
    return len(digest) == _HEX_LENGTH and all(c in _HEX_DIGITS for c in digest)


def parse_digest_text(text: str, filename: Optional[str] = None) -> str:
    """
    Extract the digest from a .sha256 sidecar body.

    Supports formats:
    - hash
    - hash  filename
    - hash *filename

    Args:
        text: Sidecar content
        filename: When given and the sidecar lists several files, pick this one

    Returns:
        Lowercase hex digest

    Raises:
        ChecksumMismatchError: If no well-formed digest is found

    Example:
        >>> parse_digest_text("36519702ae2fd573c9869461990ae550c8c0d955cd28d2827a6b159fda81ff95\\n")
        '36519702ae2fd573c9869461990ae550c8c0d955cd28d2827a6b159fda81ff95'
    """
    candidates = []
    for line in text.splitlines():
        parts = line.strip().split(maxsplit=1)
        if not parts or parts[0].startswith("#"):
            continue
        digest = parts[0].lower()
        name = parts[1].lstrip("*").strip() if len(parts) == 2 else None
        if is_valid_digest(digest):
            candidates.append((digest, name))

    if filename:
        for digest, name in candidates:
            if name == filename:
                return digest
    if len(candidates) == 1:
        return candidates[0][0]

    raise ChecksumMismatchError(
        f"could not find a {DIGEST_ALGORITHM} digest"
        + (f" for {filename}" if filename else "")
    )


def verify_file(file_path: Path, expected_hash: str) -> str:
    """
    Verify file matches expected SHA-256 digest.

    Args:
        file_path: Path to file
        expected_hash: Expected hash value (hex string)

    Returns:
        The verified digest

    Raises:
        ChecksumMismatchError: If the digest is malformed or does not match
        FileNotFoundError: If file doesn't exist
    """
    expected = expected_hash.strip().lower()
    if not is_valid_digest(expected):
        raise ChecksumMismatchError(
            f"invalid {DIGEST_ALGORITHM} digest {expected_hash!r}",
            expected=expected,
        )

    actual = compute_file_hash(file_path, DIGEST_ALGORITHM)

    if not secrets.compare_digest(actual.encode("ascii"), expected.encode("ascii")):
        raise ChecksumMismatchError(
            f"{DIGEST_ALGORITHM} mismatch for {file_path.name}: "
            f"expected {expected}, got {actual}",
            expected=expected,
            actual=actual,
        )

    logger.debug(f"Checksum verified: {file_path.name} {actual}")
    return actual


__all__ = [
    "DIGEST_ALGORITHM",
    "compute_file_hash",
    "is_valid_digest",
    "parse_digest_text",
    "verify_file",
]
