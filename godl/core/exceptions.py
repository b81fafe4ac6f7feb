"""
Centralized exception hierarchy for godl.

Every failure raised by the launcher core derives from GodlError and carries
the name of the phase it happened in (describe, fetch, verify, extract,
commit, exec), so the launcher can report a single-line diagnostic that
identifies where an acquisition or launch went wrong.
"""


# ============================================================================
# Base Exceptions
# ============================================================================


class GodlError(Exception):
    """Base exception for all godl errors."""

    phase = "godl"

    def __init__(self, message: str, phase: str = ""):
        super().__init__(message)
        if phase:
            self.phase = phase


class ConfigError(GodlError):
    """Raised when the configuration file cannot be loaded or is invalid."""

    phase = "config"


# ============================================================================
# Describe
# ============================================================================


class InvalidVersionError(GodlError):
    """Malformed version identifier or unsupported platform pair."""

    phase = "describe"


# ============================================================================
# Fetch
# ============================================================================


class NetworkError(GodlError):
    """Raised when a download fails after all retry attempts."""

    phase = "fetch"


class VersionNotAvailableError(NetworkError):
    """Raised when the release server has no archive for the version/platform."""

    def __init__(self, version: str, os_name: str, arch: str, url: str):
        self.version = version
        self.os = os_name
        self.arch = arch
        self.url = url
        super().__init__(
            f"no binary release of {version} for {os_name}/{arch} at {url}"
        )


# ============================================================================
# Verify
# ============================================================================


class ChecksumMismatchError(GodlError):
    """Raised when a downloaded artifact does not match its trusted digest."""

    phase = "verify"

    def __init__(self, message: str, expected: str = "", actual: str = ""):
        self.expected = expected
        self.actual = actual
        super().__init__(message)


# ============================================================================
# Extract
# ============================================================================


class ArchiveExtractionError(GodlError):
    """Failed to extract an archive."""

    phase = "extract"


class UnsupportedArchiveFormat(ArchiveExtractionError):
    """Archive kind is not supported."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


# ============================================================================
# Cache Store
# ============================================================================


class CacheIOError(GodlError):
    """Disk-level failure (permission denied, disk full, ...)."""

    phase = "io"


class CommitError(GodlError):
    """Raised when a scratch directory cannot be promoted to an install."""

    phase = "commit"


# ============================================================================
# Exec
# ============================================================================


class ExecError(GodlError):
    """The cached toolchain binary could not be launched at all."""

    phase = "exec"
