"""
Core functionality for godl.

This package contains the foundational modules that the acquisition and
launch layers depend on.
"""

from .cache_store import (
    CacheEntry,
    CacheStatus,
    CacheStore,
    SENTINEL_NAME,
)

from .config import (
    GO_PROFILE,
    GodlConfig,
    ToolchainProfile,
    load_config,
)

from .directory import (
    ROOT_ENV_VAR,
    get_cache_root,
    load_root_config,
)

from .platform import (
    PlatformInfo,
    detect_platform,
    clear_platform_cache,
)

from .version import (
    ArchiveDescriptor,
    ToolchainVersion,
    describe,
    parse_version,
)

from .exceptions import (
    GodlError,
    ConfigError,
    InvalidVersionError,
    NetworkError,
    VersionNotAvailableError,
    ChecksumMismatchError,
    ArchiveExtractionError,
    UnsupportedArchiveFormat,
    InsecureArchiveError,
    CacheIOError,
    CommitError,
    ExecError,
)

__all__ = [
    "CacheEntry",
    "CacheStatus",
    "CacheStore",
    "SENTINEL_NAME",
    "GO_PROFILE",
    "GodlConfig",
    "ToolchainProfile",
    "load_config",
    "ROOT_ENV_VAR",
    "get_cache_root",
    "load_root_config",
    "PlatformInfo",
    "detect_platform",
    "clear_platform_cache",
    "ArchiveDescriptor",
    "ToolchainVersion",
    "describe",
    "parse_version",
    "GodlError",
    "ConfigError",
    "InvalidVersionError",
    "NetworkError",
    "VersionNotAvailableError",
    "ChecksumMismatchError",
    "ArchiveExtractionError",
    "UnsupportedArchiveFormat",
    "InsecureArchiveError",
    "CacheIOError",
    "CommitError",
    "ExecError",
]
