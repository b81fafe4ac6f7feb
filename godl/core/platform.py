"""
Platform detection for godl.

Release archives are named after the toolchain's own (os, arch) vocabulary,
e.g. ``linux-amd64``, ``darwin-arm64`` or ``linux-armv6l``. This module maps
whatever Python reports for the running machine onto that vocabulary.

Usage:
    from godl.core.platform import detect_platform

    info = detect_platform()
    print(info.platform_string())   # 'linux-amd64'
"""

import functools
import platform
from dataclasses import dataclass


@dataclass(frozen=True)
class PlatformInfo:
    """
    Operating system and CPU architecture of a machine.

    Attributes:
        os: Operating system ('linux', 'darwin', 'windows', 'freebsd')
        arch: CPU architecture ('amd64', 'arm64', '386', 'armv6l', ...)
    """

    os: str
    arch: str

    def platform_string(self) -> str:
        """
        Get the archive platform suffix.

        Example:
            >>> PlatformInfo('linux', 'amd64').platform_string()
            'linux-amd64'
        """
        return f"{self.os}-{self.arch}"

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"

    def __str__(self) -> str:
        return f"{self.os}/{self.arch}"


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    This function is cached - it only runs detection once per process.

    Returns:
        PlatformInfo for the running machine

    Raises:
        RuntimeError: If the operating system is not recognized
    """
    return PlatformInfo(os=_detect_os(), arch=_detect_architecture())


def _detect_os() -> str:
    """
    Detect operating system.

    Returns:
        Normalized OS name: 'linux', 'darwin', 'windows', 'freebsd'

    Raises:
        RuntimeError: If OS is not supported
    """
    system = platform.system().lower()

    if system in ("linux", "darwin", "windows", "freebsd"):
        return system
    raise RuntimeError(f"Unsupported operating system: {system}")


def _detect_architecture() -> str:
    """
    Detect CPU architecture.

    Returns:
        Normalized architecture: 'amd64', 'arm64', '386', 'armv6l', ...
    """
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "amd64"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine in ("i386", "i686", "x86"):
        return "386"
    elif machine.startswith("arm"):
        # Release builds for 32-bit ARM target ARMv6 and run on later cores.
        return "armv6l"
    else:
        # ppc64le, s390x and friends already use the release name
        return machine


def clear_platform_cache():
    """
    Clear the platform detection cache.

    This forces the next call to detect_platform() to re-detect.
    Useful for testing.
    """
    detect_platform.cache_clear()


__all__ = [
    "PlatformInfo",
    "detect_platform",
    "clear_platform_cache",
]
