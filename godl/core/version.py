"""
Version identifiers and release archive descriptors.

A version identifier names exactly one pinned toolchain release, for example
``go1.19.5``, ``go1.9rc1`` or ``go1.18beta1``. Together with the running
platform it determines one archive on the release server:

    https://dl.google.com/go/go1.19.5.linux-amd64.tar.gz
    https://dl.google.com/go/go1.19.5.linux-amd64.tar.gz.sha256

Everything in this module is pure: no network, no disk.
"""

import re
from dataclasses import dataclass
from typing import Optional

from godl.core.config import GodlConfig, ToolchainProfile
from godl.core.exceptions import InvalidVersionError
from godl.core.platform import PlatformInfo

_VERSION_RE = re.compile(
    r"(?P<prefix>[A-Za-z][A-Za-z_-]*?)"
    r"(?P<major>\d+)\.(?P<minor>\d+)"
    r"(?:\.(?P<patch>\d+))?"
    r"(?:(?P<qualifier>rc|beta)(?P<qualifier_num>\d+))?"
)

SUPPORTED_PLATFORMS = {
    "linux": {"amd64", "386", "arm64", "armv6l", "ppc64le", "s390x"},
    "darwin": {"amd64", "arm64"},
    "windows": {"amd64", "386", "arm64"},
    "freebsd": {"amd64", "386"},
}

# First release of the go profile that ships each of these platforms.
_GO_PLATFORM_MINIMUM = {
    ("darwin", "arm64"): (1, 16),
    ("windows", "arm64"): (1, 17),
}


@dataclass(frozen=True)
class ToolchainVersion:
    """
    A parsed version identifier.

    Attributes:
        raw: The identifier exactly as given, e.g. 'go1.19.5'
        prefix: Toolchain profile name, e.g. 'go'
        major, minor: Release line
        patch: Patch number, None when absent ('go1.8')
        qualifier: 'rc', 'beta' or None
        qualifier_num: Pre-release number, None when there is no qualifier
    """

    raw: str
    prefix: str
    major: int
    minor: int
    patch: Optional[int] = None
    qualifier: Optional[str] = None
    qualifier_num: Optional[int] = None

    @property
    def is_prerelease(self) -> bool:
        return self.qualifier is not None

    def release_line(self) -> str:
        """
        Version without patch or qualifier.

        Example:
            >>> parse_version('go1.19.5').release_line()
            'go1.19'
        """
        return f"{self.prefix}{self.major}.{self.minor}"

    def __str__(self) -> str:
        return self.raw


@dataclass(frozen=True)
class ArchiveDescriptor:
    """Everything needed to fetch and unpack one release archive."""

    version: ToolchainVersion
    os: str
    arch: str
    url: str
    checksum_url: str
    kind: str
    """'tar.gz' or 'zip'"""

    filename: str
    profile: ToolchainProfile
    expected_sha256: Optional[str] = None
    """Pinned digest from configuration; None means use checksum_url"""


def parse_version(version: str) -> ToolchainVersion:
    """
    Parse and validate a version identifier.

    Args:
        version: Identifier such as 'go1.19.5' or 'go1.18beta1'

    Returns:
        ToolchainVersion

    Raises:
        InvalidVersionError: If the identifier does not match the grammar
    """
    if not isinstance(version, str):
        raise InvalidVersionError(f"version must be a string, got {version!r}")

    match = _VERSION_RE.fullmatch(version)
    if not match:
        raise InvalidVersionError(f"unrecognized version {version!r}")

    qualifier_num = match.group("qualifier_num")
    patch = match.group("patch")
    return ToolchainVersion(
        raw=version,
        prefix=match.group("prefix"),
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(patch) if patch is not None else None,
        qualifier=match.group("qualifier"),
        qualifier_num=int(qualifier_num) if qualifier_num is not None else None,
    )


def archive_kind(os_name: str) -> str:
    """Container format the release server uses for an operating system."""
    return "zip" if os_name == "windows" else "tar.gz"


def describe(
    version: str,
    os_name: str,
    arch: str,
    config: Optional[GodlConfig] = None,
) -> ArchiveDescriptor:
    """
    Derive the archive descriptor for a version on a platform.

    Args:
        version: Version identifier, e.g. 'go1.19.5'
        os_name: Operating system in release naming ('linux', 'darwin', ...)
        arch: Architecture in release naming ('amd64', 'arm64', ...)
        config: Configuration providing toolchain profiles and pinned digests

    Returns:
        ArchiveDescriptor

    Raises:
        InvalidVersionError: Malformed identifier, unknown toolchain prefix,
            or no archive for the platform pair

    Example:
        >>> d = describe('go1.19.5', 'linux', 'amd64')
        >>> d.url
        'https://dl.google.com/go/go1.19.5.linux-amd64.tar.gz'
    """
    config = config or GodlConfig()
    parsed = parse_version(version)

    profile = config.profile_for(parsed.prefix)
    if profile is None:
        raise InvalidVersionError(
            f"unknown toolchain {parsed.prefix!r} in version {version!r}"
        )

    if arch not in SUPPORTED_PLATFORMS.get(os_name, set()):
        raise InvalidVersionError(
            f"no archive mapping for {version} on {os_name}/{arch}"
        )

    minimum = _GO_PLATFORM_MINIMUM.get((os_name, arch))
    if profile.name == "go" and minimum and (parsed.major, parsed.minor) < minimum:
        raise InvalidVersionError(
            f"{version} was not released for {os_name}/{arch} "
            f"(first available in go{minimum[0]}.{minimum[1]})"
        )

    kind = archive_kind(os_name)
    filename = f"{version}.{os_name}-{arch}.{kind}"
    url = profile.download_base_url + filename

    return ArchiveDescriptor(
        version=parsed,
        os=os_name,
        arch=arch,
        url=url,
        checksum_url=url + ".sha256",
        kind=kind,
        filename=filename,
        profile=profile,
        expected_sha256=config.pinned_checksum(filename),
    )


def describe_for_platform(
    version: str, platform_info: PlatformInfo, config: Optional[GodlConfig] = None
) -> ArchiveDescriptor:
    """Convenience wrapper around describe() for a PlatformInfo."""
    return describe(version, platform_info.os, platform_info.arch, config)


__all__ = [
    "SUPPORTED_PLATFORMS",
    "ToolchainVersion",
    "ArchiveDescriptor",
    "parse_version",
    "archive_kind",
    "describe",
    "describe_for_platform",
]
