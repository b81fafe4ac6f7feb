"""
Configuration loading for godl.

Configuration is optional. When ``<cache_root>/godl.yaml`` exists it may tune
network behavior, pin trusted digests for archive filenames, and declare
additional toolchain profiles beside the built-in ``go`` one.

Example godl.yaml:
    timeout: 60
    max_retries: 5
    checksums:
      go1.19.5.linux-amd64.tar.gz: 3651...ff95
    toolchains:
      toolX:
        download_base_url: https://example.com/toolX/
        binary: toolX
        root_env: TOOLX_ROOT
        archive_prefix: toolX/
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from godl.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "godl.yaml"


@dataclass(frozen=True)
class ToolchainProfile:
    """Where a family of pinned toolchains is published and how it is laid out."""

    name: str
    """Version prefix, e.g. 'go' for 'go1.19.5'"""

    download_base_url: str
    """Base URL the archive filename is appended to"""

    binary: str
    """Executable under <install>/bin"""

    root_env: Optional[str] = None
    """Environment variable pointing the toolchain at its own root"""

    archive_prefix: Optional[str] = None
    """Top-level directory inside release archives, stripped on extraction"""


GO_PROFILE = ToolchainProfile(
    name="go",
    download_base_url="https://dl.google.com/go/",
    binary="go",
    root_env="GOROOT",
    archive_prefix="go/",
)


@dataclass
class GodlConfig:
    """Runtime settings for acquisition and launch."""

    timeout: float = 30.0
    connect_timeout: float = 10.0
    max_retries: int = 3
    backoff_factor: float = 1.0
    stale_scratch_max_age_hours: float = 24.0
    checksums: Dict[str, str] = field(default_factory=dict)
    toolchains: Dict[str, ToolchainProfile] = field(
        default_factory=lambda: {GO_PROFILE.name: GO_PROFILE}
    )

    def profile_for(self, prefix: str) -> Optional[ToolchainProfile]:
        return self.toolchains.get(prefix)

    def pinned_checksum(self, filename: str) -> Optional[str]:
        return self.checksums.get(filename)


def load_config(config_file: Path) -> GodlConfig:
    """
    Load configuration from a YAML file.

    A missing file yields the defaults.

    Args:
        config_file: Path to godl.yaml

    Returns:
        GodlConfig instance

    Raises:
        ConfigError: If the YAML is invalid or a value has the wrong type
    """
    config = GodlConfig()

    if not config_file.exists():
        logger.debug(f"Config file not found (optional): {config_file}")
        return config

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {config_file}: {e}") from e

    data = data or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file}: top level must be a mapping")

    for key in ("timeout", "connect_timeout", "backoff_factor"):
        if key in data:
            setattr(config, key, _number(data[key], key, config_file))
    if "stale_scratch_max_age_hours" in data:
        config.stale_scratch_max_age_hours = _number(
            data["stale_scratch_max_age_hours"],
            "stale_scratch_max_age_hours",
            config_file,
        )
    if "max_retries" in data:
        retries = data["max_retries"]
        if not isinstance(retries, int) or isinstance(retries, bool) or retries < 1:
            raise ConfigError(f"{config_file}: max_retries must be a positive integer")
        config.max_retries = retries

    checksums = data.get("checksums") or {}
    if not isinstance(checksums, dict):
        raise ConfigError(f"{config_file}: checksums must be a mapping")
    config.checksums = {str(k): str(v).strip().lower() for k, v in checksums.items()}

    toolchains = data.get("toolchains") or {}
    if not isinstance(toolchains, dict):
        raise ConfigError(f"{config_file}: toolchains must be a mapping")
    for name, settings in toolchains.items():
        config.toolchains[str(name)] = _parse_profile(str(name), settings, config_file)

    return config


def _parse_profile(name: str, settings: Any, config_file: Path) -> ToolchainProfile:
    if not isinstance(settings, dict):
        raise ConfigError(f"{config_file}: toolchain '{name}' must be a mapping")

    base_url = settings.get("download_base_url")
    if not base_url or not isinstance(base_url, str):
        raise ConfigError(
            f"{config_file}: toolchain '{name}' requires download_base_url"
        )
    if not base_url.endswith("/"):
        base_url += "/"

    return ToolchainProfile(
        name=name,
        download_base_url=base_url,
        binary=str(settings.get("binary", name)),
        root_env=settings.get("root_env"),
        archive_prefix=settings.get("archive_prefix"),
    )


def _number(value: Any, key: str, config_file: Path) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{config_file}: {key} must be a positive number")
    return float(value)


__all__ = [
    "CONFIG_FILENAME",
    "ToolchainProfile",
    "GO_PROFILE",
    "GodlConfig",
    "load_config",
]
