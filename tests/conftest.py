"""
Pytest configuration and shared fixtures for godl tests.
"""

import hashlib
import io
import os
import stat
import tarfile
import zipfile
from pathlib import Path
from typing import Callable, Dict, Optional

import pytest
import responses

from godl.core.cache_store import CacheStore
from godl.core.config import GodlConfig, ToolchainProfile
from godl.core.platform import PlatformInfo, clear_platform_cache

# Fake toolchain binary: echoes its arguments, or exits/kills itself on request.
FAKE_TOOL_SCRIPT = """#!/bin/sh
case "$1" in
  exit) exit "$2" ;;
  kill) kill -9 $$ ;;
  env) echo "ROOT=$GOROOT"; echo "PATH=$PATH"; exit 0 ;;
esac
echo "args:$*"
exit 0
"""


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "posix: test runs real child processes through /bin/sh"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


def pytest_collection_modifyitems(config, items):
    """Skip tests that need a POSIX shell on Windows."""
    if os.name != "nt":
        return
    skip_posix = pytest.mark.skip(reason="requires a POSIX shell")
    for item in items:
        if "posix" in item.keywords:
            item.add_marker(skip_posix)


@pytest.fixture(autouse=True)
def _reset_platform_cache():
    clear_platform_cache()
    yield
    clear_platform_cache()


# ============================================================================
# Archive builders
# ============================================================================


def _tool_tree(binary: str, extra_files: Optional[Dict[str, str]] = None):
    files = {
        f"bin/{binary}": (FAKE_TOOL_SCRIPT, 0o755),
        "VERSION": ("go1.19.5\n", 0o644),
        "src/runtime/README": ("runtime\n", 0o644),
    }
    for name, content in (extra_files or {}).items():
        files[name] = (content, 0o644)
    return files


def build_tar_gz(
    prefix: str = "go/",
    binary: str = "go",
    extra_files: Optional[Dict[str, str]] = None,
    symlinks: Optional[Dict[str, str]] = None,
) -> bytes:
    """Build a release-style .tar.gz in memory."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        if prefix:
            info = tarfile.TarInfo(prefix.rstrip("/"))
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)
        for name, (content, mode) in _tool_tree(binary, extra_files).items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(prefix + name)
            info.size = len(data)
            info.mode = mode
            tar.addfile(info, io.BytesIO(data))
        for name, target in (symlinks or {}).items():
            info = tarfile.TarInfo(prefix + name)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            tar.addfile(info)
    return buffer.getvalue()


def build_zip(
    prefix: str = "go/",
    binary: str = "go",
    symlinks: Optional[Dict[str, str]] = None,
) -> bytes:
    """Build a release-style .zip in memory, with Unix modes."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, (content, mode) in _tool_tree(binary).items():
            info = zipfile.ZipInfo(prefix + name)
            info.external_attr = (stat.S_IFREG | mode) << 16
            zf.writestr(info, content)
        for name, target in (symlinks or {}).items():
            info = zipfile.ZipInfo(prefix + name)
            info.external_attr = (stat.S_IFLNK | 0o777) << 16
            zf.writestr(info, target)
    return buffer.getvalue()


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@pytest.fixture
def make_tar_gz():
    return build_tar_gz


@pytest.fixture
def make_zip():
    return build_zip


@pytest.fixture
def go_tar_gz() -> bytes:
    return build_tar_gz()


@pytest.fixture
def archive_file(tmp_path) -> Callable[[bytes, str], Path]:
    """Write archive bytes to a file and return its path."""

    def _write(data: bytes, name: str = "archive.tar.gz") -> Path:
        path = tmp_path / "archives" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    return _write


# ============================================================================
# Cache and platform
# ============================================================================


@pytest.fixture
def linux_amd64() -> PlatformInfo:
    return PlatformInfo(os="linux", arch="amd64")


@pytest.fixture
def cache_root(tmp_path) -> Path:
    root = tmp_path / "sdk"
    root.mkdir()
    return root


@pytest.fixture
def store(cache_root) -> CacheStore:
    return CacheStore(cache_root)


@pytest.fixture
def fast_config() -> GodlConfig:
    """Default configuration without retry sleeps."""
    return GodlConfig(backoff_factor=0.0)


@pytest.fixture
def toolx_config() -> GodlConfig:
    """Configuration with an extra 'toolX' toolchain profile."""
    config = GodlConfig(backoff_factor=0.0)
    config.toolchains["toolX"] = ToolchainProfile(
        name="toolX",
        download_base_url="https://dl.example.com/toolX/",
        binary="toolX",
        root_env="TOOLX_ROOT",
        archive_prefix="toolX/",
    )
    return config


# ============================================================================
# Network
# ============================================================================


@pytest.fixture
def mocked_responses():
    """Activate responses; unmatched requests raise ConnectionError."""
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.fixture
def release_server(mocked_responses):
    """Register an archive and its .sha256 sidecar on the mocked server."""

    def _publish(url: str, data: bytes, digest: Optional[str] = None):
        mocked_responses.add(
            responses.GET,
            url,
            body=data,
            status=200,
            headers={"content-length": str(len(data))},
        )
        mocked_responses.add(
            responses.GET,
            url + ".sha256",
            body=(digest or sha256(data)) + "\n",
            status=200,
        )

    return _publish


@pytest.fixture
def no_network(monkeypatch):
    """Disable network access for tests."""
    import socket

    def guard(*args, **kwargs):
        raise RuntimeError("Network access not allowed in this test")

    monkeypatch.setattr(socket, "socket", guard)
