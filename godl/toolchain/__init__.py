"""
Toolchain acquisition and launch.

Example:
    >>> from godl.toolchain import Acquirer, Launcher
    >>> from godl.core import CacheStore
    >>> acquirer = Acquirer(CacheStore(Path.home() / "sdk"))
    >>> Launcher(acquirer).run("go1.19.5", ["version"])
"""

from .acquisition import AcquireResult, Acquirer, binary_relpath
from .cleanup import CacheCleanupManager, CleanupResult, InstalledVersion
from .launcher import Launcher, child_environment, exit_status, main, run

__all__ = [
    "AcquireResult",
    "Acquirer",
    "binary_relpath",
    "CacheCleanupManager",
    "CleanupResult",
    "InstalledVersion",
    "Launcher",
    "child_environment",
    "exit_status",
    "main",
    "run",
]
