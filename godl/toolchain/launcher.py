"""
Launcher for pinned toolchain versions.

Each per-version stub is a one-liner:

    from godl.toolchain.launcher import main

    if __name__ == "__main__":
        main("go1.19.5")

``<stub> download`` only acquires the version. Any other invocation acquires
it if needed, then runs ``<install>/bin/<binary>`` with the same arguments,
the caller's environment (plus the toolchain root) and inherited standard
streams, and exits with the child's exit status. A child killed by a signal
yields 128 + signal number (the shell convention), and the signal is logged
on stderr.
"""

import logging
import os
import signal
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Mapping, Optional, TextIO

from godl.core.cache_store import CacheStore
from godl.core.config import ToolchainProfile
from godl.core.directory import get_cache_root, load_root_config
from godl.core.download import DownloadProgress, format_progress
from godl.core.exceptions import ExecError, GodlError
from godl.toolchain.acquisition import Acquirer, binary_relpath

logger = logging.getLogger(__name__)

DOWNLOAD_COMMAND = "download"


def exit_status(returncode: int) -> int:
    """
    Map a child's termination to this process's exit status.

    Args:
        returncode: Popen.returncode (negative for signal termination on POSIX)

    Returns:
        returncode for normal exits, 128 + signum for signal termination

    Example:
        >>> exit_status(1)
        1
        >>> exit_status(-signal.SIGKILL)
        137
    """
    if returncode >= 0:
        return returncode

    signum = -returncode
    try:
        name = signal.Signals(signum).name
    except ValueError:
        name = f"signal {signum}"
    logger.warning(f"toolchain terminated by {name}")
    return 128 + signum


def child_environment(
    environ: Mapping[str, str], root: Path, profile: ToolchainProfile
) -> Dict[str, str]:
    """
    Build the environment for the toolchain process.

    The profile's root variable (GOROOT for go) points at the install, and
    <install>/bin is put first on PATH so the toolchain finds its own tools.
    Keys are de-duplicated case-insensitively on Windows.
    """
    env = dict(environ)

    def set_var(name: str, value: str) -> None:
        if os.name == "nt":
            for key in [k for k in env if k.upper() == name.upper()]:
                del env[key]
        env[name] = value

    if profile.root_env:
        set_var(profile.root_env, str(root))

    path_key = "PATH"
    if os.name == "nt":
        path_key = next((k for k in env if k.upper() == "PATH"), "PATH")
    current = env.get(path_key, "")
    bin_dir = str(root / "bin")
    set_var(path_key, bin_dir + os.pathsep + current if current else bin_dir)

    return env


class ProgressPrinter:
    """Writes download progress to a terminal on one rewritten line."""

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.enabled = hasattr(stream, "isatty") and stream.isatty()
        self._dirty = False

    def __call__(self, progress: DownloadProgress) -> None:
        if not self.enabled:
            return
        self.stream.write(f"\rDownloaded {format_progress(progress)}\033[K")
        self.stream.flush()
        self._dirty = True

    def finish(self) -> None:
        if self._dirty:
            self.stream.write("\n")
            self.stream.flush()
            self._dirty = False


class Launcher:
    """
    Runs one pinned version on behalf of a stub.

    Example:
        >>> launcher = Launcher(Acquirer(CacheStore(Path.home() / "sdk")))
        >>> launcher.run("go1.19.5", ["version"])
        go version go1.19.5 linux/amd64
        0
    """

    def __init__(
        self,
        acquirer: Acquirer,
        stderr: Optional[TextIO] = None,
        progress: Optional[ProgressPrinter] = None,
    ):
        self.acquirer = acquirer
        self.stderr = stderr or sys.stderr
        self.progress = progress

    def run(
        self,
        version: str,
        args: List[str],
        env: Optional[Mapping[str, str]] = None,
    ) -> int:
        """
        Acquire version and run it, or only acquire it for 'download'.

        Args:
            version: Version identifier
            args: Command-line arguments after the stub name
            env: Environment for the child (default: os.environ)

        Returns:
            Exit status for this process
        """
        if args[:1] == [DOWNLOAD_COMMAND]:
            return self.download(version, extra=args[1:])

        try:
            result = self._acquire(version)
            descriptor = self.acquirer.describe(version)
            binary = result.path / binary_relpath(descriptor)
            child_env = child_environment(
                os.environ if env is None else env, result.path, descriptor.profile
            )
            returncode = self._spawn([str(binary), *args], child_env)
        except GodlError as e:
            self.report(version, e)
            return 1

        return exit_status(returncode)

    def download(self, version: str, extra: Optional[List[str]] = None) -> int:
        """Acquire only; never runs the toolchain."""
        if extra:
            logger.warning(f"ignoring arguments after '{DOWNLOAD_COMMAND}': {extra}")

        try:
            result = self._acquire(version)
        except GodlError as e:
            self.report(version, e)
            return 1

        if result.was_cached:
            print(f"{version}: already downloaded in {result.path}", file=self.stderr)
        else:
            print(f"Success. You may now run '{version}'!", file=self.stderr)
        return 0

    def _acquire(self, version: str):
        try:
            return self.acquirer.acquire(version)
        finally:
            if self.progress is not None:
                self.progress.finish()

    def _spawn(self, argv: List[str], env: Dict[str, str]) -> int:
        """Start the toolchain with inherited stdio and wait for it."""
        logger.debug(f"exec {argv}")
        try:
            process = subprocess.Popen(argv, env=env)
        except OSError as e:
            raise ExecError(f"cannot run {argv[0]}: {e}") from e

        # Ctrl-C reaches the child through the shared process group; keep
        # waiting so its exit status is the one reported.
        while True:
            try:
                return process.wait()
            except KeyboardInterrupt:
                continue

    def report(self, version: str, error: GodlError) -> None:
        """Single-line diagnostic naming the failed phase."""
        print(format_diagnostic(version, error.phase, error), file=self.stderr)


def format_diagnostic(version: str, phase: str, error: object) -> str:
    """One diagnostic line; multi-line messages are folded onto it."""
    message = " ".join(str(error).split())
    return f"godl: {version}: {phase}: {message}"


def run(
    version: str,
    args: List[str],
    env: Optional[Mapping[str, str]] = None,
    cache_root: Optional[Path] = None,
) -> int:
    """
    Run a pinned version using the cache root and its configuration.

    Args:
        version: Version identifier, e.g. 'go1.19.5'
        args: Arguments after the stub name
        env: Environment (default: os.environ); also consulted for GODL_ROOT
        cache_root: Explicit cache root, overriding the environment

    Returns:
        Exit status
    """
    environ = os.environ if env is None else env
    root = cache_root or get_cache_root(environ)
    progress = ProgressPrinter(sys.stderr)

    try:
        config = load_root_config(root)
        acquirer = Acquirer(CacheStore(root), config, progress_callback=progress)
    except GodlError as e:
        print(format_diagnostic(version, e.phase, e), file=sys.stderr)
        return 1
    except RuntimeError as e:
        print(format_diagnostic(version, "describe", e), file=sys.stderr)
        return 1

    return Launcher(acquirer, progress=progress).run(version, args, env)


def main(version: str) -> None:
    """Entry point for per-version stubs."""
    logging.basicConfig(
        level=logging.WARNING,
        format="godl: %(message)s",
        force=True,
    )
    sys.exit(run(version, sys.argv[1:]))


__all__ = [
    "DOWNLOAD_COMMAND",
    "Launcher",
    "ProgressPrinter",
    "child_environment",
    "exit_status",
    "format_diagnostic",
    "run",
    "main",
]
