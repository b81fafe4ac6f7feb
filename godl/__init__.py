"""
godl - run pinned toolchain releases as if they were installed.

A per-version stub names its version and hands off to the launcher, which
fetches, verifies and caches the release archive on first use and then runs
the toolchain with the caller's arguments, environment and standard streams.
"""

__version__ = "0.1.0"
