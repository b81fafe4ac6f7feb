"""
Command-line interface for godl.

Provides the ``godl`` maintenance command; per-version stubs go through
godl.toolchain.launcher.main instead.
"""

from .parser import CLI, main

__all__ = ["CLI", "main"]
