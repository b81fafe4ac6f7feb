"""
Entry point for running the godl CLI as a module.

Usage: python -m godl.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
