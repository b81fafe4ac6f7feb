"""
Entry point for running the godl CLI as a module.

Usage: python -m godl [command] [options]
"""

from godl.cli.parser import main

if __name__ == "__main__":
    main()
