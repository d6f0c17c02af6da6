"""
Entry point for running Gofer as a module.

Usage:
    python -m gofer --help
    python -m gofer check "rm -rf / --no-preserve-root"
    python -m gofer watch "the installer has finished"
"""

import asyncio
import sys

from gofer.cli import run_cli


def main() -> int:
    """Main entry point."""
    try:
        return asyncio.run(run_cli())
    except KeyboardInterrupt:
        print("\nGoodbye!")
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
