"""
Run the Lysoria state tool.

Usage:
    python -m lysoria status
"""

import sys

from .interface.cli import main

if __name__ == "__main__":
    sys.exit(main())
