"""Main entry point for running aljabar_pkg as a module.

This allows running Aljabar with:
    python -m aljabar_pkg
    python -m aljabar_pkg -e "diff(x^3, x)"
    python -m aljabar_pkg --format json -e "x^2-4=0"

This is equivalent to running:
    python -m aljabar_pkg.cli
"""

from __future__ import annotations

import sys

from .cli import main_entry

if __name__ == "__main__":
    sys.exit(main_entry())
