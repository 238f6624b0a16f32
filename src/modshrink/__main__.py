"""Package entry point.

This module enables running the project with:

    python -m modshrink path/to/mod.zip
"""

from __future__ import annotations

import sys

from modshrink.cli import main

if __name__ == "__main__":
    sys.exit(main())
