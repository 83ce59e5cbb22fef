"""commitvault CLI entry point (python -m commitvault)."""

from __future__ import annotations

import sys

from commitvault.cli import main

if __name__ == "__main__":
    sys.exit(main())
