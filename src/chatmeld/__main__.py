"""Entry point for ``python -m chatmeld``."""

import sys

from chatmeld.cli import main


if __name__ == "__main__":
    sys.exit(main())
