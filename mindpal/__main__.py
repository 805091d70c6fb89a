"""Entry point for python -m mindpal execution.

Runs the setup check:
    python -m mindpal --check
"""

import sys

from mindpal.setup import main

if __name__ == "__main__":
    sys.exit(main())
