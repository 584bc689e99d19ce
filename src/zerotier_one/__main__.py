"""Allow running as `python -m zerotier_one`."""

import sys

from zerotier_one.cli import main

if __name__ == "__main__":
    sys.exit(main())
