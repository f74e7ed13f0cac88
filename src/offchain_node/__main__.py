from __future__ import annotations

import sys

from offchain_node.cli import main

if __name__ == "__main__":
    sys.exit(main())
