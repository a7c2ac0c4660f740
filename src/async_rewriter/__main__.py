"""
Entry point for module execution (``python -m async_rewriter``).
"""

import sys
from async_rewriter.cli.__main__ import main

if __name__ == "__main__":
  sys.exit(main())
