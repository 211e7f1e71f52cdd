"""Entry point for running gnomelama from the terminal.

Usage:
    python -m gnomelama                     # interactive chat
    python -m gnomelama "Why is the sky blue?"
    python -m gnomelama --list-models
"""

import sys

from gnomelama.cli import main

if __name__ == "__main__":
    sys.exit(main())
