"""
main.py — UNHEARD command-line entry point.

Equivalent to the installed ``unheard`` script::

    python main.py text "I need a break"
    python main.py symbol i want water --phrase please
"""

from __future__ import annotations

import sys

from unheard.cli import main

if __name__ == "__main__":
    sys.exit(main())
