"""Zero-arg CLI wrappers for console_scripts entry points.

Each script's ``main(argv)`` accepts ``sys.argv[1:]``; setuptools expects a
zero-arg callable.
"""
from __future__ import annotations

import sys


def incident_feed() -> None:
    from scripts.incident_feed import main
    raise SystemExit(main(sys.argv[1:]))
