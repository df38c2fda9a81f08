"""Entry point for `python -m kubedeps`.

Usage:
    python -m kubedeps
"""

from __future__ import annotations

import asyncio

from kubedeps.app import main

asyncio.run(main())
