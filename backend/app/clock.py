"""
clock.py — Time source for everything that compares against token expiry.

Token issuance, silent refresh and refresh-token expiry all read the time
through a Clock so tests can pin it. Times are Unix epoch seconds (int),
the unit stored in JWT claims and in refresh_tokens.expires_at.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):

    def now(self) -> int:
        ...


class SystemClock:
    """Wall-clock time in whole seconds."""

    def now(self) -> int:
        return int(time.time())
