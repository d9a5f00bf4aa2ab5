"""
privatebonds/core/time.py

Ledger time.

    ledger_timestamp()  integer unix seconds, the clock maturity is checked against
    wire_timestamp()    YYYY-MM-DDTHH:MM:SS.mmmZ, stamped on event envelopes

The transition engine never reads the wall clock directly: it takes a
clock callable so tests and replays can pin time.
"""

import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]


def ledger_timestamp() -> int:
    """Current UTC time as integer unix seconds."""
    return int(time.time())


def wire_timestamp() -> str:
    """
    Return current UTC time in event wire format.
    Format: YYYY-MM-DDTHH:MM:SS.mmmZ  (exactly 3 fractional digits, Z suffix)
    """
    now = datetime.now(timezone.utc)
    ms  = now.microsecond // 1000
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ms:03d}Z"


class FixedClock:
    """A settable clock. Useful for replays and for pinning maturity checks."""

    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds
