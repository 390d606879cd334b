"""
Clock port.

All internal timestamps are UTC. Components take the clock as a port so
tests can pin "now".
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class ClockPort(Protocol):
    def now_utc(self) -> datetime:
        """Return current UTC time (timezone-aware)."""
        ...
