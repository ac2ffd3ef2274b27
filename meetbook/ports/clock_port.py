"""Clock port — source of "now" for past/upcoming classification.

All comparisons are naive local wall-clock, so implementations return
timezone-unaware datetimes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...
