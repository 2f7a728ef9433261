"""Running per-category tally for batch runs."""

import sys
import time
from collections import Counter
from typing import Mapping, Optional, TextIO

from config import PEST_CATEGORIES

FAILED = "failed"


class CategoryProgress:
    """Counts analysed photos by pest amount and redraws one status line.

    Fed with the dicts produced by ``batch.analyse_one``; an ``error`` key
    counts as a failure.
    """

    def __init__(self, enable: bool = True, stream: Optional[TextIO] = None):
        self.enable = enable
        self.stream = stream or sys.stdout
        self.start(0)

    def start(self, total: int) -> None:
        self.total = max(total, 0)
        self.tally: Counter = Counter()
        self.started_at = time.monotonic()
        self._shown = ""

    @property
    def done(self) -> int:
        return sum(self.tally.values())

    @property
    def failed(self) -> int:
        return self.tally[FAILED]

    def record(self, item: Mapping[str, object]) -> None:
        key = FAILED if "error" in item else str(item.get("pest_amount"))
        self.tally[key] += 1
        if self.enable and self.total:
            self._draw()

    def status_line(self) -> str:
        parts = [f"{self.done}/{self.total}"]
        parts += [f"{c}={self.tally[c]}" for c in PEST_CATEGORIES if self.tally[c]]
        if self.failed:
            parts.append(f"{FAILED}={self.failed}")
        parts.append(f"{time.monotonic() - self.started_at:.1f}s")
        return " ".join(parts)

    def _draw(self) -> None:
        line = self.status_line()
        if line == self._shown:
            return
        self.stream.write("\r" + line)
        if self.done >= self.total:
            self.stream.write("\n")
        self.stream.flush()
        self._shown = line
