"""Diagnostics sink for failures the simulation loop absorbs.

Evaluators never raise into the step loop; instead they report here. Each
report is logged and kept in a bounded buffer so collaborators (debug panels,
the CLI) can show what went wrong without the model ever halting.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Diagnostic:
    source: str
    message: str
    time: Optional[float] = None


class Diagnostics:
    """Bounded record of evaluation failures, mirrored to ``logging``."""

    def __init__(self, capacity: int = 200, *, log_level: int = logging.WARNING):
        self.capacity = max(1, int(capacity))
        self.log_level = log_level
        self._records: Deque[Diagnostic] = deque(maxlen=self.capacity)
        self._seen: Set[Tuple[str, str]] = set()
        self.total = 0

    def report(self, source: str, message: str, *, time: Optional[float] = None) -> None:
        self._records.append(Diagnostic(source=source, message=message, time=time))
        self.total += 1
        # Repeats of a known (source, message) pair log at DEBUG.
        key = (source, message)
        level = logging.DEBUG if key in self._seen else self.log_level
        self._seen.add(key)
        if time is None:
            logger.log(level, "%s: %s", source, message)
        else:
            logger.log(level, "%s @ t=%g: %s", source, time, message)

    @property
    def records(self) -> List[Diagnostic]:
        return list(self._records)

    def clear(self) -> None:
        self._records.clear()
        self._seen.clear()
        self.total = 0

    def __len__(self) -> int:
        return len(self._records)


__all__ = ["Diagnostic", "Diagnostics"]
