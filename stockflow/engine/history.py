from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterator, List

DEFAULT_CAPACITY = 1000


@dataclass(frozen=True)
class Snapshot:
    time: float
    values: Dict[str, float]

    def as_dict(self) -> Dict[str, float]:
        return {"time": self.time, **self.values}


class History:
    """Append-only ring of snapshots; the oldest entry is evicted when full."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self.capacity = max(1, int(capacity))
        self._entries: Deque[Snapshot] = deque(maxlen=self.capacity)

    def append(self, time: float, values: Dict[str, float]) -> Snapshot:
        snapshot = Snapshot(time=float(time), values=dict(values))
        self._entries.append(snapshot)
        return snapshot

    def clear(self) -> None:
        self._entries.clear()

    def series(self, name: str) -> List[float]:
        return [entry.values[name] for entry in self._entries if name in entry.values]

    def times(self) -> List[float]:
        return [entry.time for entry in self._entries]

    def as_records(self) -> List[Dict[str, float]]:
        return [entry.as_dict() for entry in self._entries]

    @property
    def latest(self) -> Snapshot | None:
        return self._entries[-1] if self._entries else None

    def __getitem__(self, index: int) -> Snapshot:
        return self._entries[index]

    def __iter__(self) -> Iterator[Snapshot]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["Snapshot", "History", "DEFAULT_CAPACITY"]
