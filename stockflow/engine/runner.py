"""Caller-side helpers for driving a :class:`~stockflow.engine.model.Model`.

Batching exists so interactive callers can refresh between chunks of steps;
it adds no semantics, so a batched run reproduces plain ``step`` calls
exactly.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Optional, Sequence

from .history import Snapshot
from .model import Model

BatchCallback = Callable[[Model, int], None]


def default_batch_size(steps: int) -> int:
    return max(1, int(steps) // 100)


def run_batched(
    model: Model,
    steps: int,
    dt: float = 1.0,
    *,
    batch_size: Optional[int] = None,
    on_batch: Optional[BatchCallback] = None,
) -> int:
    """Run ``steps`` steps in batches, calling ``on_batch`` after each one.

    Stops early once the model terminates. Returns the number of steps taken.
    """

    steps = max(0, int(steps))
    size = batch_size or default_batch_size(steps)
    completed = 0
    while completed < steps and not model.is_terminated:
        chunk = min(size, steps - completed)
        taken = model.run(chunk, dt)
        completed += taken
        if on_batch is not None:
            on_batch(model, completed)
        if taken < chunk:
            break
    return completed


def summarise(model: Model, snapshots: Optional[Iterable[Snapshot]] = None) -> Dict[str, Dict[str, float]]:
    """Per-stock min/max/last/avg over the retained history."""

    timeline: Sequence[Snapshot] = list(model.history if snapshots is None else snapshots)
    summary: Dict[str, Dict[str, float]] = {}
    if not timeline:
        return summary
    for name in model.stocks:
        values = [point.values[name] for point in timeline if name in point.values]
        if not values:
            continue
        summary[name] = {
            "min": float(min(values)),
            "max": float(max(values)),
            "last": float(values[-1]),
            "avg": float(sum(values) / len(values)),
        }
    return summary


__all__ = ["run_batched", "summarise", "default_batch_size", "BatchCallback"]
