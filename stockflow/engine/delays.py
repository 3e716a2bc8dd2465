"""Stateful time-series kernels behind ``SMOOTH``, ``DELAY`` and ``DELAY_GRADUAL``.

Each call site in a compiled expression owns one :class:`DelayState` slot in
its model's arena; the kernels below only ever see that slot. Buffers hold
``(time, value)`` samples and are pruned by age: ``delay`` keeps one sample at
or before its target time, the others keep a multiple of their time constant.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional, Tuple

import numpy as np

SMOOTH_RETENTION = 5.0
GRADUAL_RETENTION = 4.0

Sample = Tuple[float, float]


@dataclass
class DelayState:
    kind: str
    samples: Deque[Sample] = field(default_factory=deque)
    smoothed: Optional[float] = None


def _prune_before(samples: Deque[Sample], cutoff: float) -> None:
    while samples and samples[0][0] < cutoff:
        samples.popleft()


def smooth(state: DelayState, value: float, time_constant: float, *, time: float, dt: float) -> float:
    """Exponential smoothing with no warm-up lag.

    The first evaluation adopts ``value`` directly. Afterwards the running
    value moves toward the input by ``dt / time_constant`` of the gap.
    """

    state.samples.append((time, value))
    if time_constant <= 0:
        _prune_before(state.samples, time)
        state.smoothed = value
        return value

    _prune_before(state.samples, time - SMOOTH_RETENTION * time_constant)
    if state.smoothed is None:
        state.smoothed = value
        return value

    state.smoothed += (value - state.smoothed) * (dt / time_constant)
    return state.smoothed


def delay(state: DelayState, value: float, delay_time: float, *, time: float) -> float:
    """Pure transport lag, linearly interpolated between buffered samples.

    Until the buffer reaches back ``delay_time`` the pipe is treated as
    pre-filled with the current input.
    """

    samples = state.samples
    samples.append((time, value))
    if delay_time <= 0:
        _prune_before(samples, time)
        return value

    target = time - delay_time
    # Keep exactly one sample at or before the target for interpolation.
    while len(samples) >= 2 and samples[1][0] <= target:
        samples.popleft()

    if samples[0][0] > target:
        return value

    # samples[0] is at or before the target, samples[1] after it.
    (t0, v0), (t1, v1) = samples[0], samples[1]
    return float(np.interp(target, (t0, t1), (v0, v1)))


def delay_gradual(state: DelayState, value: float, delay_time: float, *, time: float) -> float:
    """Gaussian-weighted lag approximating a third-order material delay.

    Weights are centred on ``time - delay_time`` with a standard deviation of
    ``delay_time / 3``; the buffer keeps ``4 * delay_time`` of history.
    """

    samples = state.samples
    samples.append((time, value))
    if delay_time <= 0:
        _prune_before(samples, time)
        return value

    _prune_before(samples, time - GRADUAL_RETENTION * delay_time)
    center = time - delay_time
    if samples[0][0] > center:
        return value

    sigma = delay_time / 3.0
    times = np.fromiter((t for t, _ in samples), dtype=float, count=len(samples))
    values = np.fromiter((v for _, v in samples), dtype=float, count=len(samples))
    weights = np.exp(-((times - center) ** 2) / (2.0 * sigma * sigma))
    total = float(weights.sum())
    if total <= 0 or not math.isfinite(total):
        return value
    return float(np.dot(weights, values) / total)


__all__ = [
    "DelayState",
    "smooth",
    "delay",
    "delay_gradual",
]
