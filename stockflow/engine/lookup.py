"""Empirical curves and surfaces used by ``LOOKUP`` and ``LOOKUP2D``."""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

import numpy as np

from ..errors import EvaluationError


class LookupTable:
    """Piecewise-linear curve with flat extrapolation past either end."""

    def __init__(self, name: str, points: Iterable[Sequence[float]]):
        self.name = name
        pairs = sorted((float(p[0]), float(p[1])) for p in points)
        self.points: List[Tuple[float, float]] = pairs
        self.xs = np.array([x for x, _ in pairs], dtype=float)
        self.ys = np.array([y for _, y in pairs], dtype=float)

    def __call__(self, x: float) -> float:
        if not self.points:
            raise EvaluationError(f"Lookup table '{self.name}' has no points")
        # np.interp clamps to ys[0] / ys[-1] outside the domain.
        return float(np.interp(float(x), self.xs, self.ys))

    def __len__(self) -> int:
        return len(self.points)

    def __repr__(self) -> str:
        return f"LookupTable({self.name!r}, points={len(self.points)})"


class LookupTable2D:
    """Bilinear surface over the grid of distinct x and y coordinates."""

    def __init__(self, name: str, points: Iterable[Sequence[float]]):
        self.name = name
        self.points: List[Tuple[float, float, float]] = [
            (float(p[0]), float(p[1]), float(p[2])) for p in points
        ]
        self.xs = np.array(sorted({x for x, _, _ in self.points}), dtype=float)
        self.ys = np.array(sorted({y for _, y, _ in self.points}), dtype=float)
        self.grid = np.full((len(self.xs), len(self.ys)), np.nan)
        for x, y, z in self.points:
            i = int(np.searchsorted(self.xs, x))
            j = int(np.searchsorted(self.ys, y))
            self.grid[i, j] = z

    @staticmethod
    def _bracket(axis: np.ndarray, value: float) -> Tuple[int, int, float]:
        value = min(max(value, float(axis[0])), float(axis[-1]))
        if len(axis) == 1 or axis[-1] == axis[0]:
            return 0, 0, 0.0
        lo = int(np.searchsorted(axis, value, side="right")) - 1
        lo = min(max(lo, 0), len(axis) - 2)
        span = float(axis[lo + 1] - axis[lo])
        return lo, lo + 1, (value - float(axis[lo])) / span

    def __call__(self, x: float, y: float) -> float:
        if not self.points:
            raise EvaluationError(f"Lookup table '{self.name}' has no points")
        i0, i1, tx = self._bracket(self.xs, float(x))
        j0, j1, ty = self._bracket(self.ys, float(y))
        corners = (
            (i0, j0, (1 - tx) * (1 - ty)),
            (i1, j0, tx * (1 - ty)),
            (i0, j1, (1 - tx) * ty),
            (i1, j1, tx * ty),
        )
        total = 0.0
        for i, j, weight in corners:
            if weight == 0:
                continue
            z = self.grid[i, j]
            if np.isnan(z):
                raise EvaluationError(
                    f"Lookup table '{self.name}' has no value at ({self.xs[i]:g}, {self.ys[j]:g})"
                )
            total += weight * float(z)
        return total

    def __len__(self) -> int:
        return len(self.points)

    def __repr__(self) -> str:
        return f"LookupTable2D({self.name!r}, grid={self.grid.shape})"


__all__ = ["LookupTable", "LookupTable2D"]
