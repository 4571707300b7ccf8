"""Piecewise-constant rate maps along a sequence."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path

DEFAULT_SEQUENCE_LENGTH = float(2**31 - 1)


@dataclass
class RateMap:
    """A map of per-base rates, stored as cumulative distances at breakpoints."""

    sequence_length: float = DEFAULT_SEQUENCE_LENGTH
    coordinates: list[float] = field(default_factory=list)
    rate_distances: list[float] = field(default_factory=list)

    @classmethod
    def load(cls, path: str | PathLike[str]) -> RateMap:
        """Read a map of whitespace-separated ``left right rate`` triples."""
        file_path = Path(path)
        if not file_path.is_file():
            raise FileNotFoundError(f"input rate map file not found: {file_path}")
        tokens = file_path.read_text().split()
        try:
            values = [float(token) for token in tokens]
        except ValueError as exc:
            raise ValueError(f"malformed rate map file: {file_path}") from exc
        triples = list(zip(values[0::3], values[1::3], values[2::3]))
        if not triples:
            raise ValueError(f"rate map file holds no segments: {file_path}")

        rate_map = cls(coordinates=[], rate_distances=[0.0])
        for left, right, rate in triples:
            rate_map.coordinates.append(left)
            rate_map.rate_distances.append(rate_map.rate_distances[-1] + rate * (right - left))
        rate_map.sequence_length = triples[-1][1]
        rate_map.coordinates.append(rate_map.sequence_length)
        return rate_map

    def find_index(self, x: float) -> int:
        """Index of the last breakpoint at or before ``x``."""
        index = bisect_right(self.coordinates, x) - 1
        if index < 0:
            raise ValueError(f"position {x} lies before the start of the map")
        return index

    def cumulative_distance(self, x: float) -> float:
        """Distance from the start of the map to ``x``, linearly interpolated."""
        index = min(self.find_index(x), len(self.coordinates) - 2)
        prev_dist = self.rate_distances[index]
        next_dist = self.rate_distances[index + 1]
        left = self.coordinates[index]
        right = self.coordinates[index + 1]
        p = (x - left) / (right - left)
        return (1 - p) * prev_dist + p * next_dist

    def segment_distance(self, x: float, y: float) -> float:
        """Distance between positions ``x`` and ``y``."""
        return self.cumulative_distance(y) - self.cumulative_distance(x)

    def mean_rate(self) -> float:
        """Average rate over the whole sequence."""
        return self.rate_distances[-1] / self.sequence_length