"""A priority queue of CSV rows ordered by score, highest first."""

from __future__ import annotations

import heapq
import itertools
from collections.abc import Sequence


class PriorityQueue:
    """Holds rows and hands them back from the highest score to the lowest.

    Rows with equal scores come back in the order they were pushed.
    """

    def __init__(self) -> None:
        self._heap: list[tuple[float, int, Sequence[str]]] = []
        self._counter = itertools.count()

    def push_row(self, row: Sequence[str], score: float) -> None:
        """Add row to the queue with score as its priority."""
        heapq.heappush(self._heap, (-score, next(self._counter), row))

    def pop_row(self) -> Sequence[str]:
        """Remove and return the row with the highest score."""
        if not self._heap:
            raise IndexError("pop from empty priority queue")
        return heapq.heappop(self._heap)[2]

    def __len__(self) -> int:
        return len(self._heap)