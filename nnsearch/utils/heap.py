"""
Heap implementations for k-NN search.
"""

import numpy as np
from typing import Iterable, List, Tuple


class BoundedNeighborSet:
    """
    Max heap holding the k best (distance, index) pairs seen so far.

    Uses a max heap so we can quickly check if a new point
    is closer than the current k-th nearest. Pairs are ordered by
    distance, then by index, so equal distances favour the smaller index.

    Parameters
    ----------
    capacity : int
        Maximum number of elements (k).
    """

    __slots__ = ('capacity', 'heap', '_members')

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.heap: List[Tuple[float, int]] = []  # (distance, index)
        self._members = set()

    def push(self, distance: float, index: int) -> bool:
        """
        Try to add a new element.

        Returns True if element was added, False if rejected. An index
        already held is rejected.
        """
        index = int(index)
        if index in self._members:
            return False

        item = (float(distance), index)
        if len(self.heap) < self.capacity:
            self._heap_push(item)
            self._members.add(index)
            return True
        elif item < self.heap[0]:
            self._members.discard(self.heap[0][1])
            self._heap_replace(item)
            self._members.add(index)
            return True
        return False

    def push_many(self, distances: Iterable[float], indices: Iterable[int]) -> int:
        """Push several candidates; return how many were accepted."""
        accepted = 0
        for distance, index in zip(distances, indices):
            if self.push(distance, index):
                accepted += 1
        return accepted

    def worst(self) -> Tuple[float, int]:
        """Return the maximum element (k-th nearest), or (inf, -1) if not full."""
        if len(self.heap) < self.capacity:
            return (float('inf'), -1)
        return self.heap[0]

    @property
    def is_full(self) -> bool:
        return len(self.heap) >= self.capacity

    def get_sorted(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return indices and distances sorted by ascending distance."""
        sorted_items = sorted(self.heap)
        distances = np.array([d for d, _ in sorted_items], dtype=np.float64)
        indices = np.array([i for _, i in sorted_items], dtype=np.int64)
        return indices, distances

    def _heap_push(self, item: Tuple[float, int]):
        """Push item onto heap."""
        self.heap.append(item)
        self._sift_up(len(self.heap) - 1)

    def _heap_replace(self, item: Tuple[float, int]):
        """Replace root with new item and re-heapify."""
        self.heap[0] = item
        self._sift_down(0)

    def _sift_up(self, pos: int):
        """Move item at pos up to maintain heap property."""
        item = self.heap[pos]
        while pos > 0:
            parent_pos = (pos - 1) >> 1
            parent = self.heap[parent_pos]
            if item > parent:  # Max heap: larger goes up
                self.heap[pos] = parent
                pos = parent_pos
            else:
                break
        self.heap[pos] = item

    def _sift_down(self, pos: int):
        """Move item at pos down to maintain heap property."""
        n = len(self.heap)
        item = self.heap[pos]
        child_pos = 2 * pos + 1

        while child_pos < n:
            right_pos = child_pos + 1
            if right_pos < n and self.heap[right_pos] > self.heap[child_pos]:
                child_pos = right_pos

            if item < self.heap[child_pos]:
                self.heap[pos] = self.heap[child_pos]
                pos = child_pos
                child_pos = 2 * pos + 1
            else:
                break

        self.heap[pos] = item

    def __contains__(self, index) -> bool:
        return int(index) in self._members

    def __len__(self) -> int:
        return len(self.heap)
