"""
Disjoint-set (union-find) with path halving and union by rank.
"""

from __future__ import annotations

import numpy as np


class DisjointSet:
    """
    Set partition over the integers ``0 .. n-1``.

    ``union`` attaches the lower-rank root under the higher one; on a tie the
    second argument's root goes under the first's and the first grows.
    """

    def __init__(self, n: int):
        n = int(n)
        if n < 0:
            raise ValueError(f"size must be non-negative, got {n}")
        self._parent = np.arange(n, dtype=np.int64)
        self._rank = np.zeros(n, dtype=np.int32)

    def __len__(self) -> int:
        return int(self._parent.shape[0])

    def find(self, x: int) -> int:
        parent = self._parent
        x = int(x)
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = int(parent[x])
        return x

    def union(self, x: int, y: int) -> None:
        rx = self.find(x)
        ry = self.find(y)
        if rx == ry:
            return
        rank = self._rank
        if rank[rx] < rank[ry]:
            self._parent[rx] = ry
        elif rank[rx] > rank[ry]:
            self._parent[ry] = rx
        else:
            self._parent[ry] = rx
            rank[rx] += 1

    def groups(self) -> list[list[int]]:
        """Members of every set, ordered by each set's first member."""
        groups: dict[int, list[int]] = {}
        for i in range(len(self)):
            groups.setdefault(self.find(i), []).append(i)
        return list(groups.values())
