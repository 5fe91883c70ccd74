"""Minimum-spanning-tree ordering of subbagged replicates.

Subbagging fits the same shape function on B random subsamples. Building
each replicate's histogram from scratch costs a full scan per replicate;
instead the replicates are ordered along a minimum spanning tree over
their pairwise symmetric differences, so that every histogram after the
first one is derived from an already built neighbour by adding and
removing only the rows the two subsamples do not share.
"""

from __future__ import annotations

import heapq
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator

import numpy as np
from sklearn.utils import check_random_state

if TYPE_CHECKING:
    from numpy.typing import NDArray

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SampleDelta:
    """Rows to add and rows to remove to turn one sample into another."""
    to_add: NDArray[np.int64]
    to_del: NDArray[np.int64]

    @property
    def distance(self) -> int:
        return int(self.to_add.shape[0] + self.to_del.shape[0])


@dataclass(frozen=True)
class Sample:
    """Immutable set of row indices, stored sorted."""
    indices: NDArray[np.int64]

    @classmethod
    def from_rows(cls, rows) -> Sample:
        return cls(np.unique(np.asarray(rows, dtype=np.int64)))

    @property
    def weight(self) -> int:
        return int(self.indices.shape[0])

    def __len__(self) -> int:
        return self.weight

    def delta_to(self, other: Sample) -> SampleDelta:
        return SampleDelta(
            to_add=np.setdiff1d(other.indices, self.indices, assume_unique=True),
            to_del=np.setdiff1d(self.indices, other.indices, assume_unique=True),
        )

    def distance(self, other: Sample) -> int:
        shared = np.intersect1d(self.indices, other.indices, assume_unique=True).shape[0]
        return self.weight + other.weight - 2 * shared


class UnionFind:
    """Disjoint sets over 0..n-1 with union by size and path compression.

    ``parent[i]`` is the parent of i, or minus the set size if i is a root.
    """

    def __init__(self, n: int):
        self.parent = np.full(n, -1, dtype=np.int64)

    def find(self, i: int) -> int:
        root = i
        while self.parent[root] >= 0:
            root = int(self.parent[root])
        while self.parent[i] >= 0:
            nxt = int(self.parent[i])
            self.parent[i] = root
            i = nxt
        return root

    def union(self, a: int, b: int) -> bool:
        """Merge the sets of a and b. Returns False if already merged."""
        ra = self.find(a)
        rb = self.find(b)
        if ra == rb:
            return False
        if self.parent[ra] > self.parent[rb]:
            ra, rb = rb, ra
        self.parent[ra] += self.parent[rb]
        self.parent[rb] = ra
        return True

    def size(self, i: int) -> int:
        return int(-self.parent[self.find(i)])


@dataclass
class SubagSequence:
    """Delta-update plan over B subsamples.

    Attributes:
        samples: The B subsamples
        root: Index of the sample built by a full scan
        edges: (from, to) sample pairs in breadth-first order
        deltas: SampleDelta of each edge
        out_degree: Number of edges leaving each sample
    """
    samples: list[Sample]
    root: int = 0
    edges: list[tuple[int, int]] = field(default_factory=list)
    deltas: list[SampleDelta] = field(default_factory=list)
    out_degree: NDArray[np.int64] | None = None

    @classmethod
    def build(
        cls,
        n_rows: int,
        subsample_size: int,
        n_bags: int,
        random_state=None,
    ) -> SubagSequence:
        """Draw `n_bags` subsamples without replacement and order them.

        Args:
            n_rows: Number of rows in the dataset
            subsample_size: Rows per subsample
            n_bags: Number of subsamples
            random_state: Seed or RandomState for the permutations

        Raises:
            ValueError: If subsample_size is not in [1, n_rows] or n_bags < 1.
        """
        if subsample_size > n_rows or subsample_size < 1:
            msg = f"subsample_size must be in [1, {n_rows}], got {subsample_size}"
            _log.error(msg)
            raise ValueError(msg)
        if n_bags < 1:
            msg = f"n_bags must be >= 1, got {n_bags}"
            _log.error(msg)
            raise ValueError(msg)

        rng = check_random_state(random_state)
        samples = [
            Sample.from_rows(rng.permutation(n_rows)[:subsample_size])
            for _ in range(n_bags)
        ]
        return cls.from_samples(samples)

    @classmethod
    def from_samples(cls, samples: list[Sample]) -> SubagSequence:
        """Order existing samples along a minimum spanning tree."""
        n = len(samples)
        heap = [
            (samples[i].distance(samples[j]), i, j)
            for i in range(n - 1)
            for j in range(i + 1, n)
        ]
        heapq.heapify(heap)

        adjacency: dict[int, list[int]] = {i: [] for i in range(n)}
        sets = UnionFind(n)
        while heap:
            _, i, j = heapq.heappop(heap)
            if sets.union(i, j):
                adjacency[i].append(j)
                adjacency[j].append(i)

        weights = [s.weight for s in samples]
        root = int(np.argmin(weights)) if n else 0

        edges: list[tuple[int, int]] = []
        deltas: list[SampleDelta] = []
        out_degree = np.zeros(n, dtype=np.int64)
        if n:
            covered = {root}
            queue = deque([root])
            while queue:
                node = queue.popleft()
                for child in sorted(adjacency[node]):
                    if child in covered:
                        continue
                    covered.add(child)
                    edges.append((node, child))
                    deltas.append(samples[node].delta_to(samples[child]))
                    out_degree[node] += 1
                    queue.append(child)

        seq = cls(samples=samples, root=root, edges=edges, deltas=deltas, out_degree=out_degree)
        _log.debug(
            "subag sequence: %d samples, %d edges, total distance %d",
            n, len(edges), seq.total_distance,
        )
        return seq

    @property
    def n_bags(self) -> int:
        return len(self.samples)

    @property
    def total_distance(self) -> int:
        return sum(d.distance for d in self.deltas)

    def __iter__(self) -> Iterator[tuple[int, int, SampleDelta]]:
        for (src, dst), delta in zip(self.edges, self.deltas):
            yield src, dst, delta

    def __len__(self) -> int:
        return len(self.edges)
