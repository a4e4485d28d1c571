from __future__ import annotations
from dataclasses import dataclass
from itertools import combinations
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..imaging.image import Image

@dataclass(frozen=True)
class MergeParams:
    """
    min_merge_cluster_size: clusters smaller than this are never merged
    merging_threshold: linearity score the combined cluster must exceed
    wire_reach / tick_reach: the two clusters must have bins this close
        (in wires and ticks) to be considered at all
    weight_by_density: weight each bin by its blurred density in the PCA
    """
    min_merge_cluster_size: int = 50
    merging_threshold: float = 0.8
    wire_reach: int = 3
    tick_reach: int = 3
    weight_by_density: bool = False

    def __post_init__(self) -> None:
        if self.min_merge_cluster_size < 1:
            raise ValueError(f"min_merge_cluster_size must be >= 1, got {self.min_merge_cluster_size}")
        if not 0.0 <= self.merging_threshold <= 1.0:
            raise ValueError(f"merging_threshold must be in [0, 1], got {self.merging_threshold}")
        if self.wire_reach < 0 or self.tick_reach < 0:
            raise ValueError(f"Merge reach must be >= 0, got ({self.wire_reach}, {self.tick_reach})")

# ----------------- union-find -----------------

class UnionFind:
    def __init__(self, n: int) -> None:
        self.parent = list(range(n))
        self.rank = [0] * n

    def find(self, i: int) -> int:
        root = i
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[i] != root:
            self.parent[i], i = root, self.parent[i]
        return root

    def union(self, a: int, b: int) -> bool:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return False
        if self.rank[ra] < self.rank[rb]:
            ra, rb = rb, ra
        self.parent[rb] = ra
        if self.rank[ra] == self.rank[rb]:
            self.rank[ra] += 1
        return True

    def groups(self) -> List[List[int]]:
        """Members per set, sets ordered by their lowest member."""
        by_root: Dict[int, List[int]] = {}
        for i in range(len(self.parent)):
            by_root.setdefault(self.find(i), []).append(i)
        return sorted(by_root.values(), key=lambda g: g[0])

# ----------------- PCA -----------------

def linearity_score(points: np.ndarray, weights: Optional[np.ndarray] = None) -> float:
    """
    Fraction of the variance carried by the principal axis of a 2D point cloud.

    Returns l1 / (l1 + l2) for the eigenvalues l1 >= l2 of the (weighted)
    covariance matrix: 1.0 for points on a line, 0.5 for an isotropic blob.
    Degenerate clouds (fewer than two distinct points) score 1.0.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(pts) < 2:
        return 1.0
    if weights is None:
        w = np.ones(len(pts), dtype=np.float64)
    else:
        w = np.clip(np.asarray(weights, dtype=np.float64), 0.0, None)
    wsum = w.sum()
    if wsum <= 0:
        return 1.0
    mean = (w[:, None] * pts).sum(axis=0) / wsum
    d = pts - mean
    cov = (w[:, None, None] * (d[:, :, None] * d[:, None, :])).sum(axis=0) / wsum
    evals = np.linalg.eigvalsh(cov)
    total = float(evals.sum())
    if total <= 0:
        return 1.0
    return float(evals[-1] / total)

# ----------------- merger -----------------

class ClusterMerger:
    """
    Merges fragments whose union looks like a single straight segment.

    Every unordered pair of eligible clusters is tested independently;
    accepted pairs are joined with a union-find, so the outcome does not
    depend on the pair order and chains (A~B, B~C) collapse into one cluster.
    """

    def __init__(self, image: Image, params: MergeParams) -> None:
        self.image = image
        self.params = params

    def _coords(self, bins: Sequence[int]) -> np.ndarray:
        w, t = np.divmod(np.asarray(bins, dtype=np.int64), self.image.n_ticks)
        return np.stack([w, t], axis=1)

    def within_reach(self, a: Sequence[int], b: Sequence[int]) -> bool:
        ca, cb = self._coords(a), self._coords(b)
        dw = np.abs(ca[:, None, 0] - cb[None, :, 0])
        dt = np.abs(ca[:, None, 1] - cb[None, :, 1])
        return bool(((dw <= self.params.wire_reach) & (dt <= self.params.tick_reach)).any())

    def score(self, a: Sequence[int], b: Sequence[int]) -> float:
        bins = list(a) + list(b)
        weights = self.image.data.ravel()[bins] if self.params.weight_by_density else None
        return linearity_score(self._coords(bins).astype(np.float64), weights)

    def accepts(self, a: Sequence[int], b: Sequence[int]) -> bool:
        if not self.within_reach(a, b):
            return False
        return self.score(a, b) > self.params.merging_threshold

    def merge(self, clusters: Sequence[Sequence[int]]) -> List[List[int]]:
        eligible = [i for i, c in enumerate(clusters) if len(c) >= self.params.min_merge_cluster_size]
        uf = UnionFind(len(clusters))
        for i, j in combinations(eligible, 2):
            if uf.find(i) == uf.find(j):
                continue
            if self.accepts(clusters[i], clusters[j]):
                uf.union(i, j)

        merged: List[List[int]] = []
        for group in uf.groups():
            bins: List[int] = []
            for i in group:
                bins.extend(clusters[i])
            merged.append(bins)
        return merged

def merge_clusters(image: Image, clusters: Sequence[Sequence[int]], params: MergeParams) -> List[List[int]]:
    return ClusterMerger(image, params).merge(clusters)
