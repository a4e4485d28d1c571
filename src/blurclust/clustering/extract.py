from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Dict, List

import numpy as np
from scipy import ndimage

from ..imaging.image import Image

@dataclass(frozen=True)
class ExtractParams:
    """
    min_seed: blurred density a bin must exceed to qualify (and to seed)
    cluster_wire_distance / cluster_tick_distance: half-size of the search
        window around each clustered bin
    neighbours_threshold: qualifying 8-neighbours a candidate needs to be admitted
    min_neighbours: in-cluster 8-neighbours a bin needs to survive pruning
    min_size: smallest cluster kept
    """
    min_seed: float = 1.0
    cluster_wire_distance: int = 2
    cluster_tick_distance: int = 2
    neighbours_threshold: int = 0
    min_neighbours: int = 0
    min_size: int = 2

    def __post_init__(self) -> None:
        if self.cluster_wire_distance < 1 or self.cluster_tick_distance < 1:
            raise ValueError(
                "Cluster window must be at least one bin in each direction, got "
                f"({self.cluster_wire_distance}, {self.cluster_tick_distance})"
            )
        if self.neighbours_threshold < 0 or self.neighbours_threshold > 8:
            raise ValueError(f"neighbours_threshold must be in [0, 8], got {self.neighbours_threshold}")
        if self.min_neighbours < 0 or self.min_neighbours > 8:
            raise ValueError(f"min_neighbours must be in [0, 8], got {self.min_neighbours}")
        if self.min_size < 1:
            raise ValueError(f"min_size must be >= 1, got {self.min_size}")

_OFFSETS_8 = [(dw, dt) for dw in (-1, 0, 1) for dt in (-1, 0, 1) if (dw, dt) != (0, 0)]
_RING_8 = np.array([[1, 1, 1], [1, 0, 1], [1, 1, 1]], dtype=np.int32)

def neighbour_counts(mask: np.ndarray) -> np.ndarray:
    """Number of True cells in each cell's 8-neighbourhood (cell itself excluded)."""
    return ndimage.convolve(mask.astype(np.int32), _RING_8, mode="constant", cval=0)

def _neighbour_bins(image: Image, bin: int) -> List[int]:
    w, t = image.local_of(bin)
    return [image.bin_of(w + dw, t + dt) for dw, dt in _OFFSETS_8
            if image.contains_local(w + dw, t + dt)]

def _prune_peninsulas(image: Image, cluster: List[int], min_neighbours: int) -> List[int]:
    """
    Peel bins with fewer than ``min_neighbours`` in-cluster 8-neighbours until
    none is left. Only the neighbours of a removed bin are re-counted.
    """
    if min_neighbours <= 0:
        return cluster
    members = set(cluster)
    adjacent: Dict[int, List[int]] = {
        b: [n for n in _neighbour_bins(image, b) if n in members] for b in cluster
    }
    counts = {b: len(ns) for b, ns in adjacent.items()}
    queue = deque(b for b in cluster if counts[b] < min_neighbours)
    removed = set()
    while queue:
        b = queue.popleft()
        if b in removed:
            continue
        removed.add(b)
        for n in adjacent[b]:
            if n in removed:
                continue
            counts[n] -= 1
            if counts[n] == min_neighbours - 1:
                queue.append(n)
    return [b for b in cluster if b not in removed]

def find_clusters(blurred: Image, params: ExtractParams) -> List[List[int]]:
    """
    Density-thresholded connected-region search over a blurred image.

    Qualifying bins (value > min_seed) are used as seeds in decreasing value
    order. Each region grows through every unused qualifying bin inside the
    search window of a member, provided the candidate has at least
    ``neighbours_threshold`` qualifying 8-neighbours; isolated high bins are
    therefore never admitted. Regions below ``min_size`` are released, the
    rest are pruned of peninsulas and size-checked again. Bins of a released
    region may still join later regions but never seed one again.

    Returns the bin clusters; each bin appears in at most one cluster.
    """
    if blurred.n_bins == 0:
        return []

    values = blurred.data.ravel()
    qualifying = blurred.data > params.min_seed
    if not qualifying.any():
        return []
    admissible = (neighbour_counts(qualifying) >= params.neighbours_threshold).ravel()
    qualifying = qualifying.ravel()

    seeds = np.flatnonzero(qualifying & admissible)
    seeds = seeds[np.argsort(-values[seeds], kind="stable")]

    used = np.zeros(blurred.n_bins, dtype=bool)
    tried = np.zeros(blurred.n_bins, dtype=bool)
    clusters: List[List[int]] = []
    rw, rt = params.cluster_wire_distance, params.cluster_tick_distance

    for seed in seeds.tolist():
        if used[seed] or tried[seed]:
            continue
        used[seed] = True
        cluster = [seed]

        # breadth-first growth; appending while iterating visits new members too
        i = 0
        while i < len(cluster):
            w0, t0 = blurred.local_of(cluster[i])
            i += 1
            for w in range(max(0, w0 - rw), min(blurred.n_wires, w0 + rw + 1)):
                for t in range(max(0, t0 - rt), min(blurred.n_ticks, t0 + rt + 1)):
                    b = blurred.bin_of(w, t)
                    if used[b] or not qualifying[b] or not admissible[b]:
                        continue
                    used[b] = True
                    cluster.append(b)

        kept = cluster
        if len(cluster) >= params.min_size:
            kept = _prune_peninsulas(blurred, cluster, params.min_neighbours)
        if len(kept) < params.min_size:
            # any seed in this region would regrow the same region
            used[cluster] = False
            tried[cluster] = True
            continue

        dropped = set(cluster).difference(kept)
        if dropped:
            used[list(dropped)] = False
        clusters.append(kept)

    return clusters
