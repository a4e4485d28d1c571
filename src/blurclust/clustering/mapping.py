from __future__ import annotations
from typing import List, Sequence

from ..imaging.image import HitMap, Image, hit_for_bin
from ..physics.hits import Hit

def bins_to_hits(image: Image, bins: Sequence[int], hit_map: HitMap) -> List[Hit]:
    """
    Hits behind the bins of one cluster.

    Bins that only carry blurred charge have no hit and are skipped. When
    several hits shared a bin only the one kept by the hit map is returned.
    """
    out: List[Hit] = []
    for b in bins:
        hit = hit_for_bin(image, b, hit_map)
        if hit is not None:
            out.append(hit)
    return out

def clusters_to_hits(
    image: Image,
    clusters: Sequence[Sequence[int]],
    hit_map: HitMap,
    drop_empty: bool = True,
) -> List[List[Hit]]:
    hit_clusters = [bins_to_hits(image, c, hit_map) for c in clusters]
    if drop_empty:
        hit_clusters = [hc for hc in hit_clusters if hc]
    return hit_clusters
