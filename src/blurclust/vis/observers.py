"""
blurclust.vis.observers

Debug hooks for the clustering stages. The algorithm hands each observer
read-only snapshots after every stage; observers never feed anything back,
so swapping one in or out cannot change the clusters produced.

Rendering observers live in blurclust.vis.png so that the algorithm itself
never imports a plotting backend.
"""
from __future__ import annotations
from typing import Protocol, Sequence

import numpy as np

from ..imaging.image import Image


class ClusteringObserver(Protocol):
    def on_image(self, stage: str, image: Image) -> None:
        """stage: 'raw' | 'blurred'"""

    def on_clusters(self, stage: str, image: Image, clusters: Sequence[Sequence[int]]) -> None:
        """stage: 'found' | 'merged'"""


class NullObserver:
    def on_image(self, stage: str, image: Image) -> None:
        pass

    def on_clusters(self, stage: str, image: Image, clusters: Sequence[Sequence[int]]) -> None:
        pass


def snapshot(image: Image) -> Image:
    """Read-only view of ``image`` handed to observers."""
    data = image.data.view()
    data.setflags(write=False)
    return image.with_data(data)


def cluster_label_image(image: Image, clusters: Sequence[Sequence[int]]) -> np.ndarray:
    """(n_wires, n_ticks) int array: 0 outside clusters, k+1 inside cluster k."""
    labels = np.zeros(image.n_bins, dtype=np.int32)
    for k, bins in enumerate(clusters):
        labels[list(bins)] = k + 1
    return labels.reshape(image.data.shape)
