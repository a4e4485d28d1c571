from __future__ import annotations
from pathlib import Path
from typing import List, Sequence

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from ..imaging.image import Image
from .observers import cluster_label_image


class PngObserver:
    """
    Writes one PNG per stage to ``out_dir``, named ``{prefix}_{stage}.png``.

    Set ``prefix`` before each run (e.g. 'ev3_plane2') to keep files apart.
    """

    def __init__(self, out_dir: str | Path, prefix: str = "image", dpi: int = 150) -> None:
        self.out_dir = Path(out_dir)
        self.prefix = prefix
        self.dpi = dpi
        self.written: List[Path] = []

    def _extent(self, image: Image):
        return (image.lower_wire - 0.5, image.upper_wire + 0.5,
                image.lower_tick - 0.5, image.upper_tick + 0.5)

    def _save(self, arr: np.ndarray, image: Image, stage: str, cmap: str) -> None:
        if arr.size == 0:
            return
        self.out_dir.mkdir(parents=True, exist_ok=True)
        out_png = self.out_dir / f"{self.prefix}_{stage}.png"
        plt.figure()
        # wires along x, ticks along y
        plt.imshow(arr.T, origin="lower", aspect="auto", cmap=cmap, extent=self._extent(image))
        plt.colorbar()
        plt.xlabel("global wire")
        plt.ylabel("tick")
        plt.title(f"{self.prefix} : {stage}")
        plt.tight_layout()
        plt.savefig(out_png, dpi=self.dpi)
        plt.close()
        self.written.append(out_png)

    def on_image(self, stage: str, image: Image) -> None:
        self._save(image.data, image, stage, cmap="viridis")

    def on_clusters(self, stage: str, image: Image, clusters: Sequence[Sequence[int]]) -> None:
        self._save(cluster_label_image(image, clusters), image, stage, cmap="tab20")
