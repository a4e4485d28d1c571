from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

from ..geometry.wires import GlobalWireFn
from ..physics.hits import Hit

# global wire -> tick -> hit (last write wins)
HitMap = Dict[int, Dict[int, Hit]]

# ----------------- image container -----------------

@dataclass
class Image:
    """
    Dense (wire, tick) density image.

    data[w, t] holds the density of global wire ``lower_wire + w`` at tick
    ``lower_tick + t``. Bins are linear indices into ``data``:

        bin = w * n_ticks + t
    """
    data: np.ndarray  # (n_wires, n_ticks) float64
    lower_wire: int = 0
    lower_tick: int = 0

    @classmethod
    def empty(cls) -> "Image":
        return cls(np.zeros((0, 0), dtype=np.float64))

    @property
    def n_wires(self) -> int:
        return self.data.shape[0]

    @property
    def n_ticks(self) -> int:
        return self.data.shape[1]

    @property
    def n_bins(self) -> int:
        return self.data.size

    @property
    def upper_wire(self) -> int:
        return self.lower_wire + self.n_wires - 1

    @property
    def upper_tick(self) -> int:
        return self.lower_tick + self.n_ticks - 1

    def total(self) -> float:
        return float(self.data.sum())

    def bin_of(self, wire_local: int, tick_local: int) -> int:
        return wire_local * self.n_ticks + tick_local

    def local_of(self, bin: int) -> Tuple[int, int]:
        w, t = divmod(int(bin), self.n_ticks)
        return w, t

    def global_of(self, bin: int) -> Tuple[int, int]:
        w, t = self.local_of(bin)
        return self.lower_wire + w, self.lower_tick + t

    def contains_local(self, wire_local: int, tick_local: int) -> bool:
        return 0 <= wire_local < self.n_wires and 0 <= tick_local < self.n_ticks

    def charge_of(self, bin: int) -> float:
        return float(self.data.ravel()[bin])

    def time_of_bin(self, bin: int, hit_map: HitMap) -> Optional[float]:
        """Peak time of the hit that produced ``bin``, or None for blur-only bins."""
        hit = hit_for_bin(self, bin, hit_map)
        return None if hit is None else hit.peak_time

    def with_data(self, data: np.ndarray) -> "Image":
        if data.shape != self.data.shape:
            raise ValueError(f"Shape mismatch: {data.shape} vs {self.data.shape}")
        return Image(data, self.lower_wire, self.lower_tick)

def hit_for_bin(image: Image, bin: int, hit_map: HitMap) -> Optional[Hit]:
    wire, tick = image.global_of(bin)
    return hit_map.get(wire, {}).get(tick)

# ----------------- builder -----------------

def build_image(
    hits: Sequence[Hit],
    global_wire: GlobalWireFn,
    blur_wire: int = 0,
    blur_tick: int = 0,
) -> Tuple[Image, HitMap]:
    """
    Fill a density image with hit charge and build the companion hit map.

    The image spans the bounding box of all hits, widened by the blur radius
    on each side so bins at the edge of the charge see a full kernel.
    Charges landing in the same bin are summed; the hit map keeps only the
    last hit per (wire, tick).
    """
    if blur_wire < 0 or blur_tick < 0:
        raise ValueError(f"Blur radii must be >= 0, got ({blur_wire}, {blur_tick})")

    hit_map: HitMap = {}
    if len(hits) == 0:
        return Image.empty(), hit_map

    wires = np.fromiter((global_wire(h.wire_id) for h in hits), dtype=np.int64, count=len(hits))
    ticks = np.fromiter((h.tick for h in hits), dtype=np.int64, count=len(hits))
    charge = np.fromiter((h.charge for h in hits), dtype=np.float64, count=len(hits))

    lower_wire = int(wires.min()) - blur_wire
    lower_tick = int(ticks.min()) - blur_tick
    n_wires = int(wires.max()) + blur_wire - lower_wire + 1
    n_ticks = int(ticks.max()) + blur_tick - lower_tick + 1

    data = np.zeros((n_wires, n_ticks), dtype=np.float64)
    np.add.at(data, (wires - lower_wire, ticks - lower_tick), charge)

    for h, w, t in zip(hits, wires.tolist(), ticks.tolist()):
        hit_map.setdefault(w, {})[t] = h

    return Image(data, lower_wire, lower_tick), hit_map
