from __future__ import annotations
import threading
from typing import Optional, Tuple

import numpy as np

from .image import HitMap

KernelKey = Tuple[int, int, float]

# ----------------- kernel math -----------------

def gaussian_kernel(blur_wire: int, blur_tick: int, sigma: float) -> np.ndarray:
    """
    Normalised 2D Gaussian of shape (2*blur_wire+1, 2*blur_tick+1).

    Cell (i, j) holds exp(-((i-cx)^2 + (j-cy)^2) / (2 sigma^2)) / norm, with
    (cx, cy) the kernel centre, so the weights sum to one.
    """
    blur_wire = int(blur_wire)
    blur_tick = int(blur_tick)
    if blur_wire < 0 or blur_tick < 0:
        raise ValueError(f"Blur radii must be >= 0, got ({blur_wire}, {blur_tick})")
    if not sigma > 0:
        raise ValueError(f"Blur sigma must be positive, got {sigma}")

    dw = np.arange(-blur_wire, blur_wire + 1, dtype=np.float64)
    dt = np.arange(-blur_tick, blur_tick + 1, dtype=np.float64)
    r2 = dw[:, None] ** 2 + dt[None, :] ** 2
    k = np.exp(-r2 / (2.0 * sigma * sigma))
    return k / k.sum()

class KernelCache:
    """
    Holds the most recently requested kernel.

    The kernel is only recomputed when (blur_wire, blur_tick, sigma) differs
    from the previous request. Returned arrays are read-only views of the
    cached kernel. A lock guards the single slot so one cache can be shared
    between threads; use one cache per worker if contention matters.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._key: Optional[KernelKey] = None
        self._kernel: Optional[np.ndarray] = None
        self.n_builds = 0

    @property
    def key(self) -> Optional[KernelKey]:
        return self._key

    def get(self, blur_wire: int, blur_tick: int, sigma: float) -> np.ndarray:
        key = (int(blur_wire), int(blur_tick), float(sigma))
        with self._lock:
            if self._key != key or self._kernel is None:
                kernel = gaussian_kernel(*key)
                kernel.setflags(write=False)
                self._key, self._kernel = key, kernel
                self.n_builds += 1
            return self._kernel

    def invalidate(self) -> None:
        with self._lock:
            self._key = None
            self._kernel = None

default_kernel_cache = KernelCache()

# ----------------- blur parameter resolution -----------------

def resolve_blur_parameters(
    hit_map: HitMap,
    blur_wire: int,
    blur_tick: int,
    blur_sigma: float,
    wire_to_tick: float = 1.0,
) -> KernelKey:
    """
    Scale the blur radii along the dominant direction of the hits.

    A least squares line through the hit (wire, tick) positions, with ticks
    converted to wire-pitch units via ``wire_to_tick``, gives a rough
    trajectory direction; each radius is scaled by the matching component of
    that unit vector; a nonzero radius is kept at one bin or more. Fewer than two hits leave
    the radii unchanged.
    """
    wires, ticks = [], []
    for w, by_tick in hit_map.items():
        for t in by_tick:
            wires.append(w)
            ticks.append(t)
    if len(wires) < 2:
        return int(blur_wire), int(blur_tick), float(blur_sigma)

    x = np.asarray(wires, dtype=np.float64)
    y = np.asarray(ticks, dtype=np.float64) / wire_to_tick
    n = len(x)
    denom = n * (x * x).sum() - x.sum() ** 2
    if denom == 0:
        # all hits on one wire
        unit = np.array([0.0, 1.0])
    else:
        gradient = (n * (x * y).sum() - x.sum() * y.sum()) / denom
        unit = np.array([1.0, gradient])
        unit /= np.linalg.norm(unit)

    bw = max(int(round(abs(blur_wire * unit[0]))), min(int(blur_wire), 1))
    bt = max(int(round(abs(blur_tick * unit[1]))), min(int(blur_tick), 1))
    return bw, bt, float(blur_sigma)
