from __future__ import annotations
import numpy as np
from typing import Iterable, List
from ..physics.hits import Hit, WireID

def line_hits(
    wires: Iterable[int],
    tick: float,
    charge: float = 50.0,
    tpc: int = 0,
    plane: int = 0,
    slope: float = 0.0,
) -> List[Hit]:
    """
    One hit per wire along tick = tick + slope * (wire - first_wire).
    """
    wires = list(wires)
    if not wires:
        return []
    w0 = wires[0]
    return [
        Hit(WireID(tpc, plane, int(w)), peak_time=float(tick + slope * (w - w0)), charge=float(charge))
        for w in wires
    ]

def synth_tracks_with_noise(
    n_tracks: int,
    n_wires: int = 200,
    n_ticks: int = 1000,
    hits_per_track: int = 30,
    n_noise: int = 20,
    charge: float = 50.0,
    gap_prob: float = 0.1,
    plane: int = 0,
    tpc: int = 0,
    rng: np.random.Generator | None = None,
) -> List[Hit]:
    """
    Straight tracks of consecutive-wire hits (with random dropouts) plus
    isolated single-hit noise scattered across the plane.

    Each track gets a random start, direction and |slope| < 3 ticks/wire;
    hits outside the wire/tick range are clipped away.
    """
    rng = rng or np.random.default_rng()
    hits: List[Hit] = []

    for _ in range(n_tracks):
        w0 = int(rng.integers(0, max(1, n_wires - hits_per_track)))
        t0 = float(rng.uniform(0.2 * n_ticks, 0.8 * n_ticks))
        slope = float(rng.uniform(-3.0, 3.0))
        for k in range(hits_per_track):
            if rng.random() < gap_prob:
                continue
            w = w0 + k
            t = t0 + slope * k
            if not (0 <= w < n_wires and 0 <= t < n_ticks):
                continue
            q = float(rng.normal(charge, 0.1 * charge))
            hits.append(Hit(WireID(tpc, plane, w), peak_time=t, charge=max(q, 0.0)))

    for _ in range(n_noise):
        w = int(rng.integers(0, n_wires))
        t = float(rng.uniform(0, n_ticks))
        hits.append(Hit(WireID(tpc, plane, w), peak_time=t, charge=float(rng.uniform(0.1, 0.5) * charge)))

    return hits
