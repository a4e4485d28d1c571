"""
blurclust.io.adapters

Readers that turn tabular hit dumps into physics-layer Hit objects.

Expected columns (after optional renaming via [io.adapter].columns):

    event      int    optional, defaults to 0
    tpc        int
    plane      int
    wire       int
    peak_time  float  [ticks]
    charge     float

Any other column is preserved per hit in ``Hit.extras``.
"""
from __future__ import annotations
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import pandas as pd

from ..physics.hits import Hit, WireID

REQUIRED_COLUMNS = ("tpc", "plane", "wire", "peak_time", "charge")

PlaneKey = Tuple[int, int]  # (event, plane)


def _read_table(p: Path) -> pd.DataFrame:
    suffix = p.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(p)
    if suffix in (".parquet", ".pq"):
        return pd.read_parquet(p)
    raise ValueError(f"Unrecognized hit table: {p.name} (expected .csv or .parquet)")


def hits_from_frame(df: pd.DataFrame, columns: Optional[Mapping[str, str]] = None) -> List[Hit]:
    if columns:
        df = df.rename(columns=dict(columns))
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise KeyError(f"Hit table is missing columns {missing}; found {list(df.columns)}")
    if "event" not in df.columns:
        df = df.assign(event=0)

    extra_cols = [c for c in df.columns if c not in REQUIRED_COLUMNS]
    hits: List[Hit] = []
    for row_idx, r in enumerate(df.to_dict("records")):
        extras: Dict[str, Any] = {c: r[c] for c in extra_cols}
        extras["event"] = int(r["event"])
        extras["row"] = row_idx
        hits.append(Hit(
            wire_id=WireID(tpc=int(r["tpc"]), plane=int(r["plane"]), wire=int(r["wire"])),
            peak_time=float(r["peak_time"]),
            charge=float(r["charge"]),
            extras=extras,
        ))
    return hits


def read_hits_table(path: str | Path, columns: Optional[Mapping[str, str]] = None) -> List[Hit]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Hit table not found: {p}")
    return hits_from_frame(_read_table(p), columns=columns)


def iter_plane_groups(hits: List[Hit]) -> Iterator[Tuple[PlaneKey, List[Hit]]]:
    """Yield ((event, plane), hits) in sorted key order; hit order is preserved within a group."""
    groups: Dict[PlaneKey, List[Hit]] = defaultdict(list)
    for h in hits:
        groups[(int(h.extras.get("event", 0)), h.plane)].append(h)
    for key in sorted(groups):
        yield key, groups[key]
