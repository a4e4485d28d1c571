from __future__ import annotations
from typing import Any, Dict, List, Sequence, Tuple
import h5py
import numpy as np
from datetime import datetime, timezone
from blurclust.config.schemas import Config
from blurclust.config.load import snapshot_config_toml, json_dumps
from blurclust.physics.hits import Hit

FORMAT_VERSION = "1.0"

# ((event, plane), hit clusters of that plane)
PlaneClusters = Tuple[Tuple[int, int], List[List[Hit]]]


def write_init(path: str, cfg_path: str | None, cfg: Config) -> h5py.File:
    f = h5py.File(path, "w")
    # Root attrs
    f.attrs["format_version"] = FORMAT_VERSION
    f.attrs["created_utc"] = datetime.now(timezone.utc).isoformat()
    f.attrs["software"] = "blurclust 0.1.0"
    f.attrs["config_text"] = snapshot_config_toml(cfg_path) if cfg_path else ""
    f.attrs["config_json"] = json_dumps(cfg.model_dump(mode="json"))
    return f


def write_clusters(f: h5py.File, planes: Sequence[PlaneClusters]) -> None:
    """
    Store hit clusters as a CSR-style ragged table.

    We store:
      /clusters/cluster_ptr : (N+1,) offsets into /hits, cluster k owns rows ptr[k]:ptr[k+1]
      /clusters/event       : (N,) event number per cluster
      /clusters/plane       : (N,) plane per cluster
      /hits/{tpc,plane,wire,peak_time,charge,row} : one row per clustered hit;
            row is the hit's index in the input table (-1 when unknown)
    """
    events: List[int] = []
    plane_ids: List[int] = []
    ptr: List[int] = [0]
    rows: Dict[str, List[Any]] = {k: [] for k in ("tpc", "plane", "wire", "peak_time", "charge", "row")}

    for (event, plane), hit_clusters in planes:
        for hc in hit_clusters:
            events.append(int(event))
            plane_ids.append(int(plane))
            for h in hc:
                rows["tpc"].append(h.wire_id.tpc)
                rows["plane"].append(h.wire_id.plane)
                rows["wire"].append(h.wire_id.wire)
                rows["peak_time"].append(h.peak_time)
                rows["charge"].append(h.charge)
                rows["row"].append(int(h.extras.get("row", -1)))
            ptr.append(ptr[-1] + len(hc))

    for name in ("clusters", "hits"):
        if name in f:
            del f[name]
    g_cl = f.create_group("clusters")
    g_cl.create_dataset("cluster_ptr", data=np.asarray(ptr, dtype=np.int64))
    g_cl.create_dataset("event", data=np.asarray(events, dtype=np.int64))
    g_cl.create_dataset("plane", data=np.asarray(plane_ids, dtype=np.int32))
    g_cl.attrs["n_clusters"] = len(events)

    g_hits = f.create_group("hits")
    g_hits.create_dataset("tpc", data=np.asarray(rows["tpc"], dtype=np.int32), compression="gzip")
    g_hits.create_dataset("plane", data=np.asarray(rows["plane"], dtype=np.int32), compression="gzip")
    g_hits.create_dataset("wire", data=np.asarray(rows["wire"], dtype=np.int32), compression="gzip")
    g_hits.create_dataset("peak_time", data=np.asarray(rows["peak_time"], dtype=np.float32), compression="gzip")
    g_hits.create_dataset("charge", data=np.asarray(rows["charge"], dtype=np.float32), compression="gzip")
    g_hits.create_dataset("row", data=np.asarray(rows["row"], dtype=np.int64), compression="gzip")


def read_clusters(path: str) -> Dict[str, np.ndarray]:
    """Read back the arrays written by write_clusters, keyed 'clusters/...' and 'hits/...'."""
    out: Dict[str, np.ndarray] = {}
    with h5py.File(path, "r") as f:
        if "clusters" not in f or "hits" not in f:
            raise KeyError(f"/clusters or /hits not found in {path}")
        for grp in ("clusters", "hits"):
            for name, dset in f[grp].items():
                out[f"{grp}/{name}"] = dset[...]
    return out


def cluster_rows(data: Dict[str, np.ndarray], k: int) -> slice:
    ptr = data["clusters/cluster_ptr"]
    return slice(int(ptr[k]), int(ptr[k + 1]))
