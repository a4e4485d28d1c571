import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from pathlib import Path

from blurclust.io.cluster_store import cluster_rows, read_clusters

def save_clusters_png(h5_path: str, event: int = 0, plane: int = 0, out_png: str | None = None):
    h5_path = str(h5_path)
    data = read_clusters(h5_path)
    sel = np.flatnonzero((data["clusters/event"] == event) & (data["clusters/plane"] == plane))
    if sel.size == 0:
        raise KeyError(f"No clusters for event={event} plane={plane} in {h5_path}")

    if out_png is None:
        out_png = str(Path(h5_path).with_name(f"{Path(h5_path).stem}_ev{event}_plane{plane}.png"))

    plt.figure()
    for k in sel:
        rows = cluster_rows(data, int(k))
        plt.scatter(data["hits/wire"][rows], data["hits/peak_time"][rows], s=6, label=f"cluster {k}")
    plt.xlabel("wire")
    plt.ylabel("peak time [ticks]")
    plt.title(f"{Path(h5_path).name} : event {event} plane {plane}")
    if sel.size <= 10:
        plt.legend(fontsize="small")
    plt.tight_layout()
    plt.savefig(out_png, dpi=150)
    plt.close()
    return out_png
