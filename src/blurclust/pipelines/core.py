from __future__ import annotations

from pathlib import Path
from typing import List, Optional
import typer

from tqdm import tqdm

from blurclust.clustering.alg import BlurredClusteringAlg
from blurclust.config.load import load_config
from blurclust.config.schemas import Config
from blurclust.geometry.wires import WireGeometry
from blurclust.imaging.kernel import KernelCache
from blurclust.io.adapters import iter_plane_groups, read_hits_table
from blurclust.io.cluster_store import PlaneClusters, write_clusters, write_init
from blurclust.physics.hits import Hit
from blurclust.vis.png import PngObserver


def make_alg(cfg: Config, kernel_cache: Optional[KernelCache] = None) -> BlurredClusteringAlg:
    geom = WireGeometry.from_cfg(cfg.geometry.n_wires, cfg.geometry.tpc_groups)
    observer = PngObserver(cfg.vis.png_dir) if cfg.vis.export_png else None
    return BlurredClusteringAlg(
        cfg.clustering,
        global_wire=geom,
        kernel_cache=kernel_cache if kernel_cache is not None else KernelCache(),
        observer=observer,
        diagnostics_level=cfg.run.diagnostics_level,
    )


def cluster_hits(
    hits: List[Hit],
    alg: BlurredClusteringAlg,
    progress: bool = False,
    max_events: Optional[int] = None,
) -> List[PlaneClusters]:
    """
    Cluster every (event, plane) group independently.

    Each group gets its own image and hit map; only the kernel cache is
    shared across groups.
    """
    groups = list(iter_plane_groups(hits))
    if max_events is not None:
        keep = sorted({ev for (ev, _), _ in groups})[:max_events]
        groups = [g for g in groups if g[0][0] in keep]

    out: List[PlaneClusters] = []
    it = tqdm(groups, desc="planes", unit="plane") if progress else groups
    for (event, plane), group_hits in it:
        if isinstance(alg.observer, PngObserver):
            alg.observer.prefix = f"ev{event}_plane{plane}"
        result = alg.run(group_hits)
        out.append(((event, plane), result.hit_clusters))
        if alg.diagnostics_level >= 2:
            print(f"[pipeline] event={event} plane={plane}: {len(group_hits)} hits -> "
                  f"{len(result.hit_clusters)} clusters")
    return out


def run_pipeline(
    cfg_path: str,
    *,
    diagnostics_level: Optional[int] = None,
    export_png: Optional[bool] = None,
) -> Path:
    """
    Orchestrate the full pipeline from a TOML config file.

    CLI flags override the corresponding config fields when not None.

    Parameters
    ----------
    cfg_path : str
        Path to TOML configuration file.

    Returns
    -------
    Path to written HDF5 file.
    """
    # CLI overrides are applied before validation
    cfg = load_config(cfg_path, overrides={
        "run.diagnostics_level": diagnostics_level,
        "vis.export_png": export_png,
    })

    diag_level = cfg.run.diagnostics_level

    # Basic logging
    if diag_level >= 1:
        print(f"[run] config = {cfg_path}")
        print(f"[run] input={cfg.io.input_path} -> output={cfg.io.output_path}")

    # Alg first so bad parameters fail before any I/O
    alg = make_alg(cfg)

    hits = read_hits_table(cfg.io.input_path, columns=cfg.io.adapter.get("columns"))
    if diag_level >= 1:
        print(f"[pipeline] Read {len(hits)} hits")

    planes = cluster_hits(hits, alg, progress=cfg.run.progress, max_events=cfg.run.max_events)

    if diag_level >= 1:
        n_clusters = sum(len(hcs) for _, hcs in planes)
        n_clustered = sum(len(hc) for _, hcs in planes for hc in hcs)
        print(f"[pipeline] {len(planes)} planes -> {n_clusters} clusters "
              f"({n_clustered}/{len(hits)} hits clustered)")
        print(f"[pipeline] kernel builds: {alg.kernel_cache.n_builds}")

    # HDF5 output
    out_path = Path(cfg.io.output_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    f = write_init(str(out_path), cfg_path, cfg)
    try:
        write_clusters(f, planes)
    finally:
        f.close()

    if diag_level >= 1 and isinstance(alg.observer, PngObserver):
        print(f"[pipeline] Wrote {len(alg.observer.written)} PNGs to {cfg.vis.png_dir}")

    return out_path


# ---------------------------------------------------------------------------
# Unified CLI entry point
# ---------------------------------------------------------------------------

app = typer.Typer(help="Blurred clustering of wire hits (blurclust.pipelines.core)")


@app.command()
def main(
    cfg_path: str = typer.Argument(
        ...,
        help="Path to TOML config file",
    ),
    diagnostics_level: Optional[int] = typer.Option(
        None,
        "--diag",
        help="Override [run].diagnostics_level (0, 1 or 2)",
    ),
    export_png: Optional[bool] = typer.Option(
        None,
        "--png / --no-png",
        help="Enable or disable per-stage PNG export; overrides [vis].export_png when set",
    ),
):
    """
    Cluster every (event, plane) in the configured hit table and write HDF5.
    """
    out_path = run_pipeline(cfg_path, diagnostics_level=diagnostics_level, export_png=export_png)
    typer.echo(str(out_path))


if __name__ == "__main__":
    app()
