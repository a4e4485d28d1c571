#!/usr/bin/env python3
"""
Smoke test for the blurred clustering chain on synthetic tracks.

Generates a few straight tracks plus isolated noise hits on one plane,
clusters them with default (or TOML) clustering parameters and reports
how many clusters were found and how many noise hits leaked into them.

Run:
  python -m blurclust.cli.smoke --tracks 3 --seed 1
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import numpy as np
import typer

from blurclust.config.load import load_config
from blurclust.config.schemas import Config
from blurclust.pipelines.core import cluster_hits, make_alg
from blurclust.sim.synth import synth_tracks_with_noise

app = typer.Typer(help="Synthetic-track smoke test for blurclust")


@app.command()
def main(
    tracks: int = typer.Option(3, "--tracks", help="Number of synthetic tracks"),
    noise: int = typer.Option(20, "--noise", help="Number of isolated noise hits"),
    seed: int = typer.Option(0, "--seed", help="RNG seed"),
    cfg_path: Optional[str] = typer.Option(None, "--config", "-c", help="Optional TOML config; only [clustering], [run] and [vis] are used"),
    png_dir: Optional[str] = typer.Option(None, "--png-dir", help="Write per-stage PNGs here"),
):
    if cfg_path:
        cfg = load_config(cfg_path)
    else:
        cfg = Config(io={"input_path": "<synthetic>", "output_path": "<none>"})
    if png_dir:
        cfg.vis.export_png = True
        cfg.vis.png_dir = png_dir

    rng = np.random.default_rng(seed)
    hits = synth_tracks_with_noise(tracks, n_noise=noise, rng=rng)
    n_noise = noise
    track_hits = len(hits) - n_noise
    noise_ids = {id(h) for h in hits[track_hits:]}

    alg = make_alg(cfg)
    planes = cluster_hits(hits, alg, progress=False)

    n_clusters = sum(len(hcs) for _, hcs in planes)
    clustered = [h for _, hcs in planes for hc in hcs for h in hc]
    leaked = sum(1 for h in clustered if id(h) in noise_ids)

    typer.echo(f"hits: {len(hits)} ({track_hits} on tracks, {n_noise} noise)")
    typer.echo(f"clusters: {n_clusters} (expected ~{tracks})")
    typer.echo(f"clustered hits: {len(clustered)}, noise hits clustered: {leaked}")
    if png_dir:
        typer.echo(f"PNGs in {Path(png_dir).resolve()}")


if __name__ == "__main__":
    app()
