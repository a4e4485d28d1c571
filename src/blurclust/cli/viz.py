from __future__ import annotations

import typer
from pathlib import Path
from typing import Optional

from blurclust.vis.hdf import save_clusters_png

app = typer.Typer(help="blurclust visualization tools")

@app.command("h5-to-png")
def h5_to_png(
    h5_path: str = typer.Argument(..., help="Path to HDF5 file written by blurclust-run"),
    event: int = typer.Option(0, "--event", "-e", help="Event number"),
    plane: int = typer.Option(0, "--plane", "-p", help="Plane number"),
    out: Optional[str] = typer.Option(None, "--out", "-o", help="Output PNG path (defaults to file_ev{e}_plane{p}.png)"),
):
    """Scatter the stored hit clusters of one (event, plane), one colour per cluster."""
    out_png = save_clusters_png(h5_path, event=event, plane=plane, out_png=out)
    typer.echo(f"Wrote {out_png}")

if __name__ == "__main__":
    app()
