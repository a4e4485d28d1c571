from __future__ import annotations
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Literal, Optional, Dict, List, Any

class RunCfg(BaseModel):
    """
    Global run controls.
    """

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=minimal, 2=verbose
    progress: bool = True

    # Limits
    max_events: Optional[int] = None

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v

class IOCfg(BaseModel):
    """
    I/O paths.

    TOML:

    [io]
    input_path  = "hits.csv"      # .csv | .parquet
    output_path = "clusters.h5"

    [io.adapter]                  # optional column renames, source -> canonical
    columns = { t = "peak_time", adc = "charge" }
    """

    input_path: str
    output_path: str

    # Adapter-specific sub-config, e.g. [io.adapter]
    adapter: Dict[str, Any] = Field(default_factory=dict)

class GeometryCfg(BaseModel):
    """
    Global wire mapping (see blurclust.geometry.wires.WireGeometry).

    [geometry]
    n_wires = 480
    tpc_groups = [[0, 1], [2, 3, 4, 5], [6, 7]]
    """

    n_wires: int = 10000
    tpc_groups: Optional[List[List[int]]] = None

    @field_validator("n_wires")
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("n_wires must be positive")
        return v

class DetectorCfg(BaseModel):
    """Only needed for adaptive blurring (ticks per wire pitch)."""

    wire_pitch_cm: float = 0.479
    drift_velocity_cm_per_us: float = 0.16
    sampling_rate_ns: float = 500.0

    @field_validator("wire_pitch_cm", "drift_velocity_cm_per_us", "sampling_rate_ns")
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("detector parameters must be positive")
        return v

class BlurCfg(BaseModel):
    blur_wire: int = 6
    blur_tick: int = 12
    blur_sigma: float = 6.0
    adaptive: bool = False  # scale radii along the hits' rough direction

    @field_validator("blur_wire", "blur_tick")
    def _radius(cls, v: int) -> int:
        if v < 0:
            raise ValueError("blur radius must be >= 0 (0 disables blurring along that axis)")
        return v

    @field_validator("blur_sigma")
    def _sigma(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("blur_sigma must be positive")
        return v

class ClusterCfg(BaseModel):
    min_seed: float = 0.1
    cluster_wire_distance: int = 2
    cluster_tick_distance: int = 2
    neighbours_threshold: int = 0
    min_neighbours: int = 0
    min_size: int = 2

    @field_validator("cluster_wire_distance", "cluster_tick_distance")
    def _window(cls, v: int) -> int:
        if v < 1:
            raise ValueError("cluster window must be >= 1")
        return v

    @field_validator("neighbours_threshold", "min_neighbours")
    def _neighbours(cls, v: int) -> int:
        if not 0 <= v <= 8:
            raise ValueError("neighbour counts must be within [0, 8]")
        return v

    @field_validator("min_size")
    def _size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("min_size must be >= 1")
        return v

class MergeCfg(BaseModel):
    enabled: bool = True
    min_merge_cluster_size: int = 50
    merging_threshold: float = 0.8
    # None -> cluster window + blur radius
    wire_reach: Optional[int] = None
    tick_reach: Optional[int] = None
    weight_by_density: bool = False

    @field_validator("merging_threshold")
    def _threshold(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("merging_threshold is a variance fraction in [0, 1]")
        return v

class FiltersCfg(BaseModel):
    """
    Thresholds for the upstream track-hit removal step. Carried in the
    config so one TOML drives both; the clustering itself ignores them.
    """
    time_threshold: float = 500.0
    charge_threshold: float = 0.07

class ClusteringCfg(BaseModel):
    """Everything BlurredClusteringAlg needs."""

    blur: BlurCfg = Field(default_factory=BlurCfg)
    cluster: ClusterCfg = Field(default_factory=ClusterCfg)
    merge: MergeCfg = Field(default_factory=MergeCfg)
    detector: DetectorCfg = Field(default_factory=DetectorCfg)

    @model_validator(mode="after")
    def _reach_defaults(self) -> "ClusteringCfg":
        update = {}
        if self.merge.wire_reach is None:
            update["wire_reach"] = self.cluster.cluster_wire_distance + self.blur.blur_wire
        if self.merge.tick_reach is None:
            update["tick_reach"] = self.cluster.cluster_tick_distance + self.blur.blur_tick
        if update:
            # a MergeCfg instance may be shared between configs
            self.merge = self.merge.model_copy(update=update)
        return self

class VisCfg(BaseModel):
    export_png: bool = False
    png_dir: str = "png"

class Config(BaseModel):
    """
    Top-level TOML configuration.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    io: IOCfg
    geometry: GeometryCfg = Field(default_factory=GeometryCfg)
    clustering: ClusteringCfg = Field(default_factory=ClusteringCfg)
    filters: FiltersCfg = Field(default_factory=FiltersCfg)
    vis: VisCfg = Field(default_factory=VisCfg)
