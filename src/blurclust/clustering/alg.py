"""
blurclust.clustering.alg

Blurred clustering of wire hits on one readout plane.

The hits are drawn into a (wire, tick) charge image, blurred with a Gaussian
so that gaps along faint or fragmented trajectories fill in, and the blurred
image is searched for dense connected regions. Fragments whose union is
still a straight segment are merged, and the bins of each final region are
mapped back to the original hits.

    hits -> build_image -> blur -> find_clusters -> merge_clusters
         -> convert_bins_to_clusters -> hit clusters
"""
from __future__ import annotations
from typing import List, NamedTuple, Optional, Sequence, Tuple

from ..config.schemas import ClusteringCfg
from ..geometry.detector import DetectorParams
from ..geometry.wires import GlobalWireFn
from ..imaging.convolve import convolve
from ..imaging.image import HitMap, Image, build_image
from ..imaging.kernel import KernelCache, default_kernel_cache, resolve_blur_parameters
from ..physics.hits import Hit
from ..vis.observers import ClusteringObserver, NullObserver, snapshot
from .extract import ExtractParams, find_clusters
from .mapping import clusters_to_hits
from .merge import MergeParams, merge_clusters


class ClusterResult(NamedTuple):
    image: Image
    blurred: Image
    hit_map: HitMap
    bin_clusters: List[List[int]]
    hit_clusters: List[List[Hit]]


class BlurredClusteringAlg:
    def __init__(
        self,
        cfg: ClusteringCfg,
        global_wire: GlobalWireFn,
        kernel_cache: Optional[KernelCache] = None,
        observer: Optional[ClusteringObserver] = None,
        diagnostics_level: int = 1,
    ) -> None:
        self.cfg = cfg
        self.global_wire = global_wire
        self.kernel_cache = kernel_cache if kernel_cache is not None else default_kernel_cache
        self.observer = observer if observer is not None else NullObserver()
        self.diagnostics_level = diagnostics_level

        # Build once so parameter errors surface here, not mid-event
        c = cfg.cluster
        self.extract_params = ExtractParams(
            min_seed=c.min_seed,
            cluster_wire_distance=c.cluster_wire_distance,
            cluster_tick_distance=c.cluster_tick_distance,
            neighbours_threshold=c.neighbours_threshold,
            min_neighbours=c.min_neighbours,
            min_size=c.min_size,
        )
        m = cfg.merge
        self.merge_params = MergeParams(
            min_merge_cluster_size=m.min_merge_cluster_size,
            merging_threshold=m.merging_threshold,
            wire_reach=m.wire_reach,
            tick_reach=m.tick_reach,
            weight_by_density=m.weight_by_density,
        )
        self.wire_to_tick = DetectorParams(
            cfg.detector.wire_pitch_cm,
            cfg.detector.drift_velocity_cm_per_us,
            cfg.detector.sampling_rate_ns,
        ).wire_to_tick

    @property
    def min_size(self) -> int:
        return self.extract_params.min_size

    # ----------------- stages -----------------

    def build_image(self, hits: Sequence[Hit]) -> Tuple[Image, HitMap]:
        b = self.cfg.blur
        image, hit_map = build_image(hits, self.global_wire, b.blur_wire, b.blur_tick)
        self.observer.on_image("raw", snapshot(image))
        return image, hit_map

    def blur_parameters(self, hit_map: HitMap) -> Tuple[int, int, float]:
        b = self.cfg.blur
        if b.adaptive:
            return resolve_blur_parameters(hit_map, b.blur_wire, b.blur_tick, b.blur_sigma, self.wire_to_tick)
        return b.blur_wire, b.blur_tick, b.blur_sigma

    def blur(self, image: Image, hit_map: HitMap) -> Image:
        blur_wire, blur_tick, sigma = self.blur_parameters(hit_map)
        kernel = self.kernel_cache.get(blur_wire, blur_tick, sigma)
        blurred = convolve(image, kernel)
        if self.diagnostics_level >= 2:
            print(f"[blur] kernel=({blur_wire},{blur_tick},{sigma}) image={image.data.shape} "
                  f"sum={image.total():.3f} -> {blurred.total():.3f}")
        self.observer.on_image("blurred", snapshot(blurred))
        return blurred

    def find_clusters(self, blurred: Image) -> List[List[int]]:
        clusters = find_clusters(blurred, self.extract_params)
        if self.diagnostics_level >= 2:
            print(f"[clusters] found {len(clusters)} clusters, sizes={[len(c) for c in clusters]}")
        self.observer.on_clusters("found", snapshot(blurred), [tuple(c) for c in clusters])
        return clusters

    def merge_clusters(self, blurred: Image, clusters: List[List[int]]) -> List[List[int]]:
        if not self.cfg.merge.enabled:
            return clusters
        merged = merge_clusters(blurred, clusters, self.merge_params)
        if self.diagnostics_level >= 2 and len(merged) != len(clusters):
            print(f"[merge] {len(clusters)} -> {len(merged)} clusters")
        self.observer.on_clusters("merged", snapshot(blurred), [tuple(c) for c in merged])
        return merged

    def convert_bins_to_clusters(self, image: Image, clusters: Sequence[Sequence[int]], hit_map: HitMap) -> List[List[Hit]]:
        return clusters_to_hits(image, clusters, hit_map)

    # ----------------- full chain -----------------

    def run(self, hits: Sequence[Hit]) -> ClusterResult:
        image, hit_map = self.build_image(hits)
        if image.n_bins == 0:
            return ClusterResult(image, image, hit_map, [], [])
        blurred = self.blur(image, hit_map)
        clusters = self.find_clusters(blurred)
        clusters = self.merge_clusters(blurred, clusters)
        hit_clusters = self.convert_bins_to_clusters(blurred, clusters, hit_map)
        if self.diagnostics_level >= 2:
            n_used = sum(len(hc) for hc in hit_clusters)
            print(f"[alg] {len(hits)} hits -> {len(hit_clusters)} clusters ({n_used} hits clustered)")
        return ClusterResult(image, blurred, hit_map, clusters, hit_clusters)
