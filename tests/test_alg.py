import numpy as np
import pytest
from pydantic import ValidationError

from blurclust.clustering.alg import BlurredClusteringAlg
from blurclust.config.schemas import BlurCfg, ClusterCfg, ClusteringCfg, MergeCfg
from blurclust.geometry.wires import WireGeometry
from blurclust.imaging.kernel import KernelCache
from blurclust.physics.hits import Hit, WireID
from blurclust.sim.synth import line_hits, synth_tracks_with_noise

GEOM = WireGeometry(n_wires=1000)


def _cfg(**merge):
    return ClusteringCfg(
        blur=BlurCfg(blur_wire=1, blur_tick=1, blur_sigma=1.0),
        cluster=ClusterCfg(min_seed=10.0, cluster_wire_distance=1, cluster_tick_distance=1,
                           neighbours_threshold=1, min_neighbours=0, min_size=3),
        merge=MergeCfg(**merge),
    )


def _alg(cfg=None, **kw):
    return BlurredClusteringAlg(cfg or _cfg(), GEOM, kernel_cache=KernelCache(), diagnostics_level=0, **kw)


class RecordingObserver:
    def __init__(self):
        self.stages = []
        self.writeable = []

    def on_image(self, stage, image):
        self.stages.append(stage)
        self.writeable.append(image.data.flags.writeable)

    def on_clusters(self, stage, image, clusters):
        self.stages.append(stage)
        self.writeable.append(image.data.flags.writeable)


def test_five_hit_line_single_cluster():
    hits = line_hits(range(10, 15), tick=100, charge=50.0)
    res = _alg().run(hits)
    assert len(res.hit_clusters) == 1
    cluster = res.hit_clusters[0]
    assert len(cluster) == 5
    assert {id(h) for h in cluster} == {id(h) for h in hits}
    assert sorted(h.wire_id.wire for h in cluster) == [10, 11, 12, 13, 14]
    assert all(h.tick == 100 for h in cluster)


def test_two_separated_groups_stay_apart():
    hits = line_hits(range(10, 13), tick=100) + line_hits(range(30, 33), tick=100)
    # permissive merging: collinear, but out of reach
    res = _alg(_cfg(min_merge_cluster_size=1, merging_threshold=0.5)).run(hits)
    assert len(res.bin_clusters) == 2
    groups = sorted(sorted(h.wire_id.wire for h in hc) for hc in res.hit_clusters)
    assert groups == [[10, 11, 12], [30, 31, 32]]


def test_exact_line_round_trip():
    hits = line_hits(range(0, 40), tick=200, slope=1.0)
    cfg = ClusteringCfg(
        blur=BlurCfg(blur_wire=1, blur_tick=1, blur_sigma=1.0),
        cluster=ClusterCfg(min_seed=1.0, cluster_wire_distance=2, cluster_tick_distance=2, min_size=2),
    )
    res = _alg(cfg).run(hits)
    assert len(res.hit_clusters) == 1
    assert {id(h) for h in res.hit_clusters[0]} == {id(h) for h in hits}


def test_isolated_noise_hit_not_clustered():
    track = line_hits(range(10, 20), tick=100)
    noise = Hit(WireID(0, 0, 60), peak_time=400.0, charge=50.0)
    res = _alg().run(track + [noise])
    assert len(res.hit_clusters) == 1
    assert all(h is not noise for h in res.hit_clusters[0])


def test_empty_input():
    alg = _alg()
    res = alg.run([])
    assert res.bin_clusters == [] and res.hit_clusters == []
    assert alg.kernel_cache.n_builds == 0


def test_kernel_cache_shared_between_runs():
    alg = _alg()
    alg.run(line_hits(range(10, 15), tick=100))
    alg.run(line_hits(range(50, 58), tick=300))
    assert alg.kernel_cache.n_builds == 1


def test_observer_sees_every_stage_read_only():
    obs = RecordingObserver()
    alg = _alg(observer=obs)
    res = alg.run(line_hits(range(10, 15), tick=100))
    assert obs.stages == ["raw", "blurred", "found", "merged"]
    assert obs.writeable == [False] * 4
    # the algorithm's own arrays stay writeable
    assert res.blurred.data.flags.writeable


def test_observer_does_not_change_result():
    hits = synth_tracks_with_noise(3, rng=np.random.default_rng(7))
    a = _alg().run(hits)
    b = _alg(observer=RecordingObserver()).run(hits)
    assert a.bin_clusters == b.bin_clusters


def test_synthetic_event_invariants():
    hits = synth_tracks_with_noise(4, n_noise=30, rng=np.random.default_rng(11))
    cfg = ClusteringCfg(
        blur=BlurCfg(blur_wire=2, blur_tick=4, blur_sigma=2.0),
        cluster=ClusterCfg(min_seed=1.0, cluster_wire_distance=2, cluster_tick_distance=3,
                           neighbours_threshold=2, min_neighbours=1, min_size=5),
        merge=MergeCfg(min_merge_cluster_size=10, merging_threshold=0.9),
    )
    res = _alg(cfg).run(hits)
    seen = set()
    for c in res.bin_clusters:
        assert len(c) >= 5
        assert not seen.intersection(c)
        seen.update(c)
        assert all(res.blurred.charge_of(b) > 1.0 for b in c)
    input_ids = {id(h) for h in hits}
    clustered = [id(h) for hc in res.hit_clusters for h in hc]
    assert len(clustered) == len(set(clustered))
    assert set(clustered) <= input_ids


def test_adaptive_blur_uses_resolved_radii():
    cfg = ClusteringCfg(blur=BlurCfg(blur_wire=4, blur_tick=8, blur_sigma=2.0, adaptive=True))
    alg = _alg(cfg)
    alg.run(line_hits(range(10, 30), tick=100))
    # hits along the wire axis keep the wire radius and collapse the tick radius
    assert alg.kernel_cache.key == (4, 1, 2.0)


def test_merge_reach_defaults_from_window_and_blur():
    cfg = _cfg()
    assert (cfg.merge.wire_reach, cfg.merge.tick_reach) == (2, 2)
    alg = _alg(cfg)
    assert (alg.merge_params.wire_reach, alg.merge_params.tick_reach) == (2, 2)
    assert alg.min_size == 3


def test_bad_configuration_rejected_at_setup():
    with pytest.raises(ValidationError):
        BlurCfg(blur_wire=-1)
    with pytest.raises(ValidationError):
        BlurCfg(blur_sigma=0.0)
    with pytest.raises(ValidationError):
        ClusterCfg(cluster_tick_distance=0)
    with pytest.raises(ValidationError):
        MergeCfg(merging_threshold=2.0)


def test_zero_blur_radius_leaves_image_unblurred():
    cfg = ClusteringCfg(blur=BlurCfg(blur_wire=0, blur_tick=0, blur_sigma=1.0), cluster=_cfg().cluster)
    result = _alg(cfg).run(line_hits(range(10, 15), tick=100, charge=50.0))
    np.testing.assert_allclose(result.blurred.data, result.image.data)
    assert result.image.data.shape == (5, 1)
    assert [len(c) for c in result.hit_clusters] == [5]
