import time
import numpy as np
import pytest

from blurclust.clustering.extract import ExtractParams, find_clusters, neighbour_counts
from blurclust.geometry.wires import WireGeometry
from blurclust.imaging.convolve import convolve
from blurclust.imaging.image import Image, build_image
from blurclust.imaging.kernel import gaussian_kernel
from blurclust.sim.synth import line_hits


def _blurred_line():
    hits = line_hits(range(10, 15), tick=100, charge=50.0)
    img, hm = build_image(hits, WireGeometry(n_wires=100), 1, 1)
    return convolve(img, gaussian_kernel(1, 1, 1.0)), hm


def _assert_partition(img, clusters, params):
    seen = set()
    for c in clusters:
        assert len(c) == len(set(c))
        assert len(c) >= params.min_size
        assert not seen.intersection(c)
        seen.update(c)
        assert all(img.charge_of(b) > params.min_seed for b in c)


def test_neighbour_counts():
    mask = np.zeros((4, 4), dtype=bool)
    mask[1:3, 1:3] = True
    counts = neighbour_counts(mask)
    assert counts[1, 1] == 3
    assert counts[0, 0] == 1
    assert counts[0, 3] == 1
    assert counts[3, 3] == 1
    assert counts[0, 1] == 2


def test_line_gives_single_cluster():
    blurred, hm = _blurred_line()
    params = ExtractParams(min_seed=10, cluster_wire_distance=1, cluster_tick_distance=1,
                           neighbours_threshold=1, min_neighbours=0, min_size=3)
    clusters = find_clusters(blurred, params)
    assert len(clusters) == 1
    _assert_partition(blurred, clusters, params)
    wires_ticks = {blurred.global_of(b) for b in clusters[0]}
    for w in range(10, 15):
        assert (w, 100) in wires_ticks
    # every qualifying bin is in the cluster
    assert len(clusters[0]) == int((blurred.data > 10).sum())


def test_isolated_bin_rejected_by_neighbour_threshold():
    data = np.zeros((20, 20))
    data[2:8, 5] = 20.0
    data[15, 15] = 100.0  # isolated and brighter than the line
    img = Image(data)
    params = ExtractParams(min_seed=1.0, cluster_wire_distance=2, cluster_tick_distance=2,
                           neighbours_threshold=1, min_size=1)
    clusters = find_clusters(img, params)
    assert len(clusters) == 1
    assert img.bin_of(15, 15) not in clusters[0]
    assert sorted(clusters[0]) == sorted(img.bin_of(w, 5) for w in range(2, 8))

    # without the noise cut the isolated bin forms its own cluster
    loose = ExtractParams(min_seed=1.0, cluster_wire_distance=2, cluster_tick_distance=2,
                          neighbours_threshold=0, min_size=1)
    assert len(find_clusters(img, loose)) == 2


def test_window_bridges_gaps():
    data = np.zeros((20, 5))
    data[2:6, 2] = 5.0
    data[8:12, 2] = 5.0  # two-bin gap
    img = Image(data)
    narrow = ExtractParams(min_seed=1.0, cluster_wire_distance=1, cluster_tick_distance=1, min_size=2)
    wide = ExtractParams(min_seed=1.0, cluster_wire_distance=3, cluster_tick_distance=1, min_size=2)
    assert len(find_clusters(img, narrow)) == 2
    assert len(find_clusters(img, wide)) == 1


def test_peninsula_pruned():
    data = np.zeros((10, 10))
    data[2:5, 2:5] = 5.0
    data[5, 3] = 5.0
    data[6, 3] = 5.0  # tip: only one neighbour
    img = Image(data)
    params = ExtractParams(min_seed=1.0, cluster_wire_distance=1, cluster_tick_distance=1,
                           min_neighbours=2, min_size=2)
    clusters = find_clusters(img, params)
    assert len(clusters) == 1
    assert len(clusters[0]) == 10
    assert img.bin_of(6, 3) not in clusters[0]
    assert img.bin_of(5, 3) in clusters[0]


def test_min_size_filter():
    data = np.zeros((10, 10))
    data[1, 1:3] = 5.0  # 2 bins
    data[6, 1:7] = 5.0  # 6 bins
    img = Image(data)
    params = ExtractParams(min_seed=1.0, cluster_wire_distance=1, cluster_tick_distance=1, min_size=3)
    clusters = find_clusters(img, params)
    assert [len(c) for c in clusters] == [6]


@pytest.mark.parametrize("seed", [0, 1, 2])
@pytest.mark.parametrize("window,nthr,nmin,size", [(1, 0, 0, 1), (2, 1, 2, 3), (3, 3, 3, 5)])
def test_partition_on_random_images(seed, window, nthr, nmin, size):
    rng = np.random.default_rng(seed)
    data = rng.exponential(1.0, size=(40, 60))
    img = convolve(Image(data), gaussian_kernel(1, 2, 1.0))
    params = ExtractParams(min_seed=float(np.quantile(img.data, 0.6)), cluster_wire_distance=window,
                           cluster_tick_distance=window, neighbours_threshold=nthr,
                           min_neighbours=nmin, min_size=size)
    clusters = find_clusters(img, params)
    _assert_partition(img, clusters, params)


def test_empty_inputs():
    params = ExtractParams()
    assert find_clusters(Image.empty(), params) == []
    assert find_clusters(Image(np.zeros((5, 5))), params) == []


def test_bad_parameters():
    with pytest.raises(ValueError):
        ExtractParams(cluster_wire_distance=0)
    with pytest.raises(ValueError):
        ExtractParams(neighbours_threshold=9)
    with pytest.raises(ValueError):
        ExtractParams(min_size=0)


def test_pruned_long_line_is_not_regrown():
    # one bin wide: every bin has at most 2 in-cluster neighbours
    n = 2000
    data = np.zeros((n, 3))
    data[:, 1] = 5.0
    params = ExtractParams(min_seed=1.0, min_neighbours=3, min_size=2)
    t0 = time.perf_counter()
    clusters = find_clusters(Image(data), params)
    elapsed = time.perf_counter() - t0
    assert clusters == []
    assert elapsed < 2.0
