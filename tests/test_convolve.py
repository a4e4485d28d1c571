import numpy as np
import pytest

from blurclust.imaging.convolve import convolve
from blurclust.imaging.image import Image
from blurclust.imaging.kernel import gaussian_kernel


def _direct(src, kernel):
    rw, rt = kernel.shape[0] // 2, kernel.shape[1] // 2
    out = np.zeros_like(src)
    for w in range(src.shape[0]):
        for t in range(src.shape[1]):
            s = 0.0
            for i in range(-rw, rw + 1):
                for j in range(-rt, rt + 1):
                    ww, tt = w - i, t - j
                    if 0 <= ww < src.shape[0] and 0 <= tt < src.shape[1]:
                        s += src[ww, tt] * kernel[rw + i, rt + j]
            out[w, t] = s
    return out


def test_matches_direct_sum():
    rng = np.random.default_rng(3)
    src = rng.uniform(0, 10, size=(9, 13))
    # asymmetric kernel to catch flips/offsets
    kernel = rng.uniform(0, 1, size=(3, 5))
    out = convolve(Image(src, 4, 20), kernel)
    np.testing.assert_allclose(out.data, _direct(src, kernel))
    assert (out.lower_wire, out.lower_tick) == (4, 20)


def test_interior_charge_conserved():
    src = np.zeros((30, 40))
    src[10, 12] = 50.0
    src[15, 20] = 30.0
    src[18, 25] = 7.5
    out = convolve(Image(src), gaussian_kernel(3, 4, 1.5))
    assert out.total() == pytest.approx(src.sum(), rel=1e-12)


def test_delta_reproduces_kernel():
    src = np.zeros((7, 9))
    src[3, 4] = 1.0
    k = gaussian_kernel(2, 3, 1.0)
    out = convolve(Image(src), k)
    np.testing.assert_allclose(out.data[1:6, 1:8], k)


def test_edge_reads_are_zero():
    src = np.zeros((5, 5))
    src[0, 0] = 1.0
    out = convolve(Image(src), gaussian_kernel(1, 1, 1.0))
    # three quarters of the footprint falls outside the image
    assert 0.0 < out.total() < 1.0


def test_empty_and_bad_kernel():
    out = convolve(Image.empty(), gaussian_kernel(1, 1, 1.0))
    assert out.data.shape == (0, 0)
    with pytest.raises(ValueError):
        convolve(Image(np.zeros((3, 3))), np.ones((2, 3)))
