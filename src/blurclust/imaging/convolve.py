from __future__ import annotations
import numpy as np
from scipy.signal import convolve2d

from .image import Image

def convolve(image: Image, kernel: np.ndarray) -> Image:
    """
    Zero-padded 2D convolution of ``image`` with an odd-sized ``kernel``.

    out[w, t] = sum_{i,j} image[w - i, t - j] * kernel[cw + i, ct + j]

    Reads outside the image contribute zero. The result keeps the input's
    shape and origin.
    """
    kernel = np.asarray(kernel, dtype=np.float64)
    if kernel.ndim != 2 or kernel.shape[0] % 2 == 0 or kernel.shape[1] % 2 == 0:
        raise ValueError(f"Kernel must be 2D with odd sides, got shape {kernel.shape}")

    src = np.asarray(image.data, dtype=np.float64)
    if src.size == 0:
        return image.with_data(np.zeros_like(src))

    # odd kernel sides keep 'same' centred on each bin
    out = convolve2d(src, kernel, mode="same", boundary="fill", fillvalue=0.0)
    return image.with_data(out)
