"""
Host-side mean shift evaluator.

One Gaussian-kernel mean shift update of a single 2D point: the weighted
centroid of the reference set, with weights

    base_weight * exp(-0.5 * (dist / bandwidth)^2)

where base_weight = 1 / (bandwidth * sqrt(2 * pi)). Sums are taken in float64
and the shifted point is returned as float32, so results are exact whenever
every weight is equal (e.g. a single reference point).
"""

import math

import numpy as np


def base_weight(bandwidth):
    """Normalization constant of the Gaussian kernel (cancels in the centroid)"""
    return 1.0 / (bandwidth * math.sqrt(2.0 * math.pi))


def gaussian_weights(point, reference, bandwidth):
    """
    Kernel weight of every reference point seen from `point`.

    The exponent is offset by the smallest scaled squared distance, a common
    factor of all weights, so the nearest reference point always carries
    base_weight and the weights never all underflow to zero.
    """
    diff = reference.astype(np.float64) - np.asarray(point, dtype=np.float64)
    dist = np.sqrt(np.sum(diff * diff, axis=1))
    scaled = (dist / bandwidth) ** 2
    return base_weight(bandwidth) * np.exp(-0.5 * (scaled - scaled.min()))


def shift_point(point, reference, bandwidth):
    """
    Mean shift of a single point.

    @param point      (x, y) query point
    @param reference  float32 array of shape (n, 2), n >= 1
    @param bandwidth  positive kernel bandwidth

    Returns the shifted point as a float32 array of shape (2,).
    """
    weights = gaussian_weights(point, reference, bandwidth)
    shift = np.sum(reference.astype(np.float64) * weights[:, None], axis=0)
    scale = np.sum(weights)
    return (shift / scale).astype(np.float32)


def shift_points(points, reference, bandwidth, out=None):
    """Sequential host loop applying shift_point to every row of `points`."""
    if out is None:
        out = np.empty((len(points), 2), dtype=np.float32)
    for i in range(len(points)):
        out[i] = shift_point(points[i], reference, bandwidth)
    return out
