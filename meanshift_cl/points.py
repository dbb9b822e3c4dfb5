"""Point type and conversions between point sequences and numpy arrays"""

from typing import NamedTuple

import numpy as np

from .errors import InvalidArgument


class Point(NamedTuple):
    x: float
    y: float


def as_point_array(points, name="points"):
    """Normalize a sequence of (x, y) pairs to a contiguous float32 array of shape (count, 2)."""
    try:
        arr = np.asarray(points, dtype=np.float32)
    except (TypeError, ValueError) as err:
        raise InvalidArgument(f"{name} must be a sequence of (x, y) pairs") from err

    # an empty sequence comes through as shape (0,)
    if arr.shape in ((0,), (0, 2)):
        return np.zeros((0, 2), dtype=np.float32)

    if arr.ndim != 2 or arr.shape[1] != 2:
        raise InvalidArgument(f"{name} must have shape (count, 2), got {arr.shape}")

    if not np.all(np.isfinite(arr)):
        raise InvalidArgument(f"{name} contains non-finite coordinates")

    return np.ascontiguousarray(arr)


def to_points(arr):
    """Convert an (count, 2) array back to a list of Point."""
    return [Point(float(x), float(y)) for x, y in np.asarray(arr)]


def diagonal_points(count):
    """Points (i, i) for i in [0, count), the demo data set."""
    if count < 0:
        raise InvalidArgument(f"count must be >= 0, got {count}")
    data = np.empty((count, 2), dtype=np.float32)
    data[:, 0] = np.arange(count, dtype=np.float32)
    data[:, 1] = np.arange(count, dtype=np.float32)
    return data
