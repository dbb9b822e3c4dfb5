"""Gaussian-kernel mean shift of 2D points on OpenCL devices or host threads"""

import os

# pyopencl reads this once, when it is first imported
os.environ.setdefault("PYOPENCL_NO_CACHE", "1")

from .config import MeanShiftConfig, load_config
from .errors import DispatchFailure, InvalidArgument, MeanShiftError, ResourceExhaustion
from .evaluator import shift_point, shift_points
from .points import Point, as_point_array, diagonal_points, to_points
from .runner import OpenCLRunner, ThreadPoolRunner, compute_mean_shift, make_runner

__all__ = [
    "MeanShiftConfig",
    "load_config",
    "MeanShiftError",
    "InvalidArgument",
    "ResourceExhaustion",
    "DispatchFailure",
    "shift_point",
    "shift_points",
    "Point",
    "as_point_array",
    "diagonal_points",
    "to_points",
    "OpenCLRunner",
    "ThreadPoolRunner",
    "compute_mean_shift",
    "make_runner",
]
