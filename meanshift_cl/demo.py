#!/usr/bin/env python3
"""
Mean shift demo program.

Shifts the diagonal data set (i, i), i in [0, count), against itself once,
verifies the batch against the host evaluator and prints a summary.
"""

import argparse
import sys
import time

import matplotlib.pyplot as plt
import numpy as np

from .config import config_from_mapping, load_config
from .device import get_opencl_device_info
from .errors import MeanShiftError
from .evaluator import shift_points
from .points import diagonal_points
from .runner import OpenCLRunner, compute_mean_shift, make_runner

# agreement required between the batch and the host evaluator
RTOL = 1e-4
ATOL = 1e-3


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run one mean shift update over the diagonal data set.")
    parser.add_argument("--config", help="JSON configuration file")
    parser.add_argument("--count", type=int, help="number of points (default 512)")
    parser.add_argument("--bandwidth", type=float, help="Gaussian kernel bandwidth (default 3.0)")
    parser.add_argument("--backend", choices=("opencl", "cpu"), help="where to run the batch")
    parser.add_argument("--show-points", action="store_true", help="print every input and result point")
    parser.add_argument("--plot", action="store_true", help="plot input and shifted points")
    parser.add_argument("--quiet", action="store_true", help="do not print runner progress")
    return parser.parse_args(argv)


def print_points(title, points):
    print(f"{title}: {{")
    for x, y in points:
        print(f"{x:f} {y:f}")
    print("}")


def plot_shift(original, shifted, bandwidth):
    """Input points, shifted points and the shift of each point"""
    fig, ax = plt.subplots(figsize=(8, 8))

    ax.scatter(original[:, 0], original[:, 1], c='gray', s=12, alpha=0.6, label='Input')
    ax.scatter(shifted[:, 0], shifted[:, 1], c='orange', s=12, alpha=0.8, label='Shifted')
    ax.quiver(original[:, 0], original[:, 1],
              shifted[:, 0] - original[:, 0], shifted[:, 1] - original[:, 1],
              angles='xy', scale_units='xy', scale=1, width=0.002, color='red')

    ax.set_title(f'Mean Shift (bandwidth={bandwidth})', fontsize=14, fontweight='bold')
    ax.set_xlabel('x')
    ax.set_ylabel('y')
    ax.legend()
    ax.grid(True, alpha=0.3)
    ax.set_aspect('equal')

    fig.tight_layout()
    return fig


def run(args):
    config = load_config(args.config)
    overrides = {
        name: getattr(args, name)
        for name in ("count", "bandwidth", "backend")
        if getattr(args, name) is not None
    }
    overrides["verbose"] = not args.quiet
    config = config_from_mapping(overrides, config)

    print("=" * 70)
    print("  Mean Shift")
    print("=" * 70)
    print(f"\nPoints: {config.count}")
    print(f"Bandwidth: {config.bandwidth}")
    print(f"Backend: {config.backend}")

    data = diagonal_points(config.count)
    if args.show_points:
        print_points("Inputs", data)

    with make_runner(config) as runner:
        if isinstance(runner, OpenCLRunner):
            info = get_opencl_device_info(runner.device)
            print("\nDevice Information:")
            print(f"  Name: {info['name']}")
            print(f"  Type: {info['type']}")
            print(f"  Compute Units: {info['max_compute_units']}")
            print(f"  Max Work Group Size: {info['max_work_group_size']}")

        print("\n--- Batch ---")
        batch_start = time.time()
        results = compute_mean_shift(data, data, config.bandwidth, runner=runner)
        batch_time = (time.time() - batch_start) * 1000

    print("\n--- Host Evaluator ---")
    host_start = time.time()
    expected = shift_points(data, data, config.bandwidth)
    host_time = (time.time() - host_start) * 1000

    if args.show_points:
        print_points("Results", results)

    print("\n--- Verification ---")
    finite = bool(np.all(np.isfinite(results)))
    max_diff = float(np.max(np.abs(results - expected))) if len(results) else 0.0
    is_correct = finite and np.allclose(results, expected, rtol=RTOL, atol=ATOL)
    print(f"All finite: {finite}")
    print(f"Max difference: {max_diff:.6e}")
    print(f"Result: {'PASSED' if is_correct else 'FAILED'}")

    print("\n" + "=" * 70)
    print(f"Batch Time ({config.backend}): {batch_time:.3f} ms")
    print(f"Host Evaluator Time: {host_time:.3f} ms")
    print("=" * 70)

    if args.plot and len(results):
        plot_shift(data, results, config.bandwidth)
        plt.show()

    return 0 if is_correct else 1


def main(argv=None):
    args = parse_args(argv)
    try:
        return run(args)
    except MeanShiftError as e:
        print(f"\nError: {e}")
        return 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as e:
        print(f"\nError: {e}")
        import traceback
        traceback.print_exc()
        print("\nTroubleshooting:")
        print("1. Install: pip install pyopencl numpy matplotlib")
        print("2. Check OpenCL: python -c \"import pyopencl as cl; print(cl.get_platforms())\"")
        print("3. Run on the host instead: --backend cpu")
        sys.exit(1)
