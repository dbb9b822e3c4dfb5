import os

import numpy as np
import pyopencl as cl
import pytest

from meanshift_cl import device as device_module
from meanshift_cl import runner as runner_module
from meanshift_cl.device import build_program, get_opencl_device_info, setup_opencl
from meanshift_cl.errors import InvalidArgument, ResourceExhaustion
from meanshift_cl.evaluator import shift_points
from meanshift_cl.points import diagonal_points
from meanshift_cl.runner import OpenCLRunner, compute_mean_shift

RTOL = 1e-4
ATOL = 1e-3


def test_diagonal_512_matches_host(opencl_runner):
    data = diagonal_points(512)
    result = compute_mean_shift(data, data, 3.0, runner=opencl_runner)
    assert result.shape == (512, 2)
    assert np.all(np.isfinite(result))
    np.testing.assert_allclose(result, shift_points(data, data, 3.0), rtol=RTOL, atol=ATOL)


@pytest.mark.parametrize("count", [1, 3, 63, 65, 257])
def test_counts_not_multiple_of_work_group(opencl_runner, count):
    rng = np.random.default_rng(count)
    query = rng.uniform(0, 30, size=(count, 2)).astype(np.float32)
    reference = rng.uniform(0, 30, size=(50, 2)).astype(np.float32)
    result = compute_mean_shift(query, reference, 2.0, runner=opencl_runner)
    assert result.shape == (count, 2)
    np.testing.assert_allclose(result, shift_points(query, reference, 2.0), rtol=RTOL, atol=ATOL)


def test_explicit_local_size(opencl_runner):
    runner = OpenCLRunner(local_size=16, context=opencl_runner.context, queue=opencl_runner.queue)
    assert runner.work_group_size() <= 16
    data = diagonal_points(100)
    result = compute_mean_shift(data, data, 3.0, runner=runner)
    np.testing.assert_allclose(result, shift_points(data, data, 3.0), rtol=RTOL, atol=ATOL)


def test_single_reference_point_is_exact(opencl_runner):
    for q, bandwidth in [((2.5, 3.5), 3.0), ((0.1, -7.3), 0.7), ((123.456, 1e-3), 10.0)]:
        query = np.vstack([diagonal_points(10), [q]])
        result = compute_mean_shift(query, [q], bandwidth, runner=opencl_runner)
        assert np.array_equal(result, np.tile(np.array(q, dtype=np.float32), (11, 1)))


@pytest.mark.parametrize("count", [1, 2, 17, 512])
@pytest.mark.parametrize("c", [0.0, 1.3, 7.7, 123.456, -42.1])
def test_identical_points_are_fixed(opencl_runner, count, c):
    data = np.full((count, 2), c, dtype=np.float32)
    result = compute_mean_shift(data, data, 3.0, runner=opencl_runner)
    assert np.array_equal(result, data)


def test_repeated_calls_are_identical(opencl_runner):
    data = diagonal_points(512)
    first = compute_mean_shift(data, data, 3.0, runner=opencl_runner)
    second = compute_mean_shift(data, data, 3.0, runner=opencl_runner)
    assert np.array_equal(first, second)


def test_two_point_scenario(opencl_runner):
    result = compute_mean_shift([(0, 0)], [(0, 0), (10, 10)], 3.0, runner=opencl_runner)
    x, y = result[0]
    assert 0.0 < x < 5.0
    assert 0.0 < y < 5.0


def test_empty_query(opencl_runner):
    result = compute_mean_shift([], [(0, 0)], 3.0, runner=opencl_runner)
    assert result.shape == (0, 2)


def test_invalid_local_size():
    with pytest.raises(InvalidArgument):
        OpenCLRunner(local_size=0)


def test_device_info(opencl_runner):
    info = get_opencl_device_info(opencl_runner.device)
    assert info['name'] == opencl_runner.device.name
    assert info['max_work_group_size'] > 0


def test_missing_platform(monkeypatch):
    def no_platforms():
        raise cl.LogicError("clGetPlatformIDs failed: PLATFORM_NOT_FOUND_KHR")

    monkeypatch.setattr(device_module.cl, "get_platforms", no_platforms)
    with pytest.raises(ResourceExhaustion):
        setup_opencl()


def test_platform_index_out_of_range(monkeypatch):
    monkeypatch.setattr(device_module.cl, "get_platforms", lambda: [])
    with pytest.raises(ResourceExhaustion):
        setup_opencl(platform_index=0)


def test_program_is_built_without_cache(monkeypatch):
    built = {}

    class RecordingProgram:
        def __init__(self, context, source):
            built["source"] = source

        def build(self, **kwargs):
            built.update(kwargs)
            return self

    monkeypatch.setattr(device_module.cl, "Program", RecordingProgram)
    build_program(object(), "__kernel void k() {}")
    assert built["cache_dir"] is False
    assert os.environ.get("PYOPENCL_NO_CACHE") == "1"


def test_kernel_creation_failure(opencl_runner, monkeypatch):
    def no_kernel(program, name):
        raise cl.LogicError("clCreateKernel failed: INVALID_KERNEL_NAME")

    monkeypatch.setattr(runner_module.cl, "Kernel", no_kernel)
    with pytest.raises(ResourceExhaustion):
        OpenCLRunner(context=opencl_runner.context, queue=opencl_runner.queue)


def test_work_group_info_failure(opencl_runner):
    class BrokenKernel:
        def get_work_group_info(self, param, device):
            raise cl.LogicError("clGetKernelWorkGroupInfo failed: INVALID_DEVICE")

    runner = OpenCLRunner(context=opencl_runner.context, queue=opencl_runner.queue)
    runner.kernel = BrokenKernel()
    with pytest.raises(ResourceExhaustion):
        compute_mean_shift(diagonal_points(4), diagonal_points(4), 3.0, runner=runner)
