"""
Batch runners for the mean shift update.

Every query point is shifted independently against the shared reference set:
each evaluation reads the two input arrays and writes exactly one output row,
so the batch can be fanned out over OpenCL work items or host threads in any
order. A batch either returns the complete result or raises; there is no
partially filled output.
"""

import math
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait

import numpy as np
import pyopencl as cl

from .config import MeanShiftConfig
from .device import build_program, setup_opencl
from .errors import DispatchFailure, InvalidArgument, ResourceExhaustion
from .evaluator import shift_points
from .kernels import KERNEL_NAME, kernel_code
from .points import as_point_array


def prepare_batch(query_set, reference_set, bandwidth):
    """
    Validate a batch and normalize its point sets.

    Returns (query, reference, bandwidth) with both point sets as float32
    arrays of shape (count, 2). Raises InvalidArgument before any work starts.
    """
    try:
        bandwidth = float(bandwidth)
    except (TypeError, ValueError) as err:
        raise InvalidArgument(f"bandwidth must be a number, got {bandwidth!r}") from err
    if not math.isfinite(bandwidth) or bandwidth <= 0:
        raise InvalidArgument(f"bandwidth must be positive, got {bandwidth}")

    query = as_point_array(query_set, "query_set")
    reference = as_point_array(reference_set, "reference_set")
    if len(reference) == 0:
        raise InvalidArgument("reference_set must contain at least one point")

    return query, reference, bandwidth


def allocate_output(count):
    """Host array receiving one shifted point per query point."""
    try:
        return np.empty((count, 2), dtype=np.float32)
    except MemoryError as err:
        raise ResourceExhaustion(f"Failed to allocate output for {count} points: {err}") from err


def chunk_bounds(count, chunk_size):
    """(start, stop) index ranges covering [0, count); the last one holds the remainder."""
    return [(start, min(start + chunk_size, count)) for start in range(0, count, chunk_size)]


def padded_global_size(count, local_size):
    """Smallest multiple of local_size that is >= count."""
    return ((count + local_size - 1) // local_size) * local_size


class ThreadPoolRunner:
    """
    Host fan-out: the query indices are split into chunks, one thread pool
    task per chunk, each task writing its own slice of the output.
    """

    def __init__(self, max_workers=None, chunk_size=64, timeout=None, verbose=False):
        if max_workers is not None and max_workers <= 0:
            raise InvalidArgument(f"max_workers must be positive, got {max_workers}")
        if chunk_size <= 0:
            raise InvalidArgument(f"chunk_size must be positive, got {chunk_size}")
        self.max_workers = max_workers
        self.chunk_size = chunk_size
        self.timeout = timeout
        self.verbose = verbose

    def run(self, query, reference, bandwidth):
        """Shift a batch already normalized by prepare_batch."""
        output = allocate_output(len(query))
        bounds = chunk_bounds(len(query), self.chunk_size)

        if self.verbose:
            print(f"Thread pool: {len(query)} query points, {len(reference)} reference points, "
                  f"{len(bounds)} chunks of {self.chunk_size}")

        start_time = time.time()
        try:
            executor = ThreadPoolExecutor(max_workers=self.max_workers)
        except (RuntimeError, ValueError) as err:
            raise ResourceExhaustion(f"Failed to create worker pool: {err}") from err

        try:
            try:
                futures = [
                    executor.submit(shift_points, query[start:stop], reference, bandwidth, output[start:stop])
                    for start, stop in bounds
                ]
            except RuntimeError as err:
                raise ResourceExhaustion(f"Failed to start worker threads: {err}") from err

            done, not_done = wait(futures, timeout=self.timeout, return_when=FIRST_EXCEPTION)
            for future in done:
                err = future.exception()
                if err is not None:
                    raise DispatchFailure(f"Worker task failed: {err}") from err
            if not_done:
                raise DispatchFailure(
                    f"{len(not_done)} of {len(futures)} tasks unfinished after {self.timeout} s")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        if self.verbose:
            print(f"Thread pool time: {(time.time() - start_time) * 1000:.3f} ms")

        return output

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class OpenCLRunner:
    """
    Device fan-out: one work item per query point.

    Owns a context, queue and compiled program for its lifetime; buffers are
    allocated per batch and released when the batch ends. An existing
    context and queue may be passed in instead of selecting a device.
    """

    def __init__(self, device_type="GPU", platform_index=0, local_size=None, verbose=False,
                 context=None, queue=None):
        if local_size is not None and local_size <= 0:
            raise InvalidArgument(f"local_size must be positive, got {local_size}")

        if context is None:
            context, queue, device = setup_opencl(device_type, platform_index)
        else:
            if queue is None:
                try:
                    queue = cl.CommandQueue(context)
                except cl.Error as err:
                    raise ResourceExhaustion(f"Failed to create a command queue: {err}") from err
            device = queue.device

        self.context = context
        self.queue = queue
        self.device = device
        self.local_size = local_size
        self.verbose = verbose

        if verbose:
            print(f"Using device: {device.name}")

        self.program = build_program(context, kernel_code)
        try:
            self.kernel = cl.Kernel(self.program, KERNEL_NAME)
        except cl.Error as err:
            raise ResourceExhaustion(f"Failed to create compute kernel: {err}") from err

    def work_group_size(self):
        """Configured local size capped by what the kernel supports on the device."""
        try:
            limit = self.kernel.get_work_group_info(
                cl.kernel_work_group_info.WORK_GROUP_SIZE, self.device)
        except cl.Error as err:
            raise ResourceExhaustion(f"Failed to retrieve kernel work group info: {err}") from err
        if self.local_size is None:
            return limit
        return min(self.local_size, limit)

    def run(self, query, reference, bandwidth):
        """Shift a batch already normalized by prepare_batch."""
        output = allocate_output(len(query))
        if len(query) == 0:
            return output

        local_size = self.work_group_size()
        global_size = padded_global_size(len(query), local_size)

        if self.verbose:
            print(f"Data: {len(query)} query points, {len(reference)} reference points")
            print(f"Chosen dim: global={global_size}, local={local_size}")

        mf = cl.mem_flags
        buffers = []
        try:
            try:
                query_buf = cl.Buffer(self.context, mf.READ_ONLY | mf.COPY_HOST_PTR, hostbuf=query)
                buffers.append(query_buf)
                reference_buf = cl.Buffer(self.context, mf.READ_ONLY | mf.COPY_HOST_PTR, hostbuf=reference)
                buffers.append(reference_buf)
                output_buf = cl.Buffer(self.context, mf.WRITE_ONLY, output.nbytes)
                buffers.append(output_buf)
            except cl.Error as err:
                raise ResourceExhaustion(f"Failed to allocate device memory: {err}") from err

            start_time = time.time()
            try:
                event = self.kernel(
                    self.queue, (global_size,), (local_size,),
                    query_buf, reference_buf,
                    np.uint32(len(query)), np.uint32(len(reference)), np.float32(bandwidth),
                    output_buf
                )
                event.wait()
                cl.enqueue_copy(self.queue, output, output_buf).wait()
                self.queue.finish()
            except cl.Error as err:
                raise DispatchFailure(f"Failed to execute kernel: {err}") from err
        finally:
            for buf in buffers:
                buf.release()

        if self.verbose:
            print(f"Kernel time: {(time.time() - start_time) * 1000:.3f} ms")

        return output

    def close(self):
        self.queue.finish()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def make_runner(config=None):
    """Build the runner selected by config.backend."""
    config = config or MeanShiftConfig()
    if config.backend == "cpu":
        return ThreadPoolRunner(max_workers=config.max_workers, chunk_size=config.chunk_size,
                                timeout=config.timeout, verbose=config.verbose)
    return OpenCLRunner(device_type=config.device_type, platform_index=config.platform_index,
                        local_size=config.local_size, verbose=config.verbose)


def compute_mean_shift(query_set, reference_set, bandwidth, runner=None, config=None):
    """
    Shift every query point toward the Gaussian-weighted centroid of the
    reference set.

    @param query_set      sequence of (x, y) points, or array of shape (m, 2)
    @param reference_set  sequence of (x, y) points, at least one
    @param bandwidth      positive kernel bandwidth
    @param runner         ThreadPoolRunner or OpenCLRunner; built from config when None
    @param config         MeanShiftConfig used when no runner is given

    Returns a read-only float32 array of shape (m, 2); row i is the shift of query point i.
    Raises InvalidArgument, ResourceExhaustion or DispatchFailure.
    """
    query, reference, bandwidth = prepare_batch(query_set, reference_set, bandwidth)

    if runner is None:
        with make_runner(config) as own_runner:
            result = own_runner.run(query, reference, bandwidth)
    else:
        result = runner.run(query, reference, bandwidth)

    result.setflags(write=False)
    return result
