"""OpenCL platform, device, context and queue setup"""

import pyopencl as cl

from .errors import ResourceExhaustion


def setup_opencl(device_type="GPU", platform_index=0):
    """
    Setup OpenCL context and queue on a single device.

    The device is the first one of `device_type` on the selected platform,
    falling back to the first CPU device. Returns (context, queue, device).
    """
    try:
        platforms = cl.get_platforms()
    except cl.Error as err:
        raise ResourceExhaustion(f"No OpenCL platforms found: {err}") from err
    if len(platforms) <= platform_index:
        raise ResourceExhaustion(
            f"OpenCL platform {platform_index} requested, {len(platforms)} available")

    platform = platforms[platform_index]

    device = None
    for kind in (device_type, "CPU"):
        try:
            devices = platform.get_devices(device_type=getattr(cl.device_type, kind))
        except cl.Error:
            continue
        if devices:
            device = devices[0]
            break
    if device is None:
        raise ResourceExhaustion(f"No {device_type} or CPU device on platform {platform.name}")

    try:
        context = cl.Context([device])
        queue = cl.CommandQueue(context)
    except cl.Error as err:
        raise ResourceExhaustion(f"Failed to create a compute context on {device.name}: {err}") from err

    return context, queue, device


def build_program(context, source):
    """Compile `source` for the context without the pyopencl on-disk cache."""
    try:
        return cl.Program(context, source).build(cache_dir=False)
    except cl.Error as err:
        raise ResourceExhaustion(f"Failed to build program executable: {err}") from err


def get_opencl_device_info(device):
    """Summary of the OpenCL device"""
    info = {
        'name': device.name,
        'type': cl.device_type.to_string(device.type),
        'vendor': device.vendor,
        'version': device.version,
        'max_compute_units': device.max_compute_units,
        'max_work_group_size': device.max_work_group_size,
        'global_mem_size': device.global_mem_size / (1024**3),  # GB
        'local_mem_size': device.local_mem_size / 1024,  # KB
    }
    return info
