import os

os.environ.setdefault("MPLBACKEND", "Agg")

import pytest

from meanshift_cl.errors import ResourceExhaustion


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("MEANSHIFT_"):
            monkeypatch.delenv(key)


@pytest.fixture(scope="session")
def opencl_runner():
    from meanshift_cl.runner import OpenCLRunner

    try:
        runner = OpenCLRunner(device_type=os.environ.get("DEVICE_TYPE", "GPU"))
    except ResourceExhaustion as err:
        pytest.skip(f"no usable OpenCL device: {err}")
    yield runner
    runner.close()
