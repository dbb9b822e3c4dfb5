"""
Configuration for the mean shift runners and the demo program.

Values come from the dataclass defaults, then an optional JSON file, then
MEANSHIFT_* environment variables.
"""

import json
import math
import os
from dataclasses import dataclass, fields, replace
from typing import Optional

from .errors import InvalidArgument

BACKENDS = ("opencl", "cpu")
DEVICE_TYPES = ("GPU", "CPU", "ACCELERATOR", "ALL", "DEFAULT")

ENV_PREFIX = "MEANSHIFT_"

# environment variable suffix -> config field
ENV_FIELDS = {
    "COUNT": "count",
    "BANDWIDTH": "bandwidth",
    "BACKEND": "backend",
    "DEVICE_TYPE": "device_type",
    "PLATFORM": "platform_index",
    "LOCAL_SIZE": "local_size",
    "WORKERS": "max_workers",
    "CHUNK_SIZE": "chunk_size",
    "TIMEOUT": "timeout",
    "VERBOSE": "verbose",
}

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")


@dataclass(frozen=True)
class MeanShiftConfig:
    # Data set of the demo program: count points (i, i) shifted with this bandwidth.
    count: int = 512
    bandwidth: float = 3.0

    # "opencl" launches the kernel on a device; "cpu" fans out over a thread pool.
    backend: str = "opencl"

    # OpenCL: preferred device type on the selected platform (CPU is the fallback).
    device_type: str = "GPU"
    platform_index: int = 0
    # Work-group size; None uses the kernel's maximum on the device.
    local_size: Optional[int] = None

    # Thread pool: None lets concurrent.futures pick the worker count.
    max_workers: Optional[int] = None
    chunk_size: int = 64
    # Seconds to wait for the whole batch; None waits forever.
    timeout: Optional[float] = None

    verbose: bool = False

    def __post_init__(self):
        if self.count < 0:
            raise InvalidArgument(f"count must be >= 0, got {self.count}")
        if not math.isfinite(self.bandwidth) or self.bandwidth <= 0:
            raise InvalidArgument(f"bandwidth must be a positive number, got {self.bandwidth}")
        if self.backend not in BACKENDS:
            raise InvalidArgument(f"backend must be one of {BACKENDS}, got {self.backend!r}")
        if self.device_type not in DEVICE_TYPES:
            raise InvalidArgument(f"device_type must be one of {DEVICE_TYPES}, got {self.device_type!r}")
        if self.platform_index < 0:
            raise InvalidArgument(f"platform_index must be >= 0, got {self.platform_index}")
        if self.local_size is not None and self.local_size <= 0:
            raise InvalidArgument(f"local_size must be positive, got {self.local_size}")
        if self.max_workers is not None and self.max_workers <= 0:
            raise InvalidArgument(f"max_workers must be positive, got {self.max_workers}")
        if self.chunk_size <= 0:
            raise InvalidArgument(f"chunk_size must be positive, got {self.chunk_size}")
        if self.timeout is not None and self.timeout <= 0:
            raise InvalidArgument(f"timeout must be positive, got {self.timeout}")


def _field_types():
    return {f.name: f.type for f in fields(MeanShiftConfig)}


def _coerce(name, value):
    """Convert a raw JSON/environment value to the type of config field `name`."""
    kind = _field_types()[name]
    if value is None or (isinstance(value, str) and value.strip().lower() in ("none", "null")):
        if kind in (Optional[int], Optional[float]):
            return None
        raise InvalidArgument(f"{name} cannot be empty")

    try:
        if kind is bool:
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in _TRUE:
                return True
            if text in _FALSE:
                return False
            raise ValueError(value)
        if kind in (int, Optional[int]):
            if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
                raise ValueError(value)
            return int(value)
        if kind in (float, Optional[float]):
            if isinstance(value, bool):
                raise ValueError(value)
            return float(value)
        if name == "device_type":
            return str(value).upper()
        return str(value).lower()
    except ValueError as err:
        raise InvalidArgument(f"invalid value for {name}: {value!r}") from err


def config_from_mapping(values, base=None):
    """Overlay a mapping of field names to raw values on `base` (defaults when None)."""
    base = base or MeanShiftConfig()
    known = _field_types()
    unknown = sorted(set(values) - set(known))
    if unknown:
        raise InvalidArgument(f"unknown configuration keys: {', '.join(unknown)}")
    return replace(base, **{name: _coerce(name, value) for name, value in values.items()})


def config_from_env(environ=None, base=None):
    """Apply MEANSHIFT_* environment overrides."""
    environ = os.environ if environ is None else environ
    values = {}
    for suffix, name in ENV_FIELDS.items():
        key = ENV_PREFIX + suffix
        if key in environ:
            values[name] = environ[key]
    return config_from_mapping(values, base)


def load_config(path=None, environ=None):
    """
    Build the effective configuration.

    @param path     optional JSON file holding an object of config fields
    @param environ  environment mapping, os.environ when None
    """
    config = MeanShiftConfig()
    if path is not None:
        try:
            with open(path, "rt") as f:
                values = json.load(f)
        except OSError as err:
            raise InvalidArgument(f"cannot read configuration file {path}: {err}") from err
        except json.JSONDecodeError as err:
            raise InvalidArgument(f"configuration file {path} is not valid JSON: {err}") from err
        if not isinstance(values, dict):
            raise InvalidArgument(f"configuration file {path} must hold a JSON object")
        config = config_from_mapping(values, config)
    return config_from_env(environ, config)
