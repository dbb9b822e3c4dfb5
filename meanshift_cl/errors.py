"""Exception types raised by the mean shift runners."""


class MeanShiftError(Exception):
    """Base class for every failure of a mean shift batch."""


class InvalidArgument(MeanShiftError, ValueError):
    """Bandwidth, point sets or configuration rejected before any work starts."""


class ResourceExhaustion(MeanShiftError, RuntimeError):
    """The device, context, buffers or worker pool could not be acquired."""


class DispatchFailure(MeanShiftError, RuntimeError):
    """The parallel fan-out did not complete; no partial result is returned."""
