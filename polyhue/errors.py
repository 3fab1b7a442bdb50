"""Error types raised by the PolyHue color engine.

AIDEV-NOTE: Every error carries a human-readable message and can be turned
into the ``{"message": ...}`` error response with ``to_dict()``. Input and
algorithm errors are raised before a job is dispatched; the others are set on
the job's future by the quantization service.
"""


class QuantizationError(Exception):
    """Base class for all color engine errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> "dict[str, str]":
        return {"message": self.message}


class InputError(QuantizationError, ValueError):
    """Missing image, empty or malformed pixel buffer, or bad parameters."""


class AlgorithmError(QuantizationError, ValueError):
    """Unknown quantization algorithm name."""


class ChannelError(QuantizationError):
    """The isolated worker process failed to start or died mid-job."""


class WorkerError(QuantizationError):
    """The worker process reported an exception while running a job."""


class QuantizationTimeoutError(QuantizationError, TimeoutError):
    """A job produced no response within the configured timeout."""


class MatchMethodError(QuantizationError, ValueError):
    """Unknown filament matching metric."""


class FilamentImportError(QuantizationError, ValueError):
    """Filament import payload could not be parsed."""
