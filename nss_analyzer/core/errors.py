"""
Measurement error types.

Precondition violations raise ValueError directly. The classes here cover
failures of a running measurement: device access, timeouts, cancellation
and concurrent starts. "No detection" outcomes are not errors and never
raise.
"""


class MeasurementError(Exception):
    """Base class for failures of a measurement session."""


class MeasurementInProgressError(MeasurementError):
    """A measurement was started while another one is still running."""


class CaptureError(MeasurementError):
    """The audio capture device could not be acquired."""


class PermissionDeniedError(CaptureError):
    """Access to the capture device was refused."""


class DeviceNotFoundError(CaptureError):
    """No matching capture device is available."""


class RecordingTimeoutError(MeasurementError):
    """Playback/record did not finish within the safety timeout."""


class MeasurementCancelledError(MeasurementError):
    """The measurement was stopped by the caller."""
