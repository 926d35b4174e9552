"""Error types for the capture pipeline.

Every error carries a human-readable message suitable for showing to a
user verbatim.
"""


class CaptureError(Exception):
    """Base exception for capture-related errors."""

    pass


class PermissionDenied(CaptureError):
    """Raised when microphone access has not been granted."""

    pass


class OutputFileError(CaptureError):
    """Raised when the WAV file cannot be created, written or finalized."""

    def __init__(self, message: str, path: str | None = None) -> None:
        """Initialize output file error.

        Args:
            message: Error message.
            path: Output path involved, if known.
        """
        super().__init__(message)
        self.path = path


class UnsupportedParameter(CaptureError):
    """Raised for an out-of-range sample rate, channel count or bit depth."""

    pass


class DeviceRejectedParameters(CaptureError):
    """Raised when the device refuses the negotiated stream format."""

    pass


class DeviceInitError(CaptureError):
    """Raised when the device handle fails to reach the initialized state."""

    pass


class DeviceReadError(CaptureError):
    """Raised when a device read fails mid-stream."""

    def __init__(self, message: str, code: int | None = None) -> None:
        """Initialize read error.

        Args:
            message: Error message.
            code: Negative status code returned by the device, if any.
        """
        super().__init__(message)
        self.code = code


class InternalError(CaptureError):
    """Raised for unexpected failures."""

    pass


__all__ = [
    "CaptureError",
    "DeviceInitError",
    "DeviceReadError",
    "DeviceRejectedParameters",
    "InternalError",
    "OutputFileError",
    "PermissionDenied",
    "UnsupportedParameter",
]
