"""Audio input device protocol and constants.

Defines the interface every capture backend must follow: buffer sizing
queries, opening a handle, and draining PCM bytes from it.
"""

from enum import Enum
from typing import Protocol

from ..config import AudioSource

# Channel layout tokens for the canonical layouts. Layouts with 3-16
# channels use a synthesized bitmask with one bit per channel.
CHANNEL_IN_MONO: int = 0x10
CHANNEL_IN_STEREO: int = 0x0C

# Status codes returned by query_min_buffer_size() and readinto()
DEVICE_ERROR_BAD_VALUE: int = -2
DEVICE_ERROR_INVALID_OPERATION: int = -3
DEVICE_ERROR_DEAD_OBJECT: int = -6


class SampleEncoding(Enum):
    """Linear PCM encodings keyed by bit depth."""

    PCM_8BIT = 8
    PCM_16BIT = 16
    PCM_24BIT_PACKED = 24
    PCM_32BIT = 32

    @classmethod
    def for_bit_depth(cls, bit_depth: int) -> "SampleEncoding":
        """Get the encoding for a bit depth.

        Raises:
            ValueError: If the bit depth has no PCM encoding
        """
        return cls(bit_depth)

    @property
    def bit_depth(self) -> int:
        """Bits per sample."""
        return self.value


class DeviceHandle(Protocol):
    """An opened capture stream.

    Owned by exactly one session. Only the capture worker reads from it.
    """

    @property
    def initialized(self) -> bool:
        """Return True if the handle reached the initialized state."""
        ...

    @property
    def buffer_size(self) -> int:
        """Device buffer size in bytes actually allocated."""
        ...

    def start(self) -> None:
        """Start streaming from the device.

        Raises:
            RuntimeError: If streaming cannot be started
        """
        ...

    def readinto(self, buffer: bytearray | memoryview) -> int:
        """Fill buffer with PCM bytes.

        Blocks until data is available.

        Returns:
            Number of bytes read, 0 at end of stream, or a negative
            DEVICE_ERROR_* code
        """
        ...

    def stop(self) -> None:
        """Stop streaming.

        Safe to call even if not started, and while another thread is
        blocked in readinto(); that read then returns without data.
        """
        ...

    def release(self) -> None:
        """Release the underlying device. Safe to call more than once.

        Must not be called while another thread is blocked in readinto().
        """
        ...


class AudioDevice(Protocol):
    """Interface for an audio input runtime.

    Platform-specific implementations must implement this protocol to
    be driven by a CaptureSession.
    """

    def query_min_buffer_size(
        self, sample_rate: int, channel_layout: int, encoding: SampleEncoding, channel_count: int
    ) -> int:
        """Get the minimum buffer size in bytes for a stream format.

        Returns:
            Positive size in bytes, or a negative DEVICE_ERROR_* code when
            the combination is not supported
        """
        ...

    def open(
        self,
        source: AudioSource,
        sample_rate: int,
        channel_layout: int,
        channel_count: int,
        encoding: SampleEncoding,
        buffer_bytes: int,
        device_name: str = "default",
    ) -> DeviceHandle:
        """Open a capture stream.

        The returned handle may report initialized=False when the device
        accepted the request but could not be brought up.

        Raises:
            OSError: If the device cannot be opened at all
        """
        ...


__all__ = [
    "CHANNEL_IN_MONO",
    "CHANNEL_IN_STEREO",
    "DEVICE_ERROR_BAD_VALUE",
    "DEVICE_ERROR_DEAD_OBJECT",
    "DEVICE_ERROR_INVALID_OPERATION",
    "AudioDevice",
    "DeviceHandle",
    "SampleEncoding",
]
