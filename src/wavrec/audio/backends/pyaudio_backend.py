"""PortAudio capture backend using PyAudio.

Provides an AudioDevice implementation for macOS, Linux and Raspberry Pi
using PyAudio (PortAudio wrapper).
"""

import logging
import math
from typing import Any

from ...config import AudioSource
from ..device import DEVICE_ERROR_BAD_VALUE, SampleEncoding

logger = logging.getLogger(__name__)

# PyAudio import with fallback for type hints
try:
    import pyaudio

    PYAUDIO_AVAILABLE = True
except ImportError:
    PYAUDIO_AVAILABLE = False
    pyaudio = None

MIN_DEVICE_FRAMES: int = 256
ROUTABLE_SOURCES = frozenset({AudioSource.DEFAULT, AudioSource.MIC})


def _pa_format(encoding: SampleEncoding) -> int:
    return {
        SampleEncoding.PCM_8BIT: pyaudio.paInt8,
        SampleEncoding.PCM_16BIT: pyaudio.paInt16,
        SampleEncoding.PCM_24BIT_PACKED: pyaudio.paInt24,
        SampleEncoding.PCM_32BIT: pyaudio.paInt32,
    }[encoding]


def _find_input_device(pa: Any, device_name: str) -> int | None:
    """Get device index for a device name, None for the default device."""
    if device_name == "default":
        return None

    for i in range(pa.get_device_count()):
        info = pa.get_device_info_by_index(i)
        if device_name.lower() in info["name"].lower() and info["maxInputChannels"] > 0:
            return i

    logger.warning(f"Input device '{device_name}' not found, using default")
    return None


class PyAudioDeviceHandle:
    """Open PortAudio input stream.

    Implements the DeviceHandle protocol.
    """

    def __init__(self, pa: Any, stream: Any, frame_bytes: int, buffer_size: int) -> None:
        self._pa = pa
        self._stream = stream
        self._frame_bytes = frame_bytes
        self._buffer_size = buffer_size

    @property
    def initialized(self) -> bool:
        """Return True while the stream is open."""
        return self._stream is not None

    @property
    def buffer_size(self) -> int:
        """Get the device buffer size in bytes."""
        return self._buffer_size

    def start(self) -> None:
        """Start the input stream."""
        if self._stream is None:
            raise RuntimeError("Stream already released")
        if not self._stream.is_active():
            self._stream.start_stream()

    def readinto(self, buffer: bytearray | memoryview) -> int:
        """Read as many whole frames as fit in buffer."""
        if self._stream is None:
            return DEVICE_ERROR_BAD_VALUE

        frames = len(buffer) // self._frame_bytes
        if frames <= 0:
            return 0

        data = self._stream.read(frames, exception_on_overflow=False)
        count = len(data)
        buffer[:count] = data
        return count

    def stop(self) -> None:
        """Stop the input stream."""
        if self._stream is not None and self._stream.is_active():
            self._stream.stop_stream()

    def release(self) -> None:
        """Close the stream and terminate PortAudio."""
        if self._stream is not None:
            self._stream.close()
            self._stream = None

        if self._pa is not None:
            self._pa.terminate()
            self._pa = None


class PyAudioDevice:
    """PortAudio audio input runtime.

    Implements the AudioDevice protocol.
    """

    def __init__(self) -> None:
        """Initialize PortAudio device access.

        Raises:
            RuntimeError: If PyAudio is not available
        """
        if not PYAUDIO_AVAILABLE:
            raise RuntimeError("PyAudio not available. Install with: pip install pyaudio")

    def query_min_buffer_size(
        self, sample_rate: int, channel_layout: int, encoding: SampleEncoding, channel_count: int
    ) -> int:
        """Get the minimum buffer in bytes for the default input device."""
        pa = pyaudio.PyAudio()
        try:
            try:
                info = pa.get_default_input_device_info()
                pa.is_format_supported(
                    sample_rate,
                    input_device=info["index"],
                    input_channels=channel_count,
                    input_format=_pa_format(encoding),
                )
            except (OSError, ValueError) as e:
                logger.info(f"Format rejected by PortAudio: {e}")
                return DEVICE_ERROR_BAD_VALUE

            latency = float(info.get("defaultLowInputLatency", 0.0))
            frames = max(math.ceil(sample_rate * latency), MIN_DEVICE_FRAMES)
            return frames * channel_count * encoding.bit_depth // 8
        finally:
            pa.terminate()

    def open(
        self,
        source: AudioSource,
        sample_rate: int,
        channel_layout: int,
        channel_count: int,
        encoding: SampleEncoding,
        buffer_bytes: int,
        device_name: str = "default",
    ) -> PyAudioDeviceHandle:
        """Open a PortAudio input stream (not yet started).

        Raises:
            OSError: If PortAudio cannot open the stream
        """
        if source not in ROUTABLE_SOURCES:
            logger.debug(f"PortAudio cannot route source {source.name}, using input device")

        frame_bytes = channel_count * encoding.bit_depth // 8
        pa = pyaudio.PyAudio()
        try:
            stream = pa.open(
                format=_pa_format(encoding),
                channels=channel_count,
                rate=sample_rate,
                input=True,
                input_device_index=_find_input_device(pa, device_name),
                frames_per_buffer=max(buffer_bytes // frame_bytes, 1),
                start=False,
            )
        except Exception:
            pa.terminate()
            raise

        return PyAudioDeviceHandle(pa, stream, frame_bytes, buffer_bytes)


__all__ = ["PyAudioDevice", "PyAudioDeviceHandle"]
