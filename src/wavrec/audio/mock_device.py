"""Mock audio device for testing.

Provides a mock implementation of AudioDevice that can be used for
testing without requiring actual audio hardware.
"""

import threading
import time
import wave
from pathlib import Path

from ..config import AudioSource
from .device import DEVICE_ERROR_DEAD_OBJECT, DEVICE_ERROR_INVALID_OPERATION, SampleEncoding


class MockDeviceHandle:
    """Capture stream handed out by MockAudioDevice.

    Can simulate capture from:
    - Silence (endless zero bytes)
    - Custom audio data (ends the stream with a 0-byte read once exhausted)

    Implements the DeviceHandle protocol.
    """

    def __init__(self, device: "MockAudioDevice", buffer_size: int, initialized: bool) -> None:
        self._device = device
        self._buffer_size = buffer_size
        self._initialized = initialized
        self._is_active = False
        self._released = False
        self._position = 0
        self._reads = 0
        self._lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        """Return True if the handle came up successfully."""
        return self._initialized and not self._released

    @property
    def buffer_size(self) -> int:
        """Get the allocated buffer size in bytes."""
        return self._buffer_size

    @property
    def is_active(self) -> bool:
        """Return True if streaming."""
        return self._is_active

    @property
    def released(self) -> bool:
        """Return True once release() has been called."""
        return self._released

    @property
    def read_count(self) -> int:
        """Number of completed readinto() calls."""
        return self._reads

    def start(self) -> None:
        """Start mock streaming."""
        if self._released:
            raise RuntimeError("Device handle already released")
        self._is_active = True
        self._device.started.set()

    def readinto(self, buffer: bytearray | memoryview) -> int:
        """Read the next block of audio into buffer.

        Reads from the programmed payload if one is set, otherwise
        generates silence.
        """
        device = self._device
        if device.read_gate is not None:
            device.read_gate.wait()
        if device.read_delay > 0:
            time.sleep(device.read_delay)

        with self._lock:
            if self._released or not self._is_active:
                return DEVICE_ERROR_INVALID_OPERATION

            if device.fail_after_reads is not None and self._reads >= device.fail_after_reads:
                if device.read_exception is not None:
                    raise device.read_exception
                return device.read_error_code

            self._reads += 1
            size = len(buffer)
            if device.audio_data is None:
                buffer[:size] = bytes(size)
                return size

            available = len(device.audio_data) - self._position
            count = min(size, available)
            if count <= 0:
                return 0
            buffer[:count] = device.audio_data[self._position : self._position + count]
            self._position += count
            return count

    def stop(self) -> None:
        """Stop mock streaming."""
        self._is_active = False

    def release(self) -> None:
        """Release the mock handle."""
        with self._lock:
            self._is_active = False
            self._released = True


class MockAudioDevice:
    """Mock audio input runtime for testing.

    Attributes are plain fields so tests can program behaviour directly:
        audio_data: Payload served by reads, or None for endless silence
        min_buffer_size: Forced query_min_buffer_size() result, or None to
            derive 20ms of audio
        init_ok: When False, opened handles report initialized=False
        open_error: Exception raised by open(), if set
        fail_after_reads: Number of successful reads before a failure
        read_error_code: Negative code returned when failing
        read_exception: Exception raised instead of returning a code
        read_delay: Seconds slept before each read
        read_gate: Event every read waits on before proceeding

    Implements the AudioDevice protocol.
    """

    def __init__(self, audio_data: bytes | None = None) -> None:
        self.audio_data = audio_data
        self.min_buffer_size: int | None = None
        self.init_ok = True
        self.open_error: Exception | None = None
        self.fail_after_reads: int | None = None
        self.read_error_code = DEVICE_ERROR_DEAD_OBJECT
        self.read_exception: Exception | None = None
        self.read_delay = 0.0
        self.read_gate: threading.Event | None = None
        self.started = threading.Event()
        self.handles: list[MockDeviceHandle] = []
        self.open_calls: list[dict[str, object]] = []

    def set_audio_data(self, data: bytes) -> None:
        """Set raw audio data served by subsequent handles."""
        self.audio_data = data

    def set_audio_file(self, path: Path | str) -> None:
        """Load the frames of a WAV file as the payload.

        Raises:
            FileNotFoundError: If file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Audio file not found: {path}")

        with wave.open(str(path), "rb") as wf:
            self.audio_data = wf.readframes(wf.getnframes())

    def query_min_buffer_size(
        self, sample_rate: int, channel_layout: int, encoding: SampleEncoding, channel_count: int
    ) -> int:
        """Return the programmed minimum, or 20ms worth of frames."""
        if self.min_buffer_size is not None:
            return self.min_buffer_size
        frame_bytes = channel_count * encoding.bit_depth // 8
        return max(sample_rate // 50, 1) * frame_bytes

    def open(
        self,
        source: AudioSource,
        sample_rate: int,
        channel_layout: int,
        channel_count: int,
        encoding: SampleEncoding,
        buffer_bytes: int,
        device_name: str = "default",
    ) -> MockDeviceHandle:
        """Open a mock capture stream."""
        self.open_calls.append(
            {
                "source": source,
                "sample_rate": sample_rate,
                "channel_layout": channel_layout,
                "channel_count": channel_count,
                "encoding": encoding,
                "buffer_bytes": buffer_bytes,
                "device_name": device_name,
            }
        )
        if self.open_error is not None:
            raise self.open_error
        handle = MockDeviceHandle(self, buffer_bytes, self.init_ok)
        self.handles.append(handle)
        return handle

    @property
    def last_handle(self) -> MockDeviceHandle | None:
        """Get the most recently opened handle."""
        return self.handles[-1] if self.handles else None


__all__ = ["MockAudioDevice", "MockDeviceHandle"]
