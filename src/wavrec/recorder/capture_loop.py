"""Device-to-file capture loop.

Reads the device and writes the WAV file in lockstep on a single worker
thread until cancelled or until the stream ends.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum, auto

from ..audio.device import DeviceHandle
from .errors import CaptureError, DeviceReadError, OutputFileError
from .wave_file import WaveFile

logger = logging.getLogger(__name__)


class LoopExit(Enum):
    """Why the loop returned."""

    CANCELLED = auto()  # Stop requested through the cancellation token
    END_OF_STREAM = auto()  # Device read returned 0
    FAILED = auto()  # Read, write or start failure


@dataclass
class LoopResult:
    """Outcome of one capture loop run."""

    exit: LoopExit
    total_bytes: int
    error: CaptureError | None = None


class CaptureLoop:
    """Moves PCM bytes from a device handle into a WaveFile.

    The cancellation token is checked once per read/write cycle; a read
    in progress is never interrupted.
    """

    def __init__(
        self,
        handle: DeviceHandle,
        wave_file: WaveFile,
        chunk_bytes: int,
        cancel_event: threading.Event,
        progress_interval: int = 10 * 1024 * 1024,
    ) -> None:
        """Initialize capture loop.

        Args:
            handle: Opened, not yet started device handle
            wave_file: Open WAV writer with its header written
            chunk_bytes: Bytes requested per read
            cancel_event: Set by the session to end the loop
            progress_interval: Bytes between progress log lines
        """
        self._handle = handle
        self._wave_file = wave_file
        self._buffer = bytearray(chunk_bytes)
        self._cancel_event = cancel_event
        self._progress_interval = progress_interval
        self._total_bytes = 0

    @property
    def handle(self) -> DeviceHandle:
        """Device handle drained by this loop."""
        return self._handle

    @property
    def total_bytes(self) -> int:
        """Bytes captured so far."""
        return self._total_bytes

    def run(self) -> LoopResult:
        """Capture until cancelled, end of stream, or failure."""
        try:
            self._handle.start()
        except Exception as e:
            return self._failed(DeviceReadError(f"Failed to start audio stream: {e}"))

        logger.info(f"Capture loop started, buffer: {len(self._buffer)} bytes")
        next_progress = self._progress_interval
        view = memoryview(self._buffer)

        while not self._cancel_event.is_set():
            try:
                bytes_read = self._handle.readinto(view)
            except Exception as e:
                if self._cancel_event.is_set():
                    break
                return self._failed(DeviceReadError(f"Recording error: {e}"))

            if bytes_read < 0:
                if self._cancel_event.is_set():
                    break
                return self._failed(
                    DeviceReadError(f"Audio device read failed with code {bytes_read}", code=bytes_read)
                )
            if bytes_read == 0:
                logger.info(f"Audio stream ended after {self._total_bytes} bytes")
                return LoopResult(LoopExit.END_OF_STREAM, self._total_bytes)

            if not self._wave_file.write_audio_data(view, 0, bytes_read):
                if self._cancel_event.is_set():
                    break
                return self._failed(
                    OutputFileError(
                        f"Failed to write audio data to {self._wave_file.path}",
                        path=str(self._wave_file.path),
                    )
                )
            self._total_bytes += bytes_read

            if self._total_bytes >= next_progress:
                logger.debug(f"Recording progress: {self._total_bytes / (1024 * 1024):.1f}MB")
                next_progress += self._progress_interval

        return LoopResult(LoopExit.CANCELLED, self._total_bytes)

    def _failed(self, error: CaptureError) -> LoopResult:
        logger.error(str(error))
        return LoopResult(LoopExit.FAILED, self._total_bytes, error)


__all__ = ["CaptureLoop", "LoopExit", "LoopResult"]
