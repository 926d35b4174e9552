"""Streaming WAV file writer.

Writes a canonical 44-byte PCM header with zeroed size fields, appends
raw PCM as it arrives, and patches the RIFF and data sizes on close.
"""

import logging
import struct
import threading
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)

WAV_HEADER_SIZE: int = 44
FMT_CHUNK_SIZE: int = 16
AUDIO_FORMAT_PCM: int = 1
RIFF_SIZE_OFFSET: int = 4
DATA_SIZE_OFFSET: int = 40
SUPPORTED_BIT_DEPTHS = (8, 16, 24, 32)
MAX_CHANNELS: int = 16
COMMON_SAMPLE_RATES = range(8000, 192001)
MAX_DATA_LENGTH: int = 0xFFFFFFFF - (WAV_HEADER_SIZE - 8)


def build_header(
    sample_rate: int,
    channel_count: int,
    bits_per_sample: int,
    data_length: int = 0,
    placeholder: bool = False,
) -> bytes:
    """Build a 44-byte PCM WAV header.

    The RIFF size is always data_length + 36, so an empty recording reads
    back the same as a finalized one. With placeholder both size fields are
    0; create() writes that form and close() patches it.
    """
    byte_rate = sample_rate * channel_count * bits_per_sample // 8
    block_align = channel_count * bits_per_sample // 8
    if placeholder:
        riff_size = data_length = 0
    else:
        riff_size = data_length + WAV_HEADER_SIZE - 8

    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        riff_size,
        b"WAVE",
        b"fmt ",
        FMT_CHUNK_SIZE,
        AUDIO_FORMAT_PCM,
        channel_count,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        b"data",
        data_length,
    )


class WaveFile:
    """Single-use WAV writer for one recording.

    Lifecycle: create() opens the file and writes the header,
    write_audio_data() appends PCM, close() finalizes the header. A closed
    instance cannot be reopened.

    I/O problems are logged and reported through boolean results, never
    raised.
    """

    def __init__(self, path: Path | str) -> None:
        """Initialize writer for a target path.

        Args:
            path: Destination WAV file
        """
        self._path = Path(path)
        self._file: BinaryIO | None = None
        self._is_open = False
        self._used = False
        self._total_audio_length = 0
        self._lock = threading.Lock()

        self.sample_rate = 0
        self.channel_count = 0
        self.bits_per_sample = 0

    @property
    def path(self) -> Path:
        """Get the destination path."""
        return self._path

    @property
    def is_open(self) -> bool:
        """Return True between a successful create() and close()."""
        return self._is_open

    @property
    def total_audio_length(self) -> int:
        """Number of PCM bytes written so far."""
        return self._total_audio_length

    def create(self, sample_rate: int, channel_count: int, bits_per_sample: int) -> bool:
        """Create the WAV file and write the placeholder header.

        Args:
            sample_rate: Sample rate in Hz
            channel_count: Number of channels (1-16)
            bits_per_sample: 8, 16, 24 or 32

        Returns:
            True if the file is open and ready for audio data
        """
        logger.debug(f"Creating WAV file: {self._path}")

        with self._lock:
            if self._used:
                logger.error(f"WAV writer already used, create a new one: {self._path}")
                return False

            if not validate_parameters(sample_rate, channel_count, bits_per_sample):
                return False

            self._used = True
            self.sample_rate = sample_rate
            self.channel_count = channel_count
            self.bits_per_sample = bits_per_sample

            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._file = open(self._path, "wb")
                self._file.write(build_header(sample_rate, channel_count, bits_per_sample, placeholder=True))
            except OSError as e:
                logger.error(f"Failed to create file {self._path}: {e}")
                self._discard_handle()
                return False

            self._is_open = True
            self._total_audio_length = 0

        logger.info(
            f"WAV file created: {self._path} "
            f"({sample_rate}Hz, {channel_count}ch, {bits_per_sample}bit)"
        )
        return True

    def write_audio_data(self, data: bytes | bytearray | memoryview, offset: int = 0, length: int | None = None) -> bool:
        """Append PCM bytes from data[offset:offset + length].

        Returns:
            False without writing if the file is not open or the range is
            invalid; False after closing the file if the write fails
        """
        if length is None:
            length = len(data) - offset

        if offset < 0 or length < 0 or offset + length > len(data):
            logger.warning(f"Invalid write parameters: offset={offset}, length={length}, size={len(data)}")
            return False

        with self._lock:
            if not self._is_open or self._file is None:
                return False

            try:
                self._file.write(memoryview(data)[offset : offset + length])
            except OSError as e:
                logger.error(f"Failed to write audio data to {self._path}: {e}")
                failed = True
            else:
                self._total_audio_length += length
                failed = False

        if failed:
            self.close()
            return False
        return True

    def close(self) -> bool:
        """Close the file and patch the RIFF and data size fields.

        Calling close() on a closed or never-opened writer is a no-op.

        Returns:
            True if the header now reflects the written data
        """
        with self._lock:
            if not self._is_open and self._file is None:
                return True

            was_open = self._is_open
            logger.debug(f"Closing WAV file, total length: {self._total_audio_length} bytes")
            try:
                if self._file is not None:
                    self._file.close()
            except OSError as e:
                logger.error(f"Failed to close file {self._path}: {e}")
                return False
            finally:
                self._file = None
                self._is_open = False

            if was_open:
                return self._update_header()
            return True

    def _update_header(self) -> bool:
        data_length = self._total_audio_length
        if data_length > MAX_DATA_LENGTH:
            logger.warning(f"Audio data exceeds WAV size limit, header clamped: {data_length} bytes")
            data_length = MAX_DATA_LENGTH

        try:
            with open(self._path, "r+b") as f:
                f.seek(RIFF_SIZE_OFFSET)
                f.write(struct.pack("<I", data_length + WAV_HEADER_SIZE - 8))
                f.seek(DATA_SIZE_OFFSET)
                f.write(struct.pack("<I", data_length))
        except OSError as e:
            logger.error(f"Failed to update WAV header {self._path}: {e}")
            return False

        logger.info(f"WAV file finalized: {self._path} ({data_length} bytes of audio)")
        return True

    def _discard_handle(self) -> None:
        if self._file is not None:
            try:
                self._file.close()
            except OSError:
                logger.debug(f"Ignoring close failure for {self._path}")
            self._file = None
        self._is_open = False

    def __enter__(self) -> "WaveFile":
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()


def validate_parameters(sample_rate: int, channel_count: int, bits_per_sample: int) -> bool:
    """Check WAV parameters, logging the reason for any rejection.

    A sample rate outside 8000-192000 Hz is allowed with a warning.
    """
    if sample_rate <= 0 or channel_count <= 0 or bits_per_sample <= 0:
        logger.error(f"Invalid audio parameters: {sample_rate}Hz, {channel_count}ch, {bits_per_sample}bit")
        return False

    if bits_per_sample not in SUPPORTED_BIT_DEPTHS:
        logger.error(f"Unsupported bit depth: {bits_per_sample}bit")
        return False

    if sample_rate not in COMMON_SAMPLE_RATES:
        logger.warning(f"Sample rate outside common range: {sample_rate}Hz")

    if channel_count > MAX_CHANNELS:
        logger.error(f"Channel count exceeds supported range: {channel_count} channels")
        return False

    return True


__all__ = [
    "WAV_HEADER_SIZE",
    "WaveFile",
    "build_header",
    "validate_parameters",
]
