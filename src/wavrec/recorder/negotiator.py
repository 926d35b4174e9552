"""Stream format negotiation.

Turns an AudioConfig into concrete channel layout and buffer sizes,
rejecting unsupported combinations before any device resource exists.
"""

import logging
from dataclasses import dataclass

from ..audio.device import CHANNEL_IN_MONO, CHANNEL_IN_STEREO, AudioDevice, SampleEncoding
from ..config import AudioConfig
from .errors import DeviceRejectedParameters, UnsupportedParameter

logger = logging.getLogger(__name__)

MIN_SAMPLE_RATE: int = 8000
MAX_SAMPLE_RATE: int = 192000
MIN_CHANNELS: int = 1
MAX_CHANNELS: int = 16
SUPPORTED_BIT_DEPTHS = frozenset({8, 16, 24, 32})

# Read chunk size by channel count, largest threshold first
READ_CHUNK_BY_CHANNELS: tuple[tuple[int, int], ...] = (
    (12, 8192),
    (8, 6144),
)
DEFAULT_READ_CHUNK: int = 4096


@dataclass(frozen=True)
class NegotiatedBuffers:
    """Concrete stream parameters derived from an AudioConfig.

    Attributes:
        channel_layout: Layout token handed to the device
        encoding: PCM encoding for the bit depth
        min_device_buffer_bytes: Device-reported minimum buffer
        effective_buffer_bytes: Buffer size requested from the device
        read_chunk_bytes: Bytes requested per read, whole frames only
    """

    channel_layout: int
    encoding: SampleEncoding
    min_device_buffer_bytes: int
    effective_buffer_bytes: int
    read_chunk_bytes: int


def channel_layout_for(channel_count: int) -> int:
    """Get the layout token for a channel count.

    Mono and stereo use the canonical tokens; 3-16 channels use a bitmask
    with bit i set for channel i.

    Raises:
        UnsupportedParameter: If channel_count is outside 1-16
    """
    if channel_count == 1:
        return CHANNEL_IN_MONO
    if channel_count == 2:
        return CHANNEL_IN_STEREO
    if 3 <= channel_count <= MAX_CHANNELS:
        return (1 << channel_count) - 1
    raise UnsupportedParameter(f"Unsupported channel count: {channel_count}")


def read_chunk_size(channel_count: int, block_align: int, device_buffer_bytes: int) -> int:
    """Choose how many bytes to request per device read.

    The chunk never exceeds the device buffer and is always a whole number
    of frames (at least one).
    """
    chunk = DEFAULT_READ_CHUNK
    for threshold, size in READ_CHUNK_BY_CHANNELS:
        if channel_count >= threshold:
            chunk = size
            break

    chunk = min(chunk, device_buffer_bytes)
    chunk -= chunk % block_align
    return max(chunk, block_align)


class ConfigNegotiator:
    """Validates configurations and sizes buffers against a device."""

    def __init__(self, device: AudioDevice) -> None:
        """Initialize negotiator.

        Args:
            device: Device queried for its minimum buffer size
        """
        self._device = device

    @staticmethod
    def validate(config: AudioConfig) -> None:
        """Check parameter ranges without touching the device.

        Raises:
            UnsupportedParameter: On the first out-of-range parameter
        """
        if not MIN_SAMPLE_RATE <= config.sample_rate <= MAX_SAMPLE_RATE:
            raise UnsupportedParameter(f"Unsupported sample rate: {config.sample_rate}Hz")
        if not MIN_CHANNELS <= config.channel_count <= MAX_CHANNELS:
            raise UnsupportedParameter(f"Unsupported channel count: {config.channel_count}")
        if config.bit_depth not in SUPPORTED_BIT_DEPTHS:
            raise UnsupportedParameter(f"Unsupported bit depth: {config.bit_depth}bit")
        if config.buffer_multiplier <= 0:
            raise UnsupportedParameter(f"Unsupported buffer multiplier: {config.buffer_multiplier}")

    def negotiate(self, config: AudioConfig) -> NegotiatedBuffers:
        """Derive concrete stream parameters for a configuration.

        Raises:
            UnsupportedParameter: If a parameter is out of range
            DeviceRejectedParameters: If the device reports no valid buffer
                size for the combination
        """
        self.validate(config)

        layout = channel_layout_for(config.channel_count)
        encoding = SampleEncoding.for_bit_depth(config.bit_depth)

        min_buffer = self._device.query_min_buffer_size(
            config.sample_rate, layout, encoding, config.channel_count
        )
        if min_buffer <= 0:
            raise DeviceRejectedParameters(
                f"Unsupported audio parameter combination: {config.sample_rate}Hz, "
                f"{config.channel_count}ch, {config.bit_depth}bit (device returned {min_buffer})"
            )

        effective = max(min_buffer * config.buffer_multiplier, config.min_buffer_size)
        chunk = read_chunk_size(config.channel_count, config.block_align, effective)

        logger.info(
            f"Negotiated buffers for {config.description}: min={min_buffer}B, "
            f"buffer={effective}B, chunk={chunk}B, layout=0x{layout:X}"
        )
        return NegotiatedBuffers(
            channel_layout=layout,
            encoding=encoding,
            min_device_buffer_bytes=min_buffer,
            effective_buffer_bytes=effective,
            read_chunk_bytes=chunk,
        )


__all__ = [
    "ConfigNegotiator",
    "NegotiatedBuffers",
    "channel_layout_for",
    "read_chunk_size",
]
