"""Configuration module for wavrec.

Defines the immutable per-session AudioConfig record and the settings
that govern the recorder as a whole.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

# Defaults carried over from the stock recording configuration
DEFAULT_SAMPLE_RATE: int = 48000
DEFAULT_CHANNEL_COUNT: int = 2
DEFAULT_BIT_DEPTH: int = 16
DEFAULT_BUFFER_MULTIPLIER: int = 4
DEFAULT_MIN_BUFFER_SIZE: int = 960  # Floor for the effective device buffer, in bytes
DEFAULT_OUTPUT_DIR: str = "~/wavrec/recordings"
DEFAULT_STOP_TIMEOUT_S: float = 1.0
PROGRESS_LOG_INTERVAL: int = 10 * 1024 * 1024  # 10MB


class AudioSource(Enum):
    """Capture source capability requested from the device."""

    DEFAULT = 0
    MIC = 1
    VOICE_UPLINK = 2
    VOICE_DOWNLINK = 3
    VOICE_CALL = 4
    CAMCORDER = 5
    VOICE_RECOGNITION = 6
    VOICE_COMMUNICATION = 7
    REMOTE_SUBMIX = 8
    UNPROCESSED = 9
    VOICE_PERFORMANCE = 10
    # System-level sources
    ECHO_REFERENCE = 1997
    RADIO_TUNER = 1998
    HOTWORD = 1999
    ULTRASOUND = 2000

    @classmethod
    def parse(cls, value: "str | int | AudioSource") -> "AudioSource":
        """Resolve a source from its name or numeric id.

        Names are matched case-insensitively. Unknown values fall back
        to MIC.
        """
        if isinstance(value, AudioSource):
            return value
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                logger.warning(f"Unknown audio source id: {value}, using MIC")
                return cls.MIC
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            logger.warning(f"Unknown audio source: {value}, using MIC")
            return cls.MIC


@dataclass(frozen=True)
class AudioConfig:
    """One selectable recording configuration.

    Instances are immutable; use dataclasses.replace() to derive a variant.

    Attributes:
        audio_source: Capture source capability
        sample_rate: Sample rate in Hz
        channel_count: Number of channels (1-16)
        bit_depth: Bits per sample (8, 16, 24 or 32)
        buffer_multiplier: Scales the device minimum buffer size
        output_path: Target WAV path; empty means synthesize one
        min_buffer_size: Lower bound for the effective buffer in bytes
        description: Human-readable label
        input_device: Backend device name, or "default"
    """

    audio_source: AudioSource = AudioSource.MIC
    sample_rate: int = DEFAULT_SAMPLE_RATE
    channel_count: int = DEFAULT_CHANNEL_COUNT
    bit_depth: int = DEFAULT_BIT_DEPTH
    buffer_multiplier: int = DEFAULT_BUFFER_MULTIPLIER
    output_path: str = ""
    min_buffer_size: int = DEFAULT_MIN_BUFFER_SIZE
    description: str = "Default recording configuration"
    input_device: str = "default"

    @property
    def bytes_per_sample(self) -> int:
        """Bytes per single-channel sample."""
        return self.bit_depth // 8

    @property
    def block_align(self) -> int:
        """Bytes per frame (one sample for every channel)."""
        return self.channel_count * self.bytes_per_sample

    @property
    def channel_label(self) -> str:
        """Get a display label for the channel count."""
        if self.channel_count == 1:
            return "Mono"
        if self.channel_count == 2:
            return "Stereo"
        return f"{self.channel_count} Channels"

    @property
    def format_label(self) -> str:
        """Get a display label for the sample format."""
        return f"{self.bit_depth}bit"

    @property
    def source_label(self) -> str:
        """Get a display label for the audio source."""
        return self.audio_source.name

    def summary(self) -> str:
        """One-line description used in listings and logs."""
        return (
            f"{self.description} ({self.source_label}, {self.sample_rate}Hz, "
            f"{self.channel_label}, {self.format_label})"
        )


@dataclass
class RecorderSettings:
    """Recorder-wide settings shared by every session."""

    output_dir: str = DEFAULT_OUTPUT_DIR
    stop_timeout_s: float = DEFAULT_STOP_TIMEOUT_S
    progress_log_interval: int = PROGRESS_LOG_INTERVAL


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"


@dataclass
class WavrecConfig:
    """Root configuration object."""

    recorder: RecorderSettings = field(default_factory=RecorderSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    configs: list[AudioConfig] = field(default_factory=list)

    def find(self, text: str) -> AudioConfig | None:
        """Return the first configuration whose description contains text."""
        needle = text.lower()
        for config in self.configs:
            if needle in config.description.lower():
                return config
        return None


__all__ = [
    "AudioConfig",
    "AudioSource",
    "LoggingConfig",
    "RecorderSettings",
    "WavrecConfig",
]
