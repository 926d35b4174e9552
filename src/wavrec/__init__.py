"""wavrec - configurable microphone capture to WAV files.

wavrec records a live PCM stream into a RIFF/WAVE file:
- Selectable configurations (sample rate, channels, bit depth, source)
- Up to 16 channels with 8/16/24/32-bit samples
- Streaming writes with the header finalized on stop

Usage:
    wavrec --list
    wavrec --select 1 --duration 10
"""

__version__ = "0.1.0"

from .config import AudioConfig, AudioSource
from .config.loader import load_config
from .recorder import CaptureSession, RecorderState

__all__ = [
    "AudioConfig",
    "AudioSource",
    "CaptureSession",
    "RecorderState",
    "__version__",
    "load_config",
]
