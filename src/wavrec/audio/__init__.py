"""Audio module for wavrec.

Provides the capture device boundary with automatic platform detection
and appropriate backend selection.

Usage:
    # Get platform-appropriate capture device
    device = create_audio_device()

    # For testing, use the mock implementation
    from wavrec.audio.mock_device import MockAudioDevice
"""

import platform

from .device import (
    CHANNEL_IN_MONO,
    CHANNEL_IN_STEREO,
    AudioDevice,
    DeviceHandle,
    SampleEncoding,
)


def detect_audio_platform() -> str:
    """Detect the current platform for audio backend selection.

    Returns:
        Platform identifier: "macos", "linux", "raspberrypi", or "unknown"
    """
    system = platform.system().lower()

    if system == "darwin":
        return "macos"
    elif system == "linux":
        # Check for Raspberry Pi
        try:
            with open("/proc/cpuinfo") as f:
                if "Raspberry Pi" in f.read():
                    return "raspberrypi"
        except (FileNotFoundError, PermissionError):
            pass
        return "linux"
    else:
        return "unknown"


def create_audio_device(use_mock: bool = False) -> AudioDevice:
    """Create platform-appropriate capture device.

    Args:
        use_mock: If True, return mock implementation for testing

    Returns:
        AudioDevice implementation for current platform

    Raises:
        RuntimeError: If no suitable audio backend is available
    """
    if use_mock:
        from .mock_device import MockAudioDevice

        return MockAudioDevice()

    plat = detect_audio_platform()

    if plat in ("macos", "linux", "raspberrypi"):
        from .backends.pyaudio_backend import PyAudioDevice

        return PyAudioDevice()
    else:
        raise RuntimeError(f"Unsupported platform for audio capture: {plat}")


__all__ = [
    "CHANNEL_IN_MONO",
    "CHANNEL_IN_STEREO",
    "AudioDevice",
    "DeviceHandle",
    "SampleEncoding",
    "create_audio_device",
    "detect_audio_platform",
]
