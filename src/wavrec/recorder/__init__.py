"""Recorder module for wavrec.

Provides the streaming capture-to-WAV pipeline: format negotiation, the
capture session and worker loop, and the WAV writer.
"""

from wavrec.recorder.capture_loop import CaptureLoop, LoopExit, LoopResult
from wavrec.recorder.errors import (
    CaptureError,
    DeviceInitError,
    DeviceReadError,
    DeviceRejectedParameters,
    InternalError,
    OutputFileError,
    PermissionDenied,
    UnsupportedParameter,
)
from wavrec.recorder.events import EventChannel, EventKind, RecorderEvent
from wavrec.recorder.negotiator import ConfigNegotiator, NegotiatedBuffers, channel_layout_for
from wavrec.recorder.permission import CallablePermission, PermissionProvider, StaticPermission
from wavrec.recorder.session import CaptureSession, RecorderState
from wavrec.recorder.wave_file import WAV_HEADER_SIZE, WaveFile

__all__ = [
    # Session
    "CaptureSession",
    "RecorderState",
    # Pipeline
    "CaptureLoop",
    "ConfigNegotiator",
    "LoopExit",
    "LoopResult",
    "NegotiatedBuffers",
    "WAV_HEADER_SIZE",
    "WaveFile",
    "channel_layout_for",
    # Events
    "EventChannel",
    "EventKind",
    "RecorderEvent",
    # Permission
    "CallablePermission",
    "PermissionProvider",
    "StaticPermission",
    # Errors
    "CaptureError",
    "DeviceInitError",
    "DeviceReadError",
    "DeviceRejectedParameters",
    "InternalError",
    "OutputFileError",
    "PermissionDenied",
    "UnsupportedParameter",
]
