"""Capture session.

Owns the device handle, the WAV writer and the capture worker for one
recorder, and is the single source of truth for whether it is recording.

Usage:
    session = CaptureSession(create_audio_device())
    session.configure(config)
    path = session.start()
    # ... later ...
    session.stop()
    session.release()
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from enum import Enum, auto
from pathlib import Path

from ..audio.device import AudioDevice, DeviceHandle, SampleEncoding
from ..config import AudioConfig, RecorderSettings
from .capture_loop import CaptureLoop, LoopExit, LoopResult
from .errors import (
    CaptureError,
    DeviceInitError,
    InternalError,
    OutputFileError,
    PermissionDenied,
)
from .events import EventChannel, EventKind, RecorderEvent
from .negotiator import ConfigNegotiator, read_chunk_size
from .permission import PermissionProvider, StaticPermission
from .wave_file import WaveFile

logger = logging.getLogger(__name__)


class RecorderState(Enum):
    """Recording state."""

    IDLE = auto()
    RECORDING = auto()
    ERROR = auto()


class CaptureSession:
    """Records one configured stream at a time into a WAV file.

    Public methods are called from a controller thread; the capture loop
    runs on a dedicated worker thread per recording.
    """

    def __init__(
        self,
        device: AudioDevice,
        permission: PermissionProvider | None = None,
        settings: RecorderSettings | None = None,
        config: AudioConfig | None = None,
        events: EventChannel | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize capture session.

        Args:
            device: Audio input runtime
            permission: Capture permission check (always granted if None)
            settings: Recorder-wide settings
            config: Initial recording configuration
            events: Channel receiving state-transition events
            clock: Time source for synthesized file names
        """
        self._device = device
        self._permission = permission or StaticPermission(True)
        self._settings = settings or RecorderSettings()
        self._config = config or AudioConfig()
        self._events = events or EventChannel()
        self._clock = clock
        self._negotiator = ConfigNegotiator(device)

        self._state = RecorderState.IDLE
        self._handle: DeviceHandle | None = None
        self._wave_file: WaveFile | None = None
        self._loop: CaptureLoop | None = None
        self._worker: threading.Thread | None = None
        self._cancel_event: threading.Event | None = None
        self._output_path: Path | None = None
        self._last_total_bytes = 0
        self._released = False
        # Handles stopped on a forced stop, released by their worker on exit
        self._detached_handles: list[DeviceHandle] = []
        self._worker_exited = False

        # Serializes start/stop/configure/release against each other
        self._control_lock = threading.RLock()
        # Guards fields shared with the worker
        self._lock = threading.RLock()

    @property
    def state(self) -> RecorderState:
        """Get the current recording state."""
        return self._state

    @property
    def is_recording(self) -> bool:
        """Return True while a capture worker owns the device."""
        return self._state is RecorderState.RECORDING

    @property
    def config(self) -> AudioConfig:
        """Get the current configuration."""
        return self._config

    @property
    def events(self) -> EventChannel:
        """Get the notification channel."""
        return self._events

    @property
    def output_path(self) -> Path | None:
        """Get the WAV path of the current or most recent recording."""
        return self._output_path

    @property
    def bytes_recorded(self) -> int:
        """Bytes captured in the current or most recent recording."""
        loop = self._loop
        if loop is not None:
            return loop.total_bytes
        return self._last_total_bytes

    def configure(self, config: AudioConfig) -> bool:
        """Replace the current configuration.

        Rejected while recording; the configuration of an active
        recording never changes.

        Returns:
            True if the configuration was replaced
        """
        with self._control_lock:
            if self._state is RecorderState.RECORDING:
                logger.warning("Cannot change configuration while recording")
                return False
            self._config = config
        logger.info(f"Configuration updated: {config.description}")
        return True

    set_audio_config = configure

    def start(self) -> Path:
        """Start recording with the current configuration.

        An active recording is stopped first.

        Returns:
            Path of the WAV file being written

        Raises:
            PermissionDenied: If capture permission is not granted
            UnsupportedParameter: If the configuration is out of range
            DeviceRejectedParameters: If the device refuses the format
            OutputFileError: If the WAV file cannot be created
            DeviceInitError: If the device cannot be opened
            InternalError: If the session has been released
        """
        with self._control_lock:
            if self._released:
                raise InternalError("Capture session has been released")

            if not self._permission.is_granted():
                raise self._start_failed(PermissionDenied("Recording permission not granted"))

            if self._state is RecorderState.RECORDING:
                logger.info("Restarting recording")
                self._stop()

            config = self._config
            try:
                buffers = self._negotiator.negotiate(config)
            except CaptureError as e:
                raise self._start_failed(e) from None

            path = self._resolve_output_path(config)
            wave_file = WaveFile(path)
            if not wave_file.create(config.sample_rate, config.channel_count, config.bit_depth):
                raise self._start_failed(OutputFileError(f"Cannot create output file: {path}", path=str(path)))

            handle = self._open_device(
                config,
                buffers.channel_layout,
                buffers.encoding,
                buffers.effective_buffer_bytes,
                wave_file,
            )

            # Never request more than the device actually allocated
            device_buffer = handle.buffer_size if handle.buffer_size > 0 else buffers.effective_buffer_bytes
            chunk = read_chunk_size(
                config.channel_count,
                config.block_align,
                min(buffers.read_chunk_bytes, device_buffer),
            )

            cancel_event = threading.Event()
            loop = CaptureLoop(
                handle,
                wave_file,
                chunk,
                cancel_event,
                progress_interval=self._settings.progress_log_interval,
            )
            worker = threading.Thread(
                target=self._run_worker,
                args=(loop, cancel_event),
                daemon=True,
                name="wavrec-capture",
            )

            with self._lock:
                self._handle = handle
                self._worker_exited = False
                self._wave_file = wave_file
                self._loop = loop
                self._cancel_event = cancel_event
                self._worker = worker
                self._output_path = path
                self._state = RecorderState.RECORDING

            logger.info(f"Recording started - {config.summary()} -> {path}")
            self._events.publish(
                RecorderEvent(EventKind.STARTED, RecorderState.RECORDING, "Recording started", path)
            )
            if not cancel_event.is_set():
                worker.start()
            return path

    def stop(self) -> None:
        """Stop recording and finalize the WAV file.

        No-op when not recording. Waits up to the configured stop timeout
        for the worker, then releases resources regardless.
        """
        with self._control_lock:
            self._stop()

    def release(self) -> None:
        """Stop recording and detach all subscribers.

        Idempotent. A released session cannot be started again.
        """
        with self._control_lock:
            if self._released:
                return
            self._stop()
            self._released = True
            self._events.clear_subscribers()
            logger.debug("Capture session released")

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for the capture worker to exit on its own.

        Returns:
            True if no worker is running afterwards
        """
        worker = self._worker
        if worker is None or worker.ident is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    def _stop(self, notify: bool = True) -> None:
        with self._lock:
            if self._state is not RecorderState.RECORDING:
                return
            cancel_event = self._cancel_event
            worker = self._worker
            if cancel_event is not None:
                cancel_event.set()

        if worker is not None and worker.ident is not None and worker is not threading.current_thread():
            timeout = self._settings.stop_timeout_s
            worker.join(timeout=timeout)
            if worker.is_alive():
                logger.warning(f"Capture worker did not stop within {timeout}s, stopping device")

        with self._lock:
            path = self._output_path
            finalized = self._release_resources(detach_handle=self._worker_blocked(worker))
            self._worker = None
            if finalized:
                self._state = RecorderState.IDLE
                event = RecorderEvent(EventKind.STOPPED, self._state, "Recording stopped", path)
            else:
                self._state = RecorderState.ERROR
                event = RecorderEvent(
                    EventKind.ERROR, self._state, f"Failed to finalize WAV file: {path}", path
                )

        logger.info(f"Recording stopped ({self._last_total_bytes} bytes)")
        if notify:
            self._events.publish(event)

    def _worker_blocked(self, worker: threading.Thread | None) -> bool:
        """Return True if the worker has not yet reached its cleanup step."""
        return worker is not None and worker.is_alive() and not self._worker_exited

    def _run_worker(self, loop: CaptureLoop, cancel_event: threading.Event) -> None:
        try:
            result = loop.run()
        except Exception as e:
            logger.exception("Unexpected failure in capture loop")
            error = InternalError(f"Unexpected capture failure: {e}")
            result = LoopResult(LoopExit.FAILED, loop.total_bytes, error)
        self._finish_worker(loop, result, cancel_event)

    def _finish_worker(self, loop: CaptureLoop, result: LoopResult, cancel_event: threading.Event) -> None:
        with self._lock:
            if cancel_event is self._cancel_event:
                self._worker_exited = True
            # stop() owns cleanup once it has set the token
            if cancel_event.is_set() or cancel_event is not self._cancel_event:
                if loop.handle in self._detached_handles:
                    self._detached_handles.remove(loop.handle)
                    logger.debug("Releasing audio device after forced stop")
                    self._release_handle(loop.handle)
                return
            cancel_event.set()

            path = self._output_path
            finalized = self._release_resources()
            self._worker = None
            if result.exit is LoopExit.FAILED:
                self._state = RecorderState.ERROR
                message = str(result.error) if result.error else "Recording failed"
                event = RecorderEvent(EventKind.ERROR, self._state, message, path)
            elif not finalized:
                self._state = RecorderState.ERROR
                event = RecorderEvent(
                    EventKind.ERROR, self._state, f"Failed to finalize WAV file: {path}", path
                )
            else:
                self._state = RecorderState.IDLE
                event = RecorderEvent(EventKind.STOPPED, self._state, "Audio stream ended", path)

        logger.info(f"Capture worker finished: {result.exit.name} ({result.total_bytes} bytes)")
        self._events.publish(event)

    def _open_device(
        self,
        config: AudioConfig,
        channel_layout: int,
        encoding: SampleEncoding,
        buffer_bytes: int,
        wave_file: WaveFile,
    ) -> DeviceHandle:
        try:
            handle = self._device.open(
                config.audio_source,
                config.sample_rate,
                channel_layout,
                config.channel_count,
                encoding,
                buffer_bytes,
                device_name=config.input_device,
            )
        except Exception as e:
            wave_file.close()
            raise self._start_failed(DeviceInitError(f"Audio device creation failed: {e}")) from e

        if not handle.initialized:
            self._release_handle(handle)
            wave_file.close()
            raise self._start_failed(DeviceInitError("Audio device initialization failed"))

        logger.info(f"Audio device initialized - {config.description}, buffer: {buffer_bytes} bytes")
        return handle

    def _release_resources(self, detach_handle: bool = False) -> bool:
        """Release device and file; return False if the WAV header could not be finalized.

        With detach_handle the device is only stopped; the worker still
        blocked in a read releases it once it exits.
        """
        handle, wave_file, loop = self._handle, self._wave_file, self._loop
        self._handle = None
        self._wave_file = None
        self._loop = None

        if loop is not None:
            self._last_total_bytes = loop.total_bytes
        if handle is not None:
            if detach_handle:
                self._stop_handle(handle)
                self._detached_handles.append(handle)
            else:
                self._release_handle(handle)
        if wave_file is not None:
            return wave_file.close()
        return True

    @staticmethod
    def _stop_handle(handle: DeviceHandle) -> None:
        try:
            handle.stop()
        except Exception as e:
            logger.error(f"Error stopping audio device: {e}")

    @classmethod
    def _release_handle(cls, handle: DeviceHandle) -> None:
        cls._stop_handle(handle)
        try:
            handle.release()
        except Exception as e:
            logger.error(f"Error releasing audio device: {e}")

    def _start_failed(self, error: CaptureError) -> CaptureError:
        """Report a start failure and leave the session idle; returns error for raising."""
        logger.error(str(error))
        if self._state is RecorderState.RECORDING:
            # The running recording ends here; this failure is its terminal event
            self._stop(notify=False)
        with self._lock:
            self._state = RecorderState.IDLE
        path = getattr(error, "path", None)
        self._events.publish(
            RecorderEvent(EventKind.ERROR, RecorderState.IDLE, str(error), Path(path) if path else None)
        )
        return error

    def _resolve_output_path(self, config: AudioConfig) -> Path:
        if config.output_path.strip():
            return Path(config.output_path).expanduser()

        timestamp = self._clock().strftime("%Y%m%d_%H%M%S")
        stem = (
            f"recording_{config.sample_rate}Hz_{config.channel_count}ch_"
            f"{config.bit_depth}bit_{timestamp}"
        )
        directory = Path(self._settings.output_dir).expanduser()
        path = directory / f"{stem}.wav"
        counter = 1
        while path.exists():
            path = directory / f"{stem}_{counter}.wav"
            counter += 1
        return path

    def __enter__(self) -> "CaptureSession":
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.release()


__all__ = ["CaptureSession", "RecorderState"]
