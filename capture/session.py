"""One microphone recording, from start to stop.

A :class:`CaptureSession` owns a dedicated capture thread.  The thread
opens the default input device, builds and starts the stream, reports the
outcome back through a one-shot handshake queue and then parks on a stop
event until the control thread asks it to finish.  Driver stream handles are
not safe to hand between threads, so the stream is created, driven and
closed entirely on the capture thread.

Example usage::

    session = CaptureSession(SoundDeviceBackend())
    session.start()
    ...  # speak
    wav_bytes = session.stop()

State machine::

    IDLE -> STARTING -> RECORDING -> STOPPING -> IDLE
               |
               +-> FAILED
"""

from __future__ import annotations

import queue
import threading
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

import structlog

from capture.device import DeviceBackend, DeviceConfig, InputStreamHandle
from capture.errors import (
    AlreadyRecording,
    CaptureError,
    DeviceError,
    NoAudioCaptured,
    NotRecording,
    WorkerPanicked,
)
from capture.event_writer import EventsWriter
from capture.normalizer import DEFAULT_LOCK_TIMEOUT, SampleBuffer
from capture.stream_builder import build_input_stream
from capture.wav_encoder import encode_wav
from core.events import Event, event_dump, new_ulid

logger = structlog.get_logger(__name__)

Handshake = Union[DeviceConfig, CaptureError]


class SessionState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RECORDING = "recording"
    STOPPING = "stopping"
    FAILED = "failed"


class CaptureSession:
    """Record mono audio from the default input device.

    Parameters
    ----------
    backend:
        Device backend used to negotiate and open the input stream.
    lock_timeout:
        Seconds the driver callback may wait for the sample buffer lock
        before dropping a block.
    events_writer:
        Optional sink receiving ``started`` / ``stopped`` / ``failed``
        lifecycle events as plain dicts.
    """

    def __init__(
        self,
        backend: DeviceBackend,
        *,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        events_writer: Optional[EventsWriter] = None,
    ) -> None:
        self.session_id = new_ulid()
        self.state = SessionState.IDLE
        self.device: Optional[DeviceConfig] = None
        self.sample_rate: Optional[int] = None

        self._backend = backend
        self._events_writer = events_writer
        self._buffer = SampleBuffer(lock_timeout=lock_timeout)
        self._stop_signal = threading.Event()
        self._handshake: "queue.Queue[Handshake]" = queue.Queue(maxsize=1)
        self._thread: Optional[threading.Thread] = None
        self._worker_error: Optional[BaseException] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Start capturing; returns once the device is streaming.

        Raises:
            AlreadyRecording: this session has already been started.
            DeviceError: the device could not be opened or started.
            UnsupportedFormat: the device's sample encoding is not handled.
        """
        if self._thread is not None or self.state is not SessionState.IDLE:
            raise AlreadyRecording()

        self.state = SessionState.STARTING
        self._thread = threading.Thread(
            target=self._run, name=f"capture-{self.session_id}", daemon=True
        )
        self._thread.start()

        outcome = self._handshake.get()
        if isinstance(outcome, CaptureError):
            self._thread.join()
            self.state = SessionState.FAILED
            logger.error("Recording failed to start", session=self.session_id, error=outcome.message)
            self._emit("failed", error=outcome.kind, message=outcome.message)
            raise outcome

        self.device = outcome
        self.sample_rate = outcome.sample_rate
        self.state = SessionState.RECORDING
        logger.info(
            "Recording started",
            session=self.session_id,
            device=outcome.name,
            sample_rate=outcome.sample_rate,
            channels=outcome.channels,
            format=outcome.sample_format,
        )
        self._emit("started")

    def stop(self) -> bytes:
        """Stop capturing and return the recording as WAV bytes.

        Raises:
            NotRecording: the session is not recording.
            WorkerPanicked: the capture thread terminated abnormally.
            NoAudioCaptured: the device produced no frames.
            EncodingError: the WAV container could not be written.
        """
        if self.state is not SessionState.RECORDING or self._thread is None:
            raise NotRecording()

        self.state = SessionState.STOPPING
        self._stop_signal.set()
        # The stream is closed before join returns, so no callback can still
        # be appending when the buffer is drained below.
        self._thread.join()
        self.state = SessionState.IDLE

        if self._worker_error is not None:
            raise WorkerPanicked(f"Native recorder thread panicked: {self._worker_error}")

        samples = self._buffer.drain()
        if samples.size == 0:
            raise NoAudioCaptured()

        sample_rate = self.device.sample_rate if self.device else 0
        duration = samples.size / sample_rate if sample_rate else 0.0
        logger.info(
            "Recording stopped",
            session=self.session_id,
            samples=int(samples.size),
            duration_s=round(duration, 3),
        )
        self._emit("stopped", samples=int(samples.size), duration_s=duration)
        return encode_wav(samples, sample_rate)

    @property
    def captured_samples(self) -> int:
        """Number of mono samples captured so far."""

        return len(self._buffer)

    # ------------------------------------------------------------------
    # Capture thread
    # ------------------------------------------------------------------
    def _run(self) -> None:
        try:
            stream, config = self._open_stream()
        except CaptureError as exc:
            self._handshake.put(exc)
            return
        except BaseException as exc:
            # start() is parked on the handshake, so every setup fault must answer it.
            logger.exception("Capture thread failed during setup", session=self.session_id)
            self._handshake.put(DeviceError(f"Native recorder thread failed to initialize: {exc}"))
            return

        self._handshake.put(config)

        try:
            self._stop_signal.wait()
            stream.close()
        except BaseException as exc:
            self._worker_error = exc
            logger.exception("Capture thread terminated abnormally", session=self.session_id)

    def _open_stream(self) -> Tuple[InputStreamHandle, DeviceConfig]:
        config = self._backend.default_input()
        stream = build_input_stream(self._backend, config, self._buffer)
        try:
            stream.start()
        except BaseException as exc:
            self._discard(stream)
            if isinstance(exc, CaptureError):
                raise
            raise DeviceError(f"Failed to start input stream: {exc}") from exc
        return stream, config

    def _discard(self, stream: InputStreamHandle) -> None:
        try:
            stream.close()
        except Exception:
            logger.warning("Failed to close input stream after setup error", exc_info=True)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def _emit(self, state: str, **extra: Any) -> None:
        if self._events_writer is None:
            return
        device = self.device
        audio: Dict[str, Any] = {
            "state": state,
            "samplerate": self.sample_rate,
            "device": device.name if device else None,
            "channels": device.channels if device else None,
            "format": device.sample_format if device else None,
        }
        audio.update(extra)
        event = Event(kind="meta", session=self.session_id, data={"audio": audio})
        self._events_writer.write(event_dump(event))


__all__ = ["CaptureSession", "SessionState"]
