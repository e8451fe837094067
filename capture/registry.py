"""Process-wide slot holding at most one active capture session."""

from __future__ import annotations

import threading
from typing import Callable, Optional

import structlog

from capture.device import DeviceBackend, default_backend
from capture.errors import AlreadyRecording, NotRecording
from capture.event_writer import EventsWriter
from capture.normalizer import DEFAULT_LOCK_TIMEOUT
from capture.session import CaptureSession
from config.settings import get_settings

logger = structlog.get_logger(__name__)


class SessionRegistry:
    """Hand out and tear down the single recording session.

    Both the check and the create/take happen under one lock, so concurrent
    starts cannot both succeed and concurrent stops cannot both tear down the
    same session.
    """

    def __init__(
        self,
        backend_factory: Callable[[], DeviceBackend] = default_backend,
        *,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        events_writer: Optional[EventsWriter] = None,
    ) -> None:
        self._backend_factory = backend_factory
        self._lock_timeout = lock_timeout
        self._events_writer = events_writer
        self._lock = threading.Lock()
        self._session: Optional[CaptureSession] = None

    def start(self) -> CaptureSession:
        with self._lock:
            if self._session is not None:
                raise AlreadyRecording()
            session = CaptureSession(
                self._backend_factory(),
                lock_timeout=self._lock_timeout,
                events_writer=self._events_writer,
            )
            # A failed start raises here and leaves the slot empty.
            session.start()
            self._session = session
            return session

    def stop(self) -> bytes:
        with self._lock:
            session, self._session = self._session, None
        if session is None:
            raise NotRecording()
        return session.stop()

    @property
    def active(self) -> Optional[CaptureSession]:
        with self._lock:
            return self._session

    def is_recording(self) -> bool:
        return self.active is not None


# ---------- Singleton access ----------

_registry_singleton: Optional[SessionRegistry] = None
_registry_guard = threading.Lock()


def _ensure_replaceable() -> None:
    # Replacing the slot while a session records would orphan a live stream.
    if _registry_singleton is not None and _registry_singleton.is_recording():
        raise AlreadyRecording()


def get_registry(force_refresh: bool = False) -> SessionRegistry:
    """
    Return the process-wide registry, built from settings on first use.

    Raises ``AlreadyRecording`` when ``force_refresh`` would discard a
    registry that is still recording.
    """
    global _registry_singleton
    with _registry_guard:
        if force_refresh:
            _ensure_replaceable()
        if force_refresh or _registry_singleton is None:
            settings = get_settings()
            _registry_singleton = SessionRegistry(lock_timeout=settings.lock_timeout)
        return _registry_singleton


def set_registry(registry: Optional[SessionRegistry]) -> None:
    """Replace the process-wide registry (``None`` resets to lazy creation).

    Raises ``AlreadyRecording`` while the current registry is recording.
    """
    global _registry_singleton
    with _registry_guard:
        if registry is not _registry_singleton:
            _ensure_replaceable()
        _registry_singleton = registry


def start_capture() -> None:
    """Begin recording from the default input device.

    Raises ``AlreadyRecording``, ``DeviceError`` or ``UnsupportedFormat``.
    """
    get_registry().start()


def stop_capture() -> bytes:
    """End the recording and return a complete WAV file.

    Raises ``NotRecording``, ``NoAudioCaptured``, ``WorkerPanicked`` or
    ``EncodingError``.
    """
    return get_registry().stop()


def is_recording() -> bool:
    return get_registry().is_recording()


__all__ = [
    "SessionRegistry",
    "get_registry",
    "is_recording",
    "set_registry",
    "start_capture",
    "stop_capture",
]
