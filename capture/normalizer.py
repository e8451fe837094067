"""Convert raw device blocks into a mono ``float32`` waveform.

Each supported device encoding has a ``push_*_samples`` entry point that
scales every channel value to unit range, averages the channels of each
frame and appends the resulting mono samples to a shared
:class:`SampleBuffer`.  The entry points run on the driver's callback thread
so they never raise for benign input (empty blocks, zero channels) and never
block for long on the buffer lock.
"""

from __future__ import annotations

import threading
from typing import Callable, Dict, List

import numpy as np
import structlog

logger = structlog.get_logger(__name__)

INT16_MAX = float(np.iinfo(np.int16).max)
UINT16_MAX = float(np.iinfo(np.uint16).max)

DEFAULT_LOCK_TIMEOUT = 0.05


class SampleBuffer:
    """Append-only store of normalized mono samples shared across threads.

    The driver callback appends while recording; the control thread drains
    once after the capture thread has been joined.
    """

    def __init__(self, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        self._lock = threading.Lock()
        self._chunks: List[np.ndarray] = []
        self._count = 0
        self._lock_timeout = lock_timeout

    def append(self, chunk: np.ndarray) -> bool:
        """Append ``chunk``; returns ``False`` when the lock could not be taken."""

        if not self._lock.acquire(timeout=self._lock_timeout):
            logger.error("Failed to lock sample buffer, dropping block", samples=int(chunk.size))
            return False
        try:
            self._chunks.append(chunk)
            self._count += int(chunk.size)
        finally:
            self._lock.release()
        return True

    def drain(self) -> np.ndarray:
        """Return every sample appended so far and empty the buffer."""

        with self._lock:
            chunks, self._chunks = self._chunks, []
            self._count = 0
        if not chunks:
            return np.empty(0, dtype=np.float32)
        return np.concatenate(chunks).astype(np.float32, copy=False)

    def __len__(self) -> int:
        return self._count


# ---------------------------------------------------------------------------
# Down-mix
# ---------------------------------------------------------------------------


def _downmix(scaled: np.ndarray, channels: int) -> np.ndarray:
    """Average interleaved ``scaled`` values over ``channels`` per frame.

    A trailing partial frame is averaged over the values it actually has.
    """

    full = (scaled.size // channels) * channels
    mono = scaled[:full].reshape(-1, channels).mean(axis=1)
    if full < scaled.size:
        mono = np.append(mono, scaled[full:].mean())
    return mono.astype(np.float32)


def _push(data, channels: int, buffer: SampleBuffer, scale: Callable[[np.ndarray], np.ndarray]) -> None:
    if channels < 1:
        return
    flat = np.asarray(data).reshape(-1)
    if flat.size == 0:
        return
    buffer.append(_downmix(scale(flat), channels))


# ---------------------------------------------------------------------------
# Per-format entry points
# ---------------------------------------------------------------------------


def push_float32_samples(data, channels: int, buffer: SampleBuffer) -> None:
    """Float input is already in unit range."""

    _push(data, channels, buffer, lambda x: x.astype(np.float64))


def push_int16_samples(data, channels: int, buffer: SampleBuffer) -> None:
    _push(data, channels, buffer, lambda x: x.astype(np.float64) / INT16_MAX)


def push_uint16_samples(data, channels: int, buffer: SampleBuffer) -> None:
    """Unsigned input maps [0, 65535] onto [-1, 1]."""

    _push(data, channels, buffer, lambda x: (x.astype(np.float64) / UINT16_MAX) * 2.0 - 1.0)


Normalizer = Callable[[object, int, SampleBuffer], None]

NORMALIZERS: Dict[str, Normalizer] = {
    "float32": push_float32_samples,
    "int16": push_int16_samples,
    "uint16": push_uint16_samples,
}


def normalizer_for(sample_format: str) -> Normalizer:
    """Return the entry point for ``sample_format``.

    Raises ``KeyError`` for encodings without a conversion; the stream builder
    turns that into :class:`capture.errors.UnsupportedFormat`.
    """

    return NORMALIZERS[str(sample_format).lower()]


__all__ = [
    "NORMALIZERS",
    "Normalizer",
    "SampleBuffer",
    "normalizer_for",
    "push_float32_samples",
    "push_int16_samples",
    "push_uint16_samples",
]
