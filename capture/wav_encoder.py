"""WAV container encoding for captured audio.

Output is always mono 16-bit signed PCM at the captured sample rate.
Samples are clamped to [-1, 1] and scaled by 32767 with truncation toward
zero, matching how the recorders have always quantized float audio.
"""

from __future__ import annotations

import io
import struct
import wave
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

import numpy as np

from capture.errors import EncodingError

PCM_SCALE = 32767.0
SAMPLE_WIDTH = 2  # int16

Samples = Union[np.ndarray, Sequence[float]]


@dataclass(frozen=True)
class WavInfo:
    sample_rate: int
    channels: int
    bits_per_sample: int
    frames: int

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate if self.sample_rate else 0.0


def quantize(samples: Samples) -> np.ndarray:
    """Clamp then scale float samples to ``int16`` (truncating)."""

    pcm = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    return (pcm * PCM_SCALE).astype("<i2")


def encode_wav(samples: Samples, sample_rate: int) -> bytes:
    """Encode mono float ``samples`` into a complete WAV byte stream.

    Raises:
        EncodingError: the container writer failed (including an invalid
            sample rate).
    """
    return _write_pcm(quantize(samples), sample_rate)


def _write_pcm(pcm: np.ndarray, sample_rate: int) -> bytes:
    output = io.BytesIO()
    try:
        with wave.open(output, "wb") as wf:
            wf.setnchannels(1)
            wf.setsampwidth(SAMPLE_WIDTH)
            wf.setframerate(int(sample_rate))
            wf.writeframes(pcm.tobytes())
    except (wave.Error, struct.error, OSError, ValueError, OverflowError) as exc:
        raise EncodingError(f"Failed to encode WAV audio: {exc}") from exc
    return output.getvalue()


# ---------------------------------------------------------------------------
# Inspection helpers
# ---------------------------------------------------------------------------


def read_wav_info(data: bytes) -> WavInfo:
    """Return the format header of a WAV byte stream."""

    try:
        with wave.open(io.BytesIO(data), "rb") as wf:
            return WavInfo(
                sample_rate=wf.getframerate(),
                channels=wf.getnchannels(),
                bits_per_sample=wf.getsampwidth() * 8,
                frames=wf.getnframes(),
            )
    except (wave.Error, EOFError, struct.error) as exc:
        raise EncodingError(f"Unable to read WAV header: {exc}") from exc


def _read_pcm(data: bytes) -> Tuple[np.ndarray, int]:
    try:
        with wave.open(io.BytesIO(data), "rb") as wf:
            if wf.getsampwidth() != SAMPLE_WIDTH or wf.getnchannels() != 1:
                raise EncodingError("Only mono 16-bit PCM WAV audio can be decoded.")
            rate = wf.getframerate()
            raw = wf.readframes(wf.getnframes())
    except (wave.Error, EOFError, struct.error) as exc:
        raise EncodingError(f"Unable to decode WAV audio: {exc}") from exc
    return np.frombuffer(raw, dtype="<i2"), rate


def decode_wav(data: bytes) -> Tuple[np.ndarray, int]:
    """Decode a mono 16-bit WAV back into float samples and its sample rate."""

    pcm, rate = _read_pcm(data)
    return pcm.astype(np.float32) / PCM_SCALE, rate


# ---------------------------------------------------------------------------
# Segmenting long recordings
# ---------------------------------------------------------------------------


def split_samples(
    samples: Samples,
    sample_rate: int,
    segment_duration: float = 900.0,
    overlap: float = 3.0,
) -> List[np.ndarray]:
    """Cut ``samples`` into segments of ``segment_duration`` seconds.

    Every segment after the first starts ``overlap`` seconds early so that
    words spanning a boundary appear whole in one of the two segments.
    """
    data = np.asarray(samples)
    segment_len = int(segment_duration * sample_rate)
    overlap_len = int(overlap * sample_rate)
    if segment_len <= 0:
        raise ValueError("segment_duration must cover at least one sample")
    if overlap_len < 0:
        raise ValueError("overlap must be >= 0")

    segments: List[np.ndarray] = []
    index = 0
    while index * segment_len < data.size:
        start = index * segment_len
        length = segment_len
        if index > 0:
            start = max(0, start - overlap_len)
            length += overlap_len
        end = min(start + length, data.size)
        segments.append(data[start:end])
        if end >= data.size:
            break
        index += 1
    return segments


def split_wav(data: bytes, segment_duration: float = 900.0, overlap: float = 3.0) -> List[bytes]:
    """Split a mono 16-bit WAV into overlapping WAV segments without requantizing."""

    pcm, rate = _read_pcm(data)
    return [_write_pcm(part, rate) for part in split_samples(pcm, rate, segment_duration, overlap)]


__all__ = [
    "PCM_SCALE",
    "WavInfo",
    "decode_wav",
    "encode_wav",
    "quantize",
    "read_wav_info",
    "split_samples",
    "split_wav",
]
