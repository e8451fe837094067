"""Exception taxonomy for the capture engine.

Every error carries a short machine readable ``kind`` so that command
surfaces (CLI, HTTP) can map failures without matching on class names, and a
human readable message suitable for showing to the user.
"""

from __future__ import annotations


class CaptureError(Exception):
    """Base class for all capture failures."""

    kind: str = "capture_error"
    default_message: str = "Audio capture failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Lifecycle misuse
# ---------------------------------------------------------------------------


class AlreadyRecording(CaptureError):
    kind = "already_recording"
    default_message = "A native recording session is already running."


class NotRecording(CaptureError):
    kind = "not_recording"
    default_message = "No native recording session is running."


# ---------------------------------------------------------------------------
# Setup faults
# ---------------------------------------------------------------------------


class DeviceError(CaptureError):
    """The input device could not be opened, configured or started."""

    kind = "device_error"
    default_message = "The audio input device could not be used."


class UnsupportedFormat(CaptureError):
    kind = "unsupported_format"

    def __init__(self, format_name: str) -> None:
        self.format_name = str(format_name)
        super().__init__(f"Unsupported audio input format: {self.format_name}")


# ---------------------------------------------------------------------------
# Runtime / data faults (reported from stop)
# ---------------------------------------------------------------------------


class NoAudioCaptured(CaptureError):
    kind = "no_audio_captured"
    default_message = "No audio was captured. Please try again."


class WorkerPanicked(CaptureError):
    kind = "worker_panicked"
    default_message = "Native recorder thread panicked."


class EncodingError(CaptureError):
    kind = "encoding_error"
    default_message = "Failed to encode WAV audio."


__all__ = [
    "AlreadyRecording",
    "CaptureError",
    "DeviceError",
    "EncodingError",
    "NoAudioCaptured",
    "NotRecording",
    "UnsupportedFormat",
    "WorkerPanicked",
]
