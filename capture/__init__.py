"""Microphone capture engine: record the default input device into WAV bytes."""

from capture.errors import (
    AlreadyRecording,
    CaptureError,
    DeviceError,
    EncodingError,
    NoAudioCaptured,
    NotRecording,
    UnsupportedFormat,
    WorkerPanicked,
)
from capture.registry import SessionRegistry, get_registry, is_recording, set_registry, start_capture, stop_capture

__all__ = [
    "AlreadyRecording",
    "CaptureError",
    "DeviceError",
    "EncodingError",
    "NoAudioCaptured",
    "NotRecording",
    "SessionRegistry",
    "UnsupportedFormat",
    "WorkerPanicked",
    "get_registry",
    "is_recording",
    "set_registry",
    "start_capture",
    "stop_capture",
]
