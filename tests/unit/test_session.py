# tests/unit/test_session.py
import threading

import numpy as np
import pytest

from capture.device import DeviceConfig
from capture.errors import (
    AlreadyRecording,
    DeviceError,
    NoAudioCaptured,
    NotRecording,
    UnsupportedFormat,
    WorkerPanicked,
)
from capture.session import CaptureSession, SessionState
from capture.wav_encoder import decode_wav, read_wav_info


class _ListWriter:
    def __init__(self):
        self.items = []

    def write(self, obj):
        self.items.append(obj)


def test_start_then_stop_returns_wav_of_captured_audio(make_backend, half_scale_blocks):
    session = CaptureSession(make_backend(blocks=half_scale_blocks))

    session.start()
    assert session.state is SessionState.RECORDING
    assert session.sample_rate == 16000
    data = session.stop()

    info = read_wav_info(data)
    assert (info.sample_rate, info.channels, info.bits_per_sample) == (16000, 1, 16)
    samples, _ = decode_wav(data)
    assert samples.size == 16
    pcm = np.round(samples * 32767).astype(int)
    assert pcm.tolist() == [int(0.5 * 32767)] * 16
    assert session.state is SessionState.IDLE


def test_stream_is_started_and_closed_on_the_capture_thread(make_backend, half_scale_blocks):
    backend = make_backend(blocks=half_scale_blocks)
    owners = {}
    original_open = backend.open_input

    def open_input(config, on_data, on_error):
        owners["open"] = threading.current_thread().name
        stream = original_open(config, on_data, on_error)
        original_close = stream.close

        def close():
            owners["close"] = threading.current_thread().name
            original_close()

        stream.close = close
        return stream

    backend.open_input = open_input
    session = CaptureSession(backend)
    session.start()
    session.stop()

    caller = threading.current_thread().name
    assert owners["open"] == owners["close"] == f"capture-{session.session_id}"
    assert owners["open"] != caller
    assert backend.stream.closed


def test_frames_fed_while_recording_are_captured(make_backend):
    backend = make_backend()
    session = CaptureSession(backend)
    session.start()
    assert session.captured_samples == 0

    backend.stream.feed(np.full((100, 1), 0.1, dtype=np.float32))
    assert session.captured_samples == 100

    samples, _ = decode_wav(session.stop())
    assert samples.size == 100


def test_stop_with_no_frames_is_no_audio_captured(make_backend):
    backend = make_backend()
    session = CaptureSession(backend)
    session.start()

    with pytest.raises(NoAudioCaptured):
        session.stop()
    assert backend.stream.closed


def test_stop_before_start_is_not_recording(make_backend):
    with pytest.raises(NotRecording):
        CaptureSession(make_backend()).stop()


def test_second_stop_is_not_recording(make_backend, half_scale_blocks):
    session = CaptureSession(make_backend(blocks=half_scale_blocks))
    session.start()
    session.stop()

    with pytest.raises(NotRecording):
        session.stop()


def test_session_cannot_be_started_twice(make_backend, half_scale_blocks):
    session = CaptureSession(make_backend(blocks=half_scale_blocks))
    session.start()

    with pytest.raises(AlreadyRecording):
        session.start()
    session.stop()
    with pytest.raises(AlreadyRecording):
        session.start()


def test_unsupported_format_fails_start_and_marks_failed(make_backend):
    config = DeviceConfig(name="Odd Mic", sample_rate=48000, channels=2, sample_format="int32")
    session = CaptureSession(make_backend(config=config))

    with pytest.raises(UnsupportedFormat) as exc_info:
        session.start()

    assert exc_info.value.format_name == "int32"
    assert session.state is SessionState.FAILED
    with pytest.raises(NotRecording):
        session.stop()


def test_missing_device_fails_fast(make_backend):
    session = CaptureSession(make_backend(default_error=DeviceError("No audio input device found.")))

    with pytest.raises(DeviceError, match="No audio input device found"):
        session.start()
    assert session.state is SessionState.FAILED


def test_stream_start_failure_is_device_error_and_stream_is_released(make_backend):
    backend = make_backend(fail_start=RuntimeError("Device busy"))
    session = CaptureSession(backend)

    with pytest.raises(DeviceError, match="Failed to start input stream: Device busy"):
        session.start()
    assert backend.stream.closed


def test_unexpected_setup_exception_is_wrapped_as_device_error(make_backend):
    session = CaptureSession(make_backend(default_error=KeyError("default_samplerate")))

    with pytest.raises(DeviceError, match="failed to initialize"):
        session.start()


class DriverAbort(BaseException):
    pass


def test_base_exception_during_setup_still_fails_start(make_backend):
    session = CaptureSession(make_backend(default_error=DriverAbort("driver aborted")))
    outcome = []

    def attempt():
        try:
            session.start()
        except DeviceError as exc:
            outcome.append(exc)

    caller = threading.Thread(target=attempt)
    caller.start()
    caller.join(2.0)

    assert not caller.is_alive()
    (error,) = outcome
    assert "failed to initialize: driver aborted" in error.message
    assert session.state is SessionState.FAILED


def test_base_exception_from_stream_start_releases_the_stream(make_backend):
    backend = make_backend(fail_start=DriverAbort("stream aborted"))
    session = CaptureSession(backend)

    with pytest.raises(DeviceError, match="Failed to start input stream: stream aborted"):
        session.start()
    assert backend.stream.closed


def test_worker_failure_is_reported_as_worker_panicked_at_stop(make_backend, half_scale_blocks):
    backend = make_backend(blocks=half_scale_blocks, fail_close=RuntimeError("driver invariant violated"))
    session = CaptureSession(backend)
    session.start()

    with pytest.raises(WorkerPanicked, match="driver invariant violated"):
        session.stop()
    assert session.state is SessionState.IDLE


def test_lifecycle_events_are_emitted(make_backend, half_scale_blocks):
    writer = _ListWriter()
    session = CaptureSession(make_backend(blocks=half_scale_blocks), events_writer=writer)
    session.start()
    session.stop()

    states = [item["data"]["audio"]["state"] for item in writer.items]
    assert states == ["started", "stopped"]
    started, stopped = writer.items
    assert started["kind"] == "meta"
    assert started["session"] == session.session_id
    assert started["data"]["audio"]["samplerate"] == 16000
    assert started["data"]["audio"]["device"] == "Fake Mic"
    assert stopped["data"]["audio"]["samples"] == 16
    assert stopped["data"]["audio"]["duration_s"] == pytest.approx(16 / 16000)


def test_failed_start_emits_failed_event(make_backend):
    writer = _ListWriter()
    config = DeviceConfig(name="Odd Mic", sample_rate=48000, channels=1, sample_format="float64")
    session = CaptureSession(make_backend(config=config), events_writer=writer)

    with pytest.raises(UnsupportedFormat):
        session.start()

    (event,) = writer.items
    assert event["data"]["audio"]["state"] == "failed"
    assert event["data"]["audio"]["error"] == "unsupported_format"
