
from __future__ import annotations
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from capture.errors import (
    AlreadyRecording,
    CaptureError,
    DeviceError,
    NoAudioCaptured,
    NotRecording,
    UnsupportedFormat,
)
from capture.registry import get_registry

app = FastAPI(title="Mic Capture API")

# Lifecycle misuse is a conflict, data faults are unprocessable, setup faults
# mean the device is unavailable; anything else is a server error.
STATUS_BY_ERROR = {
    AlreadyRecording: 409,
    NotRecording: 409,
    NoAudioCaptured: 422,
    DeviceError: 503,
    UnsupportedFormat: 503,
}

@app.exception_handler(CaptureError)
async def capture_error_handler(request: Request, exc: CaptureError):
    status = STATUS_BY_ERROR.get(type(exc), 500)
    return JSONResponse(status_code=status, content={"error": exc.kind, "message": exc.message})

@app.post("/capture/start")
def start():
    session = get_registry().start()
    return {"status": "recording", "session": session.session_id, "sample_rate": session.sample_rate}

@app.post("/capture/stop")
def stop():
    wav_bytes = get_registry().stop()
    return Response(content=wav_bytes, media_type="audio/wav")

@app.get("/capture/status")
def status():
    session = get_registry().active
    if session is None:
        return {"recording": False}
    return {
        "recording": True,
        "session": session.session_id,
        "sample_rate": session.sample_rate,
        "captured_samples": session.captured_samples,
    }
