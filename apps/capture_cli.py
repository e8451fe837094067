from __future__ import annotations

import signal
import threading
from pathlib import Path
from typing import Optional

import typer

from capture.device import SoundDeviceBackend, default_backend
from capture.errors import CaptureError
from capture.event_writer import JsonlWriter
from capture.registry import SessionRegistry
from capture.wav_encoder import read_wav_info, split_wav
from config.log_setup import configure_logging
from config.settings import get_settings


app = typer.Typer(add_completion=False, no_args_is_help=True)


def _fail(exc: CaptureError) -> None:
    typer.echo(f"[mic-capture] {exc.kind}: {exc.message}", err=True)
    raise typer.Exit(code=1)


def _wait_for_enter(stop_event: threading.Event) -> None:
    try:
        input()
    except EOFError:
        pass
    stop_event.set()


@app.command()
def record(
    output: Path = typer.Option(..., "--output", "-o", help="Where to write the WAV file"),
    duration: Optional[float] = typer.Option(
        None, "--duration", "-d", help="Stop after this many seconds instead of waiting for Enter"
    ),
    sample_format: Optional[str] = typer.Option(
        None, "--format", help="Sample format requested from the device (float32, int16)"
    ),
    events: Optional[Path] = typer.Option(None, "--events", help="Append lifecycle events to this JSONL file"),
    segment: Optional[float] = typer.Option(
        None, "--segment", min=0.0, help="Also split the recording into segments of this many seconds"
    ),
    overlap: float = typer.Option(3.0, "--overlap", min=0.0, help="Seconds each segment after the first starts early"),
) -> None:
    """Record from the default microphone and write the result as WAV."""

    settings = get_settings()
    configure_logging(settings)

    writer = JsonlWriter(events) if events is not None else None
    registry = SessionRegistry(
        lambda: default_backend(sample_format=sample_format),
        lock_timeout=settings.lock_timeout,
        events_writer=writer,
    )

    # Graceful shutdown
    stop_event = threading.Event()

    def _stop(*_object: object) -> None:
        stop_event.set()

    previous = {sig: signal.signal(sig, _stop) for sig in (signal.SIGINT, signal.SIGTERM)}

    try:
        try:
            registry.start()
        except CaptureError as exc:
            _fail(exc)

        if duration is not None:
            typer.echo(f"[mic-capture] Recording for {duration:g}s → {output}")
            stop_event.wait(duration)
        else:
            typer.echo(f"[mic-capture] Recording → {output}")
            typer.echo("Press Enter (or Ctrl+C) to stop.")
            threading.Thread(target=_wait_for_enter, args=(stop_event,), daemon=True).start()
            while not stop_event.is_set():
                stop_event.wait(0.25)

        try:
            wav_bytes = registry.stop()
        except CaptureError as exc:
            _fail(exc)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        if writer is not None:
            writer.close()

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(wav_bytes)
    info = read_wav_info(wav_bytes)
    typer.echo(
        f"[mic-capture] Saved {info.duration:.2f}s at {info.sample_rate} Hz ({len(wav_bytes)} bytes)"
    )

    if segment:
        try:
            parts = split_wav(wav_bytes, segment_duration=segment, overlap=overlap)
        except ValueError as exc:
            typer.echo(f"[mic-capture] Cannot split recording: {exc}", err=True)
            raise typer.Exit(code=1)
        for idx, part in enumerate(parts):
            part_path = output.with_name(f"{output.stem}_{idx:03d}{output.suffix}")
            part_path.write_bytes(part)
        typer.echo(f"[mic-capture] Wrote {len(parts)} segment(s)")


@app.command()
def devices() -> None:
    """List input-capable audio devices."""

    try:
        found = SoundDeviceBackend.list_input_devices()
    except CaptureError as exc:
        _fail(exc)
    if not found:
        typer.echo("[mic-capture] no input devices found", err=True)
        raise typer.Exit(code=1)
    for dev in found:
        typer.echo(f"{dev['index']:>3}  {dev['name']}  ({dev['channels']} ch, {dev['default_samplerate']} Hz)")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Interface to bind"),
    port: int = typer.Option(8765, help="Port to listen on"),
) -> None:
    """Expose start/stop over HTTP (see apps.ui_api.main)."""

    import uvicorn

    configure_logging(get_settings())
    uvicorn.run("apps.ui_api.main:app", host=host, port=port, log_config=None)


if __name__ == "__main__":
    app()
