"""Bind a device input stream to the sample normalizer."""

from __future__ import annotations

import structlog

from capture.device import DeviceBackend, DeviceConfig, InputStreamHandle
from capture.errors import CaptureError, DeviceError, UnsupportedFormat
from capture.normalizer import SampleBuffer, normalizer_for

logger = structlog.get_logger(__name__)


def build_input_stream(
    backend: DeviceBackend, config: DeviceConfig, buffer: SampleBuffer
) -> InputStreamHandle:
    """Open an input stream on ``backend`` that feeds ``buffer``.

    The normalizer is chosen once from ``config.sample_format``; the device
    callback then calls it directly for every block.  Errors reported by the
    driver while streaming are logged only: by the time they occur the
    caller has already been told the stream is running.

    Raises:
        UnsupportedFormat: the encoding has no normalizer.
        DeviceError: the backend refused to create the stream.
    """
    try:
        normalize = normalizer_for(config.sample_format)
    except KeyError:
        raise UnsupportedFormat(config.sample_format) from None

    # Floor at 1 so a device reporting zero channels cannot break averaging.
    channels = max(1, int(config.channels))

    def on_data(block) -> None:
        try:
            normalize(block, channels, buffer)
        except Exception:
            # Never let a conversion fault escape into the driver thread.
            logger.exception("Failed to normalize input block", format=config.sample_format)

    def on_error(message: str) -> None:
        logger.error("Input stream error", error=message, device=config.name)

    try:
        return backend.open_input(config, on_data, on_error)
    except CaptureError:
        raise
    except Exception as exc:
        raise DeviceError(f"Unable to create {config.sample_format} input stream: {exc}") from exc


__all__ = ["build_input_stream"]
