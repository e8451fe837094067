"""Default input device access through :mod:`sounddevice`.

A backend negotiates the configuration of the default input device and
opens input streams for it.  :class:`SoundDeviceBackend` is the production
implementation; anything exposing the same two methods (``default_input``
and ``open_input``) can be injected instead, which is how tests and
alternative drivers plug in.

``sounddevice`` is imported lazily: importing it loads PortAudio, which is
missing on some platforms, and that condition is reported as a
:class:`~capture.errors.DeviceError` when a recording is attempted rather
than at import time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

from capture.errors import DeviceError
from config.settings import get_settings

DataCallback = Callable[[Any], None]
ErrorCallback = Callable[[str], None]


@dataclass(frozen=True)
class DeviceConfig:
    """Negotiated configuration of an input device."""

    name: str
    sample_rate: int
    channels: int
    sample_format: str


class InputStreamHandle(Protocol):
    def start(self) -> None: ...

    def close(self) -> None: ...


class DeviceBackend(Protocol):
    def default_input(self) -> DeviceConfig: ...

    def open_input(
        self, config: DeviceConfig, on_data: DataCallback, on_error: ErrorCallback
    ) -> InputStreamHandle: ...


def _sounddevice():
    try:
        import sounddevice as sd
    except OSError as exc:  # PortAudio library not found
        raise DeviceError(f"Native recording is not available on this platform: {exc}") from exc
    return sd


class SoundDeviceBackend:
    """Capture from the system default input device via PortAudio.

    Parameters
    ----------
    sample_format:
        Sample dtype requested from the driver (``"float32"``, ``"int16"``...).
    blocksize:
        Buffer size (in frames) requested from ``sounddevice``; ``0`` lets
        the host API choose.
    """

    def __init__(self, sample_format: str = "float32", blocksize: int = 0) -> None:
        self._sample_format = sample_format
        self._blocksize = blocksize

    def default_input(self) -> DeviceConfig:
        sd = _sounddevice()
        try:
            info = sd.query_devices(kind="input")
        except (sd.PortAudioError, ValueError) as exc:
            raise DeviceError(f"No audio input device found. ({exc})") from exc

        max_input = int(info.get("max_input_channels", 0))
        if max_input <= 0:
            raise DeviceError("No audio input device found.")

        return DeviceConfig(
            name=str(info.get("name", "default")),
            sample_rate=int(round(float(info.get("default_samplerate", 0)))),
            channels=max_input,
            sample_format=self._sample_format,
        )

    def open_input(
        self, config: DeviceConfig, on_data: DataCallback, on_error: ErrorCallback
    ) -> InputStreamHandle:
        sd = _sounddevice()

        def _callback(indata, frames, time_info, status) -> None:
            if status:
                on_error(str(status))
            on_data(indata)

        try:
            return sd.InputStream(
                samplerate=config.sample_rate,
                blocksize=self._blocksize,
                dtype=config.sample_format,
                channels=config.channels,
                callback=_callback,
            )
        except (sd.PortAudioError, ValueError, TypeError) as exc:
            raise DeviceError(f"Unable to create {config.sample_format} input stream: {exc}") from exc

    # Convenience for callers / CLI ------------------------------------
    @staticmethod
    def list_input_devices() -> List[Dict[str, Any]]:
        """Return the input-capable devices reported by ``sounddevice``."""

        sd = _sounddevice()
        devices = []
        for index, dev in enumerate(sd.query_devices()):
            if int(dev.get("max_input_channels", 0)) > 0:
                devices.append(
                    {
                        "index": index,
                        "name": dev.get("name"),
                        "channels": int(dev.get("max_input_channels", 0)),
                        "default_samplerate": dev.get("default_samplerate"),
                    }
                )
        return devices


def default_backend(sample_format: Optional[str] = None, blocksize: Optional[int] = None) -> SoundDeviceBackend:
    """Build the production backend from settings, allowing overrides."""

    settings = get_settings()
    return SoundDeviceBackend(
        sample_format=sample_format or settings.sample_format,
        blocksize=settings.blocksize if blocksize is None else blocksize,
    )


__all__ = [
    "DataCallback",
    "DeviceBackend",
    "DeviceConfig",
    "ErrorCallback",
    "InputStreamHandle",
    "SoundDeviceBackend",
    "default_backend",
]
