import logging
import logging.handlers
import os
from typing import Any, Callable, List, Optional

import numpy as np
import pytest
import structlog

from capture.device import DeviceConfig
from config import settings as settings_mod


class FakeStream:
    """Stands in for a driver stream; ``feed`` plays the driver callback."""

    def __init__(self, on_data: Callable, on_error: Callable, blocks: List[Any],
                 fail_start: Optional[BaseException] = None, fail_close: Optional[BaseException] = None):
        self.on_data = on_data
        self.on_error = on_error
        self.blocks = blocks
        self.fail_start = fail_start
        self.fail_close = fail_close
        self.started = False
        self.closed = False

    def start(self) -> None:
        if self.fail_start is not None:
            raise self.fail_start
        self.started = True
        for block in self.blocks:
            self.on_data(block)

    def close(self) -> None:
        self.closed = True
        if self.fail_close is not None:
            raise self.fail_close

    def feed(self, block) -> None:
        self.on_data(block)


class FakeBackend:
    def __init__(self, config: Optional[DeviceConfig] = None, blocks: Optional[List[Any]] = None,
                 default_error: Optional[BaseException] = None, open_error: Optional[Exception] = None,
                 fail_start: Optional[BaseException] = None, fail_close: Optional[BaseException] = None):
        self.config = config or DeviceConfig(name="Fake Mic", sample_rate=16000, channels=1, sample_format="float32")
        self.blocks = blocks or []
        self.default_error = default_error
        self.open_error = open_error
        self.fail_start = fail_start
        self.fail_close = fail_close
        self.streams: List[FakeStream] = []

    def default_input(self) -> DeviceConfig:
        if self.default_error is not None:
            raise self.default_error
        return self.config

    def open_input(self, config, on_data, on_error) -> FakeStream:
        if self.open_error is not None:
            raise self.open_error
        stream = FakeStream(on_data, on_error, list(self.blocks), self.fail_start, self.fail_close)
        self.streams.append(stream)
        return stream

    @property
    def stream(self) -> FakeStream:
        return self.streams[-1]


@pytest.fixture
def make_backend():
    return FakeBackend


@pytest.fixture
def half_scale_blocks():
    """16 mono float frames of 0.5."""
    return [np.full((16, 1), 0.5, dtype=np.float32)]


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    """Keep settings and logging predictable across tests."""
    for key in list(os.environ):
        if key.startswith(settings_mod.ENV_PREFIX):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("MIC_CAPTURE_LOGS_ROOT", str(tmp_path / "logs"))
    settings_mod.get_settings(force_refresh=True)
    root = logging.getLogger()
    level = root.level
    yield
    structlog.reset_defaults()
    # drop the console/file handlers installed by configure_logging
    for handler in root.handlers[:]:
        if type(handler) is logging.StreamHandler or isinstance(handler, logging.handlers.RotatingFileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    settings_mod.get_settings(force_refresh=True)
