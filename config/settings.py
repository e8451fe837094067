# config/settings.py
"""
Centralized settings for the microphone capture engine.

Design goals
- Single source of truth for capture tuning and logging locations
- Honors these env vars:
    MIC_CAPTURE_SAMPLE_FORMAT, MIC_CAPTURE_BLOCKSIZE, MIC_CAPTURE_LOCK_TIMEOUT,
    MIC_CAPTURE_LOG_LEVEL, MIC_CAPTURE_JSON_LOGS, MIC_CAPTURE_LOGS_ROOT,
    MIC_CAPTURE_LOG_MAX_BYTES, MIC_CAPTURE_LOG_BACKUPS
- Sensible OS defaults when env vars are not provided
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "MIC_CAPTURE_"


# ---------- OS defaults (used only if env vars not set) ----------

def _platform_default_base() -> Path:
    """
    Returns an OS-specific base directory for user data, following conventions:
    - Windows: %LOCALAPPDATA%/MicCapture
    - macOS:   ~/Library/Application Support/MicCapture
    - Linux:   ~/.local/share/mic-capture
    """
    if sys.platform.startswith("win"):
        base = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA") or str(Path.home() / "AppData" / "Local")
        return Path(base) / "MicCapture"
    elif sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "MicCapture"
    else:
        # Linux / other POSIX
        return Path(os.getenv("XDG_DATA_HOME", Path.home() / ".local" / "share")) / "mic-capture"


# ---------- Environment overrides ----------

def _env(name: str, default: str) -> str:
    return os.getenv(ENV_PREFIX + name, default)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_or_default_logs_root() -> Path:
    return Path(_env("LOGS_ROOT", str(_platform_default_base() / "logs")))


# ---------- Settings model ----------

class CaptureSettings(BaseModel):
    """Tuning knobs for capture plus logging destinations."""

    sample_format: str = Field(default_factory=lambda: _env("SAMPLE_FORMAT", "float32"))
    # 0 lets the driver pick its preferred block size.
    blocksize: int = Field(default_factory=lambda: int(_env("BLOCKSIZE", "0")))
    lock_timeout: float = Field(default_factory=lambda: float(_env("LOCK_TIMEOUT", "0.05")))

    log_level: str = Field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))
    json_logs: bool = Field(default_factory=lambda: _env_bool("JSON_LOGS", False))
    logs_root: Optional[Path] = Field(default_factory=_env_or_default_logs_root)
    log_max_bytes: int = Field(default_factory=lambda: int(_env("LOG_MAX_BYTES", "2000000")))
    log_backups: int = Field(default_factory=lambda: int(_env("LOG_BACKUPS", "5")))

    @field_validator("sample_format", "log_level")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @field_validator("blocksize", "log_max_bytes", "log_backups")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must be >= 0")
        return value

    @field_validator("lock_timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("lock_timeout must be > 0")
        return value

    @property
    def log_file(self) -> Optional[Path]:
        if self.logs_root is None:
            return None
        return self.logs_root / "mic-capture.log"


# ---------- Singleton access ----------

_settings_singleton: Optional[CaptureSettings] = None

def get_settings(force_refresh: bool = False) -> CaptureSettings:
    """
    Return a cached CaptureSettings instance built from the environment.
    """
    global _settings_singleton
    if force_refresh or _settings_singleton is None:
        _settings_singleton = CaptureSettings()
    return _settings_singleton


__all__ = ["CaptureSettings", "ENV_PREFIX", "get_settings"]
