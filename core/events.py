"""Core event models shared across the project."""

from __future__ import annotations

from typing import Any, Dict, Literal

import time

import ulid
from pydantic import BaseModel, Field


def now_ts_ms() -> int:
    """Return the current timestamp in milliseconds."""

    return int(time.time() * 1000)


def new_ulid() -> str:
    """Generate a ULID based identifier for events and sessions."""

    return str(ulid.new())


class Event(BaseModel):
    """Lifecycle event emitted by capture sessions."""

    id: str = Field(default_factory=new_ulid)
    ts_ms: int = Field(default_factory=now_ts_ms)
    kind: Literal["meta", "audio", "status"]
    session: str
    data: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "allow"}


def event_dump(event: Event) -> Dict[str, Any]:
    """Return a JSON serialisable ``dict`` for ``event``."""

    return event.model_dump(mode="json")


__all__ = ["Event", "event_dump", "new_ulid", "now_ts_ms"]
