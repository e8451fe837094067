"""Append capture lifecycle events to a JSON Lines file.

The CLI's ``--events`` option hands a :class:`JsonlWriter` to the registry;
sessions write one ``started`` / ``stopped`` / ``failed`` record per line.
Any object with a ``write(dict)`` method satisfies :class:`EventsWriter`.
"""

from __future__ import annotations
import json
from pathlib import Path
from typing import IO, Any, Dict, Protocol
from threading import Lock


class EventsWriter(Protocol):
    def write(self, obj: Dict[str, Any]) -> None: ...


class JsonlWriter:
    """Serialize session events, one JSON object per line.

    Writes are serialized with a lock, so sessions on any thread may share a
    writer.  Events arriving after :meth:`close` are dropped.
    """
    def __init__(self, out_path: Path, flush_every: int = 1):
        ensure_dir(out_path.parent)
        self._f: IO[str] = out_path.open("a", encoding="utf-8")
        self._n = 0
        self._flush_every = max(1, flush_every)
        self._lock = Lock()
        self._closed = False

    def write(self, obj: Dict[str, Any]) -> None:
        line = json.dumps(obj, ensure_ascii=False)
        with self._lock:
            if self._closed:
                return
            self._f.write(line + "\n")
            self._n += 1
            if self._n % self._flush_every == 0:
                self._f.flush()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._f.flush()
            finally:
                self._f.close()


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)
