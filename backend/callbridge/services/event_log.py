"""Bitácora append-only de eventos de llamada en archivos JSON Lines.

Cada stream (``call_log``, ``transcripts``) es un archivo abierto en modo
append. Un registro es un objeto JSON terminado en ``\\n`` escrito con una sola
llamada a ``write`` bajo el lock del stream, de modo que escrituras concurrentes
nunca se intercalan. Los errores de escritura se reportan al logger de
diagnóstico ``callbridge.storage`` y nunca llegan al handler del webhook.
"""

from __future__ import annotations

import json
import os
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import IO, Any, Protocol

from callbridge.core.config import Settings
from callbridge.core.logging import get_logger

CALL_LOG = "call_log"
TRANSCRIPT_LOG = "transcripts"

logger = get_logger("callbridge.storage")


def serialize_record(record: Mapping[str, Any]) -> str:
    """Convierte un registro en una línea JSON lista para anexarse."""
    line = json.dumps(dict(record), ensure_ascii=False, allow_nan=False, separators=(",", ":"))
    return line + "\n"


class EventLog(Protocol):
    """Sumidero de sólo escritura para los registros del pipeline."""

    def open(self) -> None: ...

    def append(self, stream: str, record: Mapping[str, Any]) -> None: ...

    def close(self) -> None: ...


class JsonlEventLog:
    """Implementación sobre archivos locales, un archivo por stream."""

    def __init__(self, paths: Mapping[str, str | Path], *, fsync: bool = True) -> None:
        self._paths = {stream: Path(path) for stream, path in paths.items()}
        self._fsync = fsync
        self._locks = {stream: threading.Lock() for stream in self._paths}
        self._handles: dict[str, IO[str]] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> JsonlEventLog:
        return cls(
            {
                CALL_LOG: settings.call_log_path,
                TRANSCRIPT_LOG: settings.transcript_log_path,
            },
            fsync=settings.event_log_fsync,
        )

    @property
    def streams(self) -> tuple[str, ...]:
        return tuple(self._paths)

    def open(self) -> None:
        """Abre todos los streams; los que fallen se reintentan en el primer append."""
        for stream, lock in self._locks.items():
            with lock:
                try:
                    self._handle(stream)
                except OSError as exc:
                    logger.error(
                        "storage.open_failed",
                        extra={"stream": stream, "path": str(self._paths[stream]), "error": str(exc)},
                    )
        logger.info("storage.opened", extra={"paths": {k: str(v) for k, v in self._paths.items()}})

    def append(self, stream: str, record: Mapping[str, Any]) -> None:
        lock = self._locks.get(stream)
        if lock is None:
            logger.error("storage.unknown_stream", extra={"stream": stream})
            return

        try:
            line = serialize_record(record)
        except (TypeError, ValueError) as exc:
            logger.error(
                "storage.serialize_failed",
                extra={"stream": stream, "error": str(exc), "record_repr": repr(record)[:500]},
            )
            return

        with lock:
            try:
                handle = self._handle(stream)
                handle.write(line)
                handle.flush()
                if self._fsync:
                    os.fsync(handle.fileno())
            except OSError as exc:
                logger.error(
                    "storage.append_failed",
                    extra={"stream": stream, "error": str(exc), "record_line": line.rstrip("\n")},
                )

    def close(self) -> None:
        for stream, lock in self._locks.items():
            with lock:
                handle = self._handles.pop(stream, None)
                if handle is None:
                    continue
                try:
                    handle.flush()
                    handle.close()
                except OSError as exc:
                    logger.error("storage.close_failed", extra={"stream": stream, "error": str(exc)})

    def _handle(self, stream: str) -> IO[str]:
        # Se invoca siempre con el lock del stream tomado.
        handle = self._handles.get(stream)
        if handle is None or handle.closed:
            path = self._paths[stream]
            path.parent.mkdir(parents=True, exist_ok=True)
            handle = path.open("a", encoding="utf-8")
            self._handles[stream] = handle
        return handle


class MemoryEventLog:
    """Sustituto en memoria con la misma serialización que `JsonlEventLog`."""

    def __init__(self, streams: tuple[str, ...] = (CALL_LOG, TRANSCRIPT_LOG)) -> None:
        self._lines: dict[str, list[str]] = {stream: [] for stream in streams}
        self._lock = threading.Lock()
        self.is_open = False

    def open(self) -> None:
        self.is_open = True

    def append(self, stream: str, record: Mapping[str, Any]) -> None:
        if stream not in self._lines:
            logger.error("storage.unknown_stream", extra={"stream": stream})
            return
        try:
            line = serialize_record(record)
        except (TypeError, ValueError) as exc:
            logger.error("storage.serialize_failed", extra={"stream": stream, "error": str(exc)})
            return
        with self._lock:
            self._lines[stream].append(line)

    def close(self) -> None:
        self.is_open = False

    def records(self, stream: str) -> list[dict[str, Any]]:
        """Devuelve los registros del stream decodificados, en orden de escritura."""
        with self._lock:
            return [json.loads(line) for line in self._lines.get(stream, [])]
