"""Sella los eventos normalizados con contexto de ingesta.

No se guarda estado por llamada ni se reordena nada en el camino del webhook:
el orden real de una transcripción lo reconstruye `reconcile` leyendo la
bitácora. Lo único compartido es el reloj de ingesta.
"""

from __future__ import annotations

import re
import threading
from datetime import datetime, timedelta, timezone
from typing import Any

from .normalizer import StatusCallback, TranscriptionContent, TranscriptionMeta
from .schemas import CallEvent, CallEventType, TranscriptionEvent, TranscriptionMetaEvent

_TICK = timedelta(microseconds=1)
_SEQUENCE_RE = re.compile(r"-?[0-9]+")


class IngestClock:
    """Reloj UTC estrictamente creciente dentro del proceso."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last: datetime | None = None

    def now(self) -> str:
        current = datetime.now(timezone.utc)
        with self._lock:
            if self._last is not None and current <= self._last:
                current = self._last + _TICK
            self._last = current
        return current.isoformat(timespec="microseconds")


default_clock = IngestClock()


def coerce_sequence_id(value: object) -> int | None:
    """Convierte `SequenceId` en un entero comparable; `None` si no es numérico."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        candidate = value.strip()
        if _SEQUENCE_RE.fullmatch(candidate):
            try:
                return int(candidate)
            except ValueError:
                # Cadenas que exceden el límite de dígitos del intérprete.
                return None
    return None


def coerce_flag(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return value == "true"


def correlate(
    event: TranscriptionContent | TranscriptionMeta | StatusCallback,
    *,
    clock: IngestClock = default_clock,
) -> TranscriptionEvent | TranscriptionMetaEvent | CallEvent:
    """Devuelve el registro persistible correspondiente a un evento normalizado."""
    ts = clock.now()
    if isinstance(event, TranscriptionContent):
        return TranscriptionEvent(
            ts=ts,
            call_sid=event.call_sid,
            transcription_sid=event.transcription_sid,
            track=event.track,
            sequence_id=coerce_sequence_id(event.sequence_id),
            text=event.text,
            confidence=event.confidence,
            is_final=coerce_flag(event.is_final),
            provider_timestamp=event.provider_timestamp,
        )
    if isinstance(event, TranscriptionMeta):
        return TranscriptionMetaEvent(
            ts=ts,
            event_kind=event.event_kind,
            call_sid=event.call_sid,
            transcription_sid=event.transcription_sid,
            payload=event.payload,
        )
    if isinstance(event, StatusCallback):
        return CallEvent(ts=ts, event_type="status", call_sid=event.call_sid, payload=event.payload)
    raise TypeError(f"Unsupported event type: {type(event).__name__}")


def call_event(
    event_type: CallEventType,
    *,
    call_sid: str | None = None,
    payload: dict[str, Any] | None = None,
    clock: IngestClock = default_clock,
) -> CallEvent:
    """Registro de una acción iniciada por este servicio (dial, hangup)."""
    return CallEvent(ts=clock.now(), event_type=event_type, call_sid=call_sid, payload=payload or {})
