"""Reconstrucción de transcripciones a partir de la bitácora.

Los webhooks llegan al menos una vez y sin orden garantizado, así que el orden
se resuelve al leer: por cada sesión y pista se agrupan los fragmentos por
`sequenceId`. Una posición con un fragmento final queda cerrada (gana el primer
final ingerido); si no hay final, gana el parcial más reciente.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from callbridge.core.logging import get_logger

from .correlator import coerce_sequence_id

logger = get_logger(__name__)


@dataclass(slots=True)
class Segment:
    sequence_id: int | None
    text: str
    confidence: float | None
    is_final: bool
    ts: str


@dataclass(slots=True)
class Transcript:
    """Transcripción ordenada de una pista dentro de una sesión."""

    call_sid: str | None
    transcription_sid: str | None
    track: str | None
    segments: list[Segment] = field(default_factory=list)

    @property
    def text(self) -> str:
        return " ".join(segment.text for segment in self.segments if segment.text).strip()

    @property
    def complete(self) -> bool:
        return bool(self.segments) and all(segment.is_final for segment in self.segments)


def load_records(path: str | Path) -> Iterator[dict[str, Any]]:
    """Itera los registros JSON de un stream, omitiendo líneas vacías o corruptas."""
    with Path(path).open(encoding="utf-8") as handle:
        for lineno, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except ValueError:
                logger.warning("reconcile.bad_line", extra={"path": str(path), "lineno": lineno})
                continue
            if isinstance(record, dict):
                yield record


def _is_transcription(record: dict[str, Any]) -> bool:
    # El stream genérico etiqueta las copias con `type`; el dedicado no lleva tipo.
    kind = record.get("type")
    return kind in (None, "transcription") and "text" in record


def _segment(record: dict[str, Any]) -> Segment:
    confidence = record.get("confidence")
    return Segment(
        sequence_id=coerce_sequence_id(record.get("sequenceId")),
        text=record.get("text") or "",
        confidence=confidence if isinstance(confidence, (int, float)) else None,
        is_final=record.get("isFinal") is True,
        ts=str(record.get("ts") or ""),
    )


def _pick(current: Segment | None, candidate: Segment) -> Segment:
    if current is None:
        return candidate
    if current.is_final:
        if candidate.is_final and candidate.ts < current.ts:
            return candidate
        return current
    if candidate.is_final:
        return candidate
    return candidate if candidate.ts >= current.ts else current


def reconcile(records: Iterable[dict[str, Any]]) -> list[Transcript]:
    """Agrupa por `(transcriptionSid, track)` y resuelve cada posición de secuencia."""
    positions: dict[tuple[str | None, str | None], dict[int, Segment]] = {}
    unsequenced: dict[tuple[str | None, str | None], list[Segment]] = {}
    call_sids: dict[tuple[str | None, str | None], str | None] = {}

    for record in records:
        if not _is_transcription(record):
            continue
        key = (record.get("transcriptionSid"), record.get("track"))
        call_sids.setdefault(key, record.get("callSid"))
        segment = _segment(record)
        if segment.sequence_id is None:
            unsequenced.setdefault(key, []).append(segment)
            continue
        slots = positions.setdefault(key, {})
        slots[segment.sequence_id] = _pick(slots.get(segment.sequence_id), segment)

    transcripts = []
    for key, call_sid in call_sids.items():
        ordered = [seg for _, seg in sorted(positions.get(key, {}).items())]
        ordered.extend(sorted(unsequenced.get(key, []), key=lambda seg: seg.ts))
        transcripts.append(
            Transcript(call_sid=call_sid, transcription_sid=key[0], track=key[1], segments=ordered)
        )
    return transcripts


def transcript_for_call(records: Iterable[dict[str, Any]], call_sid: str) -> list[Transcript]:
    """Transcripciones reconciliadas de una sola llamada."""
    return reconcile(r for r in records if r.get("callSid") == call_sid)
