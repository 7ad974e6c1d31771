"""Normalización de los cuerpos de webhook de Twilio.

Twilio entrega los callbacks como formularios planos. Aquí se convierten en
estructuras tipadas sin fallar nunca: los campos ausentes se degradan a
``None`` o cadena vacía y el JSON embebido mal formado se conserva como texto.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass, field

WebhookPayload = Mapping[str, str | None]

CONTENT_EVENT = "transcription-content"


@dataclass(frozen=True, slots=True)
class TranscriptionContent:
    """Fragmento de texto reconocido en una pista de la llamada."""

    call_sid: str | None
    transcription_sid: str | None
    track: str | None
    sequence_id: str | None
    text: str
    confidence: float | None
    is_final: bool
    provider_timestamp: str | None = None


@dataclass(frozen=True, slots=True)
class TranscriptionMeta:
    """Cualquier otro evento de la sesión (inicio, fin, error)."""

    event_kind: str | None
    call_sid: str | None
    transcription_sid: str | None
    payload: dict[str, str | None] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class StatusCallback:
    call_sid: str | None
    call_status: str | None
    payload: dict[str, str | None] = field(default_factory=dict)


def parse_flag(value: object) -> bool:
    """Sólo la cadena ``"true"`` es verdadera; Twilio no envía booleanos."""
    return value == "true"


def _field(payload: WebhookPayload, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _confidence(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        result = float(value)
    except (ValueError, OverflowError):
        return None
    return result if math.isfinite(result) else None


def parse_transcription_data(raw: str | None) -> tuple[str, float | None]:
    """Extrae `(transcript, confidence)` de `TranscriptionData`.

    Si el campo no es un objeto JSON se devuelve el valor crudo como texto.
    """
    if raw is None:
        return "", None
    try:
        data = json.loads(raw)
    except ValueError:
        return raw, None
    if not isinstance(data, dict):
        return raw, None
    transcript = data.get("transcript")
    text = transcript if isinstance(transcript, str) else ("" if transcript is None else str(transcript))
    return text, _confidence(data.get("confidence"))


def normalize_transcription(payload: WebhookPayload) -> TranscriptionContent | TranscriptionMeta:
    event_kind = _field(payload, "TranscriptionEvent")
    call_sid = _field(payload, "CallSid")
    transcription_sid = _field(payload, "TranscriptionSid")

    if event_kind != CONTENT_EVENT:
        return TranscriptionMeta(
            event_kind=event_kind,
            call_sid=call_sid,
            transcription_sid=transcription_sid,
            payload=dict(payload),
        )

    text, confidence = parse_transcription_data(_field(payload, "TranscriptionData"))
    return TranscriptionContent(
        call_sid=call_sid,
        transcription_sid=transcription_sid,
        track=_field(payload, "Track"),
        sequence_id=_field(payload, "SequenceId"),
        text=text,
        confidence=confidence,
        is_final=parse_flag(payload.get("Final")),
        provider_timestamp=_field(payload, "Timestamp"),
    )


def normalize_status(payload: WebhookPayload) -> StatusCallback:
    return StatusCallback(
        call_sid=_field(payload, "CallSid"),
        call_status=_field(payload, "CallStatus"),
        payload=dict(payload),
    )
