"""Esquemas del canal de voz: cuerpos HTTP y registros persistidos."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CallEventType = Literal[
    "dial.requested",
    "dial.error",
    "status",
    "hangup.requested",
    "hangup.error",
]


class _Record(BaseModel):
    """Base inmutable de los registros que se anexan a la bitácora."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    ts: str = Field(..., description="Marca de ingesta asignada por este proceso (UTC, ISO-8601).")

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class CallEvent(_Record):
    """Transición del ciclo de vida de una llamada."""

    event_type: CallEventType = Field(..., alias="type")
    call_sid: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


class TranscriptionEvent(_Record):
    """Fragmento de transcripción en vivo (`transcription-content`)."""

    call_sid: str | None = None
    transcription_sid: str | None = None
    track: str | None = None
    sequence_id: int | None = None
    text: str = ""
    confidence: float | None = None
    is_final: bool = False
    provider_timestamp: str | None = None

    def to_call_log_record(self) -> dict[str, Any]:
        """Copia para el stream genérico, etiquetada con su tipo."""
        return {"type": "transcription", **self.to_record()}


class TranscriptionMetaEvent(_Record):
    """Evento de sesión de transcripción cuyo contenido no se interpreta."""

    event_type: Literal["transcription.meta"] = Field(default="transcription.meta", alias="type")
    event_kind: str | None = None
    call_sid: str | None = None
    transcription_sid: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


class DialRequest(BaseModel):
    """Payload de `POST /dial`."""

    to: str | None = Field(default=None, description="Destino E.164; usa CALL_TO cuando se omite.")


class DialResponse(BaseModel):
    """Respuesta exitosa de `POST /dial`."""

    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    call_sid: str = Field(..., alias="callSid")
    from_: str = Field(..., alias="from")
    to: str


class HangupRequest(BaseModel):
    """Payload de `POST /hangup`; `callSid` se valida manualmente para responder 400."""

    call_sid: str | None = Field(default=None, alias="callSid")


class HangupResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    call_sid: str = Field(..., alias="callSid")


class TokenResponse(BaseModel):
    """Token de acceso para el Voice SDK del navegador."""

    token: str
    identity: str
