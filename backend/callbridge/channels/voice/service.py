"""Servicios del canal de voz: ingesta de webhooks y control de llamadas."""

from __future__ import annotations

from twilio.base.exceptions import TwilioException
from twilio.twiml.voice_response import VoiceResponse

from callbridge.core.config import settings
from callbridge.core.logging import get_logger, log_event
from callbridge.services import twilio as twilio_service
from callbridge.services.event_log import CALL_LOG, TRANSCRIPT_LOG, EventLog

from . import schemas
from .correlator import IngestClock, call_event, correlate, default_clock
from .normalizer import (
    TranscriptionContent,
    WebhookPayload,
    normalize_status,
    normalize_transcription,
)

logger = get_logger("callbridge.channels.voice")

STATUS_CALLBACK_EVENTS = ["initiated", "ringing", "answered", "completed"]


class VoiceConfigError(RuntimeError):
    """Faltan parámetros o configuración para iniciar una acción (→ 400)."""


class ProviderError(RuntimeError):
    """Twilio rechazó la operación solicitada (→ 500)."""


def _join_url(base: str, path: str) -> str:
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


def _provider_message(exc: Exception) -> str:
    # TwilioRestException.__str__ incluye formato para terminal; `msg` es el texto limpio.
    return getattr(exc, "msg", None) or str(exc)


def _public_base_url() -> str:
    base = (settings.public_base_url or "").strip()
    if not base:
        raise VoiceConfigError("PUBLIC_BASE_URL must be set to receive Twilio callbacks")
    return base


def handle_transcription_event(
    payload: WebhookPayload, event_log: EventLog, *, clock: IngestClock = default_clock
) -> None:
    """Persiste un callback de transcripción; nunca propaga errores."""
    try:
        normalized = normalize_transcription(payload)
        record = correlate(normalized, clock=clock)
        if isinstance(normalized, TranscriptionContent):
            event_log.append(CALL_LOG, record.to_call_log_record())
            event_log.append(TRANSCRIPT_LOG, record.to_record())
        else:
            event_log.append(CALL_LOG, record.to_record())
    except Exception:
        logger.exception(
            "voice.transcription_handler_failed",
            extra={"call_sid": payload.get("CallSid"), "event_kind": payload.get("TranscriptionEvent")},
        )


def handle_status_event(
    payload: WebhookPayload, event_log: EventLog, *, clock: IngestClock = default_clock
) -> None:
    """Persiste un callback de estado tal cual llega, sin validar transiciones."""
    try:
        normalized = normalize_status(payload)
        event_log.append(CALL_LOG, correlate(normalized, clock=clock).to_record())
        log_event(
            logger,
            "voice.status_received",
            call_sid=normalized.call_sid,
            call_status=normalized.call_status,
        )
    except Exception:
        logger.exception("voice.status_handler_failed", extra={"call_sid": payload.get("CallSid")})


def dial(request: schemas.DialRequest | None, event_log: EventLog) -> schemas.DialResponse:
    """Crea una llamada saliente con los callbacks apuntando a este servicio."""
    to = ((request.to if request else None) or settings.call_to or "").strip()
    from_ = (settings.call_from or "").strip()
    if not from_ or not to:
        raise VoiceConfigError("CALL_FROM and CALL_TO must be set (or pass {to})")

    base = _public_base_url()
    client = twilio_service.get_twilio_client()

    try:
        call = client.calls.create(
            from_=from_,
            to=to,
            url=_join_url(base, "/twiml/inbound"),
            status_callback=_join_url(base, "/status-events"),
            status_callback_event=STATUS_CALLBACK_EVENTS,
            status_callback_method="POST",
        )
    except (TwilioException, OSError) as exc:
        message = _provider_message(exc)
        event_log.append(
            CALL_LOG,
            call_event("dial.error", payload={"error": message, "from": from_, "to": to}).to_record(),
        )
        logger.error("voice.dial_failed", extra={"to": to, "error": message})
        raise ProviderError(message) from exc

    event_log.append(
        CALL_LOG,
        call_event("dial.requested", call_sid=call.sid, payload={"from": from_, "to": to}).to_record(),
    )
    log_event(logger, "voice.dial_requested", call_sid=call.sid, to=to)
    return schemas.DialResponse(call_sid=call.sid, from_=from_, to=to)


def hangup(request: schemas.HangupRequest | None, event_log: EventLog) -> schemas.HangupResponse:
    """Solicita a Twilio terminar la llamada indicada."""
    call_sid = ((request.call_sid if request else None) or "").strip()
    if not call_sid:
        raise VoiceConfigError("callSid is required")

    client = twilio_service.get_twilio_client()
    try:
        client.calls(call_sid).update(status="completed")
    except (TwilioException, OSError) as exc:
        message = _provider_message(exc)
        event_log.append(
            CALL_LOG,
            call_event("hangup.error", call_sid=call_sid, payload={"error": message}).to_record(),
        )
        logger.error("voice.hangup_failed", extra={"call_sid": call_sid, "error": message})
        raise ProviderError(message) from exc

    event_log.append(CALL_LOG, call_event("hangup.requested", call_sid=call_sid).to_record())
    log_event(logger, "voice.hangup_requested", call_sid=call_sid)
    return schemas.HangupResponse(call_sid=call_sid)


def build_inbound_twiml(*, identity: str | None, callback_base: str) -> str:
    """TwiML que inicia la transcripción de ambas pistas y puentea al cliente web."""
    response = VoiceResponse()

    transcription_options = {
        "status_callback_url": _join_url(callback_base, "/transcription-events"),
        "track": "both_tracks",
    }
    if settings.transcription_engine:
        transcription_options["transcription_engine"] = settings.transcription_engine
    if settings.transcription_language:
        transcription_options["language_code"] = settings.transcription_language
    start = response.start()
    start.transcription(**transcription_options)

    dial_verb = response.dial(answer_on_bridge=True)
    dial_verb.client(resolve_identity(identity))
    return str(response)


def callback_base_for(forwarded_proto: str | None, host: str | None, scheme: str) -> str:
    """Base pública para callbacks: la configurada o la observada en el request."""
    configured = (settings.public_base_url or "").strip()
    if configured:
        return configured
    proto = (forwarded_proto or scheme).split(",")[0].strip()
    return f"{proto}://{host or 'localhost'}"


def resolve_identity(identity: str | None) -> str:
    return (identity or settings.default_client_identity).strip()


def issue_token(identity: str | None) -> schemas.TokenResponse:
    resolved = resolve_identity(identity)
    token = twilio_service.create_access_token(resolved, ttl=settings.token_ttl_seconds)
    return schemas.TokenResponse(token=token, identity=resolved)
