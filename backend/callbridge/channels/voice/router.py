"""Endpoints relacionados a Twilio Voice."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response
from starlette.concurrency import run_in_threadpool

from callbridge.services.event_log import EventLog
from callbridge.services.twilio import TwilioNotConfiguredError

from . import schemas, service
from .deps import get_event_log, read_webhook_payload

router = APIRouter(tags=["voice"])

_CONFIG_ERRORS = (service.VoiceConfigError, TwilioNotConfiguredError)


@router.post("/dial", response_model=schemas.DialResponse, summary="Inicia una llamada saliente")
def post_dial(
    payload: schemas.DialRequest | None = Body(default=None),
    event_log: EventLog = Depends(get_event_log),
) -> schemas.DialResponse:
    """Crea la llamada en Twilio y registra `dial.requested` o `dial.error`."""
    try:
        return service.dial(payload, event_log)
    except _CONFIG_ERRORS as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except service.ProviderError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.post("/hangup", response_model=schemas.HangupResponse, summary="Termina una llamada")
def post_hangup(
    payload: schemas.HangupRequest | None = Body(default=None),
    event_log: EventLog = Depends(get_event_log),
) -> schemas.HangupResponse:
    try:
        return service.hangup(payload, event_log)
    except _CONFIG_ERRORS as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except service.ProviderError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.post("/twiml/inbound", summary="TwiML para llamadas entrantes", response_class=Response)
def inbound_twiml(
    request: Request,
    identity: str | None = Query(default=None, alias="id", description="Identidad del cliente web."),
) -> Response:
    """Transcribe ambas pistas y conecta la llamada con el cliente del navegador."""
    callback_base = service.callback_base_for(
        request.headers.get("x-forwarded-proto"),
        request.headers.get("host"),
        request.url.scheme,
    )
    twiml = service.build_inbound_twiml(identity=identity, callback_base=callback_base)
    return Response(content=twiml, media_type="text/xml")


@router.post("/transcription-events", summary="Callback de transcripción en vivo")
async def transcription_events(
    request: Request, event_log: EventLog = Depends(get_event_log)
) -> Response:
    """Siempre responde 200 para que Twilio no reintente."""
    payload = await read_webhook_payload(request)
    await run_in_threadpool(service.handle_transcription_event, payload, event_log)
    return Response(status_code=200)


@router.post("/status-events", summary="Callback de estado de llamadas")
async def status_events(request: Request, event_log: EventLog = Depends(get_event_log)) -> Response:
    """Siempre responde 200 para que Twilio no reintente."""
    payload = await read_webhook_payload(request)
    await run_in_threadpool(service.handle_status_event, payload, event_log)
    return Response(status_code=200)


@router.get("/token", response_model=schemas.TokenResponse, summary="Token para el Voice SDK")
def get_token(identity: str | None = Query(default=None)) -> schemas.TokenResponse:
    try:
        return service.issue_token(identity)
    except TwilioNotConfiguredError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
