"""Dependencias relacionadas a voz."""

from __future__ import annotations

import json

from fastapi import Request
from starlette.datastructures import UploadFile

from callbridge.core.logging import get_logger
from callbridge.services.event_log import EventLog

logger = get_logger("callbridge.channels.voice")


def get_event_log(request: Request) -> EventLog:
    """Bitácora inyectada en `app.state` por `create_app`."""
    return request.app.state.event_log


def _as_text(value: object) -> str | None:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (dict, list, bool, int, float)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


async def read_webhook_payload(request: Request) -> dict[str, str | None]:
    """Decodifica el cuerpo del webhook como mapa plano de texto.

    Twilio envía `application/x-www-form-urlencoded`; también se acepta JSON
    para pruebas manuales. Un cuerpo ilegible se trata como vacío.
    """
    content_type = request.headers.get("content-type", "")
    try:
        if "application/json" in content_type:
            body = await request.body()
            data = json.loads(body) if body.strip() else {}
            if not isinstance(data, dict):
                raise ValueError("JSON webhook body must be an object")
            items = data.items()
        else:
            form = await request.form()
            # Twilio no adjunta archivos; de un upload sólo se conserva el nombre.
            items = (
                (key, value.filename if isinstance(value, UploadFile) else value)
                for key, value in form.items()
            )
        return {str(key): _as_text(value) for key, value in items}
    except Exception as exc:
        logger.warning(
            "voice.webhook_body_unreadable",
            extra={"path": request.url.path, "content_type": content_type, "error": str(exc)},
        )
        return {}
