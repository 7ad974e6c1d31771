"""Punto de entrada principal para la aplicación FastAPI."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles

from callbridge.api.routes.health import router as health_router
from callbridge.channels.voice.router import router as voice_router
from callbridge.core.config import settings
from callbridge.core.logging import configure_logging, get_logger, resolve_log_level
from callbridge.core.middleware import RequestLoggingMiddleware
from callbridge.services.event_log import EventLog, JsonlEventLog


@asynccontextmanager
async def lifespan(app: FastAPI):
    log = get_logger("callbridge")
    event_log: EventLog = app.state.event_log
    event_log.open()
    log.info("app.started", extra={"environment": settings.environment})
    try:
        yield
    finally:
        event_log.close()
        log.info("app.stopped")


def create_app(event_log: EventLog | None = None) -> FastAPI:
    """Crea y configura la instancia de FastAPI.

    `event_log` permite inyectar otra bitácora (p. ej. en memoria para pruebas);
    por defecto se usan los archivos JSONL configurados.
    """
    default_log_level = logging.DEBUG if settings.environment != "production" else logging.INFO
    log_level = resolve_log_level(settings.log_level, default=default_log_level)
    per_logger_files = None
    if settings.log_file_path:
        log_dir = Path(settings.log_file_path).parent
        per_logger_files = {
            "callbridge.request": str(log_dir / "request.log"),
            "callbridge.channels.voice": str(log_dir / "voice.log"),
            "callbridge.storage": str(log_dir / "storage.log"),
        }

    configure_logging(
        level=log_level,
        log_file=settings.log_file_path,
        per_logger_files=per_logger_files,
    )

    app = FastAPI(title="callbridge", version="0.1.0", lifespan=lifespan)
    app.state.event_log = event_log or JsonlEventLog.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health_router)
    app.include_router(voice_router)

    # El cliente web (Voice SDK) se sirve desde la raíz; va al final para no tapar rutas.
    log = get_logger("callbridge")
    if settings.static_dir:
        static_root = Path(settings.static_dir)
        if static_root.is_dir():
            app.mount("/", StaticFiles(directory=str(static_root), html=True), name="client")
            log.info("client.static_mounted", extra={"path": str(static_root)})
        else:
            log.warning("client.static_missing", extra={"expected_path": str(static_root)})

    return app


app = create_app()


def run() -> None:
    """Arranca uvicorn con el host y puerto configurados."""
    import uvicorn

    logger = get_logger("callbridge")
    logger.info(
        "app.listening",
        extra={"port": settings.port, "call_log": settings.call_log_path},
    )
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
