"""Fixtures compartidas para las pruebas."""

from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient

from callbridge.core.config import settings
from callbridge.main import create_app
from callbridge.services.event_log import MemoryEventLog


class FakeCallContext:
    """Imita `client.calls(sid)` del SDK de Twilio."""

    def __init__(self, calls: "FakeCalls", sid: str) -> None:
        self._calls = calls
        self.sid = sid

    def update(self, **kwargs):
        if self._calls.error is not None:
            raise self._calls.error
        self._calls.updated.append((self.sid, kwargs))
        return SimpleNamespace(sid=self.sid, status=kwargs.get("status"))


class FakeCalls:
    """Imita `client.calls` registrando las invocaciones."""

    def __init__(self) -> None:
        self.created: list[dict] = []
        self.updated: list[tuple[str, dict]] = []
        self.error: Exception | None = None

    def __call__(self, sid: str) -> FakeCallContext:
        return FakeCallContext(self, sid)

    def create(self, **kwargs):
        if self.error is not None:
            raise self.error
        self.created.append(kwargs)
        return SimpleNamespace(sid=f"CA{len(self.created):032d}", status="queued")


@pytest.fixture(name="event_log")
def fixture_event_log() -> MemoryEventLog:
    return MemoryEventLog()


@pytest.fixture(name="app")
def fixture_app(event_log: MemoryEventLog):
    return create_app(event_log=event_log)


@pytest.fixture(name="async_client")
async def fixture_async_client(app) -> AsyncClient:
    """Retorna un cliente asíncrono contra la app utilizando ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture(name="voice_settings")
def fixture_voice_settings(monkeypatch: pytest.MonkeyPatch):
    """Configuración completa de Twilio y números para las rutas de control."""
    monkeypatch.setattr(settings, "twilio_account_sid", "AC" + "0" * 32)
    monkeypatch.setattr(settings, "twilio_api_key", "SK" + "0" * 32)
    monkeypatch.setattr(settings, "twilio_api_secret", "secret")
    monkeypatch.setattr(settings, "call_from", "+15550000001")
    monkeypatch.setattr(settings, "call_to", "+15550000002")
    monkeypatch.setattr(settings, "public_base_url", "https://calls.example.com")
    monkeypatch.setattr(settings, "default_client_identity", "browser-user")
    monkeypatch.setattr(settings, "transcription_engine", None)
    monkeypatch.setattr(settings, "transcription_language", None)
    return settings


@pytest.fixture(name="fake_calls")
def fixture_fake_calls(monkeypatch: pytest.MonkeyPatch) -> FakeCalls:
    calls = FakeCalls()
    client = SimpleNamespace(calls=calls)
    monkeypatch.setattr("callbridge.services.twilio.get_twilio_client", lambda: client)
    return calls
