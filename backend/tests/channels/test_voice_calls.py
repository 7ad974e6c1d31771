"""Control de llamadas salientes: `/dial` y `/hangup`."""

import pytest
from httpx import AsyncClient
from twilio.base.exceptions import TwilioRestException

from callbridge.services.event_log import CALL_LOG, MemoryEventLog


async def test_dial_records_requested_event_with_returned_sid(
    async_client: AsyncClient, event_log: MemoryEventLog, voice_settings, fake_calls
) -> None:
    response = await async_client.post("/dial", json={"to": " +15559990000 "})

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["from"] == "+15550000001"
    assert body["to"] == "+15559990000"

    [created] = fake_calls.created
    assert created["from_"] == "+15550000001"
    assert created["to"] == "+15559990000"
    assert created["url"] == "https://calls.example.com/twiml/inbound"
    assert created["status_callback"] == "https://calls.example.com/status-events"
    assert created["status_callback_event"] == ["initiated", "ringing", "answered", "completed"]

    [record] = event_log.records(CALL_LOG)
    assert record["type"] == "dial.requested"
    assert record["callSid"] == body["callSid"]
    assert record["payload"] == {"from": "+15550000001", "to": "+15559990000"}


async def test_dial_uses_default_destination_without_body(
    async_client: AsyncClient, voice_settings, fake_calls
) -> None:
    response = await async_client.post("/dial")

    assert response.status_code == 200
    assert response.json()["to"] == "+15550000002"


@pytest.mark.parametrize("missing", ["call_from", "call_to"])
async def test_dial_without_numbers_returns_400(
    async_client: AsyncClient,
    event_log: MemoryEventLog,
    voice_settings,
    fake_calls,
    monkeypatch: pytest.MonkeyPatch,
    missing: str,
) -> None:
    monkeypatch.setattr(voice_settings, missing, None)

    response = await async_client.post("/dial", json={})

    assert response.status_code == 400
    assert fake_calls.created == []
    assert event_log.records(CALL_LOG) == []


async def test_dial_without_public_base_url_returns_400(
    async_client: AsyncClient, voice_settings, fake_calls, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(voice_settings, "public_base_url", None)

    response = await async_client.post("/dial", json={"to": "+15559990000"})

    assert response.status_code == 400
    assert "PUBLIC_BASE_URL" in response.json()["detail"]


async def test_dial_without_credentials_returns_400(
    async_client: AsyncClient, voice_settings, monkeypatch: pytest.MonkeyPatch
) -> None:
    from callbridge.services import twilio as twilio_service

    monkeypatch.setattr(voice_settings, "twilio_api_secret", None)
    twilio_service.get_twilio_client.cache_clear()

    response = await async_client.post("/dial", json={"to": "+15559990000"})

    assert response.status_code == 400
    assert "TWILIO_API_SECRET" in response.json()["detail"]


async def test_dial_provider_error_is_logged_and_surfaced(
    async_client: AsyncClient, event_log: MemoryEventLog, voice_settings, fake_calls
) -> None:
    fake_calls.error = TwilioRestException(400, "/Calls", msg="Invalid 'To' number", code=21211)

    response = await async_client.post("/dial", json={"to": "+1"})

    assert response.status_code == 500
    assert response.json()["detail"] == "Invalid 'To' number"
    [record] = event_log.records(CALL_LOG)
    assert record["type"] == "dial.error"
    assert record["payload"]["error"] == "Invalid 'To' number"
    assert record["callSid"] is None


@pytest.mark.parametrize("body", [None, {}, {"callSid": ""}, {"callSid": "   "}])
async def test_hangup_requires_call_sid(
    async_client: AsyncClient, event_log: MemoryEventLog, voice_settings, fake_calls, body
) -> None:
    response = await async_client.post("/hangup", json=body)

    assert response.status_code == 400
    assert fake_calls.updated == []
    assert event_log.records(CALL_LOG) == []


async def test_hangup_completes_call(
    async_client: AsyncClient, event_log: MemoryEventLog, voice_settings, fake_calls
) -> None:
    response = await async_client.post("/hangup", json={"callSid": "CA42"})

    assert response.status_code == 200
    assert response.json() == {"ok": True, "callSid": "CA42"}
    assert fake_calls.updated == [("CA42", {"status": "completed"})]
    [record] = event_log.records(CALL_LOG)
    assert record["type"] == "hangup.requested"
    assert record["callSid"] == "CA42"


async def test_hangup_provider_error_returns_500(
    async_client: AsyncClient, event_log: MemoryEventLog, voice_settings, fake_calls
) -> None:
    fake_calls.error = TwilioRestException(404, "/Calls/CA42", msg="Call not found", code=20404)

    response = await async_client.post("/hangup", json={"callSid": "CA42"})

    assert response.status_code == 500
    assert response.json()["detail"] == "Call not found"
    [record] = event_log.records(CALL_LOG)
    assert record["type"] == "hangup.error"
    assert record["callSid"] == "CA42"
