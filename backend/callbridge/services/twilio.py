"""Cliente centralizado para Twilio."""

from functools import lru_cache

from twilio.jwt.access_token import AccessToken
from twilio.jwt.access_token.grants import VoiceGrant
from twilio.rest import Client

from callbridge.core.config import settings


class TwilioNotConfiguredError(RuntimeError):
    """Faltan credenciales de Twilio en la configuración."""


def _require_credentials() -> tuple[str, str, str]:
    sid = settings.twilio_account_sid
    key = settings.twilio_api_key
    secret = settings.twilio_api_secret
    if not sid or not key or not secret:
        msg = "TWILIO_ACCOUNT_SID, TWILIO_API_KEY and TWILIO_API_SECRET must be set"
        raise TwilioNotConfiguredError(msg)
    return sid, key, secret


@lru_cache(maxsize=1)
def get_twilio_client() -> Client:
    """Retorna el cliente reutilizable de Twilio autenticado con API key."""
    sid, key, secret = _require_credentials()
    return Client(key, secret, account_sid=sid)


def create_access_token(identity: str, *, ttl: int) -> str:
    """Emite un JWT del Voice SDK que permite recibir llamadas en `identity`."""
    sid, key, secret = _require_credentials()
    token = AccessToken(sid, key, secret, identity=identity, ttl=ttl)
    token.add_grant(VoiceGrant(incoming_allow=True))
    return token.to_jwt()
