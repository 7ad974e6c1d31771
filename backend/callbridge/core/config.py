"""Configuración central basada en variables de entorno."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Valores globales leídos desde `.env` o el entorno.

    Las credenciales del proveedor y los números aceptan también los nombres
    sin prefijo que usa la consola de Twilio (`TWILIO_ACCOUNT_SID`, `CALL_FROM`, ...).
    """

    environment: str = "development"
    log_level: str | None = Field(
        default=None,
        description="Nivel de logging global (ej. debug, info). Cuando no se define, usa un valor por ambiente.",
    )
    log_file_path: str | None = Field(
        default=None,
        description="Archivo principal de logs; sin valor sólo se escribe a stdout.",
    )
    request_log_skip_prefixes: tuple[str, ...] = Field(
        default=("/health", "/favicon"),
        description="Prefijos de ruta para los que no se registrarán eventos de request.started/completed.",
    )

    twilio_account_sid: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CALLBRIDGE_TWILIO_ACCOUNT_SID", "TWILIO_ACCOUNT_SID"),
    )
    twilio_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CALLBRIDGE_TWILIO_API_KEY", "TWILIO_API_KEY"),
    )
    twilio_api_secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CALLBRIDGE_TWILIO_API_SECRET", "TWILIO_API_SECRET"),
    )
    call_from: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CALLBRIDGE_CALL_FROM", "CALL_FROM"),
        description="Número origen para llamadas salientes.",
    )
    call_to: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CALLBRIDGE_CALL_TO", "CALL_TO"),
        description="Destino por defecto cuando `/dial` no recibe `to`.",
    )
    default_client_identity: str = Field(
        default="browser-user",
        validation_alias=AliasChoices("CALLBRIDGE_DEFAULT_CLIENT_IDENTITY", "DEFAULT_CLIENT_IDENTITY"),
    )
    transcription_engine: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CALLBRIDGE_TRANSCRIPTION_ENGINE", "TRANSCRIPTION_ENGINE"),
    )
    transcription_language: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CALLBRIDGE_TRANSCRIPTION_LANGUAGE", "TRANSCRIPTION_LANGUAGE"),
    )
    public_base_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CALLBRIDGE_PUBLIC_BASE_URL", "PUBLIC_BASE_URL"),
        description="URL pública (ej. túnel o dominio) a la que Twilio envía los callbacks.",
    )
    token_ttl_seconds: int = Field(default=3600, ge=60)

    call_log_path: str = "logs/call_log.jsonl"
    transcript_log_path: str = "logs/transcripts.jsonl"
    event_log_fsync: bool = Field(
        default=True,
        description="Fuerza `fsync` tras cada registro para sobrevivir caídas del proceso.",
    )
    static_dir: str | None = Field(
        default=None,
        description="Directorio con el cliente web (Voice SDK); se monta en `/` cuando existe.",
    )

    host: str = "0.0.0.0"
    port: int = Field(default=7000, validation_alias=AliasChoices("CALLBRIDGE_PORT", "PORT"))

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="CALLBRIDGE_", extra="allow", populate_by_name=True
    )


settings = Settings()
