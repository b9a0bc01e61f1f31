# wandr_sdk/config.py
import os
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WandrSettings(BaseSettings):
    """
    Настройки клиента Wandr. Читаются из переменных окружения с префиксом
    WANDR_ (например, WANDR_USER_SERVICE_URL) и из .env файла.
    Значения по умолчанию совпадают с локальными портами сервисов.
    """

    PROJECT_NAME: str = "WandrClient"
    USER_SERVICE_URL: str = "http://localhost:5004"
    CONTENT_SERVICE_URL: str = "http://localhost:5002"
    LOCATION_SERVICE_URL: str = "http://localhost:5003"
    NOTIF_SERVICE_URL: str = "http://localhost:5006"

    REQUEST_TIMEOUT: float = Field(
        10.0, description="Таймаут HTTP запроса в секундах (по умолчанию 10с)."
    )
    LOGGING_LEVEL: str = Field(
        "INFO",
        json_schema_extra={"examples": ["DEBUG", "INFO", "WARNING", "ERROR"]},
    )
    SESSION_FILE: Optional[str] = Field(
        None,
        description="Путь к JSON файлу с токенами. Если не задан, сессия хранится в памяти.",
    )
    REFRESH_BEFORE_EXPIRY: bool = Field(
        False,
        description="Обновлять access токен заранее, если его exp уже истек, не дожидаясь 401.",
    )
    EXPIRY_LEEWAY_SECONDS: int = Field(
        30, description="Запас в секундах при проверке exp access токена."
    )
    ENV: str = os.getenv("ENV", "PROD")

    model_config = SettingsConfigDict(
        env_prefix="WANDR_",
        env_file=".env" if os.getenv("ENV") != "test" else ".env.test",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator(
        "USER_SERVICE_URL",
        "CONTENT_SERVICE_URL",
        "LOCATION_SERVICE_URL",
        "NOTIF_SERVICE_URL",
        mode="before",
    )
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v

    @field_validator("REQUEST_TIMEOUT")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("REQUEST_TIMEOUT must be positive")
        return v
