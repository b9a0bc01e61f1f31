from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .user import UserSummary


class TokenPayload(BaseModel):
    """
    Claims из access токена, прочитанные без проверки подписи.
    Клиент не может проверить подпись (секрет есть только у сервиса),
    поэтому эти данные используются лишь для id пользователя и срока жизни.
    """
    user_id: Optional[str] = Field(default=None, alias="userId")
    sub: Optional[str] = None
    exp: Optional[datetime] = None
    iat: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TokenPair(BaseModel):
    """Ответ /refresh: новая пара токенов."""
    access_token: str = Field(alias="token")
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RefreshRequest(BaseModel):
    refresh_token: str = Field(alias="refreshToken")

    model_config = ConfigDict(populate_by_name=True)


class AuthResponse(TokenPair):
    """Ответ /login и /register: пара токенов и профиль пользователя."""
    user: Optional[UserSummary] = None
