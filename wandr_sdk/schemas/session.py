# wandr_sdk/schemas/session.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, ValidationError

from .token import TokenPayload
from .user import UserSummary

logger = logging.getLogger("wandr_sdk.schemas.session")


class Session(BaseModel):
    """
    Учетные данные аутентифицированного клиента.

    access_token - короткоживущий bearer токен, refresh_token - долгоживущий,
    используется только для получения новой пары. Сессия создается при входе
    или регистрации, заменяется целиком при refresh и очищается при logout или
    неудачном refresh.
    """

    access_token: str
    refresh_token: Optional[str] = None
    user: Optional[UserSummary] = None

    model_config = ConfigDict(frozen=True)

    def claims(self) -> TokenPayload:
        """
        Декодирует claims access токена без проверки подписи.
        Для непрозрачного (не JWT) токена возвращает пустой TokenPayload.
        """
        try:
            raw = jwt.get_unverified_claims(self.access_token)
        except JWTError:
            logger.debug("Access token is not a JWT, treating it as opaque.")
            return TokenPayload()
        try:
            return TokenPayload.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Access token claims have unexpected shape: {e}")
            return TokenPayload()

    @property
    def actor_id(self) -> Optional[str]:
        """ID текущего пользователя: из профиля, иначе из claim userId."""
        if self.user is not None:
            return self.user.id
        return self.claims().user_id

    def is_access_token_expired(self, leeway_seconds: int = 0) -> bool:
        exp = self.claims().exp
        if exp is None:
            return False
        if exp.tzinfo is None:
            exp = exp.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) + timedelta(seconds=leeway_seconds) >= exp

    def with_tokens(self, access_token: str, refresh_token: Optional[str]) -> "Session":
        """Новая сессия с обновленной парой токенов (профиль сохраняется)."""
        return self.model_copy(
            update={
                "access_token": access_token,
                "refresh_token": refresh_token or self.refresh_token,
            }
        )
