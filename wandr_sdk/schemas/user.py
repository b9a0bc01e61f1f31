from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserSummary(BaseModel):
    """
    Публичные данные пользователя, которые сервис пользователей возвращает
    при входе и регистрации. Пароль и прочие чувствительные поля сюда не попадают.
    """

    id: str = Field(alias="_id", description="ID пользователя (ObjectId строкой).")
    username: str
    full_name: Optional[str] = Field(default=None, alias="fullName")
    email: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class FollowStats(BaseModel):
    followers: int = 0
    following: int = 0
    is_following: bool = Field(default=False, alias="isFollowing")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")
