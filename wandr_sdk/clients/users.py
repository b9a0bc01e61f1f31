# wandr_sdk/clients/users.py
import logging
from typing import Optional

from wandr_sdk.clients.base import ServiceClient
from wandr_sdk.schemas.user import FollowStats

logger = logging.getLogger("wandr_sdk.clients.users")


def _following_flag(body) -> Optional[bool]:
    if isinstance(body, dict) and isinstance(body.get("following"), bool):
        return body["following"]
    return None


class UserClient(ServiceClient):
    """Подписки user-сервиса."""

    async def follow(self, user_id: str) -> Optional[bool]:
        """
        Подписывает текущего пользователя на user_id.
        409 ("already following") означает, что подписка уже есть: возвращается True.
        """
        logger.info(f"Client FOLLOW: following user {user_id}")
        response = await self._request("POST", f"/users/{user_id}/follow", allowed_statuses=[200, 201, 409])
        if response.status_code == 409:
            logger.info(f"User {user_id} is already followed according to server")
            return True
        return _following_flag(self._json(response)) if response.content else None

    async def unfollow(self, user_id: str) -> Optional[bool]:
        logger.info(f"Client UNFOLLOW: unfollowing user {user_id}")
        response = await self._request("DELETE", f"/users/{user_id}/follow", allowed_statuses=[200, 204])
        if response.status_code == 204 or not response.content:
            return None
        return _following_flag(self._json(response))

    async def follow_stats(self, user_id: str) -> FollowStats:
        response = await self._request("GET", f"/users/{user_id}/follow-stats", allowed_statuses=[200])
        return FollowStats.model_validate(self._json(response))
