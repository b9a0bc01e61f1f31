# wandr_sdk/clients/notifications.py
import logging
from typing import Any, Dict, List

from wandr_sdk.clients.base import ServiceClient
from wandr_sdk.exceptions import ServiceCommunicationError, SessionExpiredError

logger = logging.getLogger("wandr_sdk.clients.notifications")


class NotificationClient(ServiceClient):
    async def list_notifications(self, user_id: str) -> List[Dict[str, Any]]:
        response = await self._request("GET", f"/notifications/{user_id}", allowed_statuses=[200])
        body = self._json(response)
        if not isinstance(body, list):
            raise ServiceCommunicationError(
                f"Invalid notifications list for user {user_id}", url=self._url(f"/notifications/{user_id}")
            )
        return body

    async def notify(self, actor_id: str, target_user_id: str, kind: str, **extra: Any) -> bool:
        """
        Создает уведомление (like, comment, follow) без гарантии доставки.
        Ошибка не прерывает основную операцию: логируется, возвращается False.
        """
        payload = {"userId": actor_id, "targetUserId": target_user_id, "type": kind, **extra}
        try:
            await self._request("POST", "/notifications", json=payload, allowed_statuses=[200, 201])
        except (ServiceCommunicationError, SessionExpiredError) as e:
            logger.warning(f"Notification '{kind}' for user {target_user_id} was not delivered: {e}")
            return False
        return True
