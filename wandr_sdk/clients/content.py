# wandr_sdk/clients/content.py
import logging
from typing import List, Optional

from pydantic import ValidationError

from wandr_sdk.clients.base import ServiceClient
from wandr_sdk.exceptions import ServiceCommunicationError
from wandr_sdk.schemas.comment import CommentCreate, CommentRecord

logger = logging.getLogger("wandr_sdk.clients.content")


def _liked_flag(body) -> Optional[bool]:
    if isinstance(body, dict) and isinstance(body.get("liked"), bool):
        return body["liked"]
    return None


class ContentClient(ServiceClient):
    """Лайки и комментарии content-сервиса."""

    async def toggle_like(self, post_id: str) -> Optional[bool]:
        """
        Переключает лайк текущего пользователя на посте.
        Возвращает итоговое состояние по версии сервера ({liked: bool}),
        либо None, если сервер его не сообщил.
        """
        logger.info(f"Client LIKE: toggling like on post {post_id}")
        response = await self._request("POST", "/likes", json={"postId": post_id}, allowed_statuses=[200, 201])
        return _liked_flag(self._json(response))

    async def list_likes(self, post_id: str) -> List[str]:
        """ID пользователей, лайкнувших пост."""
        response = await self._request("GET", f"/likes/{post_id}", allowed_statuses=[200], authenticated=False)
        body = self._json(response)
        if not isinstance(body, list):
            raise ServiceCommunicationError(f"Invalid likes list for post {post_id}", url=self._url(f"/likes/{post_id}"))
        user_ids = []
        for like in body:
            if isinstance(like, dict):
                user_id = like.get("userId") or like.get("user")
            else:
                user_id = like
            if user_id is not None:
                user_ids.append(str(user_id))
        return user_ids

    async def toggle_comment_like(self, comment_id: str) -> Optional[bool]:
        logger.info(f"Client LIKE: toggling like on comment {comment_id}")
        response = await self._request("POST", f"/comments/{comment_id}/like", allowed_statuses=[200, 201, 204])
        if response.status_code == 204 or not response.content:
            return None
        return _liked_flag(self._json(response))

    async def create_comment(self, post_id: str, text: str, parent_id: Optional[str] = None) -> CommentRecord:
        payload = CommentCreate(post_id=post_id, text=text, parent_id=parent_id)
        logger.info(f"Client CREATE: posting comment on post {post_id} (parent: {parent_id})")
        response = await self._request(
            "POST",
            "/comments",
            json=payload.model_dump(by_alias=True),
            allowed_statuses=[200, 201],
        )
        body = self._json(response)
        raw = body.get("comment") if isinstance(body, dict) and "comment" in body else body
        try:
            return CommentRecord.model_validate(raw)
        except ValidationError as e:
            raise ServiceCommunicationError(
                f"Invalid comment in response: {e}", status_code=response.status_code, url=self._url("/comments")
            ) from e

    async def list_comments(self, post_id: str) -> List[CommentRecord]:
        """Комментарии поста в порядке создания (старые первыми)."""
        url_path = f"/comments/{post_id}"
        response = await self._request("GET", url_path, allowed_statuses=[200], authenticated=False)
        body = self._json(response)
        if not isinstance(body, list):
            logger.error(f"Invalid comments list format from {self._url(url_path)}: expected list, got {type(body)}")
            raise ServiceCommunicationError(f"Invalid comments list for post {post_id}", url=self._url(url_path))
        try:
            return [CommentRecord.model_validate(item) for item in body]
        except ValidationError as e:
            raise ServiceCommunicationError(f"Invalid comment record: {e}", url=self._url(url_path)) from e
