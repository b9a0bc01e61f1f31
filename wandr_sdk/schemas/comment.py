from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CommentRecord(BaseModel):
    """
    Комментарий в том виде, в каком его отдает content-сервис.
    parent_id пустой у комментариев верхнего уровня.
    """

    id: str = Field(alias="_id")
    post_id: Optional[str] = Field(default=None, alias="postId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    username: Optional[str] = None
    text: str = ""
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    created_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("createdAt", "timestamp", "created_at"),
        serialization_alias="createdAt",
    )
    likes: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class CommentNode(BaseModel):
    """Узел дерева для отображения: комментарий и его ответы (один уровень)."""

    comment: CommentRecord
    replies: List["CommentNode"] = Field(default_factory=list)

    @property
    def id(self) -> str:
        return self.comment.id


class CommentCreate(BaseModel):
    post_id: str = Field(alias="postId")
    text: str
    parent_id: Optional[str] = Field(default=None, alias="parentId")

    model_config = ConfigDict(populate_by_name=True)
