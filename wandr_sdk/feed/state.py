# wandr_sdk/feed/state.py
import logging
from typing import Dict, FrozenSet, Iterable, List, Optional

from wandr_sdk.schemas.comment import CommentRecord
from wandr_sdk.schemas.edit import (
    ConfirmedEntry,
    Entry,
    EntryKey,
    LocalEntry,
    MembershipCollection,
    OptimisticEdit,
)

logger = logging.getLogger("wandr_sdk.feed.state")


class FeedState:
    """
    Локальное состояние ленты, общее для всех экранов: множества участников
    (лайки, подписчики) и списки комментариев по постам.

    Блокировок нет: согласованность с сервером поддерживается только через
    оптимистичное применение, сверку и откат в OptimisticMutator.
    """

    def __init__(self) -> None:
        self._entries: Dict[EntryKey, Entry] = {}
        self._comments: Dict[str, List[CommentRecord]] = {}

    # --- Множества ---

    def entry(self, collection: MembershipCollection, item_id: str) -> Entry:
        return self._entries.get(EntryKey(collection, item_id), ConfirmedEntry())

    def members(self, collection: MembershipCollection, item_id: str) -> FrozenSet[str]:
        return self.entry(collection, item_id).value

    def is_member(self, collection: MembershipCollection, item_id: str, actor_id: str) -> bool:
        return actor_id in self.members(collection, item_id)

    def count(self, collection: MembershipCollection, item_id: str) -> int:
        return len(self.members(collection, item_id))

    def pending_edit(self, collection: MembershipCollection, item_id: str) -> Optional[OptimisticEdit]:
        entry = self.entry(collection, item_id)
        if isinstance(entry, LocalEntry):
            return entry.edit
        return None

    def set_members(self, collection: MembershipCollection, item_id: str, members: Iterable[str]) -> None:
        """Заменяет значение данными сервера (например, после загрузки)."""
        self._entries[EntryKey(collection, item_id)] = ConfirmedEntry(value=frozenset(members))

    def put(self, key: EntryKey, entry: Entry) -> None:
        self._entries[key] = entry

    def raw_entry(self, key: EntryKey) -> Optional[Entry]:
        return self._entries.get(key)

    def restore(self, key: EntryKey, entry: Optional[Entry]) -> None:
        """Возвращает ключ ровно в прежнее состояние, включая отсутствие записи."""
        if entry is None:
            self._entries.pop(key, None)
        else:
            self._entries[key] = entry

    # --- Комментарии ---

    def comments(self, post_id: str) -> List[CommentRecord]:
        return list(self._comments.get(post_id, []))

    def set_comments(self, post_id: str, comments: Iterable[CommentRecord]) -> None:
        self._comments[post_id] = list(comments)

    def append_comment(self, post_id: str, comment: CommentRecord) -> None:
        self._comments.setdefault(post_id, []).append(comment)
        logger.debug(f"Comment {comment.id} appended to post {post_id}")
