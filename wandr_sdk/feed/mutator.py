# wandr_sdk/feed/mutator.py
import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Set, Union

from wandr_sdk.clients.content import ContentClient
from wandr_sdk.clients.notifications import NotificationClient
from wandr_sdk.clients.users import UserClient
from wandr_sdk.exceptions import (
    InputValidationError,
    MutationFailedError,
    ServiceCommunicationError,
    SessionExpiredError,
)
from wandr_sdk.feed.state import FeedState
from wandr_sdk.feed.tree import build_tree
from wandr_sdk.schemas.comment import CommentNode, CommentRecord
from wandr_sdk.schemas.edit import (
    ConfirmedEntry,
    EditState,
    EntryKey,
    LocalEntry,
    MembershipCollection,
    OptimisticEdit,
)
from wandr_sdk.session.store import SessionStore

logger = logging.getLogger("wandr_sdk.feed.mutator")

ErrorHook = Callable[[MutationFailedError], Union[None, Awaitable[None]]]

GENERIC_FAILURE_MESSAGES: Dict[MembershipCollection, str] = {
    MembershipCollection.POST_LIKES: "Failed to update like",
    MembershipCollection.COMMENT_LIKES: "Failed to like comment",
    MembershipCollection.FOLLOWERS: "Failed to update follow",
}
COMMENT_FAILURE_MESSAGE = "Failed to post comment"


class MutationHandle:
    """
    Результат toggle_membership. Локальное изменение уже применено;
    await handle дожидается ответа сервера и возвращает итоговую правку
    (confirmed или corrected) либо выбрасывает MutationFailedError после отката.
    """

    def __init__(self, edit: OptimisticEdit):
        self._edit = edit
        self._task: Optional[asyncio.Task] = None

    @property
    def edit(self) -> OptimisticEdit:
        return self._edit

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def _attach(self, task: asyncio.Task) -> None:
        self._task = task
        # Ошибка уже передана в on_error; await handle все равно ее выбросит.
        task.add_done_callback(lambda t: t.cancelled() or t.exception())

    def __await__(self):
        return self._task.__await__()


class OptimisticMutator:
    """
    Оптимистичные мутации ленты: лайки постов и комментариев, подписки,
    добавление комментариев.

    Переключение членства применяется локально сразу, затем сверяется с ответом
    сервера: совпадение подтверждает правку, расхождение исправляет значение на
    серверное, ошибка откатывает значение к снимку до правки.
    Повторное переключение того же объекта, пока первое не завершилось,
    не отправляет второй запрос и возвращает уже существующий handle.
    """

    def __init__(
        self,
        state: FeedState,
        session_store: SessionStore,
        content_client: ContentClient,
        user_client: UserClient,
        notification_client: Optional[NotificationClient] = None,
        on_error: Optional[ErrorHook] = None,
    ):
        self.state = state
        self.session_store = session_store
        self.content = content_client
        self.users = user_client
        self.notifications = notification_client
        self.on_error = on_error
        self._pending: Dict[EntryKey, MutationHandle] = {}
        self._comment_submissions: Set[str] = set()

    def _actor_id(self) -> str:
        session = self.session_store.load()
        actor_id = session.actor_id if session else None
        if not actor_id:
            raise SessionExpiredError("Sign in to continue")
        return actor_id

    def is_pending(self, collection: MembershipCollection, item_id: str) -> bool:
        handle = self._pending.get(EntryKey(collection, item_id))
        return handle is not None and not handle.done

    def comment_submission_pending(self, post_id: str) -> bool:
        return post_id in self._comment_submissions

    # --- Переключение членства ---

    def toggle_membership(
        self,
        collection: MembershipCollection,
        item_id: str,
        current_member: bool,
    ) -> MutationHandle:
        actor_id = self._actor_id()
        key = EntryKey(collection, item_id)

        pending = self._pending.get(key)
        if pending is not None and not pending.done:
            logger.info(f"Mutation on {collection.value}/{item_id} is still pending, ignoring repeated toggle")
            return pending

        previous_entry = self.state.raw_entry(key)
        previous = self.state.members(collection, item_id)
        desired = not current_member
        speculative = previous | {actor_id} if desired else previous - {actor_id}
        edit = OptimisticEdit(
            collection=collection,
            item_id=item_id,
            actor_id=actor_id,
            previous=previous,
            speculative=speculative,
        )
        local_entry = LocalEntry(edit=edit)
        self.state.put(key, local_entry)
        logger.debug(f"Optimistic {collection.value}/{item_id}: member={desired}")

        handle = MutationHandle(edit)
        handle._attach(asyncio.create_task(self._settle_membership(handle, local_entry, previous_entry)))
        self._pending[key] = handle
        return handle

    async def _settle_membership(
        self, handle: MutationHandle, local_entry: LocalEntry, previous_entry
    ) -> OptimisticEdit:
        edit = handle.edit
        key = edit.key
        try:
            server_member = await self._membership_call(edit)
        except (ServiceCommunicationError, SessionExpiredError) as e:
            self._roll_back(handle, local_entry, previous_entry)
            logger.warning(f"Mutation {edit.collection.value}/{edit.item_id} failed, rolled back: {e}")
            error = MutationFailedError(
                self._user_message(e, GENERIC_FAILURE_MESSAGES[edit.collection]),
                status_code=getattr(e, "status_code", None),
            )
            await self._report(error)
            raise error from e
        except BaseException as e:
            # Непредвиденная ошибка или отмена задачи: откат и проброс как есть.
            self._roll_back(handle, local_entry, previous_entry)
            logger.error(f"Mutation {edit.collection.value}/{edit.item_id} aborted, rolled back: {e!r}")
            raise
        finally:
            if self._pending.get(key) is handle:
                del self._pending[key]

        if server_member is None or server_member == edit.desired_member:
            settled = edit.settle(EditState.CONFIRMED)
            value = edit.speculative
        else:
            settled = edit.settle(EditState.CORRECTED)
            value = edit.previous | {edit.actor_id} if server_member else edit.previous - {edit.actor_id}
            logger.info(
                f"Server state for {edit.collection.value}/{edit.item_id} differs from optimistic guess, "
                f"correcting to member={server_member}"
            )
        if self.state.raw_entry(key) is local_entry:
            self.state.put(key, ConfirmedEntry(value=value))
        else:
            logger.debug(f"Entry {edit.collection.value}/{edit.item_id} was replaced while pending, leaving it")
        handle._edit = settled

        if (
            settled.state == EditState.CONFIRMED
            and edit.collection == MembershipCollection.FOLLOWERS
            and edit.desired_member
            and self.notifications is not None
        ):
            await self.notifications.notify(edit.actor_id, edit.item_id, "follow")
        return settled

    def _roll_back(self, handle: MutationHandle, local_entry: LocalEntry, previous_entry) -> None:
        if self.state.raw_entry(handle.edit.key) is local_entry:
            self.state.restore(handle.edit.key, previous_entry)
        handle._edit = handle.edit.settle(EditState.ROLLED_BACK)

    async def _membership_call(self, edit: OptimisticEdit) -> Optional[bool]:
        if edit.collection == MembershipCollection.POST_LIKES:
            return await self.content.toggle_like(edit.item_id)
        if edit.collection == MembershipCollection.COMMENT_LIKES:
            return await self.content.toggle_comment_like(edit.item_id)
        if edit.collection == MembershipCollection.FOLLOWERS:
            if edit.desired_member:
                return await self.users.follow(edit.item_id)
            return await self.users.unfollow(edit.item_id)
        raise ValueError(f"Unsupported collection: {edit.collection}")

    # --- Комментарии ---

    async def append_comment(
        self,
        post_id: str,
        text: str,
        parent_id: Optional[str] = None,
    ) -> Optional[CommentRecord]:
        """
        Публикует комментарий и добавляет в локальное состояние запись,
        подтвержденную сервером. До подтверждения ничего не добавляется.
        Возвращает None, если отправка в этот пост уже выполняется.
        """
        trimmed = (text or "").strip()
        if not trimmed:
            raise InputValidationError("Comment text must not be empty")
        if post_id in self._comment_submissions:
            logger.info(f"Comment submission for post {post_id} already in flight, suppressing duplicate")
            return None

        self._comment_submissions.add(post_id)
        try:
            record = await self.content.create_comment(post_id, trimmed, parent_id)
        except (ServiceCommunicationError, SessionExpiredError) as e:
            logger.warning(f"Comment on post {post_id} failed: {e}")
            error = MutationFailedError(
                self._user_message(e, COMMENT_FAILURE_MESSAGE),
                status_code=getattr(e, "status_code", None),
            )
            await self._report(error)
            raise error from e
        finally:
            self._comment_submissions.discard(post_id)

        self.state.append_comment(post_id, record)
        return record

    async def load_comments(self, post_id: str) -> List[CommentRecord]:
        comments = await self.content.list_comments(post_id)
        self.state.set_comments(post_id, comments)
        for comment in comments:
            if self.state.pending_edit(MembershipCollection.COMMENT_LIKES, comment.id) is None:
                self.state.set_members(MembershipCollection.COMMENT_LIKES, comment.id, comment.likes)
        return comments

    async def load_likes(self, post_id: str) -> List[str]:
        user_ids = await self.content.list_likes(post_id)
        if self.state.pending_edit(MembershipCollection.POST_LIKES, post_id) is None:
            self.state.set_members(MembershipCollection.POST_LIKES, post_id, user_ids)
        return user_ids

    def comment_tree(self, post_id: str) -> List[CommentNode]:
        return build_tree(self.state.comments(post_id))

    # --- Ошибки ---

    @staticmethod
    def _user_message(error: Exception, fallback: str) -> str:
        if isinstance(error, SessionExpiredError):
            return error.message
        if isinstance(error, ServiceCommunicationError) and error.detail:
            return error.detail
        return fallback

    async def _report(self, error: MutationFailedError) -> None:
        if self.on_error is None:
            return
        try:
            result = self.on_error(error)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("on_error hook raised an error")
