# wandr_sdk/schemas/edit.py
import enum
from typing import Annotated, FrozenSet, Literal, NamedTuple, Union

from pydantic import BaseModel, ConfigDict, Field


class MembershipCollection(str, enum.Enum):
    """Отношения-множества, которые переключаются оптимистично."""

    POST_LIKES = "post_likes"  # пользователи, лайкнувшие пост
    COMMENT_LIKES = "comment_likes"  # пользователи, лайкнувшие комментарий
    FOLLOWERS = "followers"  # подписчики пользователя


class EditState(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CORRECTED = "corrected"
    ROLLED_BACK = "rolled_back"


class EntryKey(NamedTuple):
    collection: MembershipCollection
    item_id: str


class OptimisticEdit(BaseModel):
    """
    Спекулятивное локальное изменение множества.
    Неизменяемо: переходы состояния создают новый объект через settle().
    """

    collection: MembershipCollection
    item_id: str
    actor_id: str
    previous: FrozenSet[str]
    speculative: FrozenSet[str]
    state: EditState = EditState.PENDING

    model_config = ConfigDict(frozen=True)

    @property
    def key(self) -> EntryKey:
        return EntryKey(self.collection, self.item_id)

    @property
    def desired_member(self) -> bool:
        return self.actor_id in self.speculative

    def settle(self, state: EditState) -> "OptimisticEdit":
        return self.model_copy(update={"state": state})


class LocalEntry(BaseModel):
    """Значение, которое пока отражает неподтвержденную правку."""

    kind: Literal["local"] = "local"
    edit: OptimisticEdit

    model_config = ConfigDict(frozen=True)

    @property
    def value(self) -> FrozenSet[str]:
        return self.edit.speculative


class ConfirmedEntry(BaseModel):
    """Значение, совпадающее с последним известным состоянием сервера."""

    kind: Literal["confirmed"] = "confirmed"
    value: FrozenSet[str] = frozenset()

    model_config = ConfigDict(frozen=True)


Entry = Annotated[Union[LocalEntry, ConfirmedEntry], Field(discriminator="kind")]
