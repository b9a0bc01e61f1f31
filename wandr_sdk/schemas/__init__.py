# wandr_sdk/schemas/__init__.py

from .user import UserSummary, FollowStats
from .token import TokenPayload, TokenPair, RefreshRequest, AuthResponse
from .session import Session
from .comment import CommentRecord, CommentNode, CommentCreate
from .edit import (
    MembershipCollection,
    EditState,
    EntryKey,
    OptimisticEdit,
    LocalEntry,
    ConfirmedEntry,
    Entry,
)

__all__ = [
    "UserSummary",
    "FollowStats",
    "TokenPayload",
    "TokenPair",
    "RefreshRequest",
    "AuthResponse",
    "Session",
    "CommentRecord",
    "CommentNode",
    "CommentCreate",
    "MembershipCollection",
    "EditState",
    "EntryKey",
    "OptimisticEdit",
    "LocalEntry",
    "ConfirmedEntry",
    "Entry",
]
