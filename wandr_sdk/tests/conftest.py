# wandr_sdk/tests/conftest.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
import pytest
import pytest_asyncio
from jose import jwt

from wandr_sdk.clients.content import ContentClient
from wandr_sdk.clients.gateway import TokenGateway
from wandr_sdk.clients.notifications import NotificationClient
from wandr_sdk.clients.users import UserClient
from wandr_sdk.feed.mutator import OptimisticMutator
from wandr_sdk.feed.state import FeedState
from wandr_sdk.schemas.session import Session
from wandr_sdk.schemas.user import UserSummary
from wandr_sdk.session.store import InMemorySessionStore

logger = logging.getLogger("wandr_sdk.tests.conftest")

USER_SERVICE_URL = "http://users.wandr.test"
CONTENT_SERVICE_URL = "http://content.wandr.test"
NOTIF_SERVICE_URL = "http://notifications.wandr.test"
REFRESH_URL = f"{USER_SERVICE_URL}/refresh"

ACTOR_ID = "64b000000000000000000001"
OLD_ACCESS = "old-access-token"
NEW_ACCESS = "new-access-token"
OLD_REFRESH = "refresh-token-1"
NEW_REFRESH = "refresh-token-2"

TEST_JWT_SECRET = "wandr-test-secret"


def make_jwt(user_id: str = ACTOR_ID, expires_in: timedelta = timedelta(minutes=15)) -> str:
    """JWT access токен в формате user-сервиса ({userId, exp})."""
    return jwt.encode(
        {"userId": user_id, "exp": datetime.now(timezone.utc) + expires_in},
        TEST_JWT_SECRET,
        algorithm="HS256",
    )


class CountingSessionStore(InMemorySessionStore):
    """InMemorySessionStore, считающий вызовы clear()."""

    def __init__(self, session: Optional[Session] = None):
        super().__init__(session)
        self.clear_calls = 0

    def clear(self) -> None:
        self.clear_calls += 1
        super().clear()


@pytest.fixture
def actor() -> UserSummary:
    return UserSummary(id=ACTOR_ID, username="traveler", full_name="Test Traveler")


@pytest.fixture
def session(actor: UserSummary) -> Session:
    return Session(access_token=OLD_ACCESS, refresh_token=OLD_REFRESH, user=actor)


@pytest.fixture
def session_store(session: Session) -> CountingSessionStore:
    return CountingSessionStore(session)


@pytest_asyncio.fixture
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def gateway(session_store: CountingSessionStore, http_client: httpx.AsyncClient) -> TokenGateway:
    return TokenGateway(session_store, REFRESH_URL, http_client=http_client, timeout=5.0)


@pytest.fixture
def content_client(gateway: TokenGateway) -> ContentClient:
    return ContentClient(CONTENT_SERVICE_URL, gateway)


@pytest.fixture
def user_client(gateway: TokenGateway) -> UserClient:
    return UserClient(USER_SERVICE_URL, gateway)


@pytest.fixture
def notification_client(gateway: TokenGateway) -> NotificationClient:
    return NotificationClient(NOTIF_SERVICE_URL, gateway)


@pytest.fixture
def feed_state() -> FeedState:
    return FeedState()


@pytest.fixture
def mutator(
    feed_state: FeedState,
    session_store: CountingSessionStore,
    content_client: ContentClient,
    user_client: UserClient,
) -> OptimisticMutator:
    return OptimisticMutator(
        state=feed_state,
        session_store=session_store,
        content_client=content_client,
        user_client=user_client,
    )
