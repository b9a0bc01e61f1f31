# wandr_sdk/client_setup.py
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from wandr_sdk.clients.auth import AuthClient
from wandr_sdk.clients.content import ContentClient
from wandr_sdk.clients.gateway import SessionExpiredHook, TokenGateway
from wandr_sdk.clients.notifications import NotificationClient
from wandr_sdk.clients.users import UserClient
from wandr_sdk.config import WandrSettings
from wandr_sdk.feed.mutator import ErrorHook, OptimisticMutator
from wandr_sdk.feed.state import FeedState
from wandr_sdk.logging_config import setup_sdk_logging
from wandr_sdk.session.store import FileSessionStore, InMemorySessionStore, SessionStore

logger = logging.getLogger("wandr_sdk.client_setup")


def build_session_store(settings: WandrSettings) -> SessionStore:
    if settings.SESSION_FILE:
        logger.info(f"Using file session store at {settings.SESSION_FILE}")
        return FileSessionStore(settings.SESSION_FILE)
    logger.info("Using in-memory session store")
    return InMemorySessionStore()


class WandrClient:
    """
    Точка сборки SDK: один httpx.AsyncClient, один TokenGateway для всех
    сервисов, общее локальное состояние ленты и OptimisticMutator поверх него.
    """

    def __init__(
        self,
        settings: Optional[WandrSettings] = None,
        session_store: Optional[SessionStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        on_session_expired: Optional[SessionExpiredHook] = None,
        on_error: Optional[ErrorHook] = None,
    ):
        self.settings = settings or WandrSettings()
        self.session_store = session_store or build_session_store(self.settings)

        if http_client is None:
            timeouts = httpx.Timeout(self.settings.REQUEST_TIMEOUT, connect=5.0)
            limits = httpx.Limits(max_connections=100, max_keepalive_connections=20)
            http_client = httpx.AsyncClient(timeout=timeouts, limits=limits)
            self._owns_client = True
        else:
            self._owns_client = False
        self._http_client = http_client

        self.gateway = TokenGateway(
            session_store=self.session_store,
            refresh_url=f"{self.settings.USER_SERVICE_URL}/refresh",
            http_client=self._http_client,
            timeout=self.settings.REQUEST_TIMEOUT,
            on_session_expired=on_session_expired,
            refresh_before_expiry=self.settings.REFRESH_BEFORE_EXPIRY,
            expiry_leeway_seconds=self.settings.EXPIRY_LEEWAY_SECONDS,
        )
        self.auth = AuthClient(self.settings.USER_SERVICE_URL, self.gateway)
        self.users = UserClient(self.settings.USER_SERVICE_URL, self.gateway)
        self.content = ContentClient(self.settings.CONTENT_SERVICE_URL, self.gateway)
        self.notifications = NotificationClient(self.settings.NOTIF_SERVICE_URL, self.gateway)

        self.state = FeedState()
        self.mutator = OptimisticMutator(
            state=self.state,
            session_store=self.session_store,
            content_client=self.content,
            user_client=self.users,
            notification_client=self.notifications,
            on_error=on_error,
        )
        logger.debug(f"WandrClient initialized. Owns HTTP client: {self._owns_client}")

    async def close(self) -> None:
        if self._owns_client:
            logger.info("Closing WandrClient HTTP client")
            await self._http_client.aclose()
        else:
            logger.debug("HTTP client is managed externally, not closing.")

    async def __aenter__(self) -> "WandrClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


@asynccontextmanager
async def wandr_client_lifespan(
    settings: Optional[WandrSettings] = None,
    configure_logging: bool = True,
    **kwargs,
) -> AsyncIterator[WandrClient]:
    """
    Создает WandrClient на время блока и закрывает его HTTP клиент при выходе.
    """
    settings = settings or WandrSettings()
    if configure_logging:
        setup_sdk_logging(level=settings.LOGGING_LEVEL)
    logger.info(f"{settings.PROJECT_NAME}: starting up (ENV={settings.ENV})")
    client = WandrClient(settings=settings, **kwargs)
    try:
        yield client
    finally:
        await client.close()
        logger.info(f"{settings.PROJECT_NAME}: shut down")
