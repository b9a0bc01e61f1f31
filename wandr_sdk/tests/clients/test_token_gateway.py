# wandr_sdk/tests/clients/test_token_gateway.py
import asyncio
import dataclasses
import json
from datetime import timedelta

import httpx
import pytest
from respx import MockRouter

from wandr_sdk.clients.gateway import AuthRequest, TokenGateway
from wandr_sdk.exceptions import ServiceCommunicationError, SessionExpiredError
from wandr_sdk.schemas.session import Session
from wandr_sdk.tests.conftest import (
    CONTENT_SERVICE_URL,
    NEW_ACCESS,
    NEW_REFRESH,
    OLD_ACCESS,
    OLD_REFRESH,
    REFRESH_URL,
    CountingSessionStore,
    make_jwt,
)

pytestmark = pytest.mark.asyncio

POSTS_URL = f"{CONTENT_SERVICE_URL}/posts"


def _by_token(request: httpx.Request) -> httpx.Response:
    if request.headers.get("Authorization") == f"Bearer {NEW_ACCESS}":
        return httpx.Response(200, json={"ok": True})
    return httpx.Response(401, json={"message": "jwt expired"})


async def test_send_attaches_bearer_token(gateway: TokenGateway, respx_mock: MockRouter):
    route = respx_mock.get(POSTS_URL).respond(200, json=[])

    response = await gateway.send("GET", POSTS_URL)

    assert response.status_code == 200
    assert route.calls.last.request.headers["Authorization"] == f"Bearer {OLD_ACCESS}"


async def test_send_unauthenticated_skips_header(gateway: TokenGateway, respx_mock: MockRouter):
    route = respx_mock.get(POSTS_URL).respond(200, json=[])

    await gateway.send("GET", POSTS_URL, authenticated=False)

    assert "Authorization" not in route.calls.last.request.headers


async def test_non_401_error_is_returned_as_is(gateway: TokenGateway, respx_mock: MockRouter):
    # Маршрут /refresh не замокан: любой вызов refresh провалил бы тест
    respx_mock.get(POSTS_URL).respond(500, json={"error": "boom"})

    response = await gateway.send("GET", POSTS_URL)

    assert response.status_code == 500
    assert response.json() == {"error": "boom"}


async def test_401_refreshes_and_retries_with_new_token(
    gateway: TokenGateway, session_store: CountingSessionStore, respx_mock: MockRouter
):
    posts_route = respx_mock.get(POSTS_URL).mock(side_effect=_by_token)
    refresh_route = respx_mock.post(REFRESH_URL).respond(
        200, json={"token": NEW_ACCESS, "refreshToken": NEW_REFRESH}
    )

    response = await gateway.send("GET", POSTS_URL)

    assert response.status_code == 200
    assert refresh_route.call_count == 1
    assert json.loads(refresh_route.calls.last.request.content) == {"refreshToken": OLD_REFRESH}
    assert posts_route.call_count == 2
    assert session_store.access_token == NEW_ACCESS
    assert session_store.refresh_token == NEW_REFRESH
    # Профиль пользователя переживает обновление токенов
    assert session_store.load().user.username == "traveler"
    assert not gateway.refresh_in_flight


async def test_refresh_without_new_refresh_token_keeps_old_one(
    gateway: TokenGateway, session_store: CountingSessionStore, respx_mock: MockRouter
):
    respx_mock.get(POSTS_URL).mock(side_effect=_by_token)
    respx_mock.post(REFRESH_URL).respond(200, json={"token": NEW_ACCESS})

    await gateway.send("GET", POSTS_URL)

    assert session_store.refresh_token == OLD_REFRESH


async def test_second_401_after_retry_is_returned_as_is(
    gateway: TokenGateway, session_store: CountingSessionStore, respx_mock: MockRouter
):
    posts_route = respx_mock.get(POSTS_URL).respond(401, json={"message": "still invalid"})
    refresh_route = respx_mock.post(REFRESH_URL).respond(
        200, json={"token": NEW_ACCESS, "refreshToken": NEW_REFRESH}
    )

    response = await gateway.send("GET", POSTS_URL)

    assert response.status_code == 401
    assert refresh_route.call_count == 1
    assert posts_route.call_count == 2
    assert session_store.clear_calls == 0


async def test_refresh_rejected_clears_session_and_calls_hook(
    session_store: CountingSessionStore, http_client: httpx.AsyncClient, respx_mock: MockRouter
):
    expired_errors = []
    gateway = TokenGateway(
        session_store, REFRESH_URL, http_client=http_client, on_session_expired=expired_errors.append
    )
    respx_mock.get(POSTS_URL).respond(401)
    respx_mock.post(REFRESH_URL).respond(401, json={"error": "Invalid refresh token"})

    with pytest.raises(SessionExpiredError):
        await gateway.send("GET", POSTS_URL)

    assert session_store.load() is None
    assert session_store.clear_calls == 1
    assert len(expired_errors) == 1
    assert not gateway.refresh_in_flight


async def test_missing_refresh_token_is_fatal_without_network_call(
    http_client: httpx.AsyncClient, respx_mock: MockRouter
):
    store = CountingSessionStore(Session(access_token=OLD_ACCESS))
    gateway = TokenGateway(store, REFRESH_URL, http_client=http_client)
    respx_mock.get(POSTS_URL).respond(401)

    with pytest.raises(SessionExpiredError) as exc_info:
        await gateway.send("GET", POSTS_URL)

    assert "No refresh token" in exc_info.value.message
    assert store.clear_calls == 1


async def test_refresh_network_failure_is_fatal(
    gateway: TokenGateway, session_store: CountingSessionStore, respx_mock: MockRouter
):
    respx_mock.get(POSTS_URL).respond(401)
    respx_mock.post(REFRESH_URL).mock(side_effect=httpx.ConnectError("connection refused"))

    with pytest.raises(SessionExpiredError):
        await gateway.send("GET", POSTS_URL)

    assert session_store.load() is None


async def test_async_session_expired_hook_is_awaited(
    session_store: CountingSessionStore, http_client: httpx.AsyncClient, respx_mock: MockRouter
):
    calls = []

    async def hook(error: SessionExpiredError) -> None:
        calls.append(error.message)

    gateway = TokenGateway(session_store, REFRESH_URL, http_client=http_client, on_session_expired=hook)
    respx_mock.get(POSTS_URL).respond(401)
    respx_mock.post(REFRESH_URL).respond(500)

    with pytest.raises(SessionExpiredError):
        await gateway.send("GET", POSTS_URL)

    assert calls == ["Token refresh rejected with status 500"]


async def test_network_error_raises_service_communication_error(
    gateway: TokenGateway, respx_mock: MockRouter
):
    respx_mock.get(POSTS_URL).mock(side_effect=httpx.ConnectError("unreachable"))

    with pytest.raises(ServiceCommunicationError) as exc_info:
        await gateway.send("GET", POSTS_URL)

    assert exc_info.value.url == POSTS_URL
    assert exc_info.value.status_code is None
    assert "Network error" in exc_info.value.message


async def test_timeout_raises_service_communication_error(gateway: TokenGateway, respx_mock: MockRouter):
    respx_mock.get(POSTS_URL).mock(side_effect=httpx.ReadTimeout("too slow"))

    with pytest.raises(ServiceCommunicationError) as exc_info:
        await gateway.send("GET", POSTS_URL, timeout=0.5)

    assert "Timeout error" in exc_info.value.message


async def test_refresh_before_expiry_refreshes_proactively(
    http_client: httpx.AsyncClient, respx_mock: MockRouter
):
    expired = make_jwt(expires_in=timedelta(minutes=-5))
    store = CountingSessionStore(Session(access_token=expired, refresh_token=OLD_REFRESH))
    gateway = TokenGateway(store, REFRESH_URL, http_client=http_client, refresh_before_expiry=True)
    posts_route = respx_mock.get(POSTS_URL).respond(200, json=[])
    refresh_route = respx_mock.post(REFRESH_URL).respond(
        200, json={"token": NEW_ACCESS, "refreshToken": NEW_REFRESH}
    )

    await gateway.send("GET", POSTS_URL)

    assert refresh_route.call_count == 1
    assert posts_route.call_count == 1
    assert posts_route.calls.last.request.headers["Authorization"] == f"Bearer {NEW_ACCESS}"


async def test_refresh_before_expiry_leaves_valid_token_alone(
    http_client: httpx.AsyncClient, respx_mock: MockRouter
):
    valid = make_jwt(expires_in=timedelta(hours=1))
    store = CountingSessionStore(Session(access_token=valid, refresh_token=OLD_REFRESH))
    gateway = TokenGateway(store, REFRESH_URL, http_client=http_client, refresh_before_expiry=True)
    posts_route = respx_mock.get(POSTS_URL).respond(200, json=[])

    await gateway.send("GET", POSTS_URL)

    assert posts_route.calls.last.request.headers["Authorization"] == f"Bearer {valid}"


async def test_auth_request_attempts_are_immutable():
    request = AuthRequest(method="GET", url=POSTS_URL, token=OLD_ACCESS)

    retry = request.next_attempt(NEW_ACCESS)

    assert request.attempt == 0
    assert request.token == OLD_ACCESS
    assert retry.attempt == 1
    assert retry.token == NEW_ACCESS
    with pytest.raises(dataclasses.FrozenInstanceError):
        request.attempt = 5  # type: ignore[misc]


# --- Конкурентные 401 ---


class _SlowBackend:
    """Бэкенд для httpx.MockTransport: ответы с задержкой, чтобы вызовы пересекались."""

    def __init__(self, refresh_status: int = 200):
        self.refresh_status = refresh_status
        self.refresh_calls = 0
        self.authorized_calls = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/refresh":
            self.refresh_calls += 1
            await asyncio.sleep(0.02)
            if self.refresh_status != 200:
                return httpx.Response(self.refresh_status, json={"error": "Invalid refresh token"})
            return httpx.Response(200, json={"token": NEW_ACCESS, "refreshToken": NEW_REFRESH})
        await asyncio.sleep(0.01)
        if request.headers.get("Authorization") == f"Bearer {NEW_ACCESS}":
            self.authorized_calls += 1
            return httpx.Response(200, json={"path": request.url.path})
        return httpx.Response(401, json={"message": "jwt expired"})


@pytest.mark.parametrize("callers", [2, 5])
async def test_concurrent_401s_trigger_exactly_one_refresh(
    session_store: CountingSessionStore, callers: int
):
    backend = _SlowBackend()
    async with httpx.AsyncClient(transport=httpx.MockTransport(backend)) as client:
        gateway = TokenGateway(session_store, REFRESH_URL, http_client=client)
        responses = await asyncio.gather(
            *(gateway.send("GET", f"{CONTENT_SERVICE_URL}/posts/{i}") for i in range(callers))
        )

    assert backend.refresh_calls == 1
    assert backend.authorized_calls == callers
    assert [r.status_code for r in responses] == [200] * callers
    assert [r.json()["path"] for r in responses] == [f"/posts/{i}" for i in range(callers)]
    assert session_store.access_token == NEW_ACCESS


async def test_concurrent_callers_all_rejected_when_refresh_fails(session_store: CountingSessionStore):
    backend = _SlowBackend(refresh_status=401)
    expired_errors = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(backend)) as client:
        gateway = TokenGateway(
            session_store, REFRESH_URL, http_client=client, on_session_expired=expired_errors.append
        )
        results = await asyncio.gather(
            *(gateway.send("GET", f"{CONTENT_SERVICE_URL}/posts/{i}") for i in range(4)),
            return_exceptions=True,
        )

    assert all(isinstance(r, SessionExpiredError) for r in results)
    assert backend.refresh_calls == 1
    assert session_store.clear_calls == 1
    assert len(expired_errors) == 1
    assert session_store.load() is None


async def test_late_401_after_refresh_reuses_rotated_token(
    session_store: CountingSessionStore, http_client: httpx.AsyncClient
):
    """Запрос, ушедший со старым токеном уже после обновления, повторяется без второго refresh."""
    gateway = TokenGateway(session_store, REFRESH_URL, http_client=http_client)

    request = AuthRequest(method="GET", url=POSTS_URL, token=OLD_ACCESS)
    session_store.save(session_store.load().with_tokens(NEW_ACCESS, NEW_REFRESH))

    token = await gateway._token_for_retry(request)

    assert token == NEW_ACCESS
