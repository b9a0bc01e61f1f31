# wandr_sdk/clients/gateway.py
import asyncio
import dataclasses
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

import httpx
from pydantic import ValidationError

from wandr_sdk.exceptions import ServiceCommunicationError, SessionExpiredError
from wandr_sdk.schemas.token import RefreshRequest, TokenPair
from wandr_sdk.session.store import SessionStore

logger = logging.getLogger("wandr_sdk.clients.gateway")

SessionExpiredHook = Callable[[SessionExpiredError], Union[None, Awaitable[None]]]


@dataclasses.dataclass(frozen=True)
class AuthRequest:
    """
    Неизменяемое описание исходящего запроса.
    attempt - сколько раз запрос уже повторялся после 401,
    token - access токен, с которым запрос был отправлен.
    """

    method: str
    url: str
    params: Optional[Mapping[str, Any]] = None
    json_body: Any = None
    headers: Mapping[str, str] = dataclasses.field(default_factory=dict)
    timeout: Optional[float] = None
    attempt: int = 0
    token: Optional[str] = None

    def with_token(self, token: Optional[str]) -> "AuthRequest":
        return dataclasses.replace(self, token=token)

    def next_attempt(self, token: str) -> "AuthRequest":
        return dataclasses.replace(self, attempt=self.attempt + 1, token=token)


class TokenGateway:
    """
    Прозрачное обновление access токена для всех исходящих вызовов.

    Каждый запрос уходит с текущим Bearer токеном. Первый 401 по запросу
    запускает обновление токена через /refresh и повтор запроса с новым
    токеном; повторный 401 возвращается вызывающему как есть.

    Одновременно выполняется не более одного обновления: вызывающие, получившие
    401, пока обновление в полете, ждут его результата (одна задача, N ожидающих).
    Неудачный refresh фатален: сессия очищается один раз, все ожидающие
    получают SessionExpiredError, хук on_session_expired вызывается один раз.
    """

    def __init__(
        self,
        session_store: SessionStore,
        refresh_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        on_session_expired: Optional[SessionExpiredHook] = None,
        refresh_before_expiry: bool = False,
        expiry_leeway_seconds: int = 30,
    ):
        self.session_store = session_store
        self.refresh_url = refresh_url
        self.timeout = timeout
        self.on_session_expired = on_session_expired
        self.refresh_before_expiry = refresh_before_expiry
        self.expiry_leeway_seconds = expiry_leeway_seconds

        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None
        self._refresh_task: Optional[asyncio.Task] = None
        logger.debug(f"TokenGateway initialized. Refresh URL: {self.refresh_url}. Owns client: {self._owns_client}")

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_task is not None

    @staticmethod
    def _auth_headers(token: Optional[str]) -> Dict[str, str]:
        if token:
            prefix = "Bearer "
            if token.lower().startswith(prefix.lower()):
                return {"Authorization": token}
            return {"Authorization": f"{prefix}{token}"}
        return {}

    async def send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        """
        Отправляет запрос и возвращает ответ сервера (любой статус).

        :raises ServiceCommunicationError: таймаут или сетевая ошибка.
        :raises SessionExpiredError: токен отклонен, а обновить его не удалось.
        """
        request = AuthRequest(
            method=method.upper(),
            url=url,
            params=params,
            json_body=json,
            headers=dict(headers or {}),
            timeout=timeout,
        )
        if not authenticated:
            return await self._issue(request)

        if self.refresh_before_expiry:
            await self._refresh_if_expired()

        request = request.with_token(self.session_store.access_token)
        response = await self._issue(request)
        if response.status_code != 401 or request.attempt > 0:
            return response

        logger.info(f"{request.method} {request.url} returned 401, refreshing access token before retry")
        token = await self._token_for_retry(request)
        return await self._issue(request.next_attempt(token))

    async def _refresh_if_expired(self) -> None:
        session = self.session_store.load()
        if session is None or not session.refresh_token:
            return
        if session.is_access_token_expired(self.expiry_leeway_seconds):
            logger.info("Access token is past its exp claim, refreshing before sending")
            await self._await_refresh()

    async def _token_for_retry(self, request: AuthRequest) -> str:
        current = self.session_store.access_token
        if current is not None and current != request.token:
            # Токен уже обновил другой вызывающий, пока этот запрос был в полете.
            logger.debug("Access token rotated while request was in flight, retrying without refresh")
            return current
        if current is None and request.token is not None:
            raise SessionExpiredError("Session was cleared while request was in flight")
        return await self._await_refresh()

    async def _await_refresh(self) -> str:
        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._run_refresh())
        else:
            logger.debug("Token refresh already in flight, waiting for its outcome")
        return await asyncio.shield(self._refresh_task)

    async def _run_refresh(self) -> str:
        try:
            session = self.session_store.load()
            if session is None or not session.refresh_token:
                raise SessionExpiredError("No refresh token available")

            payload = RefreshRequest(refresh_token=session.refresh_token).model_dump(by_alias=True)
            logger.debug(f"Requesting new token pair from {self.refresh_url}")
            try:
                response = await self._http_client.post(self.refresh_url, json=payload, timeout=self.timeout)
            except httpx.TimeoutException as e:
                raise SessionExpiredError(f"Token refresh timed out: {e!s}") from e
            except httpx.RequestError as e:
                raise SessionExpiredError(f"Token refresh failed: {e!s}") from e

            if not response.is_success:
                raise SessionExpiredError(f"Token refresh rejected with status {response.status_code}")
            try:
                pair = TokenPair.model_validate(response.json())
            except (ValueError, ValidationError) as e:
                raise SessionExpiredError("Malformed token refresh response") from e

            self.session_store.save(session.with_tokens(pair.access_token, pair.refresh_token))
            logger.info("Access token refreshed successfully")
            return pair.access_token
        except SessionExpiredError as e:
            logger.warning(f"Token refresh failed, clearing session: {e.message}")
            self.session_store.clear()
            await self._notify_session_expired(e)
            raise
        finally:
            self._refresh_task = None

    async def _notify_session_expired(self, error: SessionExpiredError) -> None:
        if self.on_session_expired is None:
            return
        try:
            result = self.on_session_expired(error)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("on_session_expired hook raised an error")

    async def _issue(self, request: AuthRequest) -> httpx.Response:
        headers = self._auth_headers(request.token)
        headers.update(request.headers)
        timeout = request.timeout if request.timeout is not None else self.timeout
        logger.debug(f"Executing remote call: {request.method} {request.url}, Params: {request.params}, Attempt: {request.attempt}")
        try:
            response = await self._http_client.request(
                request.method,
                request.url,
                params=request.params,
                json=request.json_body,
                headers=headers,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise ServiceCommunicationError(f"Timeout error accessing {request.url}: {e!s}", url=request.url) from e
        except httpx.RequestError as e:
            raise ServiceCommunicationError(f"Network error accessing {request.url}: {e!s}", url=request.url) from e
        logger.debug(f"Remote call to {request.url} finished. Status: {response.status_code}")
        return response

    async def close(self) -> None:
        if self._owns_client:
            logger.info("Closing owned HTTP client of TokenGateway")
            try:
                await self._http_client.aclose()
            except Exception as e:
                logger.error(f"Error closing owned HTTP client: {e}", exc_info=True)
