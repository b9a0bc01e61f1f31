# wandr_sdk/clients/base.py
import logging
from typing import Any, List, Optional

import httpx

from wandr_sdk.clients.gateway import TokenGateway
from wandr_sdk.exceptions import ConfigurationError, ServiceCommunicationError

logger = logging.getLogger("wandr_sdk.clients.base")


def server_message(response: httpx.Response) -> Optional[str]:
    """
    Текст ошибки из JSON тела ответа (поле message, error или detail).
    Не JSON тело (например, HTML страница ошибки) дает None, а не исключение.
    """
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        for key in ("message", "error", "detail"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def error_message(response: httpx.Response, fallback: Optional[str] = None) -> str:
    return server_message(response) or fallback or f"Request failed ({response.status_code})"


class ServiceClient:
    """
    Базовый клиент одного Wandr сервиса. Все вызовы идут через TokenGateway,
    который подставляет Bearer токен и обновляет его при 401.
    """

    def __init__(self, base_url: str, gateway: TokenGateway):
        if not base_url:
            raise ConfigurationError(f"Base URL for {type(self).__name__} is not configured.")
        self.base_url = str(base_url).rstrip("/")
        self.gateway = gateway
        logger.debug(f"{type(self).__name__} initialized for {self.base_url}")

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        allowed_statuses: Optional[List[int]] = None,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        url = self._url(path)
        response = await self.gateway.send(method, url, authenticated=authenticated, **kwargs)
        effective_allowed_statuses = allowed_statuses if allowed_statuses is not None else [200, 201, 204]
        if response.status_code not in effective_allowed_statuses:
            logger.warning(
                f"Remote call to {url} returned unexpected status: {response.status_code}. "
                f"Allowed: {effective_allowed_statuses}. Response text: {response.text[:500]}"
            )
            raise ServiceCommunicationError(
                message=error_message(response),
                status_code=response.status_code,
                url=url,
                detail=server_message(response),
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ServiceCommunicationError(
                "Service returned a non-JSON body",
                status_code=response.status_code,
                url=str(response.request.url) if response.request else None,
            ) from e
