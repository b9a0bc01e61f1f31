# wandr_sdk/clients/auth.py
import logging
from typing import Optional

from pydantic import ValidationError

from wandr_sdk.clients.base import ServiceClient, error_message
from wandr_sdk.exceptions import (
    AuthenticationError,
    ConflictError,
    InputValidationError,
    ServiceCommunicationError,
)
from wandr_sdk.schemas.session import Session
from wandr_sdk.schemas.token import AuthResponse

logger = logging.getLogger("wandr_sdk.clients.auth")


class AuthClient(ServiceClient):
    """Вход, регистрация и выход через user-сервис."""

    async def login(self, username: str, password: str) -> Session:
        if not username.strip() or not password:
            raise InputValidationError("Username and password are required")
        logger.info(f"Client LOGIN: signing in as '{username}'")
        response = await self._request(
            "POST",
            "/login",
            allowed_statuses=[200, 401, 404],
            authenticated=False,
            json={"username": username.strip(), "password": password},
        )
        if response.status_code in (401, 404):
            raise AuthenticationError(
                error_message(response, "Login failed"), status_code=response.status_code
            )
        return self._start_session(response)

    async def register(
        self,
        username: str,
        password: str,
        email: str,
        full_name: str,
    ) -> Session:
        if not all(v.strip() for v in (username, password, email, full_name)):
            raise InputValidationError("All fields are required")
        logger.info(f"Client REGISTER: creating account '{username}'")
        response = await self._request(
            "POST",
            "/register",
            allowed_statuses=[200, 201, 409],
            authenticated=False,
            json={
                "username": username.strip(),
                "password": password,
                "email": email.strip(),
                "fullName": full_name.strip(),
            },
        )
        if response.status_code == 409:
            body = self._json(response)
            field: Optional[str] = body.get("field") if isinstance(body, dict) else None
            raise ConflictError(error_message(response, "Account already exists"), field=field)
        return self._start_session(response)

    def logout(self) -> None:
        """Очищает сессию целиком. Серверного вызова нет: токены просто забываются."""
        logger.info("Client LOGOUT: clearing session")
        self.gateway.session_store.clear()

    def _start_session(self, response) -> Session:
        try:
            auth = AuthResponse.model_validate(self._json(response))
        except ValidationError as e:
            raise ServiceCommunicationError(
                f"Invalid auth response: {e}", status_code=response.status_code
            ) from e
        session = Session(
            access_token=auth.access_token,
            refresh_token=auth.refresh_token,
            user=auth.user,
        )
        self.gateway.session_store.save(session)
        logger.info(f"Session started for user '{auth.user.username if auth.user else session.actor_id}'")
        return session
