# wandr_sdk/exceptions.py
from typing import Optional


class WandrSDKError(Exception):
    """
    Базовый класс для всех исключений, возникающих в wandr_sdk.
    Позволяет ловить все ошибки SDK одним блоком except WandrSDKError.
    """

    pass


class ConfigurationError(WandrSDKError):
    """
    Ошибка конфигурации SDK (например, не задан URL сервиса).
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"Configuration Error: {self.message}"


class ServiceCommunicationError(WandrSDKError):
    """
    Ошибка связи с удаленным сервисом: таймаут, сетевая ошибка или
    неожиданный статус ответа. Содержит URL, статус-код (если есть) и
    сообщение, пригодное для показа пользователю.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
        detail: str | None = None,
    ):
        """
        :param message: Основное сообщение об ошибке.
        :param status_code: HTTP статус-код ответа, если применимо.
        :param url: URL, при обращении к которому произошла ошибка.
        :param detail: Текст ошибки от сервера (поле message/error), если он был.
        """
        self.message = message
        self.status_code = status_code
        self.url = url
        self.detail = detail
        full_message = "Service Communication Error"
        if self.url:
            full_message += f" accessing {self.url}"
        if self.status_code:
            full_message += f" (Status Code: {self.status_code})"
        full_message += f": {self.message}"
        super().__init__(full_message)


class SessionExpiredError(WandrSDKError):
    """
    Фатальная ошибка сессии: refresh токен отсутствует, недействителен или
    эндпоинт /refresh недоступен. Сессия уже очищена; вызывающий код должен
    отправить пользователя на повторную аутентификацию.
    """

    def __init__(self, message: str = "Session expired, please sign in again"):
        self.message = message
        super().__init__(message)


class AuthenticationError(WandrSDKError):
    """Неверные учетные данные при входе (401/404 от /login)."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ConflictError(WandrSDKError):
    """
    Конфликт при регистрации (409). `field` указывает, какое поле
    конфликтует (username, email), если сервер его сообщил.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class InputValidationError(WandrSDKError):
    """Ошибка клиентской валидации ввода; запрос в сеть не отправлялся."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class MutationFailedError(WandrSDKError):
    """
    Мутация (лайк, подписка, комментарий) не подтверждена сервером.
    Локальное состояние к моменту выброса уже откатено (или не изменялось).
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)
