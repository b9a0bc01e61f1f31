# wandr_sdk/session/store.py
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from wandr_sdk.schemas.session import Session

logger = logging.getLogger("wandr_sdk.session.store")


class SessionStore(ABC):
    """
    Хранилище пары токенов. Передается явно в TokenGateway и клиентам,
    чтобы в тестах можно было подставить свою реализацию.
    """

    @abstractmethod
    def load(self) -> Optional[Session]:
        ...

    @abstractmethod
    def save(self, session: Session) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

    @property
    def access_token(self) -> Optional[str]:
        session = self.load()
        return session.access_token if session else None

    @property
    def refresh_token(self) -> Optional[str]:
        session = self.load()
        return session.refresh_token if session else None

    @property
    def is_authenticated(self) -> bool:
        return self.load() is not None


class InMemorySessionStore(SessionStore):
    def __init__(self, session: Optional[Session] = None):
        self._session = session

    def load(self) -> Optional[Session]:
        return self._session

    def save(self, session: Session) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = None


class FileSessionStore(SessionStore):
    """
    Сессия в JSON файле на диске (аналог localStorage у веб-клиента).
    clear() удаляет файл целиком.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._cached: Optional[Session] = None
        self._loaded = False

    def load(self) -> Optional[Session]:
        if self._loaded:
            return self._cached
        self._loaded = True
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            self._cached = Session.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Session file {self.path} is corrupt, ignoring it: {e}")
            self._cached = None
        return self._cached

    def save(self, session: Session) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(session.model_dump_json(by_alias=True), encoding="utf-8")
        os.replace(tmp_path, self.path)
        self._cached = session
        self._loaded = True
        logger.debug(f"Session saved to {self.path}")

    def clear(self) -> None:
        self._cached = None
        self._loaded = True
        try:
            self.path.unlink()
            logger.debug(f"Session file {self.path} removed")
        except FileNotFoundError:
            pass
