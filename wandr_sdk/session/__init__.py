from .store import SessionStore, InMemorySessionStore, FileSessionStore

__all__ = ["SessionStore", "InMemorySessionStore", "FileSessionStore"]
