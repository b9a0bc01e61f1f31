from .gateway import AuthRequest, TokenGateway
from .base import ServiceClient, error_message, server_message
from .auth import AuthClient
from .content import ContentClient
from .users import UserClient
from .notifications import NotificationClient

__all__ = [
    "AuthRequest",
    "TokenGateway",
    "ServiceClient",
    "error_message",
    "server_message",
    "AuthClient",
    "ContentClient",
    "UserClient",
    "NotificationClient",
]
