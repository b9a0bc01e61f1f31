# wandr_sdk/__init__.py

from .client_setup import WandrClient, wandr_client_lifespan
from .config import WandrSettings
from .feed.tree import build_tree

__all__ = ["WandrClient", "wandr_client_lifespan", "WandrSettings", "build_tree"]
