"""
Remote Module

httpx bindings for the remote posts API and its OAuth2 token endpoint.
"""

from .http_client import HttpRemoteObjectStore, map_http_error
from .oauth import OAuth2TokenRefresher

__all__ = [
    "HttpRemoteObjectStore",
    "OAuth2TokenRefresher",
    "map_http_error",
]
