"""Service layer for source resolution and the local streaming proxy."""

from .playlist import rewrite_playlist
from .proxy_service import (
    ProxiedResponse,
    ProxyRegistration,
    ProxyRegistry,
    ProxyService,
    from_proxy_url,
    to_proxy_url,
)
from .source_service import SourceService

__all__ = [
    "ProxiedResponse",
    "ProxyRegistration",
    "ProxyRegistry",
    "ProxyService",
    "SourceService",
    "from_proxy_url",
    "rewrite_playlist",
    "to_proxy_url",
]
