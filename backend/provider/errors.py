"""Exception hierarchy shared by the provider and the stream API."""
from __future__ import annotations


class StreamResolverError(RuntimeError):
    """Base class for every failure raised while resolving or relaying a stream."""


class MirrorUnavailableError(StreamResolverError):
    """Raised when no mirror candidate is configured to fall back on."""


class ProviderHTTPError(StreamResolverError):
    """Raised when a provider page could not be fetched."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NoMatchFoundError(StreamResolverError):
    """Raised when every search strategy failed to produce an accepted match."""


class NoServersFoundError(StreamResolverError):
    """Raised when an episode page exposes no embed servers."""


class ExtractionFailedError(StreamResolverError):
    """Raised when no embed server yielded a playable source."""


class CaptureTimeoutError(ExtractionFailedError):
    """Raised when a capture session reached its ceiling with nothing buffered."""


class ProxyUnavailableError(StreamResolverError):
    """Raised when the proxy has no live browser session registered."""


class UpstreamReplayError(StreamResolverError):
    """Raised when replaying a request through the browser session failed."""


class PlaylistCorruptError(StreamResolverError):
    """Raised when a playlist response does not start with the HLS marker."""
