"""
Value objects passed between the provider, the capture session and the API.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Literal, Optional, Tuple

AudioType = Literal["sub", "dub"]


@dataclass(frozen=True)
class SearchResult:
    slug: str
    display_title: str
    url: str
    image_url: Optional[str] = None


@dataclass(frozen=True)
class MatchCandidate:
    result: SearchResult
    score: float


@dataclass(frozen=True)
class VideoSource:
    url: str
    quality: str
    is_m3u8: bool


@dataclass(frozen=True)
class StreamingInfo:
    """Sources captured for one episode, already rewritten to proxy URLs."""

    sources: Tuple[VideoSource, ...] = ()
    headers: Dict[str, str] = field(default_factory=dict)
    embed_url: Optional[str] = None
