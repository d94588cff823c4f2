"""Pydantic models exposed by the stream API."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from ..provider.models import StreamingInfo


class HealthStatus(BaseModel):
    """Service health payload."""

    status: Literal["ok"] = Field(default="ok")
    version: str = Field(default="0.1.0", description="Semantic version of the API service.")
    mirror: str | None = Field(
        default=None, description="Currently memoized provider mirror, if one was resolved."
    )
    proxy_registered: bool = Field(
        default=False, description="Whether the proxy has a browser session to replay through."
    )


class SourceRequest(BaseModel):
    """Payload accepted by the source resolution endpoint."""

    catalogue_id: int = Field(..., description="Catalogue (AniList) identifier of the title.")
    title: str = Field(..., min_length=1, description="Primary catalogue title.")
    alt_title: str | None = Field(default=None, description="Alternate (usually English) title.")
    episode: int = Field(..., ge=0, description="Episode number to resolve.")
    audio_type: Literal["sub", "dub"] = Field(default="sub")


class VideoSourceModel(BaseModel):
    """One playable source, already pointing at the local proxy."""

    url: str
    quality: str
    is_m3u8: bool


class StreamingInfoModel(BaseModel):
    """Sources returned for an episode plus the player fallback URL."""

    sources: list[VideoSourceModel] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)
    embed_url: str | None = Field(default=None)

    @classmethod
    def from_info(cls, info: StreamingInfo) -> "StreamingInfoModel":
        return cls(
            sources=[
                VideoSourceModel(url=source.url, quality=source.quality, is_m3u8=source.is_m3u8)
                for source in info.sources
            ],
            headers=dict(info.headers),
            embed_url=info.embed_url,
        )


class ProviderMappingModel(BaseModel):
    """Cached catalogue to provider slug mapping."""

    catalogue_id: int
    provider: str
    slug: str
    cached_at: datetime
