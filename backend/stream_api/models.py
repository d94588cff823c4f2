"""Database models for the stream API."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProviderMappingRecord(SQLModel, table=True):
    """Catalogue id to provider slug mapping, validated by a scored search."""

    __tablename__ = "provider_mappings"

    catalogue_id: int = Field(primary_key=True)
    provider: str = Field(primary_key=True)
    slug: str = Field(index=True)
    cached_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
