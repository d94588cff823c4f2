"""Database-backed cache of catalogue id to provider slug mappings."""
from __future__ import annotations

from threading import Lock

from sqlmodel import Session, select

from ..models import ProviderMappingRecord, utc_now
from ..schemas import ProviderMappingModel


class MappingStore:
    """Thread-safe interface over the persisted provider mappings."""

    def __init__(self, engine) -> None:
        self._engine = engine
        self._lock = Lock()

    def get(self, catalogue_id: int, provider: str) -> str | None:
        """Return the cached slug for a catalogue id, if any."""

        with Session(self._engine) as session:
            record = session.get(ProviderMappingRecord, (catalogue_id, provider))
            return record.slug if record else None

    def describe(self, catalogue_id: int, provider: str) -> ProviderMappingModel | None:
        """Return the full mapping row as a response model."""

        with Session(self._engine) as session:
            record = session.get(ProviderMappingRecord, (catalogue_id, provider))
            return _to_model(record) if record else None

    def set(self, catalogue_id: int, provider: str, slug: str) -> ProviderMappingModel:
        """Insert or replace the mapping for ``(catalogue_id, provider)``."""

        with self._lock, Session(self._engine) as session:
            record = session.get(ProviderMappingRecord, (catalogue_id, provider))
            if record is None:
                record = ProviderMappingRecord(catalogue_id=catalogue_id, provider=provider, slug=slug)
            else:
                record.slug = slug
                record.cached_at = utc_now()
            session.add(record)
            session.commit()
            session.refresh(record)
            return _to_model(record)

    def clear(self, catalogue_id: int) -> int:
        """Delete every provider mapping for a catalogue id and return how many were removed."""

        with self._lock, Session(self._engine) as session:
            records = session.exec(
                select(ProviderMappingRecord).where(ProviderMappingRecord.catalogue_id == catalogue_id)
            ).all()
            for record in records:
                session.delete(record)
            session.commit()
            return len(records)


def _to_model(record: ProviderMappingRecord) -> ProviderMappingModel:
    return ProviderMappingModel(
        catalogue_id=record.catalogue_id,
        provider=record.provider,
        slug=record.slug,
        cached_at=record.cached_at,
    )
