"""Episode source orchestration: mapping cache, title matching and extraction."""
from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from ...provider.errors import NoMatchFoundError, ProviderHTTPError, StreamResolverError
from ...provider.matching import DEFAULT_THRESHOLD, find_best_match, simplify_query
from ...provider.mirrors import MirrorResolver
from ...provider.models import AudioType, MatchCandidate, SearchResult, StreamingInfo
from ..stores.mapping_store import MappingStore

logger = logging.getLogger(__name__)


class EpisodeProvider(Protocol):
    name: str
    mirrors: MirrorResolver

    async def search(self, query: str) -> List[SearchResult]:
        ...

    async def get_episode_sources(self, slug: str, episode: int) -> StreamingInfo:
        ...


class SourceService:
    """Resolve a catalogue title and episode number into proxied stream sources."""

    def __init__(
        self,
        provider: EpisodeProvider,
        mappings: MappingStore,
        *,
        provider_name: Optional[str] = None,
        match_threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        self._provider = provider
        self._mappings = mappings
        self.provider_name = provider_name or provider.name
        self._match_threshold = match_threshold

    async def fetch_episode_sources(
        self,
        catalogue_id: int,
        title: str,
        alt_title: Optional[str],
        episode: int,
        audio_type: AudioType = "sub",
    ) -> StreamingInfo:
        slug = self._mappings.get(catalogue_id, self.provider_name)
        from_cache = slug is not None

        if slug is None:
            logger.info(f"No cached mapping for catalogue id {catalogue_id}, searching...")
            match = await self.match_title(title, alt_title, audio_type)
            slug = match.result.slug
            self._mappings.set(catalogue_id, self.provider_name, slug)
            logger.info(
                f"Mapped catalogue id {catalogue_id} -> {self.provider_name}/{slug} (score {match.score:.0f})"
            )

        logger.info(f"Fetching sources: {slug} episode {episode}")
        try:
            return await self._provider.get_episode_sources(slug, episode)
        except StreamResolverError:
            if from_cache:
                # a cached slug that stops resolving usually means the mirror moved
                self._provider.mirrors.reset()
            raise

    async def match_title(
        self,
        title: str,
        alt_title: Optional[str] = None,
        audio_type: AudioType = "sub",
    ) -> MatchCandidate:
        """Search the provider with progressively simpler queries until a match is accepted."""

        terms = [title]
        if alt_title and alt_title != title:
            terms.append(alt_title)

        best = await self._search_terms(terms, title, alt_title, audio_type)
        if best is None:
            simplified = []
            for term in terms:
                candidate = simplify_query(term)
                if candidate and candidate != term:
                    simplified.append(candidate)
            best = await self._search_terms(simplified, title, alt_title, audio_type)

        if best is None:
            self._provider.mirrors.reset()
            raise NoMatchFoundError(
                f'Could not find "{alt_title or title}" on the streaming provider. '
                "Try a different title or use a manual video URL."
            )
        return best

    async def _search_terms(
        self,
        terms: List[str],
        title: str,
        alt_title: Optional[str],
        audio_type: AudioType,
    ) -> Optional[MatchCandidate]:
        for term in terms:
            try:
                results = await self._provider.search(term)
            except ProviderHTTPError as exc:
                logger.warning(f"Search for {term!r} failed: {exc}")
                continue
            if not results:
                continue
            best = find_best_match(
                results, title, alt_title, audio_type, threshold=self._match_threshold
            )
            if best is not None:
                return best
        return None

    def clear_provider_mapping(self, catalogue_id: int) -> int:
        """Forget cached mappings so the next fetch matches the title again."""

        removed = self._mappings.clear(catalogue_id)
        logger.info(f"Cleared {removed} provider mapping(s) for catalogue id {catalogue_id}")
        return removed
