"""Community detection from free text.

Maps a question such as "What are the fees for Oak Ridge Estates?" to a
community id using the directory of display names, legal names and
property codes.

Two passes over the directory, in directory order:

1. **Exact containment** -- the first community whose display name or
   legal name (``name_match``) or property code (``code_match``) appears in
   the text, case-insensitively, wins with ``high`` confidence.
2. **Partial words** -- for every name and code, count the distinct words
   longer than three characters that appear in the text.  The best count of
   at least two wins with ``medium`` confidence; ties keep the first seen.

Anything else falls back to the caller's default with ``none`` confidence.
The directory snapshot lives in an injected TTL cache.
"""

from __future__ import annotations

import structlog

from pm_assistant.interfaces.cache_provider import ICacheProvider
from pm_assistant.interfaces.operational_store import IOperationalStore
from pm_assistant.models.community import (
    CommunityRecord,
    CommunityResolution,
    ResolutionConfidence,
    ResolutionMethod,
)
from pm_assistant.utils.errors import PMAssistantError

logger = structlog.get_logger(logger_name=__name__)

_DIRECTORY_CACHE_KEY = "community_directory"
_MIN_WORD_LENGTH = 4
_MIN_PARTIAL_WORDS = 2


class CommunityResolver:
    """Resolves community references against a cached directory.

    Parameters
    ----------
    store:
        Operational store the directory is loaded from.
    cache:
        TTL cache holding the directory snapshot.  Concurrent refreshes
        are last-writer-wins.
    """

    def __init__(self, store: IOperationalStore, cache: ICacheProvider) -> None:
        self._store = store
        self._cache = cache

    async def list_communities(self) -> list[CommunityRecord]:
        """Return the directory, loading it when the cache is cold.

        A load failure is logged and yields an empty directory, which is
        not cached so the next call retries.
        """
        cached = await self._cache.get(_DIRECTORY_CACHE_KEY)
        if cached is not None:
            return cached

        try:
            directory = await self._store.list_community_directory()
        except PMAssistantError as exc:
            logger.error("community_directory_load_failed", error=str(exc))
            return []

        await self._cache.set(_DIRECTORY_CACHE_KEY, directory)
        logger.info("community_directory_loaded", count=len(directory))
        return directory

    async def invalidate(self) -> None:
        """Drop the cached directory so the next lookup reloads it."""
        await self._cache.delete(_DIRECTORY_CACHE_KEY)

    async def community_exists(self, community_id: str) -> bool:
        directory = await self.list_communities()
        return any(c.community_id == community_id for c in directory)

    async def resolve_community(self, text: str, default: str | None = None) -> CommunityResolution:
        """Resolve *text* to a community.

        Parameters
        ----------
        text:
            The user's question.
        default:
            Community id returned when nothing matches.

        Returns
        -------
        CommunityResolution
        """
        fallback = CommunityResolution(resolved_community_id=default)
        if not text or not text.strip():
            return fallback

        directory = await self.list_communities()
        if not directory:
            return fallback

        lowered = text.lower()
        exact = self._exact_match(lowered, directory)
        if exact is not None:
            logger.debug(
                "community_resolved",
                community_id=exact.resolved_community_id,
                method=exact.method.value,
            )
            return exact

        partial = self._partial_match(lowered, directory)
        if partial is not None:
            logger.debug(
                "community_resolved",
                community_id=partial.resolved_community_id,
                method=partial.method.value,
                match_count=partial.match_count,
            )
            return partial

        return fallback

    # ------------------------------------------------------------------
    # Matching passes
    # ------------------------------------------------------------------

    @staticmethod
    def _exact_match(lowered: str, directory: list[CommunityRecord]) -> CommunityResolution | None:
        for community in directory:
            candidates = (
                (community.display_name, ResolutionMethod.NAME_MATCH),
                (community.legal_name, ResolutionMethod.NAME_MATCH),
                (community.property_code, ResolutionMethod.CODE_MATCH),
            )
            for term, method in candidates:
                if term and term.lower() in lowered:
                    return CommunityResolution(
                        resolved_community_id=community.community_id,
                        confidence=ResolutionConfidence.HIGH,
                        method=method,
                        matched_name=term,
                    )
        return None

    @staticmethod
    def _partial_match(lowered: str, directory: list[CommunityRecord]) -> CommunityResolution | None:
        best: CommunityResolution | None = None
        best_count = 0
        for community in directory:
            for term in community.match_terms():
                words = list(dict.fromkeys(w for w in term.lower().split() if len(w) >= _MIN_WORD_LENGTH))
                count = sum(1 for w in words if w in lowered)
                if count >= _MIN_PARTIAL_WORDS and count > best_count:
                    best_count = count
                    best = CommunityResolution(
                        resolved_community_id=community.community_id,
                        confidence=ResolutionConfidence.MEDIUM,
                        method=ResolutionMethod.PARTIAL_MATCH,
                        matched_name=term,
                        match_count=count,
                    )
        return best
