"""Content-addressed cache of AI search results.

The key is derived from the normalised query and the canonical JSON of its
options, so identical requests map to the same row in every process.
Expiry is passive: a stale row is reported as a miss and left in place.
"""

import hashlib
import json
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from pageturner.domain.entities import Book, CacheEntry, SearchOptions
from pageturner.domain.repositories import ISearchCacheRepository

logger = logging.getLogger(__name__)

CACHE_KEY_LENGTH = 40


def normalize_query(query: str) -> str:
    return query.strip().lower()


def make_cache_key(query: str, options: Optional[SearchOptions] = None) -> str:
    """sha256 of ``normalised query + "-" + canonical options JSON``, truncated."""
    canonical = json.dumps(
        (options or SearchOptions()).as_dict(), sort_keys=True, separators=(",", ":")
    )
    digest = hashlib.sha256(f"{normalize_query(query)}-{canonical}".encode("utf-8"))
    return digest.hexdigest()[:CACHE_KEY_LENGTH]


def is_fresh(expires_at: datetime, now: datetime) -> bool:
    """An entry is served only while ``now < expires_at``."""
    return now < expires_at


class SearchCache:
    """get/put over :class:`ISearchCacheRepository` with a fixed lifetime."""

    def __init__(
        self,
        repository: ISearchCacheRepository,
        duration_seconds: int,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.repository = repository
        self.duration = timedelta(seconds=duration_seconds)
        self.clock = clock

    async def get(self, query: str, options: Optional[SearchOptions] = None) -> Optional[list[Book]]:
        key = make_cache_key(query, options)
        entry = await self.repository.get(key)
        if entry is None:
            return None
        if not is_fresh(entry.expires_at, self.clock()):
            logger.info("Search cache entry %s expired at %s", key, entry.expires_at)
            return None
        return entry.results

    async def put(
        self, query: str, options: Optional[SearchOptions], results: list[Book]
    ) -> CacheEntry:
        now = self.clock()
        entry = CacheEntry(
            key=make_cache_key(query, options),
            query=normalize_query(query),
            options=(options or SearchOptions()).as_dict(),
            results=results,
            created_at=now,
            expires_at=now + self.duration,
        )
        await self.repository.put(entry)
        return entry
