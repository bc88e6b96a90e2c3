"""Fallback cascade used when personalized candidates are scarce.

Three progressively looser tiers fill the remaining slots in priority order:

1. ``recent_engagement``: last 7 days, ranked by ``likes + 2 * comments``
   (computed here, not by the store).
2. ``recent_archive``: 7 to 30 days old, newest first.
3. ``backstop``: anything not archived, newest first.

Every tier excludes the requester's own posts, their recently viewed posts
and whatever the earlier tiers already picked.  A tier that fails counts as
empty; only when *all* tiers fail is the outage surfaced.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

from ...errors import StoreUnavailableError
from ...models import Candidate
from ..stores.base import CacheStore, ContentStore
from ..stores.query import And, Range, Sort, Term
from .candidates import excluded_posts
from .diversity import cap_repeated_authors

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

RECENT_WINDOW = timedelta(days=7)
ARCHIVE_WINDOW = timedelta(days=30)
# Tier 1 ranks a pool this many times larger than the requested limit.
ENGAGEMENT_POOL_FACTOR = 3
# Tier 2 over-fetches to survive per-user filtering.
ARCHIVE_FETCH_FACTOR = 2
COMMENT_ENGAGEMENT_WEIGHT = 2

NEWEST_FIRST = [Sort("created_at", descending=True)]


def fallback_pool_key(limit: int) -> str:
    return f"fallback_posts:{limit}"


def engagement(post: Candidate) -> int:
    return post.like_count + COMMENT_ENGAGEMENT_WEIGHT * post.comment_count


def _allowed(post: Candidate, user_id: str, excluded_ids: set[str]) -> bool:
    return not post.archived and post.author_id != user_id and post.id not in excluded_ids


# ---------------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------------

class FallbackTier(ABC):
    """One rule of the cascade."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def fetch(self, user_id: str, excluded_ids: set[str], limit: int) -> list[Candidate]:
        """Return up to ``limit`` posts.  Store errors propagate to the cascade."""
        ...


class RecentEngagementTier(FallbackTier):
    """Recent posts ranked by raw engagement.

    The un-personalized pool is cached under ``fallback_posts:{limit}`` and
    filtered per user after it is read, so the shared entry never carries
    one user's exclusions to another.  When the user's exclusions drain a
    full pool, the window is fetched again with those exclusions applied.
    """

    def __init__(self, store: ContentStore, cache: CacheStore, ttl_seconds: int, clock):
        self._store = store
        self._cache = cache
        self._ttl = ttl_seconds
        self._clock = clock

    @property
    def name(self) -> str:
        return "recent_engagement"

    async def _ranked(self, clauses: list, limit: int) -> list[Candidate]:
        posts = await self._store.find_posts(
            And(*clauses, Range("created_at", gte=self._clock() - RECENT_WINDOW)),
            sort=NEWEST_FIRST,
            limit=limit * ENGAGEMENT_POOL_FACTOR,
        )
        # sorted() is stable, so equal engagement keeps newest-first order.
        return sorted(posts, key=engagement, reverse=True)

    async def pool(self, limit: int) -> list[Candidate]:
        key = fallback_pool_key(limit)
        cached = await self._cache.get(key)
        if cached is not None:
            return [Candidate.model_validate(doc) for doc in cached]

        ranked = await self._ranked([Term("archived", False)], limit)
        await self._cache.set(key, [p.model_dump(mode="json") for p in ranked], self._ttl)
        return ranked

    async def fetch(self, user_id: str, excluded_ids: set[str], limit: int) -> list[Candidate]:
        pool = await self.pool(limit)
        found = [p for p in pool if _allowed(p, user_id, excluded_ids)]
        # A short pool already holds every recent post.
        if len(found) >= limit or len(pool) < limit * ENGAGEMENT_POOL_FACTOR:
            return found[:limit]

        logger.debug("Shared engagement pool exhausted for user %s; fetching with exclusions", user_id)
        ranked = await self._ranked(excluded_posts(user_id, excluded_ids), limit)
        return ranked[:limit]


class RecentArchiveTier(FallbackTier):
    def __init__(self, store: ContentStore, clock):
        self._store = store
        self._clock = clock

    @property
    def name(self) -> str:
        return "recent_archive"

    async def fetch(self, user_id: str, excluded_ids: set[str], limit: int) -> list[Candidate]:
        now = self._clock()
        posts = await self._store.find_posts(
            And(
                *excluded_posts(user_id, excluded_ids),
                Range("created_at", gte=now - ARCHIVE_WINDOW, lt=now - RECENT_WINDOW),
            ),
            sort=NEWEST_FIRST,
            limit=limit * ARCHIVE_FETCH_FACTOR,
        )
        return posts[:limit]


class BackstopTier(FallbackTier):
    def __init__(self, store: ContentStore):
        self._store = store

    @property
    def name(self) -> str:
        return "backstop"

    async def fetch(self, user_id: str, excluded_ids: set[str], limit: int) -> list[Candidate]:
        return await self._store.find_posts(
            And(*excluded_posts(user_id, excluded_ids)),
            sort=NEWEST_FIRST,
            limit=limit,
        )


# ---------------------------------------------------------------------------
# Cascade
# ---------------------------------------------------------------------------

class FallbackCascade:
    def __init__(self, store: ContentStore, cache: CacheStore, pool_ttl_seconds: int, clock=None):
        clock = clock or (lambda: datetime.now(timezone.utc))
        self.tiers: list[FallbackTier] = [
            RecentEngagementTier(store, cache, pool_ttl_seconds, clock),
            RecentArchiveTier(store, clock),
            BackstopTier(store),
        ]

    async def run(
        self,
        user_id: str,
        limit: int,
        viewed_ids: set[str] | None = None,
        chosen: list[Candidate] | None = None,
    ) -> list[Candidate]:
        """Fill up to ``limit`` posts after the already ``chosen`` ones.

        ``chosen`` posts keep their order at the front; only the posts added
        here go through the author cap.

        Raises :class:`StoreUnavailableError` if every tier failed.
        """
        chosen = list(chosen or [])
        posts: list[Candidate] = []
        excluded = set(viewed_ids or ()) | {p.id for p in chosen}
        failures = 0

        for tier in self.tiers:
            deficit = limit - len(chosen) - len(posts)
            if deficit <= 0:
                break
            try:
                found = await tier.fetch(user_id, excluded, deficit)
            except Exception as exc:
                failures += 1
                log = logger.error if tier is self.tiers[-1] else logger.warning
                log("Fallback tier %s failed for user %s: %s", tier.name, user_id, exc)
                continue
            found = [p for p in found if _allowed(p, user_id, excluded)][:deficit]
            logger.debug("Fallback tier %s added %d posts for user %s", tier.name, len(found), user_id)
            posts.extend(found)
            excluded.update(p.id for p in found)

        if failures == len(self.tiers):
            raise StoreUnavailableError(f"All fallback tiers failed for user {user_id}")

        return chosen + cap_repeated_authors(posts, limit - len(chosen))
