"""Recommendation orchestrator.

``RecommendationEngine`` is the entry point used by the API layer.  Content
recommendations are a read-through cached pipeline::

    cache ─miss─> profile ─> candidates ─> score ─> diversify ─> cache
                                  │                     │
                                  └── empty / short / error ──> fallback

There is no explicit invalidation: a cached result can lag newly created
content by up to one TTL.  Two concurrent misses for the same key both
recompute; the last write wins.
"""

import asyncio
import logging
import random
import time
from datetime import datetime, timezone

from ...config import RecommenderSettings
from ...errors import StoreUnavailableError
from ...models import Candidate, UserSummary
from ..stores.base import CacheStore, ContentStore, GraphStore
from .candidates import CandidateRetriever
from .diversity import diversify
from .fallback import FallbackCascade
from .people import PeopleRecommender
from .profile import ProfileBuilder
from .scoring import score_candidates

logger = logging.getLogger(__name__)


def recommendations_key(user_id: str, limit: int) -> str:
    return f"recommendations:{user_id}:{limit}"


class RecommendationEngine:
    """Wires the pipeline stages together around injected stores.

    Parameters
    ----------
    store:
        Content store for posts, users and view records.
    graph:
        Relationship graph store.
    cache:
        Best-effort TTL cache.
    settings:
        Tunables; defaults to :class:`RecommenderSettings` defaults.
    rng:
        Random source for the people shuffle.  Inject a seeded
        ``random.Random`` for reproducible ordering.
    clock:
        Callable returning the current aware ``datetime``.
    """

    def __init__(
        self,
        store: ContentStore,
        graph: GraphStore,
        cache: CacheStore,
        settings: RecommenderSettings | None = None,
        rng: random.Random | None = None,
        clock=None,
    ):
        self._store = store
        self._cache = cache
        self._settings = settings or RecommenderSettings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self.profiles = ProfileBuilder(store, graph, cache, self._settings, self._clock)
        self.retriever = CandidateRetriever(store, self._settings.max_candidates, self._clock)
        self.fallback = FallbackCascade(store, cache, self._settings.cache_ttl_seconds, self._clock)
        self.people = PeopleRecommender(store, graph, cache, self._settings.cache_ttl_seconds, rng)

        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def get_recommended_content(self, user_id: str, limit: int = 20) -> list[Candidate]:
        """Return up to ``limit`` ranked posts for ``user_id``.

        Always returns *some* list while any store tier answers; raises
        :class:`StoreUnavailableError` only when nothing can be produced.
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")

        key = recommendations_key(user_id, limit)
        cached = await self._cache.get(key)
        if cached is not None:
            logger.debug("Returning cached recommendations for user %s", user_id)
            return [Candidate.model_validate(doc) for doc in cached]

        start = time.perf_counter()
        primary: list[Candidate] = []
        viewed: set[str] = set()
        candidate_count = 0

        try:
            profile = await self.profiles.build(user_id)
            viewed = profile.viewed_posts
            candidates = await self.retriever.retrieve(user_id, profile)
            candidate_count = len(candidates)
            if candidates:
                scored = score_candidates(candidates, profile, self._clock())
                primary = [item.candidate for item in diversify(scored, limit)]
            else:
                logger.warning("No candidate posts found for user %s. Using fallback.", user_id)
        except Exception:
            logger.exception("Error generating recommendations for user %s", user_id)
            primary = []

        results = primary
        if len(primary) < limit:
            try:
                results = await self.fallback.run(user_id, limit, viewed, chosen=primary)
            except StoreUnavailableError:
                if not primary:
                    raise
                logger.warning("Fallback unavailable for user %s; serving %d primary posts", user_id, len(primary))

        ttl = self._settings.cache_ttl_seconds if primary else self._settings.fallback_ttl_seconds
        await self._cache.set(key, [post.model_dump(mode="json") for post in results], ttl)

        metrics = {
            "user_id": user_id,
            "candidate_count": candidate_count,
            "primary_count": len(primary),
            "returned_count": len(results),
            "fallback_used": len(primary) < limit,
            "elapsed_ms": round((time.perf_counter() - start) * 1000, 1),
        }
        logger.debug(
            "Recommendations generated for user %s: candidates=%d primary=%d returned=%d "
            "fallback_used=%s elapsed_ms=%.1f",
            *metrics.values(),
            extra=metrics,
        )

        if self._settings.mark_served_as_viewed and results:
            self._schedule(self._mark_viewed(user_id, [post.id for post in results]))
        return results

    # ------------------------------------------------------------------
    # People
    # ------------------------------------------------------------------

    async def get_recommended_users(self, user_id: str, limit: int = 20) -> list[UserSummary]:
        """Return up to ``limit`` suggested users, never ``user_id`` or anyone they follow."""
        if limit < 1:
            raise ValueError("limit must be at least 1")
        return await self.people.recommend(user_id, limit)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    async def record_view(self, user_id: str, content_id: str) -> bool:
        """Best-effort idempotent view record.  Returns ``False`` on failure."""
        try:
            await self._store.record_view(user_id, content_id)
        except Exception as exc:
            logger.warning("Failed to record view %s:%s: %s", user_id, content_id, exc)
            return False
        return True

    async def _mark_viewed(self, user_id: str, post_ids: list[str]) -> None:
        logger.info("Marking %d posts as viewed for user %s", len(post_ids), user_id)
        await asyncio.gather(*(self.record_view(user_id, pid) for pid in post_ids))

    def _schedule(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def aclose(self) -> None:
        """Wait for pending background view writes."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
