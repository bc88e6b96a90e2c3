"""User profile assembly.

A profile bundles four independent signals.  They are fetched concurrently
and each fetch is isolated: a failure or timeout in one signal yields that
signal's empty default and the rest of the profile is still built.

=====================  ======================  =====================
Signal                 Source                  Cached
=====================  ======================  =====================
interests              graph (decayed)         ``user_interests:{id}``
following              content store           ``user_following:{id}``
viewed posts           content store, 7 days   no
recent interactions    graph, 7 days           no
=====================  ======================  =====================
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from ...config import RecommenderSettings
from ...models import UserProfile
from ..stores.base import CacheStore, ContentStore, GraphStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

# Per-day multiplicative attenuation of an interest weight.
DECAY_FACTOR = 0.95

# Views and interactions older than this are ignored.
RECENT_WINDOW = timedelta(days=7)

INTERESTS_QUERY = """
MATCH (u:User {id: $userId})-[r:INTERESTED_IN]->(t:Tag)
RETURN t.name AS tag, r.weight AS weight, r.lastUpdated AS lastUpdated
ORDER BY r.weight DESC
"""

INTERACTIONS_QUERY = """
MATCH (u:User {id: $userId})-[r:INTERACTED_WITH]->(p:Post)
WHERE r.timestamp > datetime() - duration('P7D')
RETURN p.id AS postId, r.type AS interactionType, r.weight AS weight
"""


def interests_key(user_id: str) -> str:
    return f"user_interests:{user_id}"


def following_key(user_id: str) -> str:
    return f"user_following:{user_id}"


# ---------------------------------------------------------------------------
# Decay
# ---------------------------------------------------------------------------

def to_datetime(value, default: datetime) -> datetime:
    """Coerce a graph timestamp to an aware UTC ``datetime``.

    Accepts Neo4j temporal values (anything with ``to_native()``),
    ``datetime`` objects, ISO-8601 strings and epoch milliseconds.
    """
    if value is None:
        return default
    if hasattr(value, "to_native"):
        value = value.to_native()
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError(f"Unsupported timestamp type: {type(value)}")


def decay_weight(
    weight: float,
    last_updated: datetime,
    now: datetime,
    decay_factor: float = DECAY_FACTOR,
) -> float:
    """Return ``weight * decay_factor ** days_since_update``.

    Pure: the same inputs always give the same value.
    """
    days = (now - last_updated).total_seconds() / 86400
    return weight * decay_factor ** days


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class ProfileBuilder:
    def __init__(
        self,
        store: ContentStore,
        graph: GraphStore,
        cache: CacheStore,
        settings: RecommenderSettings,
        clock=None,
    ):
        self._store = store
        self._graph = graph
        self._cache = cache
        self._settings = settings
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def build(self, user_id: str) -> UserProfile:
        """Fetch all four signals concurrently and join them."""
        interests, following, viewed, interactions = await asyncio.gather(
            self._guarded("interests", user_id, self.fetch_interests(user_id), {}),
            self._guarded("following", user_id, self.fetch_following(user_id), []),
            self._guarded("viewed_posts", user_id, self.fetch_viewed_posts(user_id), set()),
            self._guarded("recent_interactions", user_id, self.fetch_recent_interactions(user_id), {}),
        )
        return UserProfile(
            interests=interests,
            following=set(following),
            viewed_posts=viewed,
            recent_interactions=interactions,
        )

    async def _guarded(self, signal: str, user_id: str, coro, default):
        try:
            return await asyncio.wait_for(coro, self._settings.signal_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "Timed out fetching %s for user %s after %.1fs",
                signal, user_id, self._settings.signal_timeout_seconds,
            )
        except Exception as exc:
            logger.warning("Failed to fetch %s for user %s: %s", signal, user_id, exc)
        return default

    async def fetch_interests(self, user_id: str) -> dict[str, float]:
        key = interests_key(user_id)
        cached = await self._cache.get(key)
        if cached is not None:
            return {tag: float(w) for tag, w in cached.items()}

        now = self._clock()
        rows = await self._graph.query(INTERESTS_QUERY, {"userId": user_id})
        interests: dict[str, float] = {}
        for row in rows:
            tag = row.get("tag")
            if not tag:
                continue
            weight = row.get("weight") or 1
            last_updated = to_datetime(row.get("lastUpdated"), default=now)
            interests[tag] = decay_weight(float(weight), last_updated, now)

        await self._cache.set(key, interests, self._settings.interests_ttl_seconds)
        return interests

    async def fetch_following(self, user_id: str) -> list[str]:
        key = following_key(user_id)
        cached = await self._cache.get(key)
        if cached is not None:
            return list(cached)

        following = await self._store.get_following(user_id)
        await self._cache.set(key, following, self._settings.following_ttl_seconds)
        return following

    async def fetch_viewed_posts(self, user_id: str) -> set[str]:
        return await self._store.viewed_post_ids(user_id, since=self._clock() - RECENT_WINDOW)

    async def fetch_recent_interactions(self, user_id: str) -> dict[str, float]:
        rows = await self._graph.query(INTERACTIONS_QUERY, {"userId": user_id})
        interactions: dict[str, float] = {}
        for row in rows:
            post_id = row.get("postId")
            if not post_id:
                continue
            interactions[post_id] = interactions.get(post_id, 0.0) + float(row.get("weight") or 1)
        return interactions
