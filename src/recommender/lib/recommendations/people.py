"""People recommendations.

Candidates come from up to three sources, each consulted only while the
list is still shorter than ``limit``:

1. Friends of friends: users followed by people the requester follows,
   ranked by the number of such common followers.
2. Shared interests: users followed by people who share an interest tag
   with the requester, ranked by the number of such users.  Ties are left
   in graph order.
3. Random fill from the user store.

The final ordering is a weighted random shuffle, biased towards users with
more common signals, so repeated calls do not always show the same order.
"""

import logging
import random
from typing import Callable, TypeVar

from ...errors import StoreUnavailableError
from ...models import CommonConnection, UserSummary
from ..stores.base import CacheStore, ContentStore, GraphStore
from ..stores.query import In, Not

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Tier 1 over-fetches to leave room for filtering.
FRIENDS_OF_FRIENDS_FACTOR = 1.5

FRIENDS_OF_FRIENDS_QUERY = """
MATCH (me:User {id: $userId})
WITH me
MATCH (rec:User)<-[:FOLLOWS]-(follower:User)
WHERE rec.id <> $userId
  AND NOT EXISTS((me)-[:FOLLOWS]->(rec))
  AND EXISTS((me)-[:FOLLOWS]->(follower))
WITH rec, COLLECT(DISTINCT follower) AS connections
WITH rec, connections, SIZE(connections) AS signalCount
ORDER BY signalCount DESC
LIMIT $limit
RETURN rec.id AS userId,
       signalCount,
       [c IN connections | {
         id: c.id, name: c.name, surname: c.surname,
         username: c.username, profile_photo: c.profilePhoto
       }] AS connections
"""

SHARED_INTEREST_QUERY = """
MATCH (me:User {id: $userId})
WITH me
MATCH (me)-[:INTERESTED_IN]->(t:Tag)<-[:INTERESTED_IN]-(similar:User)-[:FOLLOWS]->(rec:User)
WHERE rec.id <> $userId
  AND NOT EXISTS((me)-[:FOLLOWS]->(rec))
  AND NOT rec.id IN $excludeIds
WITH rec, COLLECT(DISTINCT similar) AS connections
WITH rec, connections, SIZE(connections) AS signalCount
ORDER BY signalCount DESC
LIMIT $limit
RETURN rec.id AS userId,
       signalCount,
       [c IN connections | {
         id: c.id, name: c.name, surname: c.surname,
         username: c.username, profile_photo: c.profilePhoto
       }] AS connections
"""


def user_recommendations_key(user_id: str, limit: int) -> str:
    return f"user_recommendations:{user_id}:{limit}"


def weighted_shuffle(items: list[T], weight: Callable[[T], float], rng: random.Random) -> list[T]:
    """Order ``items`` by repeated weighted sampling without replacement.

    Each remaining item is drawn with probability proportional to
    ``weight(item)``.  Pure apart from ``rng``: a seeded generator gives a
    reproducible order.  Weights must be positive.
    """
    remaining = list(items)
    weights = [weight(item) for item in remaining]
    result: list[T] = []
    while remaining:
        point = rng.random() * sum(weights)
        index = len(remaining) - 1
        for i, w in enumerate(weights):
            point -= w
            if point < 0:
                index = i
                break
        result.append(remaining.pop(index))
        weights.pop(index)
    return result


class PeopleRecommender:
    def __init__(
        self,
        store: ContentStore,
        graph: GraphStore,
        cache: CacheStore,
        ttl_seconds: int,
        rng: random.Random | None = None,
    ):
        self._store = store
        self._graph = graph
        self._cache = cache
        self._ttl = ttl_seconds
        self._rng = rng or random.Random()

    async def recommend(self, user_id: str, limit: int) -> list[UserSummary]:
        key = user_recommendations_key(user_id, limit)
        cached = await self._cache.get(key)
        if cached is not None:
            logger.debug("Returning cached user recommendations for user %s", user_id)
            return [UserSummary.model_validate(doc) for doc in cached]

        # id -> (signal count, connections), in discovery order
        found: dict[str, tuple[int, list[CommonConnection]]] = {}

        rows = await self._graph_tier(
            "friends_of_friends",
            user_id,
            FRIENDS_OF_FRIENDS_QUERY,
            {"userId": user_id, "limit": int(limit * FRIENDS_OF_FRIENDS_FACTOR)},
        )
        self._collect(found, rows, user_id)

        if len(found) < limit:
            rows = await self._graph_tier(
                "shared_interest",
                user_id,
                SHARED_INTEREST_QUERY,
                {"userId": user_id, "excludeIds": list(found), "limit": limit - len(found)},
            )
            self._collect(found, rows, user_id)

        following = await self._following(user_id)
        for uid in following or ():
            found.pop(uid, None)

        # Without a following list the random fill could suggest followed users.
        if len(found) < limit and following is not None:
            await self._random_fill(found, user_id, following, limit - len(found))

        users = await self._hydrate(user_id, found)
        users = [u for u in users if u.id != user_id and u.id not in (following or ())]
        users.sort(key=lambda u: u.common_signal_count, reverse=True)
        users = weighted_shuffle(users, lambda u: u.common_signal_count + 1, self._rng)[:limit]

        await self._cache.set(key, [u.model_dump(mode="json") for u in users], self._ttl)
        return users

    async def _graph_tier(self, tier: str, user_id: str, template: str, params: dict) -> list[dict]:
        try:
            return await self._graph.query(template, params)
        except Exception as exc:
            logger.warning("People tier %s failed for user %s: %s", tier, user_id, exc)
            return []

    @staticmethod
    def _collect(found: dict, rows: list[dict], user_id: str) -> None:
        for row in rows:
            uid = row.get("userId")
            if not uid or uid == user_id or uid in found:
                continue
            connections = [
                CommonConnection.model_validate(c)
                for c in row.get("connections") or []
                if c and c.get("id")
            ]
            found[uid] = (int(row.get("signalCount") or 0), connections)

    async def _following(self, user_id: str) -> set[str] | None:
        try:
            return set(await self._store.get_following(user_id))
        except Exception as exc:
            logger.warning("Failed to fetch following list for %s: %s", user_id, exc)
            return None

    async def _random_fill(self, found: dict, user_id: str, following: set[str], count: int) -> None:
        excluded = {user_id} | following | set(found)
        try:
            users = await self._store.find_users(Not(In("id", sorted(excluded))), limit=count)
        except Exception as exc:
            logger.warning("Random user fill failed for user %s: %s", user_id, exc)
            return
        for user in users:
            if user.id not in excluded:
                found[user.id] = (0, [])

    async def _hydrate(self, user_id: str, found: dict) -> list[UserSummary]:
        if not found:
            return []
        try:
            users = await self._store.find_users(In("id", list(found)), limit=len(found))
        except Exception as exc:
            raise StoreUnavailableError(f"Could not load recommended users for {user_id}") from exc
        return [
            user.model_copy(update={
                "common_signal_count": found[user.id][0],
                "common_connections": found[user.id][1],
            })
            for user in users
            if user.id in found
        ]
