"""Shared fakes for the recommendation engine tests."""

from datetime import datetime, timedelta, timezone

import pytest

from ...config import RecommenderSettings
from ...models import Candidate, UserSummary
from ..stores.base import CacheStore, ContentStore, GraphStore
from ..stores.query import Predicate, Sort

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_post(post_id: str, author_id: str = "author", age: timedelta = timedelta(hours=1), **fields) -> Candidate:
    return Candidate(id=post_id, author_id=author_id, created_at=NOW - age, **fields)


class InMemoryContentStore(ContentStore):
    """Evaluates predicates against in-memory posts and users."""

    def __init__(self, posts=None, users=None, following=None, views=None):
        self.posts: list[Candidate] = list(posts or [])
        self.users: list[UserSummary] = list(users or [])
        self.following: dict[str, list[str]] = dict(following or {})
        # (user_id, post_id) -> viewed at
        self.views: dict[tuple[str, str], datetime] = dict(views or {})
        self.fail_posts = False
        self.fail_users = False
        self.fail_following = False
        self.fail_views = False
        self.post_queries: list[Predicate] = []

    async def find_posts(self, predicate, sort=None, limit=100):
        if self.fail_posts:
            raise ConnectionError("posts index unreachable")
        self.post_queries.append(predicate)
        found = [p for p in self.posts if predicate.matches(p.model_dump())]
        for key in reversed(sort or []):
            found.sort(key=lambda p, field=key.field: getattr(p, field), reverse=key.descending)
        return found[:limit]

    async def find_users(self, predicate, limit=100):
        if self.fail_users:
            raise ConnectionError("users index unreachable")
        return [u for u in self.users if predicate.matches(u.model_dump())][:limit]

    async def get_following(self, user_id):
        if self.fail_following:
            raise ConnectionError("users index unreachable")
        return list(self.following.get(user_id, []))

    async def viewed_post_ids(self, user_id, since):
        if self.fail_views:
            raise ConnectionError("views index unreachable")
        return {pid for (uid, pid), at in self.views.items() if uid == user_id and at >= since}

    async def record_view(self, user_id, post_id):
        if self.fail_views:
            raise ConnectionError("views index unreachable")
        self.views.setdefault((user_id, post_id), NOW)


class FakeGraph(GraphStore):
    """Returns canned rows keyed by query template."""

    def __init__(self, responses: dict | None = None):
        self.responses = dict(responses or {})
        self.failing: set[str] = set()
        self.calls: list[tuple[str, dict]] = []

    async def query(self, template, params=None):
        self.calls.append((template, params or {}))
        if template in self.failing:
            raise ConnectionError("graph unreachable")
        return list(self.responses.get(template, []))


class DictCache(CacheStore):
    def __init__(self):
        self.data: dict = {}
        self.ttls: dict[str, int] = {}
        self.broken = False

    async def get(self, key):
        if self.broken:
            return None
        return self.data.get(key)

    async def set(self, key, value, ttl_seconds):
        if self.broken:
            return
        self.data[key] = value
        self.ttls[key] = ttl_seconds


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def store():
    return InMemoryContentStore()


@pytest.fixture
def graph():
    return FakeGraph()


@pytest.fixture
def cache():
    return DictCache()


@pytest.fixture
def settings():
    return RecommenderSettings(signal_timeout_seconds=0.2, mark_served_as_viewed=False)
