"""Tests for the Elasticsearch content store."""

from datetime import datetime, timezone

import pytest
from elasticsearch import ConflictError

from .elasticsearch import ElasticsearchContentStore, unwrap_es_response
from .query import Sort, Term


POST_SOURCE = {
    "id": "p1",
    "author_id": "u2",
    "community_id": None,
    "created_at": "2026-10-19T10:00:00+00:00",
    "keywords": ["python"],
    "like_count": 3,
    "comment_count": 1,
    "archived": False,
}


class FakeEs:
    """Configurable fake Elasticsearch client for unit tests."""

    def __init__(self, responses: dict | None = None):
        self._responses = responses or {}
        self._default = {"hits": {"hits": []}}
        self.calls: list[dict] = []
        self.created: dict[str, dict] = {}

    async def search(self, *, index=None, query=None, size=None, sort=None, _source=None, **kwargs):
        self.calls.append({"index": index, "query": query, "size": size, "sort": sort, "_source": _source})
        return self._responses.get(index, self._default)

    async def create(self, *, index=None, id=None, document=None, **kwargs):
        if id in self.created:
            raise ConflictError("version_conflict_engine_exception", meta=None, body={})
        self.created[id] = document
        return {"result": "created"}


@pytest.fixture
def es():
    return FakeEs(responses={
        "posts": {"hits": {"hits": [{"_source": POST_SOURCE}, {"_source": {"id": "broken"}}]}},
        "users": {"hits": {"hits": [{"_source": {"id": "u1", "username": "ann", "following": ["u2", "u3"]}}]}},
        "post_views": {"hits": {"hits": [{"_source": {"post_id": "p1"}}, {"_source": {}}]}},
    })


@pytest.fixture
def store(es):
    return ElasticsearchContentStore(es)


class TestUnwrap:
    def test_plain_dict(self):
        assert unwrap_es_response({"hits": {}}) == {"hits": {}}

    def test_unexpected_type(self):
        with pytest.raises(TypeError):
            unwrap_es_response(["not", "a", "response"])


class TestFindPosts:
    @pytest.mark.asyncio
    async def test_builds_query_and_parses_hits(self, store, es):
        posts = await store.find_posts(Term("archived", False), sort=[Sort("created_at")], limit=50)

        assert [p.id for p in posts] == ["p1"]
        assert posts[0].created_at == datetime(2026, 10, 19, 10, tzinfo=timezone.utc)
        assert posts[0].keywords == ["python"]

        call = es.calls[0]
        assert call["index"] == "posts"
        assert call["query"] == {"term": {"archived": False}}
        assert call["sort"] == [{"created_at": "desc"}]
        assert call["size"] == 50

    @pytest.mark.asyncio
    async def test_missing_keywords_default_to_empty(self):
        source = {k: v for k, v in POST_SOURCE.items() if k != "keywords"}
        store = ElasticsearchContentStore(FakeEs({"posts": {"hits": {"hits": [{"_source": source}]}}}))
        posts = await store.find_posts(Term("archived", False))
        assert posts[0].keywords == []


class TestUsers:
    @pytest.mark.asyncio
    async def test_find_users(self, store):
        users = await store.find_users(Term("id", "u1"))
        assert users[0].id == "u1"
        assert users[0].username == "ann"

    @pytest.mark.asyncio
    async def test_get_following(self, store, es):
        assert await store.get_following("u1") == ["u2", "u3"]
        assert es.calls[0]["query"] == {"term": {"id": "u1"}}

    @pytest.mark.asyncio
    async def test_get_following_unknown_user(self):
        store = ElasticsearchContentStore(FakeEs())
        assert await store.get_following("ghost") == []


class TestViews:
    @pytest.mark.asyncio
    async def test_viewed_post_ids(self, store, es):
        since = datetime(2026, 10, 12, tzinfo=timezone.utc)
        assert await store.viewed_post_ids("u1", since) == {"p1"}
        filters = es.calls[0]["query"]["bool"]["filter"]
        assert {"term": {"user_id": "u1"}} in filters
        assert {"range": {"created_at": {"gte": since.isoformat()}}} in filters

    @pytest.mark.asyncio
    async def test_record_view_is_idempotent(self, store, es):
        await store.record_view("u1", "p1")
        await store.record_view("u1", "p1")
        assert list(es.created) == ["u1:p1"]
        assert es.created["u1:p1"]["post_id"] == "p1"
