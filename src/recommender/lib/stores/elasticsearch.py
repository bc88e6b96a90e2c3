"""Elasticsearch-backed content store.

Indices (names configurable through :class:`~recommender.config.RecommenderSettings`):

``posts``
    One document per post with the denormalized scoring fields
    (``author_id``, ``community_id``, ``created_at``, ``keywords``,
    ``like_count``, ``comment_count``, ``archived``, ...).
``users``
    One document per user: profile fields plus the ``following`` id list.
``post_views``
    One document per ``(user_id, post_id)`` pair, id ``{user_id}:{post_id}``.
"""

import logging
from datetime import datetime, timezone

from elastic_transport import ObjectApiResponse
from elasticsearch import ConflictError

from ...models import Candidate, UserSummary
from .base import ContentStore
from .query import And, Predicate, Range, Sort, Term

logger = logging.getLogger(__name__)

# Upper bound on the recent-views window pulled for one user.
MAX_VIEWED_POSTS = 1000


def unwrap_es_response(resp) -> dict:
    """Unwrap an Elasticsearch response (ObjectApiResponse or plain dict)."""
    if isinstance(resp, ObjectApiResponse):
        return resp.body
    if isinstance(resp, dict):
        return resp
    logger.error("Unexpected Elasticsearch response type: %s", type(resp))
    raise TypeError(f"Unexpected Elasticsearch response type: {type(resp)}")


def _sources(resp) -> list[dict]:
    data = unwrap_es_response(resp)
    return [hit.get("_source") or {} for hit in data.get("hits", {}).get("hits", [])]


class ElasticsearchContentStore(ContentStore):
    """:class:`ContentStore` over an ``AsyncElasticsearch`` client."""

    def __init__(
        self,
        es,
        posts_index: str = "posts",
        users_index: str = "users",
        views_index: str = "post_views",
    ):
        self._es = es
        self._posts_index = posts_index
        self._users_index = users_index
        self._views_index = views_index

    async def find_posts(
        self,
        predicate: Predicate,
        sort: list[Sort] | None = None,
        limit: int = 100,
    ) -> list[Candidate]:
        resp = await self._es.search(
            index=self._posts_index,
            query=predicate.to_es(),
            sort=[s.to_es() for s in sort] if sort else None,
            size=limit,
        )
        posts: list[Candidate] = []
        for src in _sources(resp):
            try:
                posts.append(Candidate.model_validate(src))
            except ValueError:
                logger.warning("Skipping malformed post document %s", src.get("id"))
        return posts

    async def find_users(self, predicate: Predicate, limit: int = 100) -> list[UserSummary]:
        resp = await self._es.search(
            index=self._users_index,
            query=predicate.to_es(),
            size=limit,
            _source=["id", "username", "name", "surname", "profile_photo"],
        )
        return [UserSummary.model_validate(src) for src in _sources(resp) if src.get("id")]

    async def get_following(self, user_id: str) -> list[str]:
        resp = await self._es.search(
            index=self._users_index,
            query=Term("id", user_id).to_es(),
            size=1,
            _source=["following"],
        )
        sources = _sources(resp)
        if not sources:
            return []
        return [str(uid) for uid in sources[0].get("following") or []]

    async def viewed_post_ids(self, user_id: str, since: datetime) -> set[str]:
        query = And(Term("user_id", user_id), Range("created_at", gte=since))
        resp = await self._es.search(
            index=self._views_index,
            query=query.to_es(),
            size=MAX_VIEWED_POSTS,
            sort=[{"created_at": "desc"}],
            _source=["post_id"],
        )
        return {src["post_id"] for src in _sources(resp) if src.get("post_id")}

    async def record_view(self, user_id: str, post_id: str) -> None:
        # The document id makes the write idempotent: a second create for the
        # same pair conflicts instead of adding a duplicate.
        try:
            await self._es.create(
                index=self._views_index,
                id=f"{user_id}:{post_id}",
                document={
                    "user_id": user_id,
                    "post_id": post_id,
                    "created_at": datetime.now(timezone.utc).isoformat(),
                },
            )
        except ConflictError:
            logger.debug("View %s:%s already recorded", user_id, post_id)
