"""Abstract contracts for the stores the recommendation engine consumes.

The engine never talks to a database driver directly.  It is handed a
``ContentStore``, a ``GraphStore`` and a ``CacheStore`` at construction time
and only uses the narrow operations declared here, so each backend can be
swapped (or faked in tests) without touching the ranking code.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from ...models import Candidate, UserSummary
from .query import Predicate, Sort


# ---------------------------------------------------------------------------
# Content store
# ---------------------------------------------------------------------------

class ContentStore(ABC):
    """Filtered, sorted, bounded reads over posts and users."""

    @abstractmethod
    async def find_posts(
        self,
        predicate: Predicate,
        sort: list[Sort] | None = None,
        limit: int = 100,
    ) -> list[Candidate]:
        """Return up to ``limit`` posts matching ``predicate``.

        Parameters
        ----------
        predicate:
            Filter to apply (see :mod:`.query`).
        sort:
            Sort keys, applied in order.  ``None`` means store order.
        limit:
            Maximum number of posts to return.
        """
        ...

    @abstractmethod
    async def find_users(self, predicate: Predicate, limit: int = 100) -> list[UserSummary]:
        """Return up to ``limit`` users matching ``predicate``."""
        ...

    @abstractmethod
    async def get_following(self, user_id: str) -> list[str]:
        """Return the ids of the users ``user_id`` follows."""
        ...

    @abstractmethod
    async def viewed_post_ids(self, user_id: str, since: datetime) -> set[str]:
        """Return ids of posts ``user_id`` viewed at or after ``since``."""
        ...

    @abstractmethod
    async def record_view(self, user_id: str, post_id: str) -> None:
        """Record that ``user_id`` viewed ``post_id``.

        Must be idempotent: recording the same pair twice, even
        concurrently, leaves exactly one record.
        """
        ...


# ---------------------------------------------------------------------------
# Graph store
# ---------------------------------------------------------------------------

class GraphStore(ABC):
    """Parameterized traversal queries over the relationship graph."""

    @abstractmethod
    async def query(self, template: str, params: dict[str, Any] | None = None) -> list[dict]:
        """Run ``template`` with ``params`` and return one dict per row."""
        ...


# ---------------------------------------------------------------------------
# Cache store
# ---------------------------------------------------------------------------

class CacheStore(ABC):
    """Key/value cache with per-entry TTL.  No transactional guarantees."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` on a miss."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""
        ...
