"""Primary candidate retrieval.

A post is eligible when it is not archived, not authored by the requester
and not recently viewed, **and** at least one of these holds:

* its author is followed,
* one of its keywords is an interest of the requester,
* it is trending: created in the last ``TRENDING_WINDOW`` with at least
  ``TRENDING_MIN_LIKES`` likes, so users with no signal still get something.
"""

import logging
from datetime import datetime, timedelta, timezone

from ...models import Candidate, UserProfile
from ..stores.base import ContentStore
from ..stores.query import And, In, Not, Or, Predicate, Range, Sort, Term

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

MAX_CANDIDATES = 200
TRENDING_WINDOW = timedelta(days=3)
TRENDING_MIN_LIKES = 5


def excluded_posts(user_id: str, excluded_ids) -> list[Predicate]:
    """Clauses shared by every retrieval path: live, not own, not excluded."""
    clauses: list[Predicate] = [
        Term("archived", False),
        Not(Term("author_id", user_id)),
    ]
    if excluded_ids:
        clauses.append(Not(In("id", sorted(excluded_ids))))
    return clauses


def eligibility_predicate(user_id: str, profile: UserProfile, now: datetime) -> Predicate:
    relevance = Or(
        In("author_id", sorted(profile.following)) if profile.following else None,
        In("keywords", sorted(profile.interests)) if profile.interests else None,
        And(
            Range("created_at", gte=now - TRENDING_WINDOW),
            Range("like_count", gte=TRENDING_MIN_LIKES),
        ),
    )
    return And(*excluded_posts(user_id, profile.viewed_posts), relevance)


class CandidateRetriever:
    """Builds the bounded candidate pool for one user."""

    def __init__(self, store: ContentStore, max_candidates: int = MAX_CANDIDATES, clock=None):
        self._store = store
        self._max_candidates = max_candidates
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def retrieve(self, user_id: str, profile: UserProfile) -> list[Candidate]:
        """Return newest-first eligible posts, or ``[]`` if the store fails."""
        predicate = eligibility_predicate(user_id, profile, self._clock())
        try:
            posts = await self._store.find_posts(
                predicate,
                sort=[Sort("created_at", descending=True)],
                limit=self._max_candidates,
            )
        except Exception:
            logger.exception("Failed to fetch candidate posts for user %s", user_id)
            return []
        return [
            p for p in posts
            if not p.archived and p.author_id != user_id and p.id not in profile.viewed_posts
        ]
