"""Diversity re-ranking.

``diversify`` is a single-pass greedy heuristic: penalties depend on what
was seen *earlier in score order*, and the list is re-sorted once at the
end.  It does not search for a globally optimal arrangement, so a penalized
item can still outrank the item that caused its penalty.
"""

from ...models import Candidate, ScoredCandidate

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

AUTHOR_PENALTY = 0.7
# The author penalty kicks in once more than this many distinct authors
# have been seen.
AUTHOR_PENALTY_MIN_AUTHORS = 2
COMMUNITY_PENALTY = 0.8
# A community's third and later appearances are penalized.
COMMUNITY_PENALTY_AFTER = 2

# Fallback results: repeated authors are deferred once this many distinct
# authors have been accepted.
FALLBACK_DISTINCT_AUTHORS = 3


def diversify(scored: list[ScoredCandidate], limit: int) -> list[ScoredCandidate]:
    """Penalize over-represented authors and communities, then truncate.

    The input is not mutated.  The output holds at most ``limit`` items with
    unique content ids, sorted by adjusted score.
    """
    ordered = sorted(scored, key=lambda s: s.score, reverse=True)
    seen_authors: set[str] = set()
    community_counts: dict[str, int] = {}
    seen_ids: set[str] = set()
    adjusted: list[ScoredCandidate] = []

    for item in ordered:
        candidate = item.candidate
        if candidate.id in seen_ids:
            continue
        seen_ids.add(candidate.id)

        score = item.score
        if (
            candidate.author_id in seen_authors
            and len(seen_authors) > AUTHOR_PENALTY_MIN_AUTHORS
        ):
            score *= AUTHOR_PENALTY
        if candidate.community_id:
            if community_counts.get(candidate.community_id, 0) >= COMMUNITY_PENALTY_AFTER:
                score *= COMMUNITY_PENALTY
            community_counts[candidate.community_id] = community_counts.get(candidate.community_id, 0) + 1
        seen_authors.add(candidate.author_id)

        adjusted.append(item.model_copy(update={"score": score}))

    adjusted.sort(key=lambda s: s.score, reverse=True)
    return adjusted[:limit]


def cap_repeated_authors(posts: list[Candidate], limit: int) -> list[Candidate]:
    """Basic author cap used on fallback results.

    Walk ``posts`` in order; accept a post if its author is new or fewer than
    ``FALLBACK_DISTINCT_AUTHORS`` distinct authors have been accepted.
    Deferred posts are appended afterwards only to fill the result up to
    ``limit``.
    """
    accepted: list[Candidate] = []
    deferred: list[Candidate] = []
    seen_authors: set[str] = set()
    seen_ids: set[str] = set()

    for post in posts:
        if post.id in seen_ids:
            continue
        seen_ids.add(post.id)
        if post.author_id not in seen_authors or len(seen_authors) < FALLBACK_DISTINCT_AUTHORS:
            accepted.append(post)
            seen_authors.add(post.author_id)
        else:
            deferred.append(post)

    return (accepted + deferred)[:limit]
