"""Additive multi-signal scoring.

Every signal is independent and non-negative, so the total is monotonic in
each input (more likes never lowers a score).  The scorer is a pure function
of the candidate, the profile and ``now``.
"""

import math
from datetime import datetime

from ...models import Candidate, ScoredCandidate, UserProfile

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

RECENCY_SCALE = 10.0
RECENCY_HALF_LIFE_HOURS = 24.0  # e-folding time; the score halves every ~17h
INTEREST_SCALE = 15.0
FOLLOWING_BONUS = 8.0
LIKE_WEIGHT = 2.0
COMMENT_WEIGHT = 3.0
QUALITY_BONUS = 2.0
QUALITY_MIN_DESCRIPTION = 100
COMMUNITY_BONUS = 1.0
INTERACTION_WEIGHT = 2.0

# Attribution thresholds for the diagnostic ``reasons`` set.
RECENT_REASON_THRESHOLD = 5.0
INTEREST_REASON_THRESHOLD = 5.0
POPULAR_REASON_THRESHOLD = 3.0


def recency_score(created_at: datetime, now: datetime) -> float:
    age_hours = max(0.0, (now - created_at).total_seconds() / 3600)
    return max(0.0, math.exp(-age_hours / RECENCY_HALF_LIFE_HOURS) * RECENCY_SCALE)


def interest_score(keywords: list[str], interests: dict[str, float]) -> float:
    """Sum of the matched interests' shares of total interest mass.

    Normalizing by the total keeps one dominant interest from outweighing
    everything else.  Returns 0 when the profile has no positive mass.
    """
    total = sum(w for w in interests.values() if w > 0)
    if total <= 0:
        return 0.0
    score = 0.0
    for tag in keywords:
        weight = interests.get(tag, 0.0)
        if weight > 0:
            score += (weight / total) * INTEREST_SCALE
    return score


def engagement_score(like_count: int, comment_count: int) -> float:
    return (
        math.log1p(max(0, like_count)) * LIKE_WEIGHT
        + math.log1p(max(0, comment_count)) * COMMENT_WEIGHT
    )


def score_candidate(candidate: Candidate, profile: UserProfile, now: datetime) -> ScoredCandidate:
    score = 0.0
    reasons: set[str] = set()

    recency = recency_score(candidate.created_at, now)
    score += recency
    if recency > RECENT_REASON_THRESHOLD:
        reasons.add("recent")

    interest = interest_score(candidate.keywords, profile.interests)
    score += interest
    if interest > INTEREST_REASON_THRESHOLD:
        reasons.add("interests")

    if candidate.author_id in profile.following:
        score += FOLLOWING_BONUS
        reasons.add("following")

    engagement = engagement_score(candidate.like_count, candidate.comment_count)
    score += engagement
    if engagement > POPULAR_REASON_THRESHOLD:
        reasons.add("popular")

    if candidate.has_image and len(candidate.description) > QUALITY_MIN_DESCRIPTION:
        score += QUALITY_BONUS
        reasons.add("quality")

    if candidate.community_id:
        score += COMMUNITY_BONUS
        reasons.add("community")

    interactions = profile.recent_interactions.get(candidate.id, 0.0)
    if interactions > 0:
        score += interactions * INTERACTION_WEIGHT
        reasons.add("interacted")

    return ScoredCandidate(candidate=candidate, score=score, reasons=reasons)


def score_candidates(
    candidates: list[Candidate],
    profile: UserProfile,
    now: datetime,
) -> list[ScoredCandidate]:
    return [score_candidate(c, profile, now) for c in candidates]
