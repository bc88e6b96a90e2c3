"""Recommendation engine: profile, retrieval, scoring, diversity, fallback
and people suggestions, orchestrated by :class:`RecommendationEngine`.
"""

from .diversity import cap_repeated_authors, diversify
from .engine import RecommendationEngine
from .people import weighted_shuffle
from .profile import decay_weight
from .scoring import score_candidate

__all__ = [
    "RecommendationEngine",
    "cap_repeated_authors",
    "decay_weight",
    "diversify",
    "score_candidate",
    "weighted_shuffle",
]
