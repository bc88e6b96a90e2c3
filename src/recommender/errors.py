"""Exceptions raised by the recommendation engine.

Most failures inside the engine are recovered locally (a missing signal, an
empty candidate pool, a cache miss).  Only a store outage that leaves no way
to produce *any* result escapes to the caller.
"""


class RecommenderError(Exception):
    """Base class for recommendation engine errors."""


class StoreUnavailableError(RecommenderError):
    """Raised when the backing stores cannot produce any result at all."""
