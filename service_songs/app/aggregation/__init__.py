"""
Song listing aggregation.

Joins one store page of songs with vote counts, published schedule state,
play-time windows and disambiguated requester names.
"""

from .engine import AggregationEngine, AggregationResult, narrow_by_scheduled, sort_by_votes
from .names import RequesterNameResolver, UNKNOWN_REQUESTER

__all__ = [
    "AggregationEngine",
    "AggregationResult",
    "RequesterNameResolver",
    "UNKNOWN_REQUESTER",
    "narrow_by_scheduled",
    "sort_by_votes",
]
