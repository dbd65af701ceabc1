"""
Domain layer for the song listing service.

Holds request parameter normalization and the two read façades. Both
façades go through one SongListingService so they share cache entries.
"""

from .facades import (
    FacadeProfile,
    INTERNAL_PROFILE,
    ListingPage,
    PUBLIC_PROFILE,
    SongListFacade,
    SongListingService,
)
from .params import ListingDefaults, QueryParameters, parse_query_parameters

__all__ = [
    "FacadeProfile",
    "INTERNAL_PROFILE",
    "ListingDefaults",
    "ListingPage",
    "PUBLIC_PROFILE",
    "QueryParameters",
    "SongListFacade",
    "SongListingService",
    "parse_query_parameters",
]
