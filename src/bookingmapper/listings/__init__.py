"""Listing to property resolution."""

from .models import ListingSummary, NewPropertyData, PropertyMapping
from .resolver import ListingResolver

__all__ = [
    "ListingSummary",
    "NewPropertyData",
    "PropertyMapping",
    "ListingResolver",
]
