"""Listing to property resolution for an imported file."""

import logging
from typing import Optional

from ..engine.models import BookingDraft
from .models import ListingSummary, NewPropertyData, PropertyMapping

logger = logging.getLogger(__name__)


class ListingResolver:
    """
    Tracks how each distinct listing name maps to a property.

    Every listing starts unmapped. It becomes resolved once it is assigned
    an existing property or marked for creation.
    """

    def __init__(self, mappings: Optional[list[PropertyMapping]] = None):
        self._mappings: dict[str, PropertyMapping] = {}
        for mapping in mappings or []:
            self._mappings[mapping.listing_name] = mapping

    @classmethod
    def from_drafts(cls, drafts: list[BookingDraft]) -> "ListingResolver":
        """Build one unmapped entry per distinct listing, in first-seen order."""
        counts: dict[str, int] = {}
        for draft in drafts:
            counts[draft.listing_name] = counts.get(draft.listing_name, 0) + 1

        return cls(
            [
                PropertyMapping(listing_name=name, booking_count=count)
                for name, count in counts.items()
            ]
        )

    @property
    def mappings(self) -> list[PropertyMapping]:
        return list(self._mappings.values())

    @property
    def listing_names(self) -> list[str]:
        return list(self._mappings.keys())

    def get(self, listing_name: str) -> PropertyMapping:
        """
        Get the mapping of a listing.

        Raises:
            KeyError: If the listing is not part of this file
        """
        if listing_name not in self._mappings:
            raise KeyError(f"Unknown listing '{listing_name}'")
        return self._mappings[listing_name]

    def assign_property(self, listing_name: str, property_id: str) -> PropertyMapping:
        """Map a listing to an existing property."""
        mapping = self.get(listing_name)
        mapping.property_id = property_id
        mapping.is_new_property = False
        mapping.new_property_data = None
        logger.debug(f"Listing '{listing_name}' assigned to property {property_id}")
        return mapping

    def mark_new_property(
        self, listing_name: str, data: Optional[NewPropertyData] = None
    ) -> PropertyMapping:
        """Mark a listing for property creation. The new property is named after the listing by default."""
        mapping = self.get(listing_name)
        mapping.property_id = None
        mapping.is_new_property = True
        mapping.new_property_data = data or NewPropertyData(name=listing_name)
        logger.debug(f"Listing '{listing_name}' marked for property creation")
        return mapping

    def clear(self, listing_name: str) -> PropertyMapping:
        """Return a listing to the unmapped state."""
        mapping = self.get(listing_name)
        mapping.property_id = None
        mapping.is_new_property = False
        mapping.new_property_data = None
        return mapping

    def property_for(self, listing_name: str) -> Optional[str]:
        return self.get(listing_name).property_id

    def unresolved_listings(self) -> list[str]:
        return [m.listing_name for m in self._mappings.values() if not m.is_resolved]

    @property
    def is_valid(self) -> bool:
        return all(mapping.is_resolved for mapping in self._mappings.values())

    @property
    def total_bookings(self) -> int:
        return sum(mapping.booking_count for mapping in self._mappings.values())

    def summary(self) -> ListingSummary:
        mappings = self.mappings
        return ListingSummary(
            total_listings=len(mappings),
            mapped_listings=sum(1 for m in mappings if m.property_id is not None),
            new_properties=sum(1 for m in mappings if m.is_new_property),
            unresolved_listings=self.unresolved_listings(),
            total_bookings=self.total_bookings,
            is_valid=self.is_valid,
        )
