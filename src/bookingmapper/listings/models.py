"""Data models for listing to property resolution."""

from typing import Optional
from pydantic import BaseModel, Field


class NewPropertyData(BaseModel):
    """Details for a property that will be created for an unmatched listing."""

    name: str
    address: str = ""
    property_type: str = "STR"
    commission_rate: float = 10.0


class PropertyMapping(BaseModel):
    """Resolution of one distinct listing name found in a file."""

    listing_name: str
    property_id: Optional[str] = None
    is_new_property: bool = False
    booking_count: int = 0
    new_property_data: Optional[NewPropertyData] = None

    @property
    def is_resolved(self) -> bool:
        return self.property_id is not None or self.is_new_property


class ListingSummary(BaseModel):
    """Progress of listing resolution for a file."""

    total_listings: int
    mapped_listings: int
    new_properties: int
    unresolved_listings: list[str] = Field(default_factory=list)
    total_bookings: int
    is_valid: bool
