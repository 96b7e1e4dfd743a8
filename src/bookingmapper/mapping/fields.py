"""Canonical booking fields produced by mapping rules."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class FieldType(str, Enum):
    """Value type of a booking field."""

    STRING = "string"
    NUMBER = "number"
    DATE = "date"


class BookingField(BaseModel):
    """Description of one canonical booking field."""

    field: str
    label: str
    required: bool
    type: FieldType


REQUIRED_BOOKING_FIELDS: list[BookingField] = [
    BookingField(field="reservation_code", label="Reservation Code", required=True, type=FieldType.STRING),
    BookingField(field="guest_name", label="Guest Name", required=True, type=FieldType.STRING),
    BookingField(field="check_in_date", label="Check-in Date", required=True, type=FieldType.DATE),
    BookingField(field="num_nights", label="Number of Nights", required=True, type=FieldType.NUMBER),
    BookingField(field="platform", label="Channel/Platform", required=True, type=FieldType.STRING),
    BookingField(field="listing_name", label="Listing Name", required=True, type=FieldType.STRING),
]

OPTIONAL_BOOKING_FIELDS: list[BookingField] = [
    BookingField(field="check_out_date", label="Check-out Date", required=False, type=FieldType.DATE),
    BookingField(field="nightly_rate", label="Nightly Rate", required=False, type=FieldType.NUMBER),
    BookingField(field="cleaning_fee", label="Cleaning Fee", required=False, type=FieldType.NUMBER),
    BookingField(field="total_payout", label="Total Payout", required=False, type=FieldType.NUMBER),
    BookingField(field="net_earnings", label="Net Earnings", required=False, type=FieldType.NUMBER),
    BookingField(field="sales_tax", label="Sales Tax", required=False, type=FieldType.NUMBER),
    BookingField(field="mgmt_fee", label="Management Fee", required=False, type=FieldType.NUMBER),
    BookingField(field="extra_guest_fees", label="Extra Guest Fees", required=False, type=FieldType.NUMBER),
    BookingField(field="lodging_tax", label="Lodging Tax", required=False, type=FieldType.NUMBER),
    BookingField(field="qst", label="QST", required=False, type=FieldType.NUMBER),
    BookingField(field="gst", label="GST", required=False, type=FieldType.NUMBER),
    BookingField(field="channel_fee", label="Channel Fee", required=False, type=FieldType.NUMBER),
    BookingField(field="stripe_fee", label="Stripe Fee", required=False, type=FieldType.NUMBER),
    BookingField(field="bed_linen_fee", label="Bed Linen Fee", required=False, type=FieldType.NUMBER),
    BookingField(field="total_price", label="Total Price", required=False, type=FieldType.NUMBER),
    BookingField(field="accommodation_fee", label="Accommodation Fee", required=False, type=FieldType.NUMBER),
    BookingField(field="payment_fees", label="Payment Fees", required=False, type=FieldType.NUMBER),
    BookingField(field="other_guest_fees", label="Other Guest Fees", required=False, type=FieldType.NUMBER),
]

ALL_BOOKING_FIELDS: list[BookingField] = REQUIRED_BOOKING_FIELDS + OPTIONAL_BOOKING_FIELDS

REQUIRED_FIELD_NAMES: tuple[str, ...] = tuple(f.field for f in REQUIRED_BOOKING_FIELDS)

# Fields an operator may correct by hand before commit
EDITABLE_FINANCIAL_FIELDS: tuple[str, ...] = (
    "nightly_rate",
    "cleaning_fee",
    "total_payout",
    "net_earnings",
    "sales_tax",
    "mgmt_fee",
    "extra_guest_fees",
    "lodging_tax",
    "qst",
    "gst",
    "channel_fee",
    "stripe_fee",
    "bed_linen_fee",
)

_FIELDS_BY_NAME = {f.field: f for f in ALL_BOOKING_FIELDS}


def get_field(name: str) -> Optional[BookingField]:
    """Look up a canonical field by name."""
    return _FIELDS_BY_NAME.get(name)


def is_known_field(name: str) -> bool:
    return name in _FIELDS_BY_NAME
