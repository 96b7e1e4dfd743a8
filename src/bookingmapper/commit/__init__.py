"""Committing derived bookings and audit records to the booking API."""

from .models import (
    AuditRecordError,
    BookingCommitError,
    CommitError,
    CommitResult,
    UploadRecordError,
)
from .client import BookingApiClient
from .coordinator import CommitCoordinator, build_booking_payload

__all__ = [
    "AuditRecordError",
    "BookingCommitError",
    "CommitError",
    "CommitResult",
    "UploadRecordError",
    "BookingApiClient",
    "CommitCoordinator",
    "build_booking_payload",
]
