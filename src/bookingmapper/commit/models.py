"""Data models and errors for committing derived bookings."""

from typing import Optional
from pydantic import BaseModel, Field

from ..overlay.models import FieldEdit


class CommitError(Exception):
    """Raised when a commit cannot proceed. Nothing after the failing step is attempted."""

    pass


class UploadRecordError(CommitError):
    """Raised when the upload record cannot be created."""

    pass


class BookingCommitError(CommitError):
    """Raised when the booking API rejects the bulk booking call."""

    pass


class AuditRecordError(CommitError):
    """Raised when audit records cannot be created. Bookings stay committed."""

    pass


class CommitResult(BaseModel):
    """Outcome of a completed commit."""

    upload_id: str
    created_bookings: list[dict] = Field(default_factory=list)
    audit_records_created: int = 0
    unmatched_edits: list[FieldEdit] = Field(default_factory=list)
    audit_error: Optional[str] = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def bookings_created(self) -> int:
        return len(self.created_bookings)
