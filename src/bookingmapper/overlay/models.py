"""Data models for operator edits and their audit correlation."""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field


class EditNotAllowedError(Exception):
    """Raised when an edit targets a field or row that cannot be edited."""

    pass


class FieldEdit(BaseModel):
    """Manual replacement of one derived value."""

    row_index: int
    field_name: str
    original_value: str  # Value derived before any edit
    new_value: str
    reason: Optional[str] = None
    edited_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> tuple[int, str]:
        return (self.row_index, self.field_name)


class CorrelatedEdit(BaseModel):
    """An edit matched to the booking record the commit created for its row."""

    edit: FieldEdit
    booking_id: str
    reservation_code: str

    def to_audit_payload(self, user_id: str) -> dict:
        payload = {
            "bookingId": self.booking_id,
            "userId": user_id,
            "fieldName": self.edit.field_name,
            "originalValue": self.edit.original_value,
            "editedValue": self.edit.new_value,
        }
        if self.edit.reason:
            payload["changeReason"] = self.edit.reason
        return payload


class CorrelationResult(BaseModel):
    """Outcome of matching edits to created bookings."""

    applied: list[CorrelatedEdit] = Field(default_factory=list)
    unmatched: list[FieldEdit] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def to_audit_payloads(self, user_id: str) -> list[dict]:
        """Audit records for every applied edit."""
        return [entry.to_audit_payload(user_id) for entry in self.applied]
