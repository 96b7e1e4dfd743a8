"""Operator edits and their correlation to committed bookings."""

from .models import CorrelatedEdit, CorrelationResult, EditNotAllowedError, FieldEdit
from .edits import EditOverlay, apply_edit
from .correlator import correlate_edits, find_duplicate_reservation_codes, normalize_code

__all__ = [
    "CorrelatedEdit",
    "CorrelationResult",
    "EditNotAllowedError",
    "FieldEdit",
    "EditOverlay",
    "apply_edit",
    "correlate_edits",
    "find_duplicate_reservation_codes",
    "normalize_code",
]
