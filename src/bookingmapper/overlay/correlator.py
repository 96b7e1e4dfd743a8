"""Matching edits to the booking records a commit created."""

import logging
from typing import Any, Optional

from .models import CorrelatedEdit, CorrelationResult, FieldEdit

logger = logging.getLogger(__name__)


def normalize_code(value: Any) -> str:
    """Normalize a reservation code for comparison."""
    if value is None:
        return ""
    return str(value).strip().casefold()


def _payload_code(payload: dict) -> str:
    code = payload.get("reservation_code")
    if code is None:
        code = payload.get("reservationCode")
    return normalize_code(code)


def _record_code(record: dict) -> str:
    code = record.get("reservationCode")
    if code is None:
        code = record.get("reservation_code")
    return normalize_code(code)


def _record_id(record: dict) -> Optional[str]:
    booking_id = record.get("id") or record.get("bookingId")
    return str(booking_id) if booking_id else None


def find_duplicate_reservation_codes(payloads: list[dict]) -> list[str]:
    """Reservation codes that appear on more than one payload, in first-seen order."""
    counts: dict[str, int] = {}
    for payload in payloads:
        code = _payload_code(payload)
        if code:
            counts[code] = counts.get(code, 0) + 1
    return [code for code, count in counts.items() if count > 1]


def correlate_edits(
    edits: list[FieldEdit],
    sent_payloads: list[dict],
    created_records: list[dict],
) -> CorrelationResult:
    """
    Match each edit to the booking created for its row.

    The reservation code of an edit is taken from the payload sent for
    its row (``sent_payloads[edit.row_index]``) and looked up among the
    created records. Edits that cannot be matched are returned as
    unmatched; they never raise.

    Args:
        edits: Edits recorded before the commit
        sent_payloads: Booking payloads in row order
        created_records: Records returned by the booking API

    Returns:
        CorrelationResult with applied and unmatched edits
    """
    result = CorrelationResult()

    records_by_code: dict[str, dict] = {}
    duplicated: set[str] = set()
    for record in created_records:
        code = _record_code(record)
        if not code:
            continue
        if code in records_by_code:
            duplicated.add(code)
            continue
        records_by_code[code] = record

    for edit in edits:
        if not 0 <= edit.row_index < len(sent_payloads):
            message = f"No payload was sent for row {edit.row_index}; edit of {edit.field_name} skipped"
            logger.warning(message)
            result.warnings.append(message)
            result.unmatched.append(edit)
            continue

        code = _payload_code(sent_payloads[edit.row_index])
        record = records_by_code.get(code) if code else None
        booking_id = _record_id(record) if record else None
        if booking_id is None:
            message = (
                f"No created booking matches reservation code '{code}' "
                f"(row {edit.row_index}); edit of {edit.field_name} skipped"
            )
            logger.warning(message)
            result.warnings.append(message)
            result.unmatched.append(edit)
            continue

        if code in duplicated:
            message = (
                f"Reservation code '{code}' matches several created bookings; "
                f"edit of {edit.field_name} attached to {booking_id}"
            )
            logger.warning(message)
            result.warnings.append(message)

        result.applied.append(
            CorrelatedEdit(edit=edit, booking_id=booking_id, reservation_code=code)
        )

    logger.info(
        f"Correlated {len(result.applied)} edits, {len(result.unmatched)} unmatched"
    )
    return result
