"""Manual edits layered over derived booking drafts."""

import logging
from typing import Optional

from ..engine.evaluator import parse_number
from ..engine.models import BookingDraft, FieldValue
from ..mapping.fields import EDITABLE_FINANCIAL_FIELDS
from .models import EditNotAllowedError, FieldEdit

logger = logging.getLogger(__name__)


def _display_value(value: Optional[FieldValue]) -> str:
    if value is None:
        return ""
    return str(value)


def _edited_value(text: str) -> FieldValue:
    number = parse_number(text)
    return number if number is not None else text


def _check_editable(field_name: str):
    if field_name not in EDITABLE_FINANCIAL_FIELDS:
        raise EditNotAllowedError(
            f"Field '{field_name}' cannot be edited; editable fields: "
            f"{', '.join(EDITABLE_FINANCIAL_FIELDS)}"
        )


def apply_edit(drafts: list[BookingDraft], edit: FieldEdit) -> list[BookingDraft]:
    """
    Apply one edit to a list of drafts.

    Returns a new list in which only the draft for the edited row is
    replaced; all other drafts are the same objects.

    Raises:
        EditNotAllowedError: If the field is not editable or the row does not exist
    """
    _check_editable(edit.field_name)

    result = list(drafts)
    for position, draft in enumerate(result):
        if draft.row_index == edit.row_index:
            result[position] = draft.with_field(edit.field_name, _edited_value(edit.new_value))
            return result

    raise EditNotAllowedError(f"No draft for row {edit.row_index}")


class EditOverlay:
    """
    Edits kept on top of a fixed set of drafts.

    The pristine drafts are never modified. Each cell has at most one
    edit; its original value is the derived value before the first edit.
    """

    def __init__(self, drafts: list[BookingDraft]):
        self._drafts = list(drafts)
        self._by_row = {draft.row_index: draft for draft in self._drafts}
        self._edits: dict[tuple[int, str], FieldEdit] = {}

    @property
    def drafts(self) -> list[BookingDraft]:
        return list(self._drafts)

    @property
    def edits(self) -> list[FieldEdit]:
        return list(self._edits.values())

    def __len__(self) -> int:
        return len(self._edits)

    def get_edit(self, row_index: int, field_name: str) -> Optional[FieldEdit]:
        return self._edits.get((row_index, field_name))

    def set_edit(
        self,
        row_index: int,
        field_name: str,
        new_value: str,
        reason: Optional[str] = None,
    ) -> Optional[FieldEdit]:
        """
        Record an edit for one cell.

        Editing a cell back to its original value removes the edit.

        Returns:
            The recorded edit, or None if the cell is back to its original value

        Raises:
            EditNotAllowedError: If the field is not editable or the row does not exist
        """
        _check_editable(field_name)
        draft = self._by_row.get(row_index)
        if draft is None:
            raise EditNotAllowedError(f"No draft for row {row_index}")

        new_value = str(new_value).strip()
        existing = self._edits.get((row_index, field_name))
        original_value = (
            existing.original_value
            if existing
            else _display_value(draft.fields.get(field_name))
        )

        if new_value == original_value:
            if existing:
                del self._edits[(row_index, field_name)]
                logger.debug(f"Edit on row {row_index} {field_name} reverted to original")
            return None

        edit = FieldEdit(
            row_index=row_index,
            field_name=field_name,
            original_value=original_value,
            new_value=new_value,
            reason=reason,
        )
        self._edits[edit.key] = edit
        logger.debug(f"Edit on row {row_index} {field_name}: {original_value!r} -> {new_value!r}")
        return edit

    def revert(self, row_index: int, field_name: str) -> bool:
        """Drop the edit of one cell."""
        return self._edits.pop((row_index, field_name), None) is not None

    def clear(self):
        self._edits.clear()

    def edited_drafts(self) -> list[BookingDraft]:
        """Drafts with every edit applied."""
        drafts = self._drafts
        for edit in self._edits.values():
            drafts = apply_edit(drafts, edit)
        return drafts
