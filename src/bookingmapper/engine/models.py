"""Data models for expression evaluation and booking derivation."""

from enum import Enum
from typing import Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from ..mapping.fields import REQUIRED_FIELD_NAMES
from ..mapping.models import PlatformTag

FieldValue = Union[int, float, str]


class EvaluationStatus(str, Enum):
    """How an expression value was obtained."""

    DIRECT = "direct"  # Exact column reference
    COMPUTED = "computed"  # Arithmetic formula evaluated
    UNEVALUATED = "unevaluated"  # Failed the safe-character check; value is the formula
    FAILED = "failed"  # Malformed arithmetic or non-finite result; value is 0


class EvaluationResult(BaseModel):
    """Value of one expression for one row."""

    value: FieldValue
    status: EvaluationStatus
    message: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status in (EvaluationStatus.UNEVALUATED, EvaluationStatus.FAILED)


class BookingDraft(BaseModel):
    """Derived booking record for one source row, prior to commit."""

    model_config = ConfigDict(frozen=True)

    row_index: int
    listing_name: str
    fields: dict[str, FieldValue] = Field(default_factory=dict)
    platform: PlatformTag = PlatformTag.ALL  # Detected platform
    flags: dict[str, str] = Field(default_factory=dict)  # field -> evaluation problem
    property_id: Optional[str] = None  # Set when a per-property rule set was used

    @property
    def reservation_code(self) -> str:
        return str(self.fields.get("reservation_code", "")).strip()

    def missing_required_fields(self) -> list[str]:
        """Required fields that are absent or blank."""
        missing = []
        for name in REQUIRED_FIELD_NAMES:
            value = self.fields.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing

    def with_field(self, field_name: str, value: FieldValue) -> "BookingDraft":
        """Copy of this draft with one field replaced."""
        fields = dict(self.fields)
        fields[field_name] = value
        flags = {name: message for name, message in self.flags.items() if name != field_name}
        return self.model_copy(update={"fields": fields, "flags": flags})


class DerivationResult(BaseModel):
    """All drafts of one file, grouped by listing."""

    drafts: list[BookingDraft] = Field(default_factory=list)
    groups: dict[str, list[BookingDraft]] = Field(default_factory=dict)
    platform_counts: dict[str, int] = Field(default_factory=dict)
    flagged_rows: list[int] = Field(default_factory=list)

    @property
    def total_drafts(self) -> int:
        return len(self.drafts)

    def listing_counts(self) -> dict[str, int]:
        return {name: len(drafts) for name, drafts in self.groups.items()}
