"""An import session: one file from parsing to commit."""

import logging
from typing import Optional

from pydantic import BaseModel, Field

from .catalog.models import ColumnCatalog
from .commit.coordinator import CommitCoordinator
from .commit.models import CommitResult
from .engine.models import BookingDraft, DerivationResult
from .engine.pipeline import DerivationPipeline
from .listings.resolver import ListingResolver
from .mapping.models import MappingRuleSet, MappingValidationResult
from .mapping.validator import MappingValidator
from .overlay.correlator import find_duplicate_reservation_codes
from .overlay.edits import EditOverlay
from .overlay.models import FieldEdit

logger = logging.getLogger(__name__)


class SessionStateError(Exception):
    """Raised when a session operation is called out of order."""

    pass


class ReadinessReport(BaseModel):
    """Whether a session's drafts can be committed."""

    ready: bool
    rows_missing_required: dict[int, list[str]] = Field(default_factory=dict)
    duplicate_reservation_codes: list[str] = Field(default_factory=list)
    unresolved_listings: list[str] = Field(default_factory=list)


class ImportSession:
    """
    Owns the in-memory state of one import.

    Drafts, listing assignments and edits live here until a commit
    succeeds. A failed commit leaves all of them untouched so it can be
    retried without deriving again.
    """

    def __init__(
        self,
        catalog: ColumnCatalog,
        rule_set: MappingRuleSet,
        file_name: str,
        file_content: bytes = b"",
        property_rule_sets: Optional[dict[str, MappingRuleSet]] = None,
        pipeline: Optional[DerivationPipeline] = None,
        validator: Optional[MappingValidator] = None,
    ):
        self.catalog = catalog
        self.rule_set = rule_set
        self.file_name = file_name
        self.file_content = file_content
        self.property_rule_sets = property_rule_sets or {}
        self.pipeline = pipeline or DerivationPipeline()
        self.validator = validator or MappingValidator()

        self.derivation: Optional[DerivationResult] = None
        self.listings: Optional[ListingResolver] = None
        self.overlay: Optional[EditOverlay] = None
        self.commit_result: Optional[CommitResult] = None

    def validate(self) -> MappingValidationResult:
        return self.validator.validate_rule_set(self.rule_set, self.catalog)

    def derive(self) -> DerivationResult:
        """
        Derive drafts for the whole file.

        Deriving again after listings were assigned uses the per-property
        rule sets of the assigned properties. Listing assignments and edits
        are carried over.

        Raises:
            MappingError: If any rule set in use is invalid
        """
        self.validator.ensure_valid(self.rule_set, self.catalog)
        for property_rules in self.property_rule_sets.values():
            self.validator.ensure_valid(property_rules, self.catalog)

        previous_listings = self.listings
        previous_edits = self.overlay.edits if self.overlay else []

        self.derivation = self.pipeline.derive(
            self.catalog,
            self.rule_set,
            property_rule_sets=self.property_rule_sets,
            property_mappings=previous_listings.mappings if previous_listings else None,
        )

        self.listings = ListingResolver.from_drafts(self.derivation.drafts)
        if previous_listings is not None:
            for mapping in previous_listings.mappings:
                if mapping.listing_name not in self.listings.listing_names:
                    continue
                if mapping.property_id is not None:
                    self.listings.assign_property(mapping.listing_name, mapping.property_id)
                elif mapping.is_new_property:
                    self.listings.mark_new_property(
                        mapping.listing_name, mapping.new_property_data
                    )

        self.overlay = EditOverlay(self.derivation.drafts)
        for edit in previous_edits:
            self.overlay.set_edit(edit.row_index, edit.field_name, edit.new_value, edit.reason)

        self.commit_result = None
        return self.derivation

    def _require_derived(self):
        if self.derivation is None or self.overlay is None or self.listings is None:
            raise SessionStateError("Drafts have not been derived yet")

    def set_edit(
        self,
        row_index: int,
        field_name: str,
        new_value: str,
        reason: Optional[str] = None,
    ) -> Optional[FieldEdit]:
        self._require_derived()
        return self.overlay.set_edit(row_index, field_name, new_value, reason)

    def revert_edit(self, row_index: int, field_name: str) -> bool:
        self._require_derived()
        return self.overlay.revert(row_index, field_name)

    @property
    def edits(self) -> list[FieldEdit]:
        return self.overlay.edits if self.overlay else []

    def drafts(self) -> list[BookingDraft]:
        """Current drafts with edits applied."""
        self._require_derived()
        return self.overlay.edited_drafts()

    def readiness(self) -> ReadinessReport:
        """Check required fields, listing resolution and duplicate codes."""
        self._require_derived()
        drafts = self.drafts()

        missing = {}
        for draft in drafts:
            fields = draft.missing_required_fields()
            if fields:
                missing[draft.row_index] = fields

        duplicates = find_duplicate_reservation_codes([draft.fields for draft in drafts])
        unresolved = self.listings.unresolved_listings()

        return ReadinessReport(
            ready=not missing and not unresolved and bool(drafts),
            rows_missing_required=missing,
            duplicate_reservation_codes=duplicates,
            unresolved_listings=unresolved,
        )

    async def commit(self, coordinator: CommitCoordinator, user_id: str) -> CommitResult:
        """
        Commit the session's drafts.

        Raises:
            SessionStateError: If the drafts are not ready to commit
            CommitError: If the upload record or bookings could not be created
        """
        report = self.readiness()
        if not report.ready:
            raise SessionStateError(
                f"Session is not ready to commit: {len(report.rows_missing_required)} rows "
                f"missing required fields, {len(report.unresolved_listings)} unresolved listings"
            )

        try:
            self.commit_result = await coordinator.commit(
                self.drafts(),
                self.edits,
                user_id,
                self.file_name,
                self.file_content,
                listing_resolver=self.listings,
            )
        except Exception:
            logger.exception(f"Commit of '{self.file_name}' failed; session state kept for retry")
            raise
        return self.commit_result
