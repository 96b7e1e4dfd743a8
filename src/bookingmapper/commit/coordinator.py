"""Sequential commit of derived bookings and their edit audit trail."""

import logging
from typing import Awaitable, Callable, Optional

from ..engine.models import BookingDraft
from ..listings.models import PropertyMapping
from ..listings.resolver import ListingResolver
from ..overlay.correlator import correlate_edits, find_duplicate_reservation_codes
from ..overlay.models import FieldEdit
from .client import BookingApiClient
from .models import AuditRecordError, CommitError, CommitResult

logger = logging.getLogger(__name__)

PropertyCreator = Callable[[PropertyMapping], Awaitable[str]]


def build_booking_payload(
    draft: BookingDraft,
    user_id: str,
    property_id: str,
    upload_id: Optional[str] = None,
) -> dict:
    """Booking API payload for one draft."""
    payload = {"user_id": user_id, "property_id": property_id}
    payload.update(draft.fields)
    payload["listing_name"] = draft.listing_name
    if upload_id:
        payload["csv_upload_id"] = upload_id
    return payload


class CommitCoordinator:
    """
    Runs the commit sequence: upload record, bulk bookings, then audit records.

    The steps never overlap. A failure creating the upload record or the
    bookings raises before any audit record is attempted; a failure creating
    audit records is reported on the result and leaves the bookings in place.
    """

    def __init__(
        self,
        client: Optional[BookingApiClient] = None,
        property_creator: Optional[PropertyCreator] = None,
    ):
        self.client = client or BookingApiClient()
        self.property_creator = property_creator

    async def resolve_property_ids(
        self,
        drafts: list[BookingDraft],
        listing_resolver: Optional[ListingResolver] = None,
    ) -> dict[int, str]:
        """
        Property ID for every draft, keyed by row index.

        Listings marked as new properties are created through the property
        creator and assigned the returned ID.

        Raises:
            CommitError: If a draft has no property and none can be created
        """
        if listing_resolver is not None:
            for mapping in listing_resolver.mappings:
                if mapping.is_new_property and mapping.property_id is None:
                    if self.property_creator is None:
                        raise CommitError(
                            f"Listing '{mapping.listing_name}' is marked as a new property "
                            "but no property creator is configured"
                        )
                    property_id = await self.property_creator(mapping)
                    mapping.property_id = property_id
                    logger.info(f"Created property {property_id} for '{mapping.listing_name}'")

        property_ids = {}
        for draft in drafts:
            property_id = draft.property_id
            if property_id is None and listing_resolver is not None:
                property_id = listing_resolver.property_for(draft.listing_name)
            if not property_id:
                raise CommitError(
                    f"Row {draft.row_index} ('{draft.listing_name}') has no property assigned"
                )
            property_ids[draft.row_index] = property_id
        return property_ids

    async def commit(
        self,
        drafts: list[BookingDraft],
        edits: list[FieldEdit],
        user_id: str,
        file_name: str,
        file_content: bytes,
        listing_resolver: Optional[ListingResolver] = None,
    ) -> CommitResult:
        """
        Commit drafts and record their edits.

        Args:
            drafts: Drafts with edits already applied, in row order
            edits: Edits to record as audit entries
            user_id: Owner of the bookings and audit records
            file_name: Name of the source file
            file_content: Raw bytes of the source file
            listing_resolver: Listing to property assignments

        Raises:
            UploadRecordError: Upload record could not be created
            BookingCommitError: Bookings were rejected; no audit call was made
            CommitError: A draft has no property
        """
        if not drafts:
            raise CommitError("Nothing to commit")

        property_ids = await self.resolve_property_ids(drafts, listing_resolver)
        first_property = property_ids[drafts[0].row_index]

        upload_id = await self.client.create_upload_record(
            file_name, file_content, user_id, first_property
        )

        payloads = [
            build_booking_payload(draft, user_id, property_ids[draft.row_index], upload_id)
            for draft in drafts
        ]
        warnings = [
            f"Reservation code '{code}' appears on more than one booking"
            for code in find_duplicate_reservation_codes(payloads)
        ]
        for warning in warnings:
            logger.warning(warning)

        created = await self.client.create_bookings_bulk(payloads)

        # Edits are addressed by row index
        sent_by_row: list[dict] = [{} for _ in range(max(d.row_index for d in drafts) + 1)]
        for draft, payload in zip(drafts, payloads):
            sent_by_row[draft.row_index] = payload

        correlation = correlate_edits(edits, sent_by_row, created)
        warnings.extend(correlation.warnings)

        result = CommitResult(
            upload_id=upload_id,
            created_bookings=created,
            unmatched_edits=correlation.unmatched,
            warnings=warnings,
        )

        audit_payloads = correlation.to_audit_payloads(user_id)
        if audit_payloads:
            try:
                result.audit_records_created = await self.client.create_field_changes_bulk(
                    audit_payloads
                )
            except AuditRecordError as e:
                logger.error(f"Audit records were not created: {e}")
                result.audit_error = str(e)

        logger.info(
            f"Commit {upload_id}: {result.bookings_created} bookings, "
            f"{result.audit_records_created} audit records, "
            f"{len(result.unmatched_edits)} unmatched edits"
        )
        return result
