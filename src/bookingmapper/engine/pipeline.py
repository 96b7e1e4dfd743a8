"""Booking derivation: classify, resolve and evaluate every row."""

import logging
import time
from typing import TYPE_CHECKING, Optional

from ..catalog.models import ColumnCatalog
from ..config import settings
from ..mapping.models import FieldMappingRule, MappingRuleSet, PlatformTag, ResolvedMapping
from ..mapping.resolver import RuleResolver
from .classifier import PlatformClassifier
from .evaluator import ExpressionEvaluator
from .models import BookingDraft, DerivationResult, FieldValue

if TYPE_CHECKING:
    from ..listings.models import PropertyMapping

logger = logging.getLogger(__name__)


class DerivationPipeline:
    """
    Turns catalog rows into booking drafts.

    Each row is processed in two phases: rules that reference a column
    directly are evaluated first, then computed rules in their resolved
    order. A computed rule sees every direct result and the computed
    results that precede it; it cannot depend on a computed rule listed
    after it.
    """

    def __init__(
        self,
        evaluator: Optional[ExpressionEvaluator] = None,
        classifier: Optional[PlatformClassifier] = None,
        unknown_listing_name: Optional[str] = None,
    ):
        self.evaluator = evaluator or ExpressionEvaluator()
        self.classifier = classifier or PlatformClassifier(self.evaluator)
        self.unknown_listing_name = unknown_listing_name or settings.unknown_listing_name

    def partition_rules(
        self, mapping: ResolvedMapping, catalog: ColumnCatalog
    ) -> tuple[list[FieldMappingRule], list[FieldMappingRule]]:
        """Split resolved rules into (direct, computed), keeping relative order."""
        direct, computed = [], []
        for rule in mapping.rules:
            if self.evaluator.is_direct_reference(rule.source_expression, catalog):
                direct.append(rule)
            else:
                computed.append(rule)
        return direct, computed

    def derive_row(
        self,
        row_index: int,
        row: list[str],
        catalog: ColumnCatalog,
        resolver: RuleResolver,
        property_id: Optional[str] = None,
    ) -> BookingDraft:
        """Derive the draft for a single row."""
        platform = self.classifier.classify(row, resolver.rule_set, catalog)
        mapping = resolver.resolve(platform)
        direct, computed = self.partition_rules(mapping, catalog)

        derived: dict[str, FieldValue] = {}
        flags: dict[str, str] = {}
        for rule in direct + computed:
            result = self.evaluator.evaluate(rule.source_expression, row, catalog, derived)
            derived[rule.booking_field] = result.value
            if result.is_error:
                flags[rule.booking_field] = result.message or result.status.value
                logger.debug(
                    f"Row {row_index}: {rule.booking_field} = {result.value!r} ({result.status.value})"
                )

        if platform != PlatformTag.ALL:
            derived["platform"] = platform.value

        listing_name = str(derived.get("listing_name", "")).strip() or self.unknown_listing_name

        return BookingDraft(
            row_index=row_index,
            listing_name=listing_name,
            fields=derived,
            platform=platform,
            flags=flags,
            property_id=property_id,
        )

    def derive(
        self,
        catalog: ColumnCatalog,
        rule_set: MappingRuleSet,
        property_rule_sets: Optional[dict[str, MappingRuleSet]] = None,
        property_mappings: Optional[list["PropertyMapping"]] = None,
    ) -> DerivationResult:
        """
        Derive drafts for every row of the catalog.

        Args:
            catalog: Parsed source file
            rule_set: Global rule set, also used to find each row's listing
            property_rule_sets: Optional property id -> rule set (per-property mode)
            property_mappings: Listing -> property assignments for per-property mode

        Returns:
            DerivationResult with drafts grouped by listing name
        """
        start_time = time.time()

        global_resolver = RuleResolver(rule_set)
        property_resolvers = {
            property_id: RuleResolver(property_rules)
            for property_id, property_rules in (property_rule_sets or {}).items()
        }
        listing_properties = {
            mapping.listing_name: mapping.property_id
            for mapping in (property_mappings or [])
            if mapping.property_id and mapping.property_id in property_resolvers
        }

        result = DerivationResult()
        for row_index, row in enumerate(catalog.rows):
            draft = self.derive_row(row_index, row, catalog, global_resolver)

            property_id = listing_properties.get(draft.listing_name)
            if property_id is not None:
                draft = self.derive_row(
                    row_index, row, catalog, property_resolvers[property_id], property_id
                )

            result.drafts.append(draft)
            result.groups.setdefault(draft.listing_name, []).append(draft)
            platform_key = draft.platform.value
            result.platform_counts[platform_key] = result.platform_counts.get(platform_key, 0) + 1
            if draft.flags:
                result.flagged_rows.append(row_index)

        elapsed_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Derived {result.total_drafts} drafts across {len(result.groups)} listings "
            f"({len(result.flagged_rows)} rows flagged, {elapsed_ms:.2f}ms)"
        )
        return result


def derive_booking_drafts(
    catalog: ColumnCatalog,
    rule_set: MappingRuleSet,
    property_rule_sets: Optional[dict[str, MappingRuleSet]] = None,
    property_mappings: Optional[list["PropertyMapping"]] = None,
) -> DerivationResult:
    """Derive booking drafts for a catalog, grouped by listing name."""
    return DerivationPipeline().derive(
        catalog, rule_set, property_rule_sets, property_mappings
    )
