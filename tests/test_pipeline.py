"""Tests for booking derivation."""

from bookingmapper.catalog import ColumnCatalog
from bookingmapper.engine import (
    DerivationPipeline,
    ExpressionEvaluator,
    derive_booking_drafts,
)
from bookingmapper.listings import PropertyMapping
from bookingmapper.mapping import MappingRuleSet, PlatformTag, resolve_mapping


class TestDerivationScenarios:
    """End-to-end derivation over small files."""

    def test_override_applies_to_detected_platform(self):
        rule_set = MappingRuleSet()
        rule_set.set_rule("platform", "Channel")
        rule_set.set_rule("nightly_rate", "Rate")
        rule_set.set_rule("nightly_rate", "Rate*0.97", PlatformTag.AIRBNB)
        catalog = ColumnCatalog.from_rows(["Channel", "Rate"], [["Airbnb", "100"]])

        draft = derive_booking_drafts(catalog, rule_set).drafts[0]

        assert draft.platform == PlatformTag.AIRBNB
        assert draft.fields["platform"] == "airbnb"
        assert draft.fields["nightly_rate"] == 97.0

    def test_computed_rules_see_direct_results(self):
        rule_set = MappingRuleSet()
        rule_set.set_rule("net_earnings", "total_payout - mgmt_fee")
        rule_set.set_rule("total_payout", "Revenue")
        rule_set.set_rule("mgmt_fee", "Revenue*0.1")
        catalog = ColumnCatalog.from_rows(["Revenue"], [["200"]])

        # net_earnings keeps its position, so it runs before mgmt_fee
        draft = derive_booking_drafts(catalog, rule_set).drafts[0]
        assert draft.fields["total_payout"] == 200
        assert draft.fields["mgmt_fee"] == 20.0
        assert "net_earnings" in draft.flags

        ordered = MappingRuleSet()
        ordered.set_rule("total_payout", "Revenue")
        ordered.set_rule("mgmt_fee", "Revenue*0.1")
        ordered.set_rule("net_earnings", "total_payout - mgmt_fee")

        draft = derive_booking_drafts(catalog, ordered).drafts[0]
        assert draft.fields["total_payout"] == 200
        assert draft.fields["mgmt_fee"] == 20.0
        assert draft.fields["net_earnings"] == 180.0
        assert draft.flags == {}

    def test_computed_rule_cannot_see_later_computed_rule(self):
        rule_set = MappingRuleSet()
        rule_set.set_rule("total_payout", "Revenue")
        rule_set.set_rule("net_earnings", "total_payout - mgmt_fee")
        rule_set.set_rule("mgmt_fee", "Revenue*0.1")
        catalog = ColumnCatalog.from_rows(["Revenue"], [["200"]])

        draft = derive_booking_drafts(catalog, rule_set).drafts[0]

        assert draft.fields["net_earnings"] == "total_payout - mgmt_fee"
        assert draft.fields["mgmt_fee"] == 20.0
        assert list(draft.flags) == ["net_earnings"]
        assert "mgmt_fee" in draft.flags["net_earnings"]
        assert "not derived before" in draft.flags["net_earnings"]

    def test_direct_rules_run_before_computed(self):
        rule_set = MappingRuleSet()
        rule_set.set_rule("net_earnings", "total_payout * 0.9")
        rule_set.set_rule("total_payout", "Revenue")
        catalog = ColumnCatalog.from_rows(["Revenue"], [["100"]])

        draft = derive_booking_drafts(catalog, rule_set).drafts[0]
        assert draft.fields["net_earnings"] == 90.0

    def test_date_preserved(self):
        rule_set = MappingRuleSet()
        rule_set.set_rule("check_in_date", "Arrival")
        catalog = ColumnCatalog.from_rows(["Arrival"], [["2024-03-15"]])

        draft = derive_booking_drafts(catalog, rule_set).drafts[0]
        assert draft.fields["check_in_date"] == "2024-03-15"

    def test_malformed_formula_flagged(self):
        rule_set = MappingRuleSet()
        rule_set.set_rule("nightly_rate", "Rate*")
        rule_set.set_rule("cleaning_fee", "Rate")
        catalog = ColumnCatalog.from_rows(["Rate"], [["50"]])

        result = derive_booking_drafts(catalog, rule_set)
        draft = result.drafts[0]
        assert draft.fields["nightly_rate"] == 0
        assert "nightly_rate" in draft.flags
        assert draft.fields["cleaning_fee"] == 50
        assert result.flagged_rows == [0]

    def test_grouped_by_listing(self, sample_catalog, base_rule_set):
        result = derive_booking_drafts(sample_catalog, base_rule_set)

        assert result.total_drafts == 8
        assert list(result.groups) == ["Lake House", "Casa Madera"]
        assert result.listing_counts() == {"Lake House": 5, "Casa Madera": 3}
        assert result.platform_counts == {"airbnb": 5, "booking": 3}


class TestDerivationPipeline:
    """Test pipeline details."""

    def test_partition_rules(self, sample_catalog, base_rule_set):
        pipeline = DerivationPipeline()
        mapping = resolve_mapping(base_rule_set, PlatformTag.AIRBNB)
        direct, computed = pipeline.partition_rules(mapping, sample_catalog)
        assert [r.booking_field for r in computed] == ["nightly_rate"]
        assert "nightly_rate" not in [r.booking_field for r in direct]

    def test_blank_listing_goes_to_unknown_bucket(self):
        rule_set = MappingRuleSet()
        rule_set.set_rule("listing_name", "Listing")
        catalog = ColumnCatalog.from_rows(["Listing"], [["  "], ["Chalet"]])

        pipeline = DerivationPipeline(unknown_listing_name="Unassigned")
        result = pipeline.derive(catalog, rule_set)
        assert list(result.groups) == ["Unassigned", "Chalet"]

    def test_unknown_platform_keeps_raw_value(self):
        rule_set = MappingRuleSet()
        rule_set.set_rule("platform", "Channel")
        catalog = ColumnCatalog.from_rows(["Channel"], [["Expedia"]])

        draft = derive_booking_drafts(catalog, rule_set).drafts[0]
        assert draft.platform == PlatformTag.ALL
        assert draft.fields["platform"] == "Expedia"

    def test_rows_are_independent(self):
        rule_set = MappingRuleSet()
        rule_set.set_rule("nightly_rate", "Rate * 2")
        catalog = ColumnCatalog.from_rows(["Rate"], [["oops"], ["10"]])

        result = derive_booking_drafts(catalog, rule_set)
        assert result.drafts[0].fields["nightly_rate"] == "Rate * 2"
        assert result.drafts[1].fields["nightly_rate"] == 20
        assert result.flagged_rows == [0]

    def test_per_property_rule_sets(self, sample_catalog, base_rule_set):
        lake_rules = base_rule_set.model_copy(deep=True)
        lake_rules.set_rule("cleaning_fee", "Cleaning + 25")

        result = derive_booking_drafts(
            sample_catalog,
            base_rule_set,
            property_rule_sets={"prop-lake": lake_rules},
            property_mappings=[
                PropertyMapping(listing_name="Lake House", property_id="prop-lake"),
                PropertyMapping(listing_name="Casa Madera", property_id="prop-casa"),
            ],
        )

        lake = result.groups["Lake House"][0]
        casa = result.groups["Casa Madera"][0]
        assert lake.property_id == "prop-lake"
        assert lake.fields["cleaning_fee"] == 75
        assert casa.property_id is None
        assert casa.fields["cleaning_fee"] == 50

    def test_custom_decimal_places(self):
        rule_set = MappingRuleSet()
        rule_set.set_rule("nightly_rate", "Rate / 3")
        catalog = ColumnCatalog.from_rows(["Rate"], [["100"]])

        pipeline = DerivationPipeline(evaluator=ExpressionEvaluator(decimal_places=0))
        draft = pipeline.derive(catalog, rule_set).drafts[0]
        assert draft.fields["nightly_rate"] == 33.0

    def test_missing_required_fields(self, sample_catalog, base_rule_set):
        draft = derive_booking_drafts(sample_catalog, base_rule_set).drafts[0]
        assert draft.missing_required_fields() == []

        partial = MappingRuleSet()
        partial.set_rule("guest_name", "Guest")
        draft = derive_booking_drafts(sample_catalog, partial).drafts[0]
        assert "reservation_code" in draft.missing_required_fields()
        assert "guest_name" not in draft.missing_required_fields()
