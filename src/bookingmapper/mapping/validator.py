"""Validation of mapping rule sets and templates."""

import logging
from datetime import date
from typing import Optional

from ..catalog.models import ColumnCatalog
from .fields import REQUIRED_FIELD_NAMES, is_known_field
from .models import (
    DuplicateOverrideError,
    InvalidRuleError,
    MappingRuleSet,
    MappingTemplate,
    MappingValidationResult,
    MissingRequiredFieldError,
    PlatformTag,
    PlatformUsage,
    TemplateStats,
    TemplateValidationResult,
)

logger = logging.getLogger(__name__)


class MappingValidator:
    """Checks that a rule set can drive derivation."""

    def validate_rule_set(
        self, rule_set: MappingRuleSet, catalog: Optional[ColumnCatalog] = None
    ) -> MappingValidationResult:
        """
        Validate a rule set before derivation runs.

        Checks:
        1. Every required field has a non-empty base (ALL) rule
        2. No (field, platform) pair is mapped twice
        3. The platform field is not overridden per platform
        4. Unknown booking fields and, with a catalog, unknown column
           references (warnings only)

        Returns MappingValidationResult with errors and warnings.
        """
        errors: list[str] = []
        warnings: list[str] = []

        base_fields = {rule.booking_field for rule in rule_set.base_rules() if not rule.is_empty}
        missing = [name for name in REQUIRED_FIELD_NAMES if name not in base_fields]
        if missing:
            errors.append(f"Required booking fields are not mapped: {', '.join(missing)}")

        seen: set[tuple[str, PlatformTag]] = set()
        duplicates: list[str] = []
        for rule in rule_set.rules:
            pair = (rule.booking_field, rule.platform)
            if pair in seen:
                label = f"{rule.booking_field}@{rule.platform.value}"
                if label not in duplicates:
                    duplicates.append(label)
                    errors.append(
                        f"Duplicate mapping for '{rule.booking_field}' on platform '{rule.platform.value}'"
                    )
            seen.add(pair)

        for rule in rule_set.rules:
            if rule.booking_field == "platform" and rule.platform != PlatformTag.ALL:
                errors.append(
                    f"Platform field cannot be overridden for '{rule.platform.value}'; "
                    "detection always uses the ALL rule"
                )
            if not is_known_field(rule.booking_field):
                warnings.append(f"'{rule.booking_field}' is not a standard booking field")
            if rule.platform != PlatformTag.ALL and not rule.is_override:
                warnings.append(
                    f"Rule for '{rule.booking_field}' on '{rule.platform.value}' "
                    "is not marked as an override and will be ignored"
                )

        if catalog is not None:
            for rule in rule_set.rules:
                expression = rule.source_expression.strip()
                if expression.startswith("[") and expression.endswith("]"):
                    name = expression[1:-1].strip()
                    if not catalog.has_column(name):
                        warnings.append(
                            f"Column '{name}' used by '{rule.booking_field}' is not in the file"
                        )

        return MappingValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            missing_required_fields=missing,
            duplicate_rules=duplicates,
        )

    def ensure_valid(
        self, rule_set: MappingRuleSet, catalog: Optional[ColumnCatalog] = None
    ) -> MappingValidationResult:
        """
        Validate and raise on the first blocking problem.

        Raises:
            MissingRequiredFieldError: A required field has no base rule
            DuplicateOverrideError: A (field, platform) pair is mapped twice
            InvalidRuleError: The platform field is overridden per platform
        """
        result = self.validate_rule_set(rule_set, catalog)
        if result.is_valid:
            return result

        logger.warning(f"Rule set rejected: {result.errors}")
        if result.missing_required_fields:
            raise MissingRequiredFieldError(result.missing_required_fields)
        if result.duplicate_rules:
            booking_field, platform = result.duplicate_rules[0].rsplit("@", 1)
            raise DuplicateOverrideError(booking_field, PlatformTag.parse(platform))
        raise InvalidRuleError(result.errors[0])

    def validate_template(self, rule_set: MappingRuleSet) -> TemplateValidationResult:
        """
        Validate a rule set before saving it as a template.

        A required field may be satisfied by any bucket here; empty
        platform buckets and missing overrides are reported as warnings.
        """
        buckets = rule_set.to_platform_mappings()
        missing = [
            name
            for name in REQUIRED_FIELD_NAMES
            if not any(fields.get(name) for fields in buckets.values())
        ]

        empty_platforms = [
            PlatformTag(key)
            for key, fields in buckets.items()
            if key != PlatformTag.ALL.value and not fields
        ]

        warnings = []
        if not buckets[PlatformTag.ALL.value]:
            warnings.append(
                "No base mappings in ALL platform - template may not work well for unknown platforms"
            )
        if not rule_set.platforms_with_overrides():
            warnings.append(
                "No platform-specific mappings - consider adding overrides for better accuracy"
            )

        return TemplateValidationResult(
            is_valid=not missing,
            missing_required_fields=missing,
            empty_platforms=empty_platforms,
            warnings=warnings,
        )


def template_stats(templates: list[MappingTemplate]) -> TemplateStats:
    """Summarize a collection of templates."""
    platform_counts: dict[PlatformTag, int] = {}
    with_overrides = 0

    for template in templates:
        platforms = template.rule_set.platforms_with_overrides()
        if platforms:
            with_overrides += 1
        for platform in platforms:
            platform_counts[platform] = platform_counts.get(platform, 0) + 1

    most_used = sorted(platform_counts.items(), key=lambda item: item[1], reverse=True)[:5]

    return TemplateStats(
        total_templates=len(templates),
        default_templates=sum(1 for t in templates if t.is_default),
        templates_with_platform_overrides=with_overrides,
        most_used_platforms=[
            PlatformUsage(platform=platform, count=count) for platform, count in most_used
        ],
    )


def suggest_template_names(rule_set: MappingRuleSet, today: Optional[date] = None) -> list[str]:
    """Suggest template names from the platforms a rule set overrides."""
    platforms = rule_set.platforms_with_overrides()
    suggestions = []

    if PlatformTag.HOSTAWAY in platforms:
        suggestions.extend(["Hostaway Template", "Hostaway Export"])
    if PlatformTag.AIRBNB in platforms:
        suggestions.extend(["Airbnb Template", "Airbnb Export"])
    if PlatformTag.BOOKING in platforms:
        suggestions.append("Booking.com Template")

    if len(platforms) > 1:
        suggestions.extend(["Multi-Platform Template", "Universal Template"])
    elif not platforms:
        suggestions.extend(["Basic Template", "Standard Template"])

    today = today or date.today()
    suggestions.append(f"Template {today.strftime('%b')} {today.day}")
    return suggestions
