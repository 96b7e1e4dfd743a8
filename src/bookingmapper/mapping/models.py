"""Data models for platform-aware field mapping rules."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union
from pydantic import BaseModel, Field, model_validator


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class PlatformTag(str, Enum):
    """Booking platforms a rule bucket can target."""

    ALL = "ALL"  # Base bucket, never a detected platform
    AIRBNB = "airbnb"
    BOOKING = "booking"
    GOOGLE = "google"
    DIRECT = "direct"
    VRBO = "vrbo"
    HOSTAWAY = "hostaway"
    WECHALET = "wechalet"
    MONSIEURCHALETS = "monsieurchalets"
    DIRECT_ETRANSFER = "direct-etransfer"

    @classmethod
    def parse(cls, value: Union[str, "PlatformTag"]) -> "PlatformTag":
        """Parse a bucket key, accepting any case and legacy aliases."""
        if isinstance(value, PlatformTag):
            return value
        text = str(value).strip()
        if text.upper() == "ALL":
            return cls.ALL
        text = text.lower()
        if text == "airbnbofficial":
            return cls.AIRBNB
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"Unknown platform '{value}'") from None


class FieldMappingRule(BaseModel):
    """Maps one booking field to a column reference or formula."""

    booking_field: str
    source_expression: str  # Column name or formula like "Rate * 0.97"
    platform: PlatformTag = PlatformTag.ALL
    is_override: bool = False

    @model_validator(mode="after")
    def _base_rules_never_override(self) -> "FieldMappingRule":
        if self.platform == PlatformTag.ALL and self.is_override:
            raise ValueError(
                f"Rule for '{self.booking_field}' targets ALL and cannot be an override"
            )
        return self

    @property
    def is_empty(self) -> bool:
        return not self.source_expression.strip()


class MappingRuleSet(BaseModel):
    """All mapping rules of one property or of the global configuration."""

    rules: list[FieldMappingRule] = Field(default_factory=list)
    property_id: Optional[str] = None  # None for the global configuration
    name: Optional[str] = None

    def base_rules(self) -> list[FieldMappingRule]:
        return [rule for rule in self.rules if rule.platform == PlatformTag.ALL]

    def override_rules(self, platform: PlatformTag) -> list[FieldMappingRule]:
        return [
            rule
            for rule in self.rules
            if rule.platform == platform and rule.platform != PlatformTag.ALL and rule.is_override
        ]

    def get_rule(
        self, booking_field: str, platform: PlatformTag = PlatformTag.ALL
    ) -> Optional[FieldMappingRule]:
        """Return the last rule stored for a (field, platform) pair."""
        found = None
        for rule in self.rules:
            if rule.booking_field == booking_field and rule.platform == platform:
                found = rule
        return found

    def set_rule(
        self,
        booking_field: str,
        source_expression: str,
        platform: PlatformTag = PlatformTag.ALL,
    ) -> FieldMappingRule:
        """Insert or replace the rule for a (field, platform) pair."""
        platform = PlatformTag.parse(platform)
        rule = FieldMappingRule(
            booking_field=booking_field,
            source_expression=source_expression.strip(),
            platform=platform,
            is_override=platform != PlatformTag.ALL,
        )
        for index, existing in enumerate(self.rules):
            if existing.booking_field == booking_field and existing.platform == platform:
                self.rules[index] = rule
                break
        else:
            self.rules.append(rule)
        return rule

    def remove_rule(self, booking_field: str, platform: PlatformTag = PlatformTag.ALL) -> bool:
        before = len(self.rules)
        self.rules = [
            rule
            for rule in self.rules
            if not (rule.booking_field == booking_field and rule.platform == platform)
        ]
        return len(self.rules) < before

    def platforms_with_overrides(self) -> list[PlatformTag]:
        """Platforms that have at least one non-empty override, in tag order."""
        present = {
            rule.platform
            for rule in self.rules
            if rule.platform != PlatformTag.ALL and rule.is_override and not rule.is_empty
        }
        return [tag for tag in PlatformTag if tag in present]

    @classmethod
    def from_platform_mappings(
        cls,
        platform_mappings: dict[str, dict[str, str]],
        property_id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> "MappingRuleSet":
        """
        Build a rule set from the bucketed template shape.

        Args:
            platform_mappings: {platform: {booking_field: source_expression}}

        Blank expressions are dropped; non-ALL buckets become overrides.
        """
        rule_set = cls(property_id=property_id, name=name)
        for platform_key, fields in platform_mappings.items():
            platform = PlatformTag.parse(platform_key)
            for booking_field, expression in (fields or {}).items():
                if expression and str(expression).strip():
                    rule_set.set_rule(booking_field, str(expression), platform)
        return rule_set

    def to_platform_mappings(self) -> dict[str, dict[str, str]]:
        """Convert to the bucketed template shape, with every platform present."""
        buckets: dict[str, dict[str, str]] = {tag.value: {} for tag in PlatformTag}
        for rule in self.rules:
            if rule.is_empty:
                continue
            buckets[rule.platform.value][rule.booking_field] = rule.source_expression.strip()
        return buckets


class ResolvedMapping(BaseModel):
    """At most one rule per booking field, for one detected platform."""

    platform: PlatformTag
    rules: list[FieldMappingRule] = Field(default_factory=list)

    @property
    def fields(self) -> list[str]:
        return [rule.booking_field for rule in self.rules]

    def get(self, booking_field: str) -> Optional[FieldMappingRule]:
        for rule in self.rules:
            if rule.booking_field == booking_field:
                return rule
        return None


class MappingTemplate(BaseModel):
    """A named, saved rule set for a property."""

    id: Optional[str] = None
    property_id: str
    user_id: Optional[str] = None
    mapping_name: str
    rule_set: MappingRuleSet = Field(default_factory=MappingRuleSet)
    is_default: bool = False
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class MappingValidationResult(BaseModel):
    """Result of checking a rule set before derivation."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    missing_required_fields: list[str] = Field(default_factory=list)
    duplicate_rules: list[str] = Field(default_factory=list)  # "field@platform"


class TemplateValidationResult(BaseModel):
    """Result of checking a template before it is saved."""

    is_valid: bool
    missing_required_fields: list[str] = Field(default_factory=list)
    empty_platforms: list[PlatformTag] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class PlatformUsage(BaseModel):
    platform: PlatformTag
    count: int


class TemplateStats(BaseModel):
    """Statistics over a collection of templates."""

    total_templates: int
    default_templates: int
    templates_with_platform_overrides: int
    most_used_platforms: list[PlatformUsage] = Field(default_factory=list)


class MappingError(Exception):
    """Base class for rule sets that cannot be used for derivation."""

    pass


class MissingRequiredFieldError(MappingError):
    """Raised when a required booking field has no base mapping."""

    def __init__(self, fields: list[str]):
        self.fields = fields
        super().__init__(f"Required booking fields are not mapped: {', '.join(fields)}")


class DuplicateOverrideError(MappingError):
    """Raised when a (field, platform) pair has more than one rule."""

    def __init__(self, booking_field: str, platform: PlatformTag):
        self.booking_field = booking_field
        self.platform = platform
        super().__init__(
            f"Duplicate mapping for '{booking_field}' on platform '{platform.value}'"
        )


class InvalidRuleError(MappingError):
    """Raised when a rule can never take effect."""

    pass


class TemplateNotFoundError(Exception):
    """Raised when a requested template does not exist."""

    pass
