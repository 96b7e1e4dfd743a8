"""Platform-aware field mapping rules, resolution and templates."""

from .models import (
    PlatformTag,
    FieldMappingRule,
    MappingRuleSet,
    ResolvedMapping,
    MappingTemplate,
    MappingValidationResult,
    TemplateValidationResult,
    TemplateStats,
    MappingError,
    MissingRequiredFieldError,
    DuplicateOverrideError,
    InvalidRuleError,
    TemplateNotFoundError,
)
from .fields import (
    REQUIRED_BOOKING_FIELDS,
    OPTIONAL_BOOKING_FIELDS,
    ALL_BOOKING_FIELDS,
    REQUIRED_FIELD_NAMES,
    EDITABLE_FINANCIAL_FIELDS,
)
from .resolver import RuleResolver, resolve_mapping
from .validator import MappingValidator, template_stats, suggest_template_names
from .storage import TemplateStorage

__all__ = [
    "PlatformTag",
    "FieldMappingRule",
    "MappingRuleSet",
    "ResolvedMapping",
    "MappingTemplate",
    "MappingValidationResult",
    "TemplateValidationResult",
    "TemplateStats",
    "MappingError",
    "MissingRequiredFieldError",
    "DuplicateOverrideError",
    "InvalidRuleError",
    "TemplateNotFoundError",
    "REQUIRED_BOOKING_FIELDS",
    "OPTIONAL_BOOKING_FIELDS",
    "ALL_BOOKING_FIELDS",
    "REQUIRED_FIELD_NAMES",
    "EDITABLE_FINANCIAL_FIELDS",
    "RuleResolver",
    "resolve_mapping",
    "MappingValidator",
    "template_stats",
    "suggest_template_names",
    "TemplateStorage",
]
