"""Two-tier rule resolution: base rules plus per-platform overrides."""

import logging

from .models import FieldMappingRule, MappingRuleSet, PlatformTag, ResolvedMapping

logger = logging.getLogger(__name__)


def resolve_mapping(rule_set: MappingRuleSet, platform: PlatformTag) -> ResolvedMapping:
    """
    Merge the ALL bucket with the override bucket of one platform.

    Base rules are keyed by booking field in their original order. Each
    override for the platform replaces the base entry for its field, keeping
    the base position, or is appended when the field has no base rule.
    Rules with a blank source expression are left out entirely.

    Args:
        rule_set: The property's (or global) rule set
        platform: Platform detected for the current row

    Returns:
        ResolvedMapping with at most one rule per booking field
    """
    resolved: dict[str, FieldMappingRule] = {}

    for rule in rule_set.base_rules():
        if rule.is_empty:
            continue
        # Last write wins for duplicate base rules
        resolved[rule.booking_field] = rule

    if platform != PlatformTag.ALL:
        for rule in rule_set.override_rules(platform):
            if rule.is_empty:
                continue
            resolved[rule.booking_field] = rule

    return ResolvedMapping(platform=platform, rules=list(resolved.values()))


class RuleResolver:
    """Resolves mappings for one rule set, caching per distinct platform."""

    def __init__(self, rule_set: MappingRuleSet):
        self.rule_set = rule_set
        self._cache: dict[PlatformTag, ResolvedMapping] = {}

    def resolve(self, platform: PlatformTag) -> ResolvedMapping:
        mapping = self._cache.get(platform)
        if mapping is None:
            mapping = resolve_mapping(self.rule_set, platform)
            self._cache[platform] = mapping
            logger.debug(
                f"Resolved {len(mapping.rules)} rules for platform {platform.value}"
            )
        return mapping

    def clear(self):
        """Drop cached mappings after the rule set changes."""
        self._cache.clear()
