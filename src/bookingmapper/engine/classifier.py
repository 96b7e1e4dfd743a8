"""Per-row platform detection."""

import logging
from typing import Optional

from ..catalog.models import ColumnCatalog
from ..mapping.models import MappingRuleSet, PlatformTag
from .evaluator import ExpressionEvaluator

logger = logging.getLogger(__name__)

PLATFORM_PREFIX = "platform:"

# Ordered substring table; the first match wins
PLATFORM_KEYWORDS: list[tuple[str, PlatformTag]] = [
    ("airbnb", PlatformTag.AIRBNB),
    ("booking", PlatformTag.BOOKING),
    ("google", PlatformTag.GOOGLE),
    ("vrbo", PlatformTag.VRBO),
    ("hostaway", PlatformTag.HOSTAWAY),
    ("wechalet", PlatformTag.WECHALET),
    ("we chalet", PlatformTag.WECHALET),
    ("monsieur", PlatformTag.MONSIEURCHALETS),
    ("chalets", PlatformTag.MONSIEURCHALETS),
    ("direct-etransfer", PlatformTag.DIRECT_ETRANSFER),
    ("direct", PlatformTag.DIRECT),
]


def match_platform(raw: str) -> PlatformTag:
    """Map a raw channel value to a platform, or ALL when nothing matches."""
    text = raw.strip().lower()
    if text.startswith(PLATFORM_PREFIX):
        text = text[len(PLATFORM_PREFIX):].strip()
    for keyword, platform in PLATFORM_KEYWORDS:
        if keyword in text:
            return platform
    return PlatformTag.ALL


class PlatformClassifier:
    """Detects the platform of each row from the base platform rule."""

    def __init__(self, evaluator: Optional[ExpressionEvaluator] = None):
        self.evaluator = evaluator or ExpressionEvaluator()

    def classify(
        self, row: list[str], rule_set: MappingRuleSet, catalog: ColumnCatalog
    ) -> PlatformTag:
        # Overrides only apply once the platform is known, so only the base rule is read
        rule = rule_set.get_rule("platform", PlatformTag.ALL)
        if rule is None or rule.is_empty:
            return PlatformTag.ALL

        result = self.evaluator.evaluate(rule.source_expression, row, catalog)
        platform = match_platform(str(result.value))
        if platform == PlatformTag.ALL:
            logger.debug(f"No platform matched channel value '{result.value}'")
        return platform


_default_classifier = PlatformClassifier()


def classify_platform(
    row: list[str], rule_set: MappingRuleSet, catalog: ColumnCatalog
) -> PlatformTag:
    """Detect the platform bucket that applies to a row."""
    return _default_classifier.classify(row, rule_set, catalog)
