"""Expression evaluation and booking derivation engine."""

from .models import (
    BookingDraft,
    DerivationResult,
    EvaluationResult,
    EvaluationStatus,
)
from .evaluator import ExpressionEvaluator, evaluate_expression, parse_number
from .classifier import PlatformClassifier, classify_platform, match_platform
from .pipeline import DerivationPipeline, derive_booking_drafts

__all__ = [
    "BookingDraft",
    "DerivationResult",
    "EvaluationResult",
    "EvaluationStatus",
    "ExpressionEvaluator",
    "evaluate_expression",
    "parse_number",
    "PlatformClassifier",
    "classify_platform",
    "match_platform",
    "DerivationPipeline",
    "derive_booking_drafts",
]
