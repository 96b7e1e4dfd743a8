"""Restricted arithmetic evaluation of mapping expressions."""

import logging
import math
import re
from decimal import Decimal
from typing import Optional, Union

from ..catalog.models import ColumnCatalog
from ..config import settings
from ..mapping.fields import get_field
from .models import EvaluationResult, EvaluationStatus

logger = logging.getLogger(__name__)

Value = Union[int, float, str]

# Columns whose values are kept verbatim so date formats survive
DATE_COLUMN_MARKERS = ("date", "check-in", "checkin")

SAFE_EXPRESSION_PATTERN = re.compile(r"[0-9+\-*/.() ]+")
_IDENTIFIER_PATTERN = re.compile(r"[a-z_][a-z0-9_]*")
_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")
_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
_TOKEN_PATTERN = re.compile(r"\s*(?:(\d+\.?\d*|\.\d+)|(.))")
_CURRENCY_PREFIX = ("$", "€", "£")


class ExpressionSyntaxError(ValueError):
    """Raised by the arithmetic parser on malformed input."""

    pass


def is_date_column(name: str) -> bool:
    key = name.lower()
    return any(marker in key for marker in DATE_COLUMN_MARKERS)


def parse_number(text: str) -> Optional[Union[int, float]]:
    """
    Parse a cell value as a number.

    Tolerates surrounding whitespace, a leading currency symbol and
    thousands separators. Returns None for anything else.
    """
    cleaned = text.strip()
    sign = ""
    if cleaned[:1] in ("-", "+"):
        sign, cleaned = cleaned[0], cleaned[1:].lstrip()
    if cleaned[:1] in _CURRENCY_PREFIX:
        cleaned = cleaned[1:].lstrip()
    cleaned = sign + cleaned.replace(",", "")
    if not _NUMBER_PATTERN.match(cleaned):
        return None
    if _INTEGER_PATTERN.match(cleaned):
        return int(cleaned)
    return float(cleaned)


def reference_key(expression: str) -> str:
    """Lookup key for an expression that may be a bare or bracketed column name."""
    key = expression.strip().lower()
    if key.startswith("[") and key.endswith("]") and "]" not in key[1:-1]:
        key = key[1:-1].strip()
    return key


def _format_number(value: Union[int, float]) -> str:
    if isinstance(value, int):
        return str(value)
    return format(Decimal(repr(value)), "f")


class _ArithmeticParser:
    """
    Recursive-descent parser over numbers, + - * / and parentheses.

    expr   := term (("+" | "-") term)*
    term   := factor (("*" | "/") factor)*
    factor := ("+" | "-") factor | NUMBER | "(" expr ")"
    """

    def __init__(self, text: str):
        self.tokens = self._tokenize(text)
        self.position = 0

    @staticmethod
    def _tokenize(text: str) -> list[str]:
        tokens = []
        for number, symbol in _TOKEN_PATTERN.findall(text):
            if number:
                tokens.append(number)
            elif symbol.strip():
                if symbol not in "+-*/()":
                    raise ExpressionSyntaxError(f"Unexpected character '{symbol}'")
                tokens.append(symbol)
        return tokens

    def parse(self) -> float:
        if not self.tokens:
            raise ExpressionSyntaxError("Empty expression")
        value = self._expr()
        if self.position != len(self.tokens):
            raise ExpressionSyntaxError(f"Unexpected token '{self.tokens[self.position]}'")
        return value

    def _peek(self) -> Optional[str]:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def _next(self) -> str:
        token = self._peek()
        if token is None:
            raise ExpressionSyntaxError("Unexpected end of expression")
        self.position += 1
        return token

    def _expr(self) -> float:
        value = self._term()
        while self._peek() in ("+", "-"):
            if self._next() == "+":
                value += self._term()
            else:
                value -= self._term()
        return value

    def _term(self) -> float:
        value = self._factor()
        while self._peek() in ("*", "/"):
            if self._next() == "*":
                value *= self._factor()
            else:
                value /= self._factor()
        return value

    def _factor(self) -> float:
        token = self._next()
        if token == "+":
            return self._factor()
        if token == "-":
            return -self._factor()
        if token == "(":
            value = self._expr()
            if self._next() != ")":
                raise ExpressionSyntaxError("Missing closing parenthesis")
            return value
        if token in "*/)":
            raise ExpressionSyntaxError(f"Unexpected token '{token}'")
        return float(token)


def compute_arithmetic(text: str) -> float:
    """Evaluate a purely numeric arithmetic string."""
    return _ArithmeticParser(text).parse()


class ExpressionEvaluator:
    """Evaluates source expressions against one source row."""

    def __init__(
        self,
        decimal_places: Optional[int] = None,
        max_expression_length: Optional[int] = None,
    ):
        self.decimal_places = (
            settings.decimal_places if decimal_places is None else decimal_places
        )
        self.max_expression_length = max_expression_length or settings.max_expression_length

    def build_lookup(self, row: list[str], catalog: ColumnCatalog) -> dict[str, Value]:
        """
        Build lower-cased column name -> cell value for a row.

        Date-like columns keep the raw string. Other cells become numbers
        when they parse as one, and stay strings otherwise.
        """
        lookup: dict[str, Value] = {}
        for column in catalog.columns:
            if not column.key:
                continue
            raw = row[column.index] if column.index < len(row) else ""
            if is_date_column(column.name):
                lookup[column.key] = raw
                continue
            number = parse_number(raw)
            lookup[column.key] = raw if number is None else number
        return lookup

    @staticmethod
    def is_direct_reference(expression: str, catalog: ColumnCatalog) -> bool:
        """True when the expression is exactly one column name."""
        key = reference_key(expression)
        return bool(key) and catalog.find_column(key) is not None

    def evaluate(
        self,
        expression: str,
        row: list[str],
        catalog: ColumnCatalog,
        derived: Optional[dict[str, Value]] = None,
    ) -> EvaluationResult:
        """
        Evaluate an expression for one row. Never raises.

        Args:
            expression: Column name or arithmetic formula over column and
                derived-field names
            row: Raw cells of the row
            catalog: Column definitions of the file
            derived: Booking fields already derived for this row

        Returns:
            EvaluationResult with the value and how it was obtained
        """
        try:
            return self._evaluate(expression, row, catalog, derived or {})
        except Exception as e:
            logger.warning(f"Unexpected error evaluating '{expression}': {e}")
            return EvaluationResult(
                value=expression,
                status=EvaluationStatus.UNEVALUATED,
                message=f"Could not evaluate: {e}",
            )

    def _evaluate(
        self,
        expression: str,
        row: list[str],
        catalog: ColumnCatalog,
        derived: dict[str, Value],
    ) -> EvaluationResult:
        lookup = self.build_lookup(row, catalog)

        key = reference_key(expression)
        if key and key in lookup:
            return EvaluationResult(value=lookup[key], status=EvaluationStatus.DIRECT)

        if len(expression) > self.max_expression_length:
            return EvaluationResult(
                value=expression,
                status=EvaluationStatus.UNEVALUATED,
                message=f"Formula exceeds {self.max_expression_length} characters",
            )

        references: dict[str, Value] = {name.lower(): value for name, value in derived.items()}
        references.update(lookup)
        substituted = self._substitute(expression.lower(), references)

        if not SAFE_EXPRESSION_PATTERN.fullmatch(substituted):
            logger.debug(f"Formula '{expression}' left unevaluated: '{substituted}'")
            return EvaluationResult(
                value=expression,
                status=EvaluationStatus.UNEVALUATED,
                message=self._unevaluated_message(substituted),
            )

        try:
            result = compute_arithmetic(substituted)
        except (ExpressionSyntaxError, ZeroDivisionError, OverflowError) as e:
            logger.debug(f"Formula '{expression}' failed as '{substituted}': {e}")
            return EvaluationResult(
                value=0,
                status=EvaluationStatus.FAILED,
                message=f"Invalid formula: {e}",
            )

        if not math.isfinite(result):
            return EvaluationResult(
                value=0,
                status=EvaluationStatus.FAILED,
                message="Formula produced a non-finite number",
            )

        return EvaluationResult(
            value=round(result, self.decimal_places),
            status=EvaluationStatus.COMPUTED,
        )

    @staticmethod
    def _unevaluated_message(substituted: str) -> str:
        # Booking fields left in the formula were not derived before this rule
        pending = [
            name for name in _IDENTIFIER_PATTERN.findall(substituted) if get_field(name)
        ]
        if pending:
            names = ", ".join(dict.fromkeys(pending))
            return f"Formula references booking fields not derived before this one: {names}"
        return "Formula references unknown columns or non-numeric values"

    @staticmethod
    def _substitute(formula: str, references: dict[str, Value]) -> str:
        """Replace whole-word and bracketed references in a single pass."""
        names = sorted((name for name in references if name), key=len, reverse=True)
        if not names:
            return formula

        alternatives = []
        for name in names:
            escaped = re.escape(name)
            alternatives.append(rf"\[\s*{escaped}\s*\]")
            alternatives.append(rf"(?<!\w){escaped}(?!\w)")
        pattern = re.compile("|".join(alternatives))

        def replace(match: re.Match) -> str:
            name = reference_key(match.group(0))
            value = references[name]
            if isinstance(value, (int, float)):
                return _format_number(value)
            return str(value)

        return pattern.sub(replace, formula)


_default_evaluator = ExpressionEvaluator()


def evaluate_expression(
    expression: str,
    row: list[str],
    catalog: ColumnCatalog,
    derived: Optional[dict[str, Value]] = None,
) -> Value:
    """Evaluate an expression and return only its value."""
    return _default_evaluator.evaluate(expression, row, catalog, derived).value
