"""
Filter predicates of the form "@.field <op> <value>"
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List

from .errors import InvalidFilterValueError, UnsupportedFilterError
from .values import Value, is_number, values_equal

logger = logging.getLogger(__name__)

# Unset expected values are distinct from an expected JSON null
_NO_VALUE = object()


class FilterOp(Enum):
    """Comparison performed by a predicate."""
    EQ = "=="
    CONTAINS = "contains"
    GT = ">"
    LT = "<"


# Order matters: the first pattern that matches decides the operator
_PATTERNS = [
    (FilterOp.EQ, re.compile(r'@\.([a-zA-Z0-9_]+)\s*==\s*(.+)')),
    (FilterOp.CONTAINS, re.compile(r'@\.([a-zA-Z0-9_]+)\s+contains\s+(.+)')),
    (FilterOp.GT, re.compile(r'@\.([a-zA-Z0-9_]+)\s*>\s*(.+)')),
    (FilterOp.LT, re.compile(r'@\.([a-zA-Z0-9_]+)\s*<\s*(.+)')),
]


@dataclass(frozen=True)
class Predicate:
    """Compiled filter applied to one candidate element at a time."""
    op: FilterOp
    field: str
    expected: Value

    def __call__(self, candidate: Value) -> bool:
        if not isinstance(candidate, dict) or self.field not in candidate:
            return False

        actual = candidate[self.field]

        if self.op == FilterOp.EQ:
            return values_equal(actual, self.expected)

        if self.op == FilterOp.CONTAINS:
            if isinstance(actual, str):
                return self.expected in actual
            if isinstance(actual, list):
                return any(isinstance(item, str) and item == self.expected for item in actual)
            return False

        if not is_number(actual):
            return False
        if self.op == FilterOp.GT:
            return actual > self.expected
        return actual < self.expected


def _unquote(literal: str):
    if len(literal) >= 2 and literal[0] == literal[-1] and literal[0] in ("'", '"'):
        return literal[1:-1]
    return _NO_VALUE


def _parse_number(literal: str):
    if '_' in literal:
        return _NO_VALUE
    try:
        return float(literal)
    except ValueError:
        return _NO_VALUE


def parse_literal(literal: str) -> Value:
    """
    Parse the right-hand side of an equality filter.

    Raises:
        InvalidFilterValueError: If the literal is not a string, bool, null or number
    """
    text = _unquote(literal)
    if text is not _NO_VALUE:
        return text
    if literal == 'true':
        return True
    if literal == 'false':
        return False
    if literal == 'null':
        return None

    number = _parse_number(literal)
    if number is _NO_VALUE:
        raise InvalidFilterValueError(literal)
    return number


def parse_filter(expression: str) -> Predicate:
    """
    Compile a filter expression into a predicate.

    Supported forms, tried in this order:
        @.field == value
        @.field contains 'text'
        @.field > number
        @.field < number

    Args:
        expression: Filter expression

    Returns:
        Predicate callable on candidate elements

    Raises:
        UnsupportedFilterError: If no form matches
        InvalidFilterValueError: If the literal does not suit the operator
    """
    for op, pattern in _PATTERNS:
        match = pattern.search(expression)
        if not match:
            continue

        field = match.group(1)
        literal = match.group(2).strip()

        if op == FilterOp.EQ:
            expected = parse_literal(literal)
        elif op == FilterOp.CONTAINS:
            expected = _unquote(literal)
            if expected is _NO_VALUE:
                raise InvalidFilterValueError(
                    literal, f"Value for 'contains' must be a string: {literal}")
        else:
            expected = _parse_number(literal)
            if expected is _NO_VALUE:
                raise InvalidFilterValueError(
                    literal, f"Value for '{op.value}' must be a number: {literal}")

        logger.debug(f"Parsed filter {op.value} on field {field}")
        return Predicate(op=op, field=field, expected=expected)

    raise UnsupportedFilterError(expression)


def apply_filter(predicate: Predicate, candidates: Iterable[Value]) -> List[Value]:
    """Keep the candidates matching a predicate, preserving order."""
    return [candidate for candidate in candidates if predicate(candidate)]
