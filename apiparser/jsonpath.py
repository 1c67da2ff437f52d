"""
JSONPath-like expressions: parsing into segments and evaluation against values
"""

import copy
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple, Union

from .errors import (
    MalformedBracketError,
    NestedBracketsError,
    NotAnArrayError,
    NotAnObjectError,
    PropertyNotFoundError,
    IndexOutOfBoundsError,
    UnmatchedBracketError,
    WildcardUnsupportedError,
)
from .filters import apply_filter, parse_filter
from .values import Value, decode, to_text

logger = logging.getLogger(__name__)

_INDEX_RE = re.compile(r'[+-]?[0-9]+')


@dataclass(frozen=True)
class Key:
    """Object property addressed with dot notation or a bare bracket."""
    name: str


@dataclass(frozen=True)
class QuotedKey:
    """Object property addressed as ['name'] or ["name"]."""
    name: str


@dataclass(frozen=True)
class Index:
    """Array element addressed as [n]."""
    index: int


@dataclass(frozen=True)
class Wildcard:
    """All children of an array or object, written [*]."""


Segment = Union[Key, QuotedKey, Index, Wildcard]
Path = Tuple[Segment, ...]


def normalize_expression(expression: str) -> str:
    """Ensure the expression starts with the root symbol."""
    if not expression.startswith('$'):
        expression = '$' + expression
    return expression


def _split_expression(expression: str) -> List[str]:
    """Split an expression body on dots and bracket spans."""
    segments = []
    current = []
    in_bracket = False

    for char in expression:
        if char == '.':
            if in_bracket:
                current.append(char)
            elif current:
                segments.append(''.join(current))
                current = []
        elif char == '[':
            if in_bracket:
                raise NestedBracketsError(expression)
            if current:
                segments.append(''.join(current))
                current = []
            in_bracket = True
            current.append(char)
        elif char == ']':
            if not in_bracket:
                raise UnmatchedBracketError(expression)
            current.append(char)
            segments.append(''.join(current))
            current = []
            in_bracket = False
        else:
            current.append(char)

    if current:
        segments.append(''.join(current))

    for segment in segments:
        if segment.startswith('[') and not segment.endswith(']'):
            raise MalformedBracketError(segment)

    return segments


def _classify(raw: str) -> Segment:
    """Turn one raw segment into a typed segment."""
    if not (raw.startswith('[') and raw.endswith(']')):
        return Key(raw)

    content = raw[1:-1]

    if _INDEX_RE.fullmatch(content):
        return Index(int(content))

    if len(content) >= 2 and content[0] == content[-1] and content[0] in ("'", '"'):
        return QuotedKey(content[1:-1])

    if content == '*':
        return Wildcard()

    return Key(content)


def parse_path(expression: str) -> Path:
    """
    Parse a path expression into typed segments.

    Args:
        expression: Expression such as "$.a.b[0]['c']"; the leading "$" is optional

    Returns:
        Tuple of segments; empty for "" and "$"

    Raises:
        NestedBracketsError: If a bracket opens inside another bracket
        UnmatchedBracketError: If "]" appears without an open bracket
        MalformedBracketError: If a bracket segment is never closed
    """
    body = normalize_expression(expression)[1:]
    if not body:
        return ()

    return tuple(_classify(raw) for raw in _split_expression(body))


def _is_bare_key(name: str) -> bool:
    return bool(name) and not any(char in name for char in '.[]')


def format_segment(segment: Segment) -> str:
    if isinstance(segment, Index):
        return f"[{segment.index}]"
    if isinstance(segment, Wildcard):
        return "[*]"
    if isinstance(segment, Key) and _is_bare_key(segment.name):
        return f".{segment.name}"
    return f"['{segment.name}']"


def format_path(segments: Path) -> str:
    """Render segments back into an expression that parses to the same path."""
    return '$' + ''.join(format_segment(segment) for segment in segments)


def child_path(parent: str, key: str) -> str:
    """Path of an object property below an already formatted parent path."""
    return parent + format_segment(Key(key))


def index_path(parent: str, index: int) -> str:
    """Path of an array element below an already formatted parent path."""
    return parent + format_segment(Index(index))


def _lookup(current: Value, name: str) -> Value:
    if not isinstance(current, dict):
        raise NotAnObjectError()
    if name not in current:
        raise PropertyNotFoundError(name)
    return current[name]


def evaluate(root: Value, path: Path) -> Value:
    """
    Apply parsed segments to a value.

    A wildcard ends evaluation: arrays are returned as they are and objects
    yield the list of their values.

    Args:
        root: Decoded JSON document
        path: Segments produced by parse_path

    Returns:
        Deep copy of the matched sub-tree

    Raises:
        EvalError: Subclass describing why the path does not apply
    """
    current = root

    for segment in path:
        if isinstance(segment, (Key, QuotedKey)):
            current = _lookup(current, segment.name)

        elif isinstance(segment, Index):
            if not isinstance(current, list):
                raise NotAnArrayError()
            if segment.index < 0 or segment.index >= len(current):
                raise IndexOutOfBoundsError(segment.index)
            current = current[segment.index]

        elif isinstance(segment, Wildcard):
            if isinstance(current, list):
                return copy.deepcopy(current)
            if isinstance(current, dict):
                return copy.deepcopy(list(current.values()))
            raise WildcardUnsupportedError()

    return copy.deepcopy(current)


def query(root: Value, expression: str) -> Value:
    """Parse and evaluate an expression in one step."""
    return evaluate(root, parse_path(expression))


def evaluate_to_string(root: Value, expression: str) -> str:
    return to_text(query(root, expression))


def evaluate_to_array(root: Value, expression: str) -> List[Value]:
    result = query(root, expression)
    if isinstance(result, list):
        return result
    return [result]


def evaluate_to_map(root: Value, expression: str) -> Dict[str, Value]:
    result = query(root, expression)
    if not isinstance(result, dict):
        raise NotAnObjectError("Result is not an object")
    return result


class JSONPathParser:
    """Evaluates path expressions and filters against one decoded document."""

    def __init__(self, data: Any):
        """
        Initialize the parser.

        Args:
            data: Decoded JSON document used as the root
        """
        self.data = data

    @classmethod
    def from_json(cls, json_data: Union[bytes, str]) -> 'JSONPathParser':
        """Decode raw JSON and wrap it in a parser."""
        return cls(decode(json_data))

    def evaluate(self, expression: str) -> Value:
        return query(self.data, expression)

    def evaluate_to_string(self, expression: str) -> str:
        return evaluate_to_string(self.data, expression)

    def evaluate_to_array(self, expression: str) -> List[Value]:
        return evaluate_to_array(self.data, expression)

    def evaluate_to_map(self, expression: str) -> Dict[str, Value]:
        return evaluate_to_map(self.data, expression)

    def filter(self, expression: str, filter_expression: str) -> List[Value]:
        """
        Evaluate a base expression and keep the array elements matching a filter.

        Args:
            expression: Path to the array to filter
            filter_expression: Predicate such as "@.status == 'active'"

        Returns:
            Matching elements in their original order; empty when the base
            result is not an array
        """
        base = self.evaluate(expression)
        if not isinstance(base, list):
            logger.debug(f"Filter base {expression} is not an array")
            return []

        predicate = parse_filter(filter_expression)
        return apply_filter(predicate, base)
