"""
Generic JSON value model shared by the query and schema engines.

Values are the plain trees produced by the json module: None, bool, int,
float, str, list and dict. Nothing in the toolkit mutates a decoded tree.
"""

import json
import math
import logging
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from .errors import DecodeError, UnsupportedTypeError

logger = logging.getLogger(__name__)

Value = Any

# Deepest array/object nesting accepted by decode
MAX_NESTING_DEPTH = 200


class ValueKind(Enum):
    """Tag of a JSON value."""
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


def kind_of(value: Value) -> ValueKind:
    """
    Classify a decoded JSON value.

    Args:
        value: Value to classify

    Returns:
        The value's kind

    Raises:
        UnsupportedTypeError: If the value is not a JSON type
    """
    if value is None:
        return ValueKind.NULL
    # bool is a subclass of int
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, list):
        return ValueKind.ARRAY
    if isinstance(value, dict):
        return ValueKind.OBJECT
    raise UnsupportedTypeError(type(value))


def is_number(value: Value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_integral(value: Value) -> bool:
    """Check whether a number has no fractional part."""
    if isinstance(value, int):
        return True
    return math.isfinite(value) and float(value).is_integer()


def _reject_constant(name: str):
    raise ValueError(f"Invalid JSON constant: {name}")


def _parse_float(text: str) -> float:
    number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"Number out of range: {text}")
    return number


def nesting_depth(value: Value) -> int:
    """Depth of the deepest array or object in a value; scalars are 0."""
    deepest = 0
    stack = [(value, 1)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, dict):
            children = node.values()
        elif isinstance(node, list):
            children = node
        else:
            continue
        deepest = max(deepest, depth)
        stack.extend((child, depth + 1) for child in children)
    return deepest


def decode(data: Union[bytes, str]) -> Value:
    """
    Decode raw JSON text into a value tree.

    Documents nested deeper than MAX_NESTING_DEPTH are rejected so the
    recursive walkers downstream stay within the interpreter's stack.

    Args:
        data: JSON document as bytes or text

    Returns:
        Decoded value

    Raises:
        DecodeError: If the input is not valid JSON or is nested too deeply
    """
    try:
        if isinstance(data, bytes):
            data = data.decode('utf-8')
        value = json.loads(data, parse_constant=_reject_constant, parse_float=_parse_float)
    except RecursionError as e:
        logger.debug("Failed to decode JSON: nesting too deep")
        raise DecodeError(f"Failed to parse JSON data: nesting exceeds {MAX_NESTING_DEPTH} levels") from e
    except (UnicodeDecodeError, ValueError) as e:
        logger.debug(f"Failed to decode JSON: {e}")
        raise DecodeError(f"Failed to parse JSON data: {e}") from e

    if nesting_depth(value) > MAX_NESTING_DEPTH:
        raise DecodeError(f"Failed to parse JSON data: nesting exceeds {MAX_NESTING_DEPTH} levels")
    return value


def format_number(number: Union[int, float]) -> str:
    """
    Render a number as the shortest decimal that round-trips, without exponent.

    Integral floats drop their fractional part, so 10.0 renders as "10".
    """
    if isinstance(number, int):
        return str(number)
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "+Inf" if number > 0 else "-Inf"
    if number.is_integer():
        if number == 0 and math.copysign(1.0, number) < 0:
            return "-0"
        return str(int(number))

    text = repr(number)
    if 'e' in text or 'E' in text:
        text = format(Decimal(text), 'f')
    return text


def _plain(value: Value) -> Value:
    """Replace integral floats so compact JSON prints them as integers."""
    if isinstance(value, float) and is_integral(value):
        return int(value)
    if isinstance(value, list):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value


def to_json(value: Value) -> str:
    """Compact JSON text of a value, keeping key insertion order."""
    return json.dumps(_plain(value), separators=(',', ':'), ensure_ascii=False)


def to_text(value: Value) -> str:
    """
    Stringify a value.

    Scalars use their canonical text form; arrays and objects are JSON-encoded.

    Args:
        value: Value to stringify

    Returns:
        Text form of the value
    """
    kind = kind_of(value)

    if kind == ValueKind.STRING:
        return value
    if kind == ValueKind.NUMBER:
        return format_number(value)
    if kind == ValueKind.BOOL:
        return "true" if value else "false"
    if kind == ValueKind.NULL:
        return "null"
    return to_json(value)


def values_equal(a: Value, b: Value) -> bool:
    """
    Deep structural equality between two values.

    Numbers compare across int and float, booleans never equal numbers,
    arrays compare element-wise and objects compare by key set and values.
    """
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False

    kind_a = kind_of(a)
    if kind_a != kind_of(b):
        return False

    if kind_a == ValueKind.ARRAY:
        if len(a) != len(b):
            return False
        return all(values_equal(x, y) for x, y in zip(a, b))

    if kind_a == ValueKind.OBJECT:
        if len(a) != len(b):
            return False
        for key, item in a.items():
            if key not in b or not values_equal(item, b[key]):
                return False
        return True

    return a == b
