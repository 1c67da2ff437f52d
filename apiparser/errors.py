"""
Exception hierarchy for path parsing, evaluation and inference
"""

from typing import Optional


class APIError(Exception):
    """Base error raised by the toolkit."""

    def __init__(self, message: str, code: int = 0):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code != 0:
            return f"API error (code {self.code}): {self.message}"
        return f"API error: {self.message}"


class DecodeError(APIError):
    """Raised when raw bytes are not valid JSON."""


class ParseError(APIError):
    """Raised when a path or filter expression cannot be parsed."""


class NestedBracketsError(ParseError):
    def __init__(self, expression: str):
        super().__init__(f"Nested brackets are not supported: {expression}")
        self.expression = expression


class UnmatchedBracketError(ParseError):
    def __init__(self, expression: str):
        super().__init__(f"Unmatched closing bracket: {expression}")
        self.expression = expression


class MalformedBracketError(ParseError):
    def __init__(self, segment: str):
        super().__init__(f"Invalid bracket notation: {segment}")
        self.segment = segment


class UnsupportedFilterError(ParseError):
    def __init__(self, expression: str):
        super().__init__(f"Unsupported filter expression: {expression}")
        self.expression = expression


class InvalidFilterValueError(ParseError):
    def __init__(self, literal: str, reason: Optional[str] = None):
        super().__init__(reason or f"Invalid value in filter expression: {literal}")
        self.literal = literal


class EvalError(APIError):
    """Raised when a parsed path cannot be applied to a value."""


class NotAnObjectError(EvalError):
    def __init__(self, message: str = "Cannot access property on non-object"):
        super().__init__(message)


class NotAnArrayError(EvalError):
    def __init__(self, message: str = "Cannot access index on non-array"):
        super().__init__(message)


class PropertyNotFoundError(EvalError):
    def __init__(self, name: str):
        super().__init__(f"Property not found: {name}")
        self.name = name


class IndexOutOfBoundsError(EvalError):
    def __init__(self, index: int):
        super().__init__(f"Array index out of bounds: {index}")
        self.index = index


class WildcardUnsupportedError(EvalError):
    def __init__(self):
        super().__init__("Cannot use wildcard on non-array/object")


class UnsupportedTypeError(EvalError):
    def __init__(self, value_type: type):
        super().__init__(f"Unsupported type: {value_type.__name__}")
        self.value_type = value_type
