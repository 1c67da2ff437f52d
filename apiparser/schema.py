"""
Schema inference from sample JSON documents and schema merging
"""

import json
import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .errors import APIError
from .values import Value, ValueKind, decode, is_integral, kind_of

logger = logging.getLogger(__name__)

JSON_SCHEMA_DRAFT = "http://json-schema.org/draft-07/schema#"


class SchemaType(Enum):
    """JSON type of a schema position."""
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    NULL = "null"


class SchemaFormat(Enum):
    """Well-known string formats recognised during inference."""
    DATE_TIME = "date-time"
    DATE = "date"
    EMAIL = "email"
    UUID = "uuid"
    URI = "uri"
    IPV4 = "ipv4"
    IPV6 = "ipv6"


@dataclass
class SchemaField:
    """Describes one value position in an inferred schema."""
    type: SchemaType
    format: Optional[SchemaFormat] = None
    description: str = ""
    required: bool = False
    pattern: Optional[str] = None
    minimum: Optional[Union[int, float]] = None
    maximum: Optional[Union[int, float]] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    items: Optional['SchemaField'] = None
    properties: Optional[Dict[str, 'SchemaField']] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the field tree to a dictionary, omitting unset attributes."""
        data: Dict[str, Any] = {'type': self.type.value}
        if self.format is not None:
            data['format'] = self.format.value
        if self.description:
            data['description'] = self.description
        if self.required:
            data['required'] = True
        if self.pattern is not None:
            data['pattern'] = self.pattern
        if self.minimum is not None:
            data['minimum'] = self.minimum
        if self.maximum is not None:
            data['maximum'] = self.maximum
        if self.min_length is not None:
            data['minLength'] = self.min_length
        if self.max_length is not None:
            data['maxLength'] = self.max_length
        if self.items is not None:
            data['items'] = self.items.to_dict()
        if self.properties is not None:
            data['properties'] = {name: prop.to_dict() for name, prop in self.properties.items()}
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SchemaField':
        """Rebuild a field tree produced by to_dict."""
        properties = data.get('properties')
        items = data.get('items')
        return cls(
            type=SchemaType(data['type']),
            format=SchemaFormat(data['format']) if data.get('format') else None,
            description=data.get('description', ''),
            required=data.get('required', False),
            pattern=data.get('pattern'),
            minimum=data.get('minimum'),
            maximum=data.get('maximum'),
            min_length=data.get('minLength'),
            max_length=data.get('maxLength'),
            items=cls.from_dict(items) if items is not None else None,
            properties=({name: cls.from_dict(prop) for name, prop in properties.items()}
                        if properties is not None else None)
        )


@dataclass
class Schema:
    """Root of an inferred schema."""
    root: SchemaField
    title: str = ""
    description: str = ""

    @property
    def type(self) -> SchemaType:
        return self.root.type

    @property
    def properties(self) -> Optional[Dict[str, SchemaField]]:
        return self.root.properties

    @property
    def items(self) -> Optional[SchemaField]:
        return self.root.items

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.title:
            data['title'] = self.title
        if self.description:
            data['description'] = self.description
        data.update(self.root.to_dict())
        return data


_DATE_TIME_RE = re.compile(
    r'(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.\d+)?(Z|[+-](\d{2}):(\d{2}))',
    re.ASCII
)
_DATE_RE = re.compile(r'\d{4}-\d{2}-\d{2}', re.ASCII)

_FORMAT_PATTERNS = [
    (SchemaFormat.EMAIL, re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}')),
    (SchemaFormat.UUID, re.compile(r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}')),
    (SchemaFormat.URI, re.compile(r'(https?|ftp)://[^\s/$.?#].[^\s]*')),
    (SchemaFormat.IPV4, re.compile(
        r'(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)')),
    (SchemaFormat.IPV6, re.compile(
        r'(([0-9a-fA-F]{1,4}:){7,7}[0-9a-fA-F]{1,4}|([0-9a-fA-F]{1,4}:){1,7}:|'
        r'([0-9a-fA-F]{1,4}:){1,6}:[0-9a-fA-F]{1,4}|([0-9a-fA-F]{1,4}:){1,5}(:[0-9a-fA-F]{1,4}){1,2}|'
        r'([0-9a-fA-F]{1,4}:){1,4}(:[0-9a-fA-F]{1,4}){1,3}|([0-9a-fA-F]{1,4}:){1,3}(:[0-9a-fA-F]{1,4}){1,4}|'
        r'([0-9a-fA-F]{1,4}:){1,2}(:[0-9a-fA-F]{1,4}){1,5}|[0-9a-fA-F]{1,4}:((:[0-9a-fA-F]{1,4}){1,6})|'
        r':((:[0-9a-fA-F]{1,4}){1,7}|:)|fe80:(:[0-9a-fA-F]{0,4}){0,4}%[0-9a-zA-Z]{1,}|'
        r'::(ffff(:0{1,4}){0,1}:){0,1}((25[0-5]|(2[0-4]|1{0,1}[0-9]){0,1}[0-9])\.){3,3}'
        r'(25[0-5]|(2[0-4]|1{0,1}[0-9]){0,1}[0-9])|([0-9a-fA-F]{1,4}:){1,4}:'
        r'((25[0-5]|(2[0-4]|1{0,1}[0-9]){0,1}[0-9])\.){3,3}(25[0-5]|(2[0-4]|1{0,1}[0-9]){0,1}[0-9]))')),
]

PATTERN_NUMERIC = r'^\d+$'
PATTERN_ALPHANUMERIC = r'^[a-zA-Z0-9]+$'
PATTERN_HEX = r'^[0-9a-fA-F]+$'
PATTERN_SLUG = r'^[a-z0-9]+(?:-[a-z0-9]+)*$'

# Reported pattern strings are matched with ASCII semantics
_STRUCTURAL_PATTERNS = [
    (pattern, re.compile(pattern, re.ASCII))
    for pattern in (PATTERN_NUMERIC, PATTERN_ALPHANUMERIC, PATTERN_HEX, PATTERN_SLUG)
]


def _is_date_time(value: str) -> bool:
    match = _DATE_TIME_RE.fullmatch(value)
    if not match:
        return False
    year, month, day, hour, minute, second = (int(part) for part in match.groups()[:6])
    if match.group(8) is not None:
        if int(match.group(8)) > 23 or int(match.group(9)) > 59:
            return False
    try:
        datetime(year, month, day, hour, minute, second)
    except ValueError:
        return False
    return True


def _is_date(value: str) -> bool:
    if not _DATE_RE.fullmatch(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def detect_string_format(value: str) -> Optional[SchemaFormat]:
    """
    Detect a well-known format of a string value.

    Checked in priority order: date-time, date, email, uuid, uri, ipv4, ipv6.
    """
    if _is_date_time(value):
        return SchemaFormat.DATE_TIME
    if _is_date(value):
        return SchemaFormat.DATE

    for schema_format, pattern in _FORMAT_PATTERNS:
        if pattern.fullmatch(value):
            return schema_format

    return None


def detect_string_pattern(value: str) -> Optional[str]:
    """Detect a structural pattern: digits, alphanumeric, hex or slug."""
    for pattern, compiled in _STRUCTURAL_PATTERNS:
        if compiled.fullmatch(value):
            return pattern
    return None


def generalize(type1: SchemaType, type2: SchemaType) -> SchemaType:
    """
    Return the narrowest type able to represent both inputs.

    Null unifies to the other type and integer widens to number. Any other
    mismatch falls back to string, since the schema model has no union type.
    """
    if type1 == SchemaType.NULL:
        return type2
    if type2 == SchemaType.NULL:
        return type1
    if type1 == type2:
        return type1
    if {type1, type2} == {SchemaType.INTEGER, SchemaType.NUMBER}:
        return SchemaType.NUMBER
    return SchemaType.STRING


def _lower(a, b):
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def _upper(a, b):
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def _merge_properties(left: Optional[Dict[str, SchemaField]],
                      right: Optional[Dict[str, SchemaField]]) -> Dict[str, SchemaField]:
    left = left or {}
    right = right or {}
    merged: Dict[str, SchemaField] = {}

    for name, prop in left.items():
        if name in right:
            merged[name] = merge(prop, right[name])
        else:
            merged[name] = replace(prop, required=False)

    for name, prop in right.items():
        if name not in left:
            merged[name] = replace(prop, required=False)

    return merged


def merge(a: SchemaField, b: SchemaField) -> SchemaField:
    """
    Combine two fields into a generalized field.

    The result is independent of argument order except for description,
    which is taken from the left operand.

    Args:
        a: Left field
        b: Right field

    Returns:
        New merged field; the inputs are not modified
    """
    result = SchemaField(
        type=generalize(a.type, b.type),
        description=a.description,
        required=a.required and b.required,
        format=a.format if a.format == b.format else None,
        pattern=a.pattern if a.pattern == b.pattern else None,
        minimum=_lower(a.minimum, b.minimum),
        maximum=_upper(a.maximum, b.maximum),
        min_length=_lower(a.min_length, b.min_length),
        max_length=_upper(a.max_length, b.max_length),
    )

    if result.type == SchemaType.OBJECT:
        result.properties = _merge_properties(a.properties, b.properties)

    if result.type == SchemaType.ARRAY:
        if a.items is not None and b.items is not None:
            result.items = merge(a.items, b.items)
        else:
            result.items = a.items if a.items is not None else b.items

    return result


def merge_schemas(a: Schema, b: Schema) -> Schema:
    """Merge two schemas, keeping the left title and description."""
    return Schema(root=merge(a.root, b.root), title=a.title, description=a.description)


class SchemaDetector:
    """Infers schemas from sample JSON values."""

    def __init__(self,
                 detect_formats: bool = True,
                 detect_patterns: bool = True,
                 detect_ranges: bool = True,
                 sample_size: int = 10):
        """
        Initialize the detector.

        Args:
            detect_formats: Detect well-known string formats
            detect_patterns: Detect structural string patterns when no format matched
            detect_ranges: Record numeric and length ranges
            sample_size: Maximum number of array elements inspected per array
        """
        self.detect_formats = detect_formats
        self.detect_patterns = detect_patterns
        self.detect_ranges = detect_ranges
        self.sample_size = sample_size

    @classmethod
    def from_config(cls, config) -> 'SchemaDetector':
        """Build a detector from an InferenceConfig."""
        return cls(
            detect_formats=config.detect_formats,
            detect_patterns=config.detect_patterns,
            detect_ranges=config.detect_ranges,
            sample_size=config.sample_size
        )

    def infer(self, sample: Value) -> SchemaField:
        """
        Infer the field describing one sample value.

        Args:
            sample: Decoded JSON value

        Returns:
            Field tree describing the sample

        Raises:
            UnsupportedTypeError: If the value contains a non-JSON type
        """
        kind = kind_of(sample)

        if kind == ValueKind.NULL:
            return SchemaField(type=SchemaType.NULL)

        if kind == ValueKind.BOOL:
            return SchemaField(type=SchemaType.BOOLEAN)

        if kind == ValueKind.STRING:
            return self._infer_string(sample)

        if kind == ValueKind.NUMBER:
            result = SchemaField(
                type=SchemaType.INTEGER if is_integral(sample) else SchemaType.NUMBER
            )
            if self.detect_ranges:
                result.minimum = sample
                result.maximum = sample
            return result

        if kind == ValueKind.ARRAY:
            result = SchemaField(type=SchemaType.ARRAY)
            if sample:
                items = self.infer(sample[0])
                for element in sample[1:self.sample_size]:
                    items = merge(items, self.infer(element))
                result.items = items
            return result

        properties = {}
        for name, value in sample.items():
            properties[name] = replace(self.infer(value), required=True)
        return SchemaField(type=SchemaType.OBJECT, properties=properties)

    def _infer_string(self, value: str) -> SchemaField:
        result = SchemaField(type=SchemaType.STRING)

        if self.detect_formats:
            result.format = detect_string_format(value)

        if self.detect_patterns and result.format is None:
            result.pattern = detect_string_pattern(value)

        if self.detect_ranges:
            result.min_length = len(value)
            result.max_length = len(value)

        return result

    def infer_many(self, samples: Sequence[Value],
                   title: str = "",
                   description: str = "") -> Schema:
        """
        Infer one schema from several samples by folding merge left to right.

        Args:
            samples: Decoded JSON samples
            title: Title of the resulting schema
            description: Description of the resulting schema

        Returns:
            Generalized schema

        Raises:
            APIError: If no samples are given
        """
        if not samples:
            raise APIError("No samples provided")

        root = self.infer(samples[0])
        for sample in samples[1:]:
            root = merge(root, self.infer(sample))

        logger.debug(f"Inferred {root.type.value} schema from {len(samples)} samples")
        return Schema(root=root, title=title, description=description)

    def detect_schema(self, data: Union[bytes, str]) -> Schema:
        """Decode one JSON document and infer its schema."""
        return Schema(root=self.infer(decode(data)))

    def detect_schema_from_samples(self, samples: Iterable[Union[bytes, str]]) -> Schema:
        """Decode several JSON documents and infer one merged schema."""
        return self.infer_many([decode(sample) for sample in samples])


_default_detector = SchemaDetector()


def infer(sample: Value) -> SchemaField:
    return _default_detector.infer(sample)


def infer_many(samples: Sequence[Value]) -> Schema:
    return _default_detector.infer_many(samples)


def field_to_json_schema(schema_field: SchemaField) -> Dict[str, Any]:
    """Convert a field to its JSON Schema representation."""
    result: Dict[str, Any] = {'type': schema_field.type.value}

    if schema_field.format is not None:
        result['format'] = schema_field.format.value
    if schema_field.description:
        result['description'] = schema_field.description
    if schema_field.pattern is not None:
        result['pattern'] = schema_field.pattern
    if schema_field.minimum is not None:
        result['minimum'] = schema_field.minimum
    if schema_field.maximum is not None:
        result['maximum'] = schema_field.maximum
    if schema_field.min_length is not None:
        result['minLength'] = schema_field.min_length
    if schema_field.max_length is not None:
        result['maxLength'] = schema_field.max_length

    if schema_field.type == SchemaType.OBJECT and schema_field.properties:
        result['properties'] = {
            name: field_to_json_schema(prop) for name, prop in schema_field.properties.items()
        }
        required = required_properties(schema_field)
        if required:
            result['required'] = required

    if schema_field.type == SchemaType.ARRAY and schema_field.items is not None:
        result['items'] = field_to_json_schema(schema_field.items)

    return result


def to_json_schema(schema: Schema) -> Dict[str, Any]:
    """
    Convert an inferred schema to a JSON Schema draft-07 document.

    Args:
        schema: Inferred schema

    Returns:
        Dictionary ready for JSON serialization
    """
    document: Dict[str, Any] = {'$schema': JSON_SCHEMA_DRAFT}
    if schema.title:
        document['title'] = schema.title
    if schema.description:
        document['description'] = schema.description
    document.update(field_to_json_schema(schema.root))
    return document


def to_json_schema_text(schema: Schema) -> str:
    return json.dumps(to_json_schema(schema), indent=2)


def required_properties(schema_field: SchemaField) -> List[str]:
    """Names of the required properties of an object field."""
    return [name for name, prop in (schema_field.properties or {}).items() if prop.required]
