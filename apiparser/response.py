"""
Content-type aware facade over the query, schema and discovery engines
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from .config import ToolkitConfig, default_config
from .correlation import APIResponse, Correlation, correlate_responses
from .discovery import Parameter, ParameterDiscovery, extract_api_endpoints
from .errors import APIError
from .jsonpath import JSONPathParser
from .schema import Schema, SchemaDetector, to_json_schema
from .tokens import Headers, Token, TokenDetector
from .values import Value, decode

logger = logging.getLogger(__name__)

Body = Union[bytes, str]


class ResponseFormat(Enum):
    UNKNOWN = "unknown"
    JSON = "json"
    XML = "xml"
    GRAPHQL = "graphql"


def detect_format(content_type: str) -> ResponseFormat:
    """Classify a Content-Type header value."""
    content_type = (content_type or '').lower()
    if 'application/json' in content_type:
        return ResponseFormat.JSON
    if 'application/xml' in content_type or 'text/xml' in content_type:
        return ResponseFormat.XML
    if 'application/graphql' in content_type:
        return ResponseFormat.GRAPHQL
    return ResponseFormat.UNKNOWN


class ResponseParser:
    """Parses and analyses API response bodies of one content type."""

    def __init__(self, content_type: str = "", config: Optional[ToolkitConfig] = None):
        """
        Initialize the parser.

        Args:
            content_type: Content-Type of the responses to parse
            config: Toolkit configuration; defaults apply when omitted
        """
        self.content_type = content_type
        self.format = detect_format(content_type)
        self.config = config or default_config()

        self.schema_detector = SchemaDetector.from_config(self.config.inference)
        self.token_detector = TokenDetector.from_config(self.config.tokens)
        self.parameter_discovery = ParameterDiscovery.from_config(self.config.discovery)

    def _require_json(self):
        if self.format not in (ResponseFormat.JSON, ResponseFormat.UNKNOWN):
            raise APIError("Response is not in JSON format")

    def parse_json(self, data: Body) -> Value:
        """
        Decode a JSON body.

        Raises:
            APIError: If the content type is a known non-JSON format
            DecodeError: If the body is not valid JSON
        """
        self._require_json()
        return decode(data)

    def parse_json_with_path(self, data: Body, path: str) -> Value:
        """Decode a JSON body and evaluate a path expression against it."""
        return JSONPathParser(self.parse_json(data)).evaluate(path)

    def filter_json(self, data: Body, path: str, filter_expression: str) -> List[Value]:
        """Decode a JSON body and filter the array at a path."""
        return JSONPathParser(self.parse_json(data)).filter(path, filter_expression)

    def detect_schema(self, data: Body) -> Schema:
        self._require_json()
        return self.schema_detector.detect_schema(data)

    def detect_schema_from_samples(self, samples: Iterable[Body]) -> Schema:
        self._require_json()
        return self.schema_detector.detect_schema_from_samples(samples)

    def to_json_schema(self, schema: Schema) -> Dict[str, Any]:
        return to_json_schema(schema)

    def detect_tokens(self, data: Optional[Body], headers: Optional[Headers] = None) -> List[Token]:
        """
        Detect tokens in headers and, for JSON responses, in the body.

        Header detection runs for every format.
        """
        tokens = self.token_detector.detect_in_headers(headers)
        if self.format == ResponseFormat.JSON and data:
            tokens.extend(self.token_detector.detect_in_json(decode(data)))
        return tokens

    def discover_parameters(self, url: str = "",
                            headers: Optional[Headers] = None,
                            data: Optional[Body] = None) -> List[Parameter]:
        return self.parameter_discovery.discover_parameters(url, headers, data, self.content_type)

    def extract_api_endpoints(self, data: Body) -> List[str]:
        """
        Extract endpoint-like strings from a JSON body.

        Other formats yield no endpoints.
        """
        if self.format != ResponseFormat.JSON:
            return []
        return extract_api_endpoints(decode(data))

    def correlate_responses(self, first: APIResponse, second: APIResponse) -> List[Correlation]:
        return correlate_responses(first, second)
