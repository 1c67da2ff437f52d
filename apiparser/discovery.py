"""
Discovery of API parameters, linked URLs and endpoints in responses
"""

import logging
import re
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse, parse_qs

from .errors import APIError
from .jsonpath import child_path, index_path
from .tokens import Headers, header_values
from .values import Value, ValueKind, decode, kind_of, to_json

logger = logging.getLogger(__name__)


class ParameterType(Enum):
    QUERY = "query"
    PATH = "path"
    BODY = "body"
    HEADER = "header"
    UNKNOWN = "unknown"


@dataclass
class Parameter:
    """A parameter the API appears to accept."""
    name: str
    type: ParameterType
    data_type: str
    required: bool
    confidence: int
    description: str = ""
    example: str = ""
    path: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['type'] = self.type.value
        return data


KNOWN_PARAMS = {
    'id': ParameterType.PATH,
    'uuid': ParameterType.PATH,
    'page': ParameterType.QUERY,
    'limit': ParameterType.QUERY,
    'offset': ParameterType.QUERY,
    'sort': ParameterType.QUERY,
    'order': ParameterType.QUERY,
    'filter': ParameterType.QUERY,
    'q': ParameterType.QUERY,
    'query': ParameterType.QUERY,
    'search': ParameterType.QUERY,
    'token': ParameterType.HEADER,
    'api_key': ParameterType.HEADER,
    'apikey': ParameterType.HEADER,
    'authorization': ParameterType.HEADER,
    'content-type': ParameterType.HEADER,
    'accept': ParameterType.HEADER,
}

_DATA_TYPES = {
    ValueKind.NULL: 'null',
    ValueKind.BOOL: 'boolean',
    ValueKind.NUMBER: 'number',
    ValueKind.STRING: 'string',
    ValueKind.ARRAY: 'array',
    ValueKind.OBJECT: 'object',
}

PATH_PARAM_RE = re.compile(r'\{([a-zA-Z0-9_]+)\}')
LINK_HEADER_RE = re.compile(r'<([^>]+)>')
URL_VALUE_RE = re.compile(r'^(https?://|/)[\w\-\./%&=\?]+$', re.ASCII)

ENDPOINT_PREFIXES = ('/api/', '/v1/', '/v2/', '/rest/')

EXAMPLE_MAX_LENGTH = 50


def format_example(value: Value) -> str:
    """Short text form of a value, truncated with an ellipsis."""
    if value is None:
        return 'null'
    text = value if isinstance(value, str) else to_json(value)
    if len(text) > EXAMPLE_MAX_LENGTH:
        return text[:EXAMPLE_MAX_LENGTH - 3] + '...'
    return text


def is_url_key(key: str) -> bool:
    lowered = key.lower()
    if 'url' in lowered or 'link' in lowered or 'href' in lowered:
        return True
    return key in ('self', 'next', 'prev')


def is_endpoint_like(value: str) -> bool:
    return value.startswith(ENDPOINT_PREFIXES) or '/graphql' in value


def extract_api_endpoints(data: Value) -> List[str]:
    """
    Collect endpoint-like object keys and string values from a document.

    Args:
        data: Decoded JSON document

    Returns:
        Endpoints in document order, duplicates included
    """
    endpoints: List[str] = []

    def walk(node: Value):
        if isinstance(node, dict):
            for key, value in node.items():
                if is_endpoint_like(key):
                    endpoints.append(key)
                walk(value)
        elif isinstance(node, list):
            for element in node:
                walk(element)
        elif isinstance(node, str) and is_endpoint_like(node):
            endpoints.append(node)

    walk(data)
    return endpoints


def deduplicate_parameters(params: List[Parameter]) -> List[Parameter]:
    """Keep the first parameter for each name and location."""
    seen = set()
    unique = []
    for param in params:
        key = (param.name, param.type)
        if key not in seen:
            seen.add(key)
            unique.append(param)
    return unique


class ParameterDiscovery:
    """Discovers parameters from request URLs, links and JSON bodies."""

    def __init__(self, max_depth: int = 10, max_urls: int = 1000):
        """
        Initialize parameter discovery.

        Args:
            max_depth: Maximum nesting depth walked in JSON documents
            max_urls: Maximum number of distinct URLs taken from one document
        """
        self.max_depth = max_depth
        self.max_urls = max_urls

    @classmethod
    def from_config(cls, config) -> 'ParameterDiscovery':
        """Build a discovery instance from a DiscoveryConfig."""
        return cls(max_depth=config.max_depth, max_urls=config.max_urls)

    def discover_url_parameters(self, url: str) -> List[Parameter]:
        """
        Discover path placeholders and query parameters of a URL.

        Args:
            url: URL, possibly templated with {name} placeholders

        Returns:
            Path parameters followed by query parameters

        Raises:
            APIError: If the URL cannot be parsed
        """
        try:
            parsed = urlparse(url)
            query = parse_qs(parsed.query, keep_blank_values=True)
        except ValueError as e:
            raise APIError(f"Failed to parse URL: {e}") from e

        params = []

        for name in PATH_PARAM_RE.findall(parsed.path):
            params.append(Parameter(
                name=name,
                type=ParameterType.PATH,
                data_type='string',
                required=True,
                confidence=80
            ))

        for name, values in query.items():
            params.append(Parameter(
                name=name,
                type=ParameterType.QUERY,
                data_type='string',
                required=False,
                example=values[0] if values else '',
                confidence=90
            ))

        return params

    def extract_urls(self, data: Value) -> List[str]:
        """
        Collect URL values stored under URL-like keys.

        Args:
            data: Decoded JSON document

        Returns:
            Distinct URLs in first-seen order, at most max_urls of them
        """
        urls: Dict[str, None] = {}
        self._collect_urls(data, urls, 0)
        return list(urls)[:self.max_urls]

    def _collect_urls(self, data: Value, urls: Dict[str, None], depth: int):
        if depth > self.max_depth:
            return

        if isinstance(data, dict):
            for key, value in data.items():
                if is_url_key(key) and isinstance(value, str) and URL_VALUE_RE.match(value):
                    urls[value] = None
                self._collect_urls(value, urls, depth + 1)

        elif isinstance(data, list):
            for element in data:
                self._collect_urls(element, urls, depth + 1)

    def discover_link_parameters(self,
                                 headers: Optional[Headers] = None,
                                 data: Value = None) -> List[Parameter]:
        """
        Discover parameters of URLs the response links to.

        Args:
            headers: Response headers; every Link header is inspected
            data: Decoded JSON body, if any

        Returns:
            Parameters of every linked URL; unparsable URLs are skipped
        """
        urls = []
        for link in header_values(headers, 'Link'):
            urls.extend(LINK_HEADER_RE.findall(link))

        if data is not None:
            urls.extend(self.extract_urls(data))

        params = []
        for url in urls:
            try:
                params.extend(self.discover_url_parameters(url))
            except APIError as e:
                logger.warning(f"Skipping linked URL {url}: {e}")

        return params

    def discover_json_parameters(self, data: Value) -> List[Parameter]:
        """
        Turn every object key of a JSON document into a parameter.

        Keys matching a well-known parameter name take its location with
        confidence 85; all others are body parameters with confidence 70.

        Args:
            data: Decoded JSON document

        Returns:
            Parameters in document order
        """
        params: List[Parameter] = []
        self._collect_parameters(data, '$', params, 0)
        return params

    def _collect_parameters(self, data: Value, path: str, params: List[Parameter], depth: int):
        if depth > self.max_depth:
            return

        if isinstance(data, dict):
            for key, value in data.items():
                new_path = child_path(path, key)
                known = KNOWN_PARAMS.get(key.lower())

                params.append(Parameter(
                    name=key,
                    type=known or ParameterType.BODY,
                    data_type=_DATA_TYPES[kind_of(value)],
                    required=False,
                    path=new_path,
                    example=format_example(value),
                    confidence=85 if known else 70
                ))

                self._collect_parameters(value, new_path, params, depth + 1)

        elif isinstance(data, list):
            for i, element in enumerate(data):
                self._collect_parameters(element, index_path(path, i), params, depth + 1)

    def discover_parameters(self,
                            url: str = "",
                            headers: Optional[Headers] = None,
                            data: Union[bytes, str, None] = None,
                            content_type: str = "application/json") -> List[Parameter]:
        """
        Discover parameters from everything known about one response.

        Args:
            url: URL of the request that produced the response
            headers: Response headers
            data: Raw response body
            content_type: Response content type

        Returns:
            Parameters deduplicated by name and location

        Raises:
            APIError: If the URL cannot be parsed
            DecodeError: If a JSON body cannot be decoded
        """
        params = []

        if url:
            params.extend(self.discover_url_parameters(url))

        body = None
        if data and 'application/json' in (content_type or '').lower():
            body = decode(data)

        params.extend(self.discover_link_parameters(headers, body))

        if body is not None:
            params.extend(self.discover_json_parameters(body))

        unique = deduplicate_parameters(params)
        logger.info(f"Discovered {len(unique)} parameters")
        return unique


def discover_parameters(url: str = "",
                        headers: Optional[Headers] = None,
                        data: Union[bytes, str, None] = None,
                        content_type: str = "application/json") -> List[Parameter]:
    return ParameterDiscovery().discover_parameters(url, headers, data, content_type)
