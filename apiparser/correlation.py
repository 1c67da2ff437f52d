"""
Correlation of values across API responses

Responses inside a session are compared pairwise: equal values under ID-like
keys suggest the second request can be driven by the first response, and URL
fields pointing at another request's URL record a reference between them.
"""

import json
import logging
import re
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import networkx as nx

from .errors import APIError, DecodeError
from .jsonpath import child_path, index_path, evaluate_to_string
from .values import Value, decode, format_number, is_number

logger = logging.getLogger(__name__)

ID_KEY_RE = re.compile(r'(?i)(id|uuid|key)')
REFERENCE_KEY_RE = re.compile(r'(?i)(ref|reference|link|url|href)')
URL_VALUE_RE = re.compile(r'^(https?://|/)[\w\-\./%&=\?]+$', re.ASCII)


class CorrelationType(Enum):
    ID = "id"
    REFERENCE = "reference"
    PARENT_CHILD = "parent_child"
    SEQUENCE = "sequence"
    UNKNOWN = "unknown"


@dataclass
class APIRequest:
    """A request as seen by the toolkit; sending it is up to the caller."""
    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class APIResponse:
    """A received response together with the request that produced it."""
    data: Union[bytes, str]
    content_type: str = "application/json"
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    request: Optional[APIRequest] = None

    @property
    def is_json(self) -> bool:
        return 'application/json' in (self.content_type or '').lower()

    @property
    def url(self) -> str:
        return self.request.url if self.request else ""


@dataclass
class Correlation:
    """A value linking one response to another request."""
    type: CorrelationType
    source_path: str
    target_path: str
    source_value: str
    confidence: int
    description: str = ""
    source_response_id: str = ""
    target_request_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['type'] = self.type.value
        return data


class APISession:
    """Requests, responses and derived values of one exploration session."""

    def __init__(self, session_id: str):
        self.id = session_id
        self.start_time = datetime.now(timezone.utc)
        self.last_activity = self.start_time
        self.requests: Dict[str, APIRequest] = {}
        self.responses: Dict[str, APIResponse] = {}
        self.response_requests: Dict[str, str] = {}
        self.correlations: List[Correlation] = []
        self.extracted_values: Dict[str, str] = {}

    def _touch(self):
        self.last_activity = datetime.now(timezone.utc)

    def add_request(self, request: APIRequest) -> str:
        """Store a request and return its session-local ID."""
        request_id = f"req_{len(self.requests) + 1}"
        self.requests[request_id] = request
        self._touch()
        return request_id

    def add_response(self, response: APIResponse, request_id: str = "") -> str:
        """
        Store a response and return its session-local ID.

        Args:
            response: Response to store
            request_id: ID of the stored request that produced it, if any

        Returns:
            Response ID
        """
        response_id = f"resp_{len(self.responses) + 1}"
        self.responses[response_id] = response
        if request_id:
            self.response_requests[response_id] = request_id
            if response.request is None:
                response.request = self.requests.get(request_id)
        self._touch()
        return response_id

    def request_for(self, response_id: str) -> Optional[APIRequest]:
        request_id = self.response_requests.get(response_id)
        if request_id:
            return self.requests.get(request_id)
        return self.responses[response_id].request

    def extract_value(self, response_id: str, path: str, name: str) -> str:
        """
        Evaluate a path against a stored response and remember the result.

        Args:
            response_id: ID returned by add_response
            path: Path expression evaluated against the response body
            name: Name the extracted value is stored under

        Returns:
            The value in its text form

        Raises:
            APIError: If the response is unknown, or the body or path fails
        """
        response = self.responses.get(response_id)
        if response is None:
            raise APIError(f"Response with ID {response_id} not found")

        value = evaluate_to_string(decode(response.data), path)
        self.extracted_values[name] = value
        logger.debug(f"Extracted {name}={value} from {response_id}")
        return value

    def get_extracted_value(self, name: str) -> Optional[str]:
        return self.extracted_values.get(name)

    def add_correlation(self, correlation: Correlation):
        self.correlations.append(correlation)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'start_time': self.start_time.isoformat(),
            'last_activity': self.last_activity.isoformat(),
            'correlations': [correlation.to_dict() for correlation in self.correlations],
            'extracted_values': dict(self.extracted_values)
        }


def _id_text(value: Value) -> Optional[str]:
    if isinstance(value, str):
        return value
    if is_number(value):
        return format_number(value)
    return None


def extract_id_fields(data: Value) -> Dict[str, str]:
    """Map the path of every ID-like string or number to its text form."""
    fields: Dict[str, str] = {}

    def walk(node: Value, path: str):
        if isinstance(node, dict):
            for key, value in node.items():
                new_path = child_path(path, key)
                if ID_KEY_RE.search(key):
                    text = _id_text(value)
                    if text is not None:
                        fields[new_path] = text
                walk(value, new_path)
        elif isinstance(node, list):
            for i, element in enumerate(node):
                walk(element, index_path(path, i))

    walk(data, '$')
    return fields


def extract_url_fields(data: Value) -> Dict[str, str]:
    """Map the path of every URL-looking string to the URL."""
    fields: Dict[str, str] = {}

    def walk(node: Value, path: str):
        if isinstance(node, dict):
            for key, value in node.items():
                new_path = child_path(path, key)
                if REFERENCE_KEY_RE.search(key) and isinstance(value, str) and URL_VALUE_RE.match(value):
                    fields[new_path] = value
                walk(value, new_path)
        elif isinstance(node, list):
            for i, element in enumerate(node):
                walk(element, index_path(path, i))
        elif isinstance(node, str) and path != '$' and URL_VALUE_RE.match(node):
            fields[path] = node

    walk(data, '$')
    return fields


class CorrelationDetector:
    """Keeps sessions and detects correlations between their responses."""

    def __init__(self):
        self.sessions: Dict[str, APISession] = {}

    def create_session(self, session_id: str) -> APISession:
        session = APISession(session_id)
        self.sessions[session_id] = session
        logger.debug(f"Created session {session_id}")
        return session

    def get_session(self, session_id: str) -> APISession:
        """
        Look up a session.

        Raises:
            APIError: If no session has that ID
        """
        session = self.sessions.get(session_id)
        if session is None:
            raise APIError(f"Session with ID {session_id} not found")
        return session

    def _decoded_responses(self, session: APISession) -> Dict[str, Value]:
        decoded = {}
        for response_id, response in session.responses.items():
            if not response.is_json:
                continue
            try:
                decoded[response_id] = decode(response.data)
            except DecodeError as e:
                logger.warning(f"Skipping response {response_id}: {e}")
        return decoded

    def detect_correlations(self, session_id: str) -> List[Correlation]:
        """
        Compare every ordered pair of JSON responses in a session.

        Detected correlations are also appended to the session.

        Args:
            session_id: Session to analyse

        Returns:
            ID correlations and reference correlations, pair by pair

        Raises:
            APIError: If the session does not exist
        """
        session = self.get_session(session_id)
        decoded = self._decoded_responses(session)

        id_fields = {response_id: extract_id_fields(data) for response_id, data in decoded.items()}
        url_fields = {response_id: extract_url_fields(data) for response_id, data in decoded.items()}

        correlations = []
        for source_id in decoded:
            for target_id in decoded:
                if source_id == target_id:
                    continue
                target_request = session.request_for(target_id)
                target_request_id = session.response_requests.get(target_id, "")

                correlations.extend(self._id_correlations(
                    source_id, id_fields[source_id], id_fields[target_id], target_request_id))

                if target_request is not None and target_request.url:
                    correlations.extend(self._reference_correlations(
                        source_id, url_fields[source_id], target_request, target_request_id))

        for correlation in correlations:
            session.add_correlation(correlation)

        logger.info(f"Detected {len(correlations)} correlations in session {session_id}")
        return correlations

    def _id_correlations(self, source_id: str,
                         source_fields: Dict[str, str],
                         target_fields: Dict[str, str],
                         target_request_id: str) -> List[Correlation]:
        correlations = []
        for source_path, source_value in source_fields.items():
            if not source_value:
                continue
            for target_path, target_value in target_fields.items():
                if source_value == target_value:
                    correlations.append(Correlation(
                        type=CorrelationType.ID,
                        source_path=source_path,
                        target_path=target_path,
                        source_value=source_value,
                        confidence=85,
                        description=f"ID correlation: {source_path} matches {target_path} "
                                    f"with value {source_value}",
                        source_response_id=source_id,
                        target_request_id=target_request_id
                    ))
        return correlations

    def _reference_correlations(self, source_id: str,
                                source_urls: Dict[str, str],
                                target_request: APIRequest,
                                target_request_id: str) -> List[Correlation]:
        correlations = []
        for source_path, url in source_urls.items():
            if target_request.url in url:
                correlations.append(Correlation(
                    type=CorrelationType.REFERENCE,
                    source_path=source_path,
                    target_path="request.url",
                    source_value=url,
                    confidence=90,
                    description=f"Reference correlation: {source_path} references {target_request.url}",
                    source_response_id=source_id,
                    target_request_id=target_request_id
                ))
        return correlations

    def generate_correlated_request(self, session_id: str, base_url: str,
                                    method: str, correlation_index: int) -> APIRequest:
        """
        Build a follow-up request from a stored correlation.

        ID correlations fill an {id} placeholder, or append an id query
        parameter when the URL has none. Reference correlations request the
        referenced URL.

        Raises:
            APIError: If the session or the correlation does not exist
        """
        session = self.get_session(session_id)

        if correlation_index < 0 or correlation_index >= len(session.correlations):
            raise APIError(f"Correlation with ID {correlation_index} not found")
        correlation = session.correlations[correlation_index]

        request = APIRequest(url=base_url, method=method)

        if correlation.type == CorrelationType.ID:
            if '{id}' in base_url:
                request.url = base_url.replace('{id}', correlation.source_value)
            elif '?' in base_url:
                request.url = f"{base_url}&id={correlation.source_value}"
            else:
                request.url = f"{base_url}?id={correlation.source_value}"
        elif correlation.type == CorrelationType.REFERENCE:
            request.url = correlation.source_value

        return request

    def build_graph(self, correlations: List[Correlation]) -> nx.DiGraph:
        """
        Build a directed graph from responses to the requests they feed.

        Parallel correlations between the same pair share one edge whose
        'correlations' attribute lists them all.
        """
        graph = nx.DiGraph()

        for correlation in correlations:
            source = correlation.source_response_id or correlation.source_path
            target = correlation.target_request_id or correlation.target_path

            graph.add_node(source, node_type='response')
            graph.add_node(target, node_type='request')

            if graph.has_edge(source, target):
                edge = graph.edges[source, target]
                edge['correlations'].append(correlation.to_dict())
                edge['confidence'] = max(edge['confidence'], correlation.confidence)
            else:
                graph.add_edge(source, target,
                               correlations=[correlation.to_dict()],
                               confidence=correlation.confidence)

        logger.debug(f"Built correlation graph with {graph.number_of_nodes()} nodes "
                     f"and {graph.number_of_edges()} edges")
        return graph

    def graph_to_json(self, graph: nx.DiGraph) -> str:
        """
        Serialize a correlation graph to JSON.

        Returns:
            JSON string with nodes, edges and their counts
        """
        graph_data = {
            'nodes': [{'node_id': node, **attrs} for node, attrs in graph.nodes(data=True)],
            'edges': [{'source': source, 'target': target, **attrs}
                      for source, target, attrs in graph.edges(data=True)],
            'node_count': graph.number_of_nodes(),
            'edge_count': graph.number_of_edges()
        }

        return json.dumps(graph_data, indent=2)


def correlate_responses(first: APIResponse, second: APIResponse) -> List[Correlation]:
    """Detect correlations between two responses in a throwaway session."""
    detector = CorrelationDetector()
    session = detector.create_session("temp_session")

    for response in (first, second):
        request_id = session.add_request(response.request) if response.request else ""
        session.add_response(response, request_id)

    return detector.detect_correlations("temp_session")
