"""
apiparser - Query, profile and correlate JSON API responses.

This package provides a JSONPath-like query engine with filter predicates, schema inference
and merging with JSON Schema export, and discovery of tokens, parameters and cross-response
correlations in API traffic.
"""

__version__ = "1.0.0"
__author__ = "wellatleastitried"

from .errors import APIError, DecodeError, ParseError, EvalError
from .config import ToolkitConfig, default_config, load_config, validate_config
from .jsonpath import JSONPathParser, parse_path, evaluate, query
from .filters import Predicate, parse_filter, apply_filter
from .schema import (
    Schema,
    SchemaField,
    SchemaType,
    SchemaFormat,
    SchemaDetector,
    generalize,
    merge,
    merge_schemas,
    to_json_schema,
)
from .tokens import Token, TokenDetector
from .discovery import Parameter, ParameterDiscovery
from .correlation import APIRequest, APIResponse, APISession, Correlation, CorrelationDetector
from .response import ResponseFormat, ResponseParser

__all__ = [
    'APIError',
    'DecodeError',
    'ParseError',
    'EvalError',
    'ToolkitConfig',
    'default_config',
    'load_config',
    'validate_config',
    'JSONPathParser',
    'parse_path',
    'evaluate',
    'query',
    'Predicate',
    'parse_filter',
    'apply_filter',
    'Schema',
    'SchemaField',
    'SchemaType',
    'SchemaFormat',
    'SchemaDetector',
    'generalize',
    'merge',
    'merge_schemas',
    'to_json_schema',
    'Token',
    'TokenDetector',
    'Parameter',
    'ParameterDiscovery',
    'APIRequest',
    'APIResponse',
    'APISession',
    'Correlation',
    'CorrelationDetector',
    'ResponseFormat',
    'ResponseParser'
]
