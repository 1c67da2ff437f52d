"""
Detection of API keys and authentication tokens in headers and JSON bodies
"""

import logging
import re
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .jsonpath import child_path, index_path
from .values import Value, decode

logger = logging.getLogger(__name__)


class TokenType(Enum):
    API_KEY = "api_key"
    JWT = "jwt"
    OAUTH = "oauth"
    BEARER = "bearer"
    BASIC = "basic"
    UNKNOWN = "unknown"


class TokenLocation(Enum):
    HEADER = "header"
    BODY = "body"
    URL = "url"


@dataclass
class Token:
    """A detected API key or token."""
    value: str
    type: TokenType
    location: TokenLocation
    confidence: int
    path: str = ""  # evaluable path, body tokens only
    name: str = ""  # header or key name

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['type'] = self.type.value
        data['location'] = self.location.value
        return data


TOKEN_HEADERS = [
    "Authorization",
    "X-API-Key",
    "API-Key",
    "X-Auth-Token",
    "Auth-Token",
    "Token",
    "Key",
    "Access-Token",
    "X-Access-Token",
]

TOKEN_KEYWORDS = [
    "token", "key", "api", "auth", "secret", "access", "jwt", "bearer", "oauth",
    "password", "credential", "apikey", "api_key", "auth_token", "access_token",
]

# Keyed body values need less evidence than loose strings
KEY_MIN_CONFIDENCE = 50

Headers = Mapping[str, Union[str, Sequence[str]]]


def header_values(headers: Optional[Headers], name: str) -> List[str]:
    """All values of a header, matching the name case-insensitively."""
    values: List[str] = []
    for header, value in (headers or {}).items():
        if header.lower() != name.lower():
            continue
        if isinstance(value, str):
            values.append(value)
        else:
            values.extend(value)
    return values


def is_likely_token_key(key: str) -> bool:
    key = key.lower()
    return any(keyword in key for keyword in TOKEN_KEYWORDS)


class TokenDetector:
    """Classifies string values that look like credentials."""

    def __init__(self, header_min_confidence: int = 50, body_min_confidence: int = 70):
        """
        Initialize the detector.

        Args:
            header_min_confidence: Confidence a header value must exceed to be reported
            body_min_confidence: Confidence a loose body string must exceed to be reported
        """
        self.header_min_confidence = header_min_confidence
        self.body_min_confidence = body_min_confidence

        self.patterns = {
            TokenType.JWT: re.compile(r'^eyJ[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]{10,}\.[a-zA-Z0-9_-]{10,}$'),
            TokenType.BEARER: re.compile(r'^Bearer\s+[a-zA-Z0-9_.-]+$'),
            TokenType.BASIC: re.compile(r'^Basic\s+[a-zA-Z0-9+/=]+$'),
        }
        self._key_charset = re.compile(r'^[A-Za-z0-9_-]+$')
        self._loose_charset = re.compile(r'^[A-Za-z0-9_.-]+$')

    @classmethod
    def from_config(cls, config) -> 'TokenDetector':
        """Build a detector from a TokenConfig."""
        return cls(
            header_min_confidence=config.header_min_confidence,
            body_min_confidence=config.body_min_confidence
        )

    def detect_token_type(self, value: str) -> Tuple[TokenType, int]:
        """
        Guess the kind of token a string holds.

        Args:
            value: Candidate string

        Returns:
            Tuple of (token type, confidence from 0 to 100)
        """
        for token_type in (TokenType.JWT, TokenType.BEARER, TokenType.BASIC):
            if self.patterns[token_type].match(value):
                return token_type, 90

        if 20 <= len(value) <= 128 and self._key_charset.match(value):
            has_digits = any(char.isdigit() for char in value)
            has_letters = re.search(r'[a-zA-Z]', value) is not None
            if has_digits and has_letters:
                if len(value) >= 32 or 'api' in value.lower():
                    return TokenType.API_KEY, 70
                return TokenType.OAUTH, 65

        if len(value) >= 16 and self._loose_charset.match(value):
            return TokenType.UNKNOWN, 40

        return TokenType.UNKNOWN, 0

    def detect_in_headers(self, headers: Optional[Headers]) -> List[Token]:
        """
        Detect tokens in the well-known credential headers.

        Args:
            headers: Header names mapped to a value or a list of values

        Returns:
            Tokens of a known type above the header threshold
        """
        tokens = []

        for name in TOKEN_HEADERS:
            for value in header_values(headers, name):
                token_type, confidence = self.detect_token_type(value)
                if token_type != TokenType.UNKNOWN and confidence > self.header_min_confidence:
                    tokens.append(Token(
                        value=value,
                        type=token_type,
                        location=TokenLocation.HEADER,
                        name=name,
                        confidence=confidence
                    ))

        return tokens

    def detect_in_json(self, data: Value) -> List[Token]:
        """
        Detect tokens in a decoded JSON document.

        String values under token-like keys are reported with their path and
        are not inspected further. Strings reached only through array indexes
        from the root must clear the stricter body threshold.

        Args:
            data: Decoded JSON document

        Returns:
            Detected body tokens
        """
        tokens: List[Token] = []
        self._walk(data, '$', False, tokens)
        logger.debug(f"Found {len(tokens)} tokens in JSON body")
        return tokens

    def _walk(self, data: Value, path: str, keyed: bool, tokens: List[Token]):
        if isinstance(data, dict):
            for key, value in data.items():
                new_path = child_path(path, key)

                if is_likely_token_key(key) and isinstance(value, str):
                    token_type, confidence = self.detect_token_type(value)
                    if token_type != TokenType.UNKNOWN and confidence > KEY_MIN_CONFIDENCE:
                        tokens.append(Token(
                            value=value,
                            type=token_type,
                            location=TokenLocation.BODY,
                            path=new_path,
                            name=key,
                            confidence=confidence
                        ))
                        continue

                self._walk(value, new_path, True, tokens)

        elif isinstance(data, list):
            for i, element in enumerate(data):
                self._walk(element, index_path(path, i), keyed, tokens)

        elif isinstance(data, str) and path != '$' and not keyed:
            token_type, confidence = self.detect_token_type(data)
            if token_type != TokenType.UNKNOWN and confidence > self.body_min_confidence:
                tokens.append(Token(
                    value=data,
                    type=token_type,
                    location=TokenLocation.BODY,
                    path=path,
                    confidence=confidence
                ))

    def detect_tokens(self,
                      data: Union[bytes, str, None],
                      headers: Optional[Headers] = None,
                      content_type: str = "application/json") -> List[Token]:
        """
        Detect tokens in a response's headers and, for JSON, its body.

        Args:
            data: Raw response body
            headers: Response headers
            content_type: Response content type

        Returns:
            Header tokens followed by body tokens

        Raises:
            DecodeError: If a JSON body cannot be decoded
        """
        tokens = self.detect_in_headers(headers)

        if data and 'application/json' in (content_type or '').lower():
            tokens.extend(self.detect_in_json(decode(data)))

        logger.info(f"Detected {len(tokens)} tokens")
        return tokens


def detect_tokens(data: Union[bytes, str, None],
                  headers: Optional[Headers] = None,
                  content_type: str = "application/json") -> List[Token]:
    return TokenDetector().detect_tokens(data, headers, content_type)
