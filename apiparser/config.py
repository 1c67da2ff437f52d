import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


@dataclass
class InferenceConfig:
    """Configuration for schema inference."""
    detect_formats: bool = True
    detect_patterns: bool = True
    detect_ranges: bool = True
    sample_size: int = 10


@dataclass
class DiscoveryConfig:
    """Configuration for parameter and URL discovery."""
    max_depth: int = 10
    max_urls: int = 1000


@dataclass
class TokenConfig:
    """Confidence thresholds for token detection."""
    header_min_confidence: int = 50
    body_min_confidence: int = 70


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = 'WARNING'
    file: str = ''


@dataclass
class ToolkitConfig:
    """Complete toolkit configuration."""
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    tokens: TokenConfig = field(default_factory=TokenConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def default_config() -> ToolkitConfig:
    return ToolkitConfig()


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise KeyError(f"Configuration section '{name}' must be an object")
    return section


def parse_config(data: Dict[str, Any]) -> ToolkitConfig:
    """
    Build a configuration from a decoded JSON object.

    Missing sections and keys fall back to their defaults.

    Args:
        data: Decoded configuration document

    Returns:
        ToolkitConfig object

    Raises:
        KeyError: If a section is not an object
    """
    inference_data = _section(data, 'inference')
    inference = InferenceConfig(
        detect_formats=inference_data.get('detect_formats', True),
        detect_patterns=inference_data.get('detect_patterns', True),
        detect_ranges=inference_data.get('detect_ranges', True),
        sample_size=inference_data.get('sample_size', 10)
    )

    discovery_data = _section(data, 'discovery')
    discovery = DiscoveryConfig(
        max_depth=discovery_data.get('max_depth', 10),
        max_urls=discovery_data.get('max_urls', 1000)
    )

    tokens_data = _section(data, 'tokens')
    tokens = TokenConfig(
        header_min_confidence=tokens_data.get('header_min_confidence', 50),
        body_min_confidence=tokens_data.get('body_min_confidence', 70)
    )

    logging_data = _section(data, 'logging')
    logging_config = LoggingConfig(
        level=logging_data.get('level', 'WARNING'),
        file=logging_data.get('file', '')
    )

    return ToolkitConfig(
        inference=inference,
        discovery=discovery,
        tokens=tokens,
        logging=logging_config
    )


def load_config(config_path: str) -> ToolkitConfig:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to the configuration JSON file

    Returns:
        ToolkitConfig object with parsed configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        json.JSONDecodeError: If config file is invalid JSON
        KeyError: If a section is malformed
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    try:
        with open(config_file, 'r') as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise KeyError("Configuration root must be an object")

        config = parse_config(data)

        logger.info(f"Loaded configuration: sample_size={config.inference.sample_size}, "
                    f"max_depth={config.discovery.max_depth}")

        return config

    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in configuration file: {e}")
        raise
    except KeyError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise


def _is_int(value) -> bool:
    # bool is a subclass of int
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(config: ToolkitConfig) -> bool:
    """
    Validate configuration for common issues.

    Args:
        config: Configuration to validate

    Returns:
        True if configuration is valid

    Raises:
        ValueError: If configuration has validation errors
    """
    errors: List[str] = []

    for name in ('detect_formats', 'detect_patterns', 'detect_ranges'):
        if not isinstance(getattr(config.inference, name), bool):
            errors.append(f"inference.{name} must be a boolean")

    if not _is_int(config.inference.sample_size) or config.inference.sample_size <= 0:
        errors.append("inference.sample_size must be a positive integer")

    if not _is_int(config.discovery.max_depth) or config.discovery.max_depth < 0:
        errors.append("discovery.max_depth must be a non-negative integer")

    if not _is_int(config.discovery.max_urls) or config.discovery.max_urls <= 0:
        errors.append("discovery.max_urls must be a positive integer")

    for name in ('header_min_confidence', 'body_min_confidence'):
        value = getattr(config.tokens, name)
        if not _is_int(value) or not 0 <= value <= 100:
            errors.append(f"tokens.{name} must be between 0 and 100")

    if str(config.logging.level).upper() not in VALID_LOG_LEVELS:
        errors.append(f"Invalid logging.level '{config.logging.level}'")

    if errors:
        error_message = "Configuration validation failed:\n" + "\n".join(f"- {error}" for error in errors)
        logger.error(error_message)
        raise ValueError(error_message)

    return True
