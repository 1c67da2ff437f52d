"""
Tests for configuration loading and validation.
"""

import json

import pytest

from apiparser.config import (
    InferenceConfig,
    ToolkitConfig,
    default_config,
    load_config,
    parse_config,
    validate_config,
)


def test_defaults():
    config = default_config()
    assert config.inference.sample_size == 10
    assert config.inference.detect_formats is True
    assert config.discovery.max_depth == 10
    assert config.discovery.max_urls == 1000
    assert config.tokens.header_min_confidence == 50
    assert config.tokens.body_min_confidence == 70
    assert config.logging.level == "WARNING"
    assert validate_config(config) is True


def test_load_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "inference": {"sample_size": 3, "detect_patterns": False},
        "discovery": {"max_depth": 4},
        "logging": {"level": "DEBUG", "file": "/tmp/apiparser.log"},
    }))
    config = load_config(str(path))

    assert config.inference.sample_size == 3
    assert config.inference.detect_patterns is False
    assert config.inference.detect_formats is True
    assert config.discovery.max_depth == 4
    assert config.discovery.max_urls == 1000
    assert config.logging.level == "DEBUG"
    assert config.logging.file == "/tmp/apiparser.log"


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "absent.json"))


def test_load_config_invalid_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json")
    with pytest.raises(json.JSONDecodeError):
        load_config(str(path))


@pytest.mark.parametrize("document", [[1, 2], {"inference": 5}])
def test_load_config_malformed_sections(tmp_path, document):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(document))
    with pytest.raises(KeyError):
        load_config(str(path))


def test_parse_config_empty_document():
    assert parse_config({}) == ToolkitConfig()


def test_validate_config_collects_every_error():
    config = ToolkitConfig(inference=InferenceConfig(sample_size=0, detect_formats="yes"))
    config.discovery.max_urls = -1
    config.tokens.body_min_confidence = 150
    config.logging.level = "LOUD"

    with pytest.raises(ValueError) as excinfo:
        validate_config(config)

    message = str(excinfo.value)
    assert "inference.sample_size" in message
    assert "inference.detect_formats" in message
    assert "discovery.max_urls" in message
    assert "tokens.body_min_confidence" in message
    assert "logging.level" in message


@pytest.mark.parametrize("section, field", [
    ("inference", "sample_size"),
    ("discovery", "max_depth"),
    ("discovery", "max_urls"),
    ("tokens", "header_min_confidence"),
    ("tokens", "body_min_confidence"),
])
def test_validate_config_rejects_booleans_for_integers(section, field):
    """Test that true is not accepted where an integer is expected."""
    config = parse_config({section: {field: True}})

    with pytest.raises(ValueError) as excinfo:
        validate_config(config)

    assert f"{section}.{field}" in str(excinfo.value)
