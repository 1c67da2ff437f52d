import json

import pytest


@pytest.fixture
def store():
    """A small bookstore document used across query tests."""
    return {
        "store": {
            "book": [
                {"category": "reference", "author": "Nigel Rees", "title": "Sayings of the Century",
                 "price": 8.95, "tags": ["classic", "quotes"]},
                {"category": "fiction", "author": "Evelyn Waugh", "title": "Sword of Honour",
                 "price": 12.99},
                {"category": "fiction", "author": "Herman Melville", "title": "Moby Dick",
                 "isbn": "0-553-21311-3", "price": 8.99},
                {"category": "fiction", "author": "J. R. R. Tolkien", "title": "The Lord of the Rings",
                 "isbn": "0-395-19395-8", "price": 22.99},
            ],
            "bicycle": {"color": "red", "price": 19.95},
            "a.b": "dotted",
        },
        "expensive": 10.0,
    }


@pytest.fixture
def write_json(tmp_path):
    """Write a value to a JSON file and return its path."""
    def _write(name, value):
        path = tmp_path / name
        path.write_text(json.dumps(value))
        return str(path)
    return _write
