"""
Tests for path expression parsing and evaluation.
"""

import pytest

from apiparser.errors import (
    IndexOutOfBoundsError,
    MalformedBracketError,
    NestedBracketsError,
    NotAnArrayError,
    NotAnObjectError,
    PropertyNotFoundError,
    UnmatchedBracketError,
    UnsupportedFilterError,
    WildcardUnsupportedError,
)
from apiparser.jsonpath import (
    Index,
    JSONPathParser,
    Key,
    QuotedKey,
    Wildcard,
    child_path,
    evaluate,
    format_path,
    index_path,
    parse_path,
    query,
)


@pytest.mark.parametrize("expression", ["", "$"])
def test_root_expressions_parse_to_empty_path(expression):
    assert parse_path(expression) == ()


def test_identity_path_returns_document(store):
    assert evaluate(store, parse_path("$")) == store


def test_parse_dot_and_bracket_segments():
    assert parse_path("$.a.b[0]['c'][\"d\"][*]") == (
        Key("a"), Key("b"), Index(0), QuotedKey("c"), QuotedKey("d"), Wildcard()
    )


def test_missing_root_symbol_is_added():
    assert parse_path("a.b") == parse_path("$.a.b")


def test_dot_inside_brackets_is_part_of_the_key():
    assert parse_path("$['a.b']") == (QuotedKey("a.b"),)


def test_bare_bracket_content_is_a_key():
    assert parse_path("$[name]") == (Key("name"),)


def test_signed_index_parses_as_index():
    assert parse_path("$[-1]") == (Index(-1),)
    assert parse_path("$[+2]") == (Index(2),)


def test_index_requires_ascii_digits():
    """Test that only plain ASCII digits form an index."""
    assert parse_path("$[\u0661]") == (Key("\u0661"),)
    assert parse_path("$[1\n]") == (Key("1\n"),)


@pytest.mark.parametrize("expression, error", [
    ("$.a[[0]]", NestedBracketsError),
    ("$.a]", UnmatchedBracketError),
    ("$.a[0", MalformedBracketError),
])
def test_parse_errors(expression, error):
    with pytest.raises(error):
        parse_path(expression)


def test_nested_lookup():
    """Test the basic nested object and array lookup."""
    assert query({"a": {"b": [1, 2, 3]}}, "$.a.b[1]") == 2


def test_quoted_key_with_dot(store):
    assert query(store, "$.store['a.b']") == "dotted"


def test_index_out_of_bounds(store):
    with pytest.raises(IndexOutOfBoundsError) as excinfo:
        query(store, "$.store.book[10]")
    assert excinfo.value.index == 10


@pytest.mark.parametrize("index", [-1, 4])
def test_negative_and_length_indices_are_rejected(store, index):
    with pytest.raises(IndexOutOfBoundsError):
        query(store, f"$.store.book[{index}]")


def test_property_not_found_carries_name(store):
    with pytest.raises(PropertyNotFoundError) as excinfo:
        query(store, "$.store.magazine")
    assert excinfo.value.name == "magazine"


def test_key_on_non_object(store):
    with pytest.raises(NotAnObjectError):
        query(store, "$.expensive.value")


def test_index_on_non_array(store):
    with pytest.raises(NotAnArrayError):
        query(store, "$.store[0]")


def test_wildcard_on_array_returns_array(store):
    assert query(store, "$.store.book[*]") == store["store"]["book"]


def test_wildcard_on_object_returns_values_in_order(store):
    assert query(store, "$.store.bicycle[*]") == ["red", 19.95]


def test_wildcard_short_circuits_remaining_segments(store):
    assert query(store, "$.store.book[*].title") == store["store"]["book"]


def test_wildcard_on_scalar(store):
    with pytest.raises(WildcardUnsupportedError):
        query(store, "$.expensive[*]")


def test_results_are_copies(store):
    """Test that mutating a result never changes the source document."""
    result = query(store, "$.store.bicycle")
    result["color"] = "blue"
    assert store["store"]["bicycle"]["color"] == "red"


def test_evaluate_to_string(store):
    parser = JSONPathParser(store)
    assert parser.evaluate_to_string("$.expensive") == "10"
    assert parser.evaluate_to_string("$.store.book[0].price") == "8.95"
    assert parser.evaluate_to_string("$.store.book[0].tags") == '["classic","quotes"]'


def test_evaluate_to_array_wraps_scalars(store):
    parser = JSONPathParser(store)
    assert parser.evaluate_to_array("$.store.bicycle.color") == ["red"]
    assert parser.evaluate_to_array("$.store.book[0].tags") == ["classic", "quotes"]


def test_evaluate_to_map(store):
    parser = JSONPathParser(store)
    assert parser.evaluate_to_map("$.store.bicycle") == {"color": "red", "price": 19.95}
    with pytest.raises(NotAnObjectError):
        parser.evaluate_to_map("$.store.book")


def test_from_json():
    parser = JSONPathParser.from_json(b'{"items": [{"id": 7}]}')
    assert parser.evaluate("$.items[0].id") == 7


def test_filter_numeric_comparison():
    parser = JSONPathParser([{"p": 1}, {"p": 2}, {"p": 3}])
    assert parser.filter("$", "@.p > 1") == [{"p": 2}, {"p": 3}]


def test_filter_on_store(store):
    parser = JSONPathParser(store)
    cheap = parser.filter("$.store.book", "@.price < 10")
    assert [book["title"] for book in cheap] == ["Sayings of the Century", "Moby Dick"]

    with_isbn = parser.filter("$.store.book", "@.isbn contains '0-395'")
    assert [book["author"] for book in with_isbn] == ["J. R. R. Tolkien"]


def test_filter_on_non_array_base_is_empty(store):
    assert JSONPathParser(store).filter("$.store.bicycle", "@.color == 'red'") == []


def test_filter_rejects_unsupported_expression(store):
    with pytest.raises(UnsupportedFilterError):
        JSONPathParser(store).filter("$.store.book", "price is cheap")


def test_format_path_round_trips():
    path = (Key("a"), QuotedKey("b.c"), Index(3), Key("x y"), Wildcard())
    assert format_path(path) == "$.a['b.c'][3].x y[*]"
    assert parse_path(format_path(path)) == path


def test_child_and_index_paths_are_evaluable(store):
    path = index_path(child_path(child_path("$", "store"), "book"), 2)
    assert path == "$.store.book[2]"
    assert query(store, child_path(path, "title")) == "Moby Dick"
    assert child_path("$.store", "a.b") == "$.store['a.b']"
    assert query(store, child_path("$.store", "a.b")) == "dotted"
