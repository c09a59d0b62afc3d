import pytest

from tokenbridge_core.errors import ParseError
from tokenbridge_core.formats import count_leaf_tokens, infer_type_from_value, iter_leaves
from tokenbridge_core.style_dictionary import StyleDictionaryFormatStrategy
from tokenbridge_core.w3c import W3CFormatStrategy

from tests.framework import sd_document, w3c_primitives


def test_leaf_walk_skips_metadata_and_keeps_document_order():
    doc = {
        "$schema": {"$value": "ignored"},
        "b": {"$value": 1},
        "a": {"nested": {"$value": 2}, "$description": "group"},
        "scalar": "not a token",
    }
    assert [p for p, _ in iter_leaves(doc)] == [["b"], ["a", "nested"]]
    assert count_leaf_tokens(doc) == 2


def test_leaf_nodes_are_not_descended_into():
    doc = {"shadow": {"$value": {"x": {"$value": 1}}}}
    assert count_leaf_tokens(doc) == 1


def test_w3c_group_named_value_is_descended_into():
    doc = {
        "opacity": {"value": {"$value": 0.5, "$type": "number"}},
        "color": {"a": {"$value": "#fff"}},
    }
    parsed = W3CFormatStrategy().parse(doc)
    assert [p.path for p in parsed] == [["opacity", "value"], ["color", "a"]]
    assert parsed[0].value == 0.5
    assert count_leaf_tokens(doc) == 2


def test_group_named_value_is_not_scored_as_style_dictionary():
    doc = {"opacity": {"value": {"$value": 0.5}}}
    assert W3CFormatStrategy().detect(doc) == 1.0
    assert StyleDictionaryFormatStrategy().detect(doc) == 0.0
    assert StyleDictionaryFormatStrategy().parse(doc) == []


def test_style_dictionary_object_values_are_leaves():
    doc = {"shadow": {"card": {"value": {"x": 0, "blur": 4}}}}
    (token,) = StyleDictionaryFormatStrategy().parse(doc)
    assert token.path == ["shadow", "card"]
    assert token.value == {"x": 0, "blur": 4}


def test_w3c_parse_emits_records_in_document_order():
    parsed = W3CFormatStrategy().parse(w3c_primitives())
    assert [p.path for p in parsed] == [
        ["color", "primary"],
        ["color", "secondary"],
        ["spacing", "sm"],
        ["spacing", "md"],
    ]
    assert parsed[0].type == "color"
    assert parsed[0].value == "#FF0000"
    assert parsed[2].type == "dimension"


def test_w3c_description_and_extensions():
    doc = {
        "radius": {
            "$value": "4px",
            "$description": "corner radius",
            "$extensions": {"com.example": {"deprecated": True}},
        }
    }
    (token,) = W3CFormatStrategy().parse(doc)
    assert token.description == "corner radius"
    assert token.extensions == {"w3c": {"com.example": {"deprecated": True}}}


@pytest.mark.parametrize(
    "path,value,expected",
    [
        (["font", "size", "body"], "16px", "fontSize"),
        (["color", "bg"], "#fff", "color"),
        (["letter-spacing", "wide"], "0.1em", "letterSpacing"),
        (["spacing", "lg"], "24px", "spacing"),
        (["line-height", "tight"], 1.2, "lineHeight"),
        (["misc", "flag"], True, "boolean"),
        (["misc", "ratio"], 1.5, "number"),
        (["misc", "label"], "hello", "string"),
    ],
)
def test_w3c_type_inference_without_explicit_type(path, value, expected):
    node = {"$value": value}
    assert W3CFormatStrategy().extract_type(node, path) == expected


def test_w3c_explicit_type_wins():
    node = {"$value": "#fff", "$type": "string"}
    assert W3CFormatStrategy().extract_type(node, ["color", "bg"]) == "string"


def test_style_dictionary_parse_and_metadata():
    parsed = StyleDictionaryFormatStrategy().parse(sd_document())
    assert [".".join(p.path) for p in parsed] == [
        "color.base.red",
        "color.base.blue",
        "size.font.small",
    ]
    red, blue, small = parsed
    assert red.type == "color"
    assert red.description == "pure red"
    assert blue.extensions == {"styleDictionary": {"attributes": {"category": "color"}}}
    assert small.type == "fontSize"


def test_style_dictionary_ignores_w3c_leaves():
    doc = {"a": {"value": 1}, "b": {"$value": 2, "value": 3}}
    parsed = StyleDictionaryFormatStrategy().parse(doc)
    assert [p.path for p in parsed] == [["a"]]


def test_parse_rejects_non_mapping():
    with pytest.raises(ParseError):
        W3CFormatStrategy().parse(["not", "a", "mapping"])


@pytest.mark.parametrize(
    "value,target",
    [
        ("{color.primary}", "color.primary"),
        ("  { color.primary }  ", "color.primary"),
        ("{a}", "a"),
    ],
)
def test_reference_extraction(value, target):
    strategy = W3CFormatStrategy()
    assert strategy.is_reference(value)
    assert strategy.extract_reference(value) == target


@pytest.mark.parametrize("value", ["#fff", "{color.primary", "color.primary}", "x {a}", "{}", "{a}{b}", 12, None])
def test_non_references(value):
    strategy = W3CFormatStrategy()
    assert not strategy.is_reference(value)
    assert strategy.extract_reference(value) is None


@pytest.mark.parametrize(
    "value,expected",
    [
        ("#abc", "color"),
        ("rgba(0, 0, 0, 0.5)", "color"),
        ("12px", "dimension"),
        ("1.5rem", "dimension"),
        ("200ms", "duration"),
        ({"r": 1, "g": 0, "b": 0}, "color"),
        ({"offsetX": 0, "blur": 4}, "shadow"),
        ({"fontFamily": "Inter", "fontSize": "12px"}, "typography"),
        ([0.4, 0, 0.2, 1], "cubicBezier"),
        (False, "boolean"),
        (3, "number"),
    ],
)
def test_infer_type_from_value(value, expected):
    assert infer_type_from_value(value) == expected
