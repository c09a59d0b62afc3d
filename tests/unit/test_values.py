import pytest

from tokenbridge_core.values import ColorValue, validate_token_value


@pytest.mark.parametrize(
    "value,type_",
    [
        ("#FF0000", "color"),
        ("rgba(0, 0, 0, 0.5)", "color"),
        ("transparent", "color"),
        ({"hex": "#1e40af"}, "color"),
        ({"r": 30, "g": 64, "b": 175, "a": 1}, "color"),
        ({"colorSpace": "srgb", "components": [1, 0, 0]}, "color"),
        ("4px", "dimension"),
        ("1.5rem", "spacing"),
        ({"value": 16, "unit": "px"}, "fontSize"),
        (8, "dimension"),
        ({"offsetX": 0, "offsetY": "2px", "blur": 4, "color": "#00000033"}, "shadow"),
        ([{"offsetX": 0, "offsetY": 1, "blur": 2, "color": {"hex": "#000000"}}], "shadow"),
        ({"fontFamily": ["Inter", "sans-serif"], "fontSize": "16px", "fontWeight": 600}, "typography"),
        ([0.4, 0, 0.2, 1], "cubicBezier"),
        ("200ms", "duration"),
        (1.5, "number"),
        (True, "boolean"),
        ({"anything": "goes"}, "border"),
        (["anything"], "other"),
        ("x", "unknown-type"),
    ],
)
def test_valid_values_have_no_problems(value, type_):
    assert validate_token_value(value, type_) == []


@pytest.mark.parametrize(
    "value,type_",
    [
        ("not-a-color", "color"),
        ({"hex": "invalid"}, "color"),
        ({"r": 300, "g": 64, "b": 175}, "color"),
        ("4 parsecs", "dimension"),
        ({"value": 16, "unit": "furlong"}, "dimension"),
        ("4", "number"),
        ("true", "boolean"),
        ([2, 0, 0.2, 1], "cubicBezier"),
        ({"fontFamily": 12}, "typography"),
    ],
)
def test_invalid_values_are_reported(value, type_):
    assert validate_token_value(value, type_)


def test_color_needs_at_least_one_channel():
    problems = validate_token_value({"alpha": 0.5}, "color")
    assert any("color needs" in p for p in problems)

    with pytest.raises(ValueError):
        ColorValue()


def test_problems_name_the_offending_field():
    problems = validate_token_value({"offsetX": 0, "offsetY": 1, "blur": 2}, "shadow")
    assert any(p.startswith("color:") for p in problems)
