"""Typed value models for token values, validated with pydantic.

Documents carry values in two shapes: CSS-like strings (``"#FF0000"``,
``"4px"``) and structured objects (``{"value": 4, "unit": "px"}``). Each
token type accepts either shape where it makes sense. `validate_token_value`
returns a list of human-readable problems, empty when the value is valid.
"""

from __future__ import annotations

import re
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
    model_validator,
)

from tokenbridge_core.formats import FUNC_COLOR_RE, HEX_COLOR_RE

DIMENSION_RE = re.compile(r"^-?\d+(\.\d+)?(px|rem|em|%|pt|vw|vh)$")
COLOR_KEYWORDS = {"transparent", "currentcolor"}

Number = Union[StrictInt, StrictFloat]


def _color_string(value: str) -> str:
    v = value.strip()
    if not (HEX_COLOR_RE.match(v) or FUNC_COLOR_RE.match(v) or v.lower() in COLOR_KEYWORDS):
        raise ValueError(f"not a hex or functional color: {value!r}")
    return value


def _dimension_string(value: str) -> str:
    if not DIMENSION_RE.match(value.strip()):
        raise ValueError(f"not a dimension with unit (px, rem, em, %, pt, vw, vh): {value!r}")
    return value


ColorString = Annotated[StrictStr, AfterValidator(_color_string)]
DimensionString = Annotated[StrictStr, AfterValidator(_dimension_string)]


class ColorValue(BaseModel):
    """Structured color: hex, r/g/b, h/s/l, or W3C colorSpace components."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    color_space: str | None = Field(default=None, alias="colorSpace")
    components: list[Number] | None = None
    alpha: float | None = Field(default=None, ge=0, le=1)
    hex: str | None = Field(default=None, pattern=r"^#([0-9A-Fa-f]{6}|[0-9A-Fa-f]{8})$")
    r: float | None = Field(default=None, ge=0, le=255)
    g: float | None = Field(default=None, ge=0, le=255)
    b: float | None = Field(default=None, ge=0, le=255)
    a: float | None = Field(default=None, ge=0, le=1)
    h: float | None = Field(default=None, ge=0, le=360)
    s: float | None = Field(default=None, ge=0, le=100)
    l: float | None = Field(default=None, ge=0, le=100)  # noqa: E741

    @model_validator(mode="after")
    def _has_a_channel_set(self) -> ColorValue:
        has_rgb = None not in (self.r, self.g, self.b)
        has_hsl = None not in (self.h, self.s, self.l)
        if not (self.hex or has_rgb or has_hsl or self.components):
            raise ValueError("color needs hex, r/g/b, h/s/l or components")
        return self


class DimensionValue(BaseModel):
    model_config = ConfigDict(extra="forbid")

    value: Number
    unit: Literal["px", "rem", "em", "%", "pt", "vw", "vh"]


class ShadowValue(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    offset_x: Number | str = Field(alias="offsetX")
    offset_y: Number | str = Field(alias="offsetY")
    blur: Number | str
    spread: Number | str | None = None
    color: ColorString | ColorValue
    inset: StrictBool | None = None


class TypographyValue(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    font_family: StrictStr | list[StrictStr] | None = Field(default=None, alias="fontFamily")
    font_size: Number | StrictStr | DimensionValue | None = Field(default=None, alias="fontSize")
    font_weight: Number | StrictStr | None = Field(default=None, alias="fontWeight")
    line_height: Number | StrictStr | DimensionValue | None = Field(default=None, alias="lineHeight")
    letter_spacing: Number | StrictStr | DimensionValue | None = Field(
        default=None, alias="letterSpacing"
    )


class CubicBezierValue(BaseModel):
    x1: float = Field(ge=0, le=1)
    y1: float
    x2: float = Field(ge=0, le=1)
    y2: float

    @model_validator(mode="before")
    @classmethod
    def _from_list(cls, data: Any) -> Any:
        if isinstance(data, (list, tuple)) and len(data) == 4:
            return dict(zip(("x1", "y1", "x2", "y2"), data))
        return data


_Dimension = Union[DimensionValue, DimensionString, Number]

_SCHEMAS: dict[str, TypeAdapter] = {
    "color": TypeAdapter(Union[ColorString, ColorValue]),
    "dimension": TypeAdapter(_Dimension),
    "spacing": TypeAdapter(_Dimension),
    "fontSize": TypeAdapter(_Dimension),
    "fontWeight": TypeAdapter(Union[Number, StrictStr]),
    "fontFamily": TypeAdapter(Union[StrictStr, list[StrictStr]]),
    "lineHeight": TypeAdapter(Union[DimensionValue, Number, StrictStr]),
    "letterSpacing": TypeAdapter(Union[DimensionValue, Number, StrictStr]),
    "shadow": TypeAdapter(Union[ShadowValue, list[ShadowValue]]),
    "typography": TypeAdapter(TypographyValue),
    "cubicBezier": TypeAdapter(CubicBezierValue),
    "duration": TypeAdapter(Union[Number, StrictStr]),
    "number": TypeAdapter(Number),
    "string": TypeAdapter(StrictStr),
    "boolean": TypeAdapter(StrictBool),
}


def validate_token_value(value: Any, type_: str) -> list[str]:
    """Problems with `value` as a value of token type `type_` (border/other accept anything)."""
    adapter = _SCHEMAS.get(type_)
    if adapter is None:
        return []
    try:
        adapter.validate_python(value)
    except ValidationError as e:
        return [_format_error(err) for err in e.errors()]
    return []


_FIELD_RE = re.compile(r"^[a-z][A-Za-z0-9_]*$")
_UNION_TAGS = {"str", "int", "float", "bool", "list", "dict"}


def _format_error(err: Any) -> str:
    # union members show up in `loc` as tags such as "DimensionValue" or "list[...]"
    parts = [
        str(p)
        for p in err.get("loc", ())
        if isinstance(p, int) or (_FIELD_RE.match(p) and p not in _UNION_TAGS)
    ]
    return f"{'.'.join(parts)}: {err['msg']}" if parts else err["msg"]
