from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Union


class FieldShape(str, Enum):
    BOX = "box"
    LENGTH = "length"
    LIST = "list"
    PASSTHROUGH = "passthrough"
    POINT = "point"
    SAME = "same"
    SELECT = "select"
    TEXT = "text"
    NULL = "null"


def round_half_away(v: float) -> int:
    """
    Round to the nearest integer pixel, halves away from zero.

    Python's built-in round() is banker's rounding; pixel coordinates are
    rounded the way annotation tools report them (2.5 -> 3, -2.5 -> -3).
    """
    return int(math.copysign(math.floor(abs(v) + 0.5), v))


@dataclass(frozen=True, slots=True)
class BoxField:
    shape: ClassVar[FieldShape] = FieldShape.BOX

    left: int
    top: int
    right: int
    bottom: int

    @staticmethod
    def from_xywh(x: float, y: float, width: float, height: float) -> "BoxField":
        return BoxField(
            left=round_half_away(x),
            top=round_half_away(y),
            right=round_half_away(x + width),
            bottom=round_half_away(y + height),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "shape": self.shape.value,
            "left": self.left,
            "top": self.top,
            "right": self.right,
            "bottom": self.bottom,
        }


@dataclass(frozen=True, slots=True)
class LengthField:
    shape: ClassVar[FieldShape] = FieldShape.LENGTH

    x1: int
    y1: int
    x2: int
    y2: int

    def pixel_length(self) -> float:
        return math.hypot(self.x1 - self.x2, self.y1 - self.y2)

    def to_dict(self) -> dict[str, Any]:
        return {"shape": self.shape.value, "x1": self.x1, "y1": self.y1, "x2": self.x2, "y2": self.y2}


@dataclass(frozen=True, slots=True)
class PointField:
    shape: ClassVar[FieldShape] = FieldShape.POINT

    x: int
    y: int

    def to_dict(self) -> dict[str, Any]:
        return {"shape": self.shape.value, "x": self.x, "y": self.y}


@dataclass(frozen=True, slots=True)
class ListField:
    shape: ClassVar[FieldShape] = FieldShape.LIST

    values: tuple[str, ...]  # always sorted ascending

    @staticmethod
    def from_values(values: list[str]) -> "ListField":
        return ListField(values=tuple(sorted(str(v) for v in values)))

    def joined(self, sep: str = ", ") -> str:
        return sep.join(self.values)

    def to_dict(self) -> dict[str, Any]:
        return {"shape": self.shape.value, "values": list(self.values)}


@dataclass(frozen=True, slots=True)
class SelectField:
    shape: ClassVar[FieldShape] = FieldShape.SELECT

    value: str  # "" when unanswered

    def to_dict(self) -> dict[str, Any]:
        return {"shape": self.shape.value, "value": self.value}


@dataclass(frozen=True, slots=True)
class TextField:
    shape: ClassVar[FieldShape] = FieldShape.TEXT

    value: str  # "" when unanswered

    def to_dict(self) -> dict[str, Any]:
        return {"shape": self.shape.value, "value": self.value}


@dataclass(frozen=True, slots=True)
class SameField:
    # Expected to be identical across every classification of one subject.
    shape: ClassVar[FieldShape] = FieldShape.SAME

    value: str

    def to_dict(self) -> dict[str, Any]:
        return {"shape": self.shape.value, "value": self.value}


@dataclass(frozen=True, slots=True)
class PassthroughField:
    # Administrative value carried through; never voted on.
    shape: ClassVar[FieldShape] = FieldShape.PASSTHROUGH

    value: str

    def to_dict(self) -> dict[str, Any]:
        return {"shape": self.shape.value, "value": self.value}


@dataclass(frozen=True, slots=True)
class NullField:
    shape: ClassVar[FieldShape] = FieldShape.NULL

    def to_dict(self) -> dict[str, Any]:
        return {"shape": self.shape.value}


NULL = NullField()

FieldValue = Union[
    BoxField,
    LengthField,
    PointField,
    ListField,
    SelectField,
    TextField,
    SameField,
    PassthroughField,
    NullField,
]

# Shapes carrying a single string under `value`.
_SCALAR_FIELDS: dict[FieldShape, type] = {
    FieldShape.SELECT: SelectField,
    FieldShape.TEXT: TextField,
    FieldShape.SAME: SameField,
    FieldShape.PASSTHROUGH: PassthroughField,
}


def field_from_dict(d: dict[str, Any]) -> FieldValue:
    shape = FieldShape(str(d["shape"]))
    if shape == FieldShape.BOX:
        return BoxField(left=int(d["left"]), top=int(d["top"]), right=int(d["right"]), bottom=int(d["bottom"]))
    if shape == FieldShape.LENGTH:
        return LengthField(x1=int(d["x1"]), y1=int(d["y1"]), x2=int(d["x2"]), y2=int(d["y2"]))
    if shape == FieldShape.POINT:
        return PointField(x=int(d["x"]), y=int(d["y"]))
    if shape == FieldShape.LIST:
        return ListField.from_values([str(v) for v in (d.get("values") or [])])
    if shape == FieldShape.NULL:
        return NULL
    return _SCALAR_FIELDS[shape](value=str(d.get("value", "")))
