from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Union

from .fields import (
    BoxField,
    FieldShape,
    ListField,
    NullField,
    PassthroughField,
    PointField,
    SameField,
    SelectField,
    TextField,
)


class ConfidenceFlag(str, Enum):
    """
    How a reconciled value was reached.

    EMPTY / ALL_BLANK / ONLY_ONE describe degenerate groups; they are not
    errors and always come with a well-formed cell.
    """

    ERROR = "Error"
    OK = "Ok"
    EMPTY = "Empty"
    ALL_BLANK = "AllBlank"
    UNANIMOUS = "Unanimous"
    MAJORITY = "Majority"
    ONLY_ONE = "OnlyOne"
    NO_MATCH = "NoMatch"
    FUZZY = "Fuzzy"


@dataclass(frozen=True, slots=True)
class ReconciledLength:
    kind: ClassVar[str] = "length"

    x1: int
    y1: int
    x2: int
    y2: int
    pixel_length: float
    length: float | None = None  # filled from a ruler column of the same subject
    units: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "x1": self.x1,
            "y1": self.y1,
            "x2": self.x2,
            "y2": self.y2,
            "pixel_length": self.pixel_length,
            "length": self.length,
            "units": self.units,
        }


@dataclass(frozen=True, slots=True)
class RulerLength:
    kind: ClassVar[str] = "ruler_length"

    x1: int
    y1: int
    x2: int
    y2: int
    pixel_length: float
    factor: float  # real-world units per pixel
    units: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "x1": self.x1,
            "y1": self.y1,
            "x2": self.x2,
            "y2": self.y2,
            "pixel_length": self.pixel_length,
            "factor": self.factor,
            "units": self.units,
        }


ReconciledValue = Union[
    BoxField,
    ReconciledLength,
    RulerLength,
    PointField,
    ListField,
    SelectField,
    TextField,
    SameField,
    PassthroughField,
    NullField,
]


def _value_to_dict(value: ReconciledValue) -> dict[str, Any]:
    out = value.to_dict()
    if "kind" not in out:
        out["kind"] = out.pop("shape")
    return out


@dataclass(frozen=True, slots=True)
class ReconciledCell:
    flag: ConfidenceFlag
    value: ReconciledValue
    notes: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"flag": self.flag.value, "value": _value_to_dict(self.value), "notes": self.notes}


@dataclass(frozen=True, slots=True)
class ReconciledRow:
    subject_id: str
    cells: dict[str, ReconciledCell]  # column key -> cell, in flat column order

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "cells": [{"column": name, **cell.to_dict()} for name, cell in self.cells.items()],
        }


@dataclass(frozen=True, slots=True)
class ReconciledTable:
    workflow_id: str
    workflow_name: str
    columns: dict[str, FieldShape]  # same order as the flat table
    rows: list[ReconciledRow]  # ascending subject id
    meta: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "workflow_name": self.workflow_name,
            "columns": [{"name": name, "shape": shape.value} for name, shape in self.columns.items()],
            "rows": [r.to_dict() for r in self.rows],
            "meta": dict(self.meta),
        }
