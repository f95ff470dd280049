from __future__ import annotations

import csv
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

from contracts.fields import FieldShape, NullField
from contracts.flat import SUBJECT_ID
from contracts.reconciled import ReconciledCell, ReconciledLength, ReconciledTable, RulerLength
from flatten.artifacts import DEFAULT_LIST_SEPARATOR, expand_header, expand_value

from .rules import scale_from_column

_LENGTH_SUFFIXES = ("x1", "y1", "x2", "y2", "pixel_length", "length", "units")
_RULER_SUFFIXES = ("x1", "y1", "x2", "y2", "pixel_length", "factor", "units")


def _fmt_float(v: float) -> str:
    # Shortest round-trip digits, never in exponent notation (1e-05 -> "0.00001").
    return format(Decimal(repr(v)), "f")


def _fmt_length(v: float) -> str:
    # Converted lengths are rounded to 2 decimals.
    return f"{v:.2f}"


def value_headers(column: str, shape: FieldShape) -> list[str]:
    if shape == FieldShape.LENGTH:
        suffixes = _RULER_SUFFIXES if scale_from_column(column) is not None else _LENGTH_SUFFIXES
        return [f"{column}_{s}" for s in suffixes]
    return expand_header(column, shape)


def reconciled_header(table: ReconciledTable) -> list[str]:
    header: list[str] = []
    for column, shape in table.columns.items():
        header.extend(value_headers(column, shape))
        if column != SUBJECT_ID:
            header.extend([f"{column}_flag", f"{column}_notes"])
    return header


def _expand_cell(column: str, shape: FieldShape, cell: ReconciledCell, *, list_separator: str) -> list[str]:
    value = cell.value
    if isinstance(value, NullField):
        return [""] * len(value_headers(column, shape))
    if isinstance(value, RulerLength):
        return [
            str(value.x1),
            str(value.y1),
            str(value.x2),
            str(value.y2),
            _fmt_float(value.pixel_length),
            _fmt_float(value.factor),
            value.units,
        ]
    if isinstance(value, ReconciledLength):
        return [
            str(value.x1),
            str(value.y1),
            str(value.x2),
            str(value.y2),
            _fmt_float(value.pixel_length),
            "" if value.length is None else _fmt_length(value.length),
            value.units,
        ]
    return expand_value(shape, value, list_separator=list_separator)


def reconciled_csv_rows(table: ReconciledTable, *, list_separator: str = DEFAULT_LIST_SEPARATOR) -> list[list[str]]:
    out: list[list[str]] = []
    for row in table.rows:
        cells: list[str] = []
        for column, shape in table.columns.items():
            cell = row.cells[column]
            cells.extend(_expand_cell(column, shape, cell, list_separator=list_separator))
            if column != SUBJECT_ID:
                cells.extend([cell.flag.value, cell.notes])
        out.append(cells)
    return out


def write_reconciled_csv(
    *, table: ReconciledTable, out_file: Path, list_separator: str = DEFAULT_LIST_SEPARATOR
) -> None:
    out_file.parent.mkdir(parents=True, exist_ok=True)
    with out_file.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(reconciled_header(table))
        writer.writerows(reconciled_csv_rows(table, list_separator=list_separator))


def serialize_reconciled_table(table: ReconciledTable) -> str:
    payload: dict[str, Any] = table.to_dict()
    return (
        json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"), indent=2)
        + "\n"
    )


def write_reconciled_json_artifact(*, table: ReconciledTable, out_file: Path) -> None:
    out_file.parent.mkdir(parents=True, exist_ok=True)
    out_file.write_text(serialize_reconciled_table(table), encoding="utf-8")
