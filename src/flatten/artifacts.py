from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

from contracts.fields import (
    BoxField,
    FieldShape,
    FieldValue,
    LengthField,
    ListField,
    NullField,
    PointField,
)
from contracts.flat import SUBJECT_ID, FlatTable

# Suffixes for shapes that expand to several CSV columns; other shapes use one bare column.
SUBCOLUMNS: dict[FieldShape, tuple[str, ...]] = {
    FieldShape.BOX: ("left", "top", "right", "bottom"),
    FieldShape.LENGTH: ("x1", "y1", "x2", "y2"),
    FieldShape.POINT: ("x", "y"),
}

DEFAULT_LIST_SEPARATOR = ", "


def expand_header(column: str, shape: FieldShape) -> list[str]:
    suffixes = SUBCOLUMNS.get(shape)
    if suffixes is None:
        return [column]
    return [f"{column}_{s}" for s in suffixes]


def expand_value(shape: FieldShape, value: FieldValue, *, list_separator: str = DEFAULT_LIST_SEPARATOR) -> list[str]:
    if isinstance(value, NullField):
        return [""] * len(SUBCOLUMNS.get(shape, ("",)))
    if isinstance(value, BoxField):
        return [str(value.left), str(value.top), str(value.right), str(value.bottom)]
    if isinstance(value, LengthField):
        return [str(value.x1), str(value.y1), str(value.x2), str(value.y2)]
    if isinstance(value, PointField):
        return [str(value.x), str(value.y)]
    if isinstance(value, ListField):
        return [value.joined(list_separator)]
    return [value.value]


def flat_header(table: FlatTable) -> list[str]:
    header: list[str] = []
    for column, shape in table.columns.items():
        header.extend(expand_header(column, shape))
    return header


def subject_ordered_indexes(table: FlatTable) -> list[int]:
    """Row indexes sorted by subject id; arrival order is kept within a subject."""
    if not table.has_column(SUBJECT_ID):
        return list(range(table.row_count))
    subjects = table.column(SUBJECT_ID)
    return sorted(range(table.row_count), key=lambda i: getattr(subjects[i], "value", ""))


def flat_csv_rows(
    table: FlatTable,
    *,
    list_separator: str = DEFAULT_LIST_SEPARATOR,
    sort_by_subject: bool = True,
) -> list[list[str]]:
    columns = table.columns
    order = subject_ordered_indexes(table) if sort_by_subject else list(range(table.row_count))
    out: list[list[str]] = []
    for i in order:
        cells: list[str] = []
        for column, shape in columns.items():
            cells.extend(expand_value(shape, table.cell(i, column), list_separator=list_separator))
        out.append(cells)
    return out


def write_flat_csv(
    *,
    table: FlatTable,
    out_file: Path,
    list_separator: str = DEFAULT_LIST_SEPARATOR,
    sort_by_subject: bool = True,
) -> None:
    out_file.parent.mkdir(parents=True, exist_ok=True)
    with out_file.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(flat_header(table))
        writer.writerows(flat_csv_rows(table, list_separator=list_separator, sort_by_subject=sort_by_subject))


def serialize_flat_table(table: FlatTable) -> str:
    payload: dict[str, Any] = table.to_dict()
    return (
        json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"), indent=2)
        + "\n"
    )


def write_flat_json_artifact(*, table: FlatTable, out_file: Path) -> None:
    out_file.parent.mkdir(parents=True, exist_ok=True)
    out_file.write_text(serialize_flat_table(table), encoding="utf-8")
