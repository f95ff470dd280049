from __future__ import annotations

from typing import Any, Iterator, Mapping

from .errors import SchemaIntegrityError
from .fields import NULL, FieldShape, FieldValue, field_from_dict

SUBJECT_ID = "subject_id"

# One classification: column key -> typed value.
FlatRow = dict[str, FieldValue]


class FlatTable:
    """
    Column-oriented table with a schema discovered from the rows themselves.

    Invariants after every `add_row`:
    - column order is the order of first appearance (never resorted)
    - every column holds exactly `row_count` cells (absent values are NULL)
    - a column's shape is the shape of the first value seen for it; a later
      value of a different shape raises SchemaIntegrityError

    Columns are independent lists, so a column that first appears late is
    padded once with NULLs instead of widening every stored row.
    """

    def __init__(self, workflow_id: str, workflow_name: str) -> None:
        self.workflow_id = workflow_id
        self.workflow_name = workflow_name
        self._shapes: dict[str, FieldShape] = {}
        self._cells: dict[str, list[FieldValue]] = {}
        self._row_count = 0
        self._frozen = False

    def __len__(self) -> int:
        return self._row_count

    @property
    def row_count(self) -> int:
        return self._row_count

    @property
    def columns(self) -> dict[str, FieldShape]:
        return dict(self._shapes)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def column_names(self) -> list[str]:
        return list(self._shapes)

    def shape_of(self, column: str) -> FieldShape:
        return self._shapes[column]

    def has_column(self, column: str) -> bool:
        return column in self._shapes

    def freeze(self) -> None:
        self._frozen = True

    def add_row(self, row: Mapping[str, FieldValue], *, row_index: int | None = None) -> None:
        if self._frozen:
            raise RuntimeError("FlatTable is frozen; no rows may be added after ingestion")

        # Validate everything before mutating so a bad row leaves the table untouched.
        for column, value in row.items():
            declared = self._shapes.get(column)
            if declared is None or value.shape == FieldShape.NULL:
                continue
            if value.shape != declared:
                raise SchemaIntegrityError(
                    "SCHEMA_SHAPE_MISMATCH",
                    f"Column {column!r} was first seen as {declared.value} but this row has {value.shape.value}",
                    {
                        "column": column,
                        "expected_shape": declared.value,
                        "actual_shape": value.shape.value,
                        "row_index": self._row_count if row_index is None else row_index,
                    },
                )

        for column, value in row.items():
            if column in self._shapes or value.shape == FieldShape.NULL:
                continue
            self._shapes[column] = value.shape
            self._cells[column] = [NULL] * self._row_count

        for column, cells in self._cells.items():
            cells.append(row.get(column, NULL))

        self._row_count += 1

    def cell(self, row_index: int, column: str) -> FieldValue:
        return self._cells[column][row_index]

    def column(self, column: str) -> list[FieldValue]:
        return list(self._cells[column])

    def row(self, row_index: int) -> FlatRow:
        if not (0 <= row_index < self._row_count):
            raise IndexError(f"row index out of range: {row_index}")
        return {name: cells[row_index] for name, cells in self._cells.items()}

    def rows(self) -> Iterator[FlatRow]:
        for i in range(self._row_count):
            yield self.row(i)

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "workflow_name": self.workflow_name,
            "columns": [{"name": name, "shape": shape.value} for name, shape in self._shapes.items()],
            "rows": [[cell.to_dict() for cell in row.values()] for row in self.rows()],
        }

    @staticmethod
    def from_dict(d: dict[str, Any]) -> "FlatTable":
        table = FlatTable(workflow_id=str(d.get("workflow_id", "")), workflow_name=str(d.get("workflow_name", "")))
        names = [str(c["name"]) for c in (d.get("columns") or [])]
        shapes = [FieldShape(str(c["shape"])) for c in (d.get("columns") or [])]
        # Register the declared schema up front so all-NULL columns survive the round trip.
        table._shapes = dict(zip(names, shapes))
        table._cells = {name: [] for name in names}
        for i, raw_row in enumerate(d.get("rows") or []):
            if len(raw_row) != len(names):
                raise SchemaIntegrityError(
                    "SCHEMA_ROW_WIDTH_MISMATCH",
                    "Serialized row width does not match the column count",
                    {"row_index": i, "expected": len(names), "actual": len(raw_row)},
                )
            table.add_row({name: field_from_dict(x) for name, x in zip(names, raw_row)}, row_index=i)
        return table
