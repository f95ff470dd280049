from __future__ import annotations

from contracts.errors import SchemaIntegrityError
from contracts.fields import SameField
from contracts.flat import SUBJECT_ID, FlatRow, FlatTable


def group_rows(table: FlatTable) -> dict[str, list[FlatRow]]:
    """
    Partition rows by subject id.

    Groups iterate in ascending subject-id string order; rows inside a group
    keep arrival order, which the voting tie-breaks depend on.
    """

    if table.row_count == 0:
        return {}
    if not table.has_column(SUBJECT_ID):
        raise SchemaIntegrityError(
            "SUBJECT_ID_COLUMN_MISSING",
            f"Flat table has rows but no {SUBJECT_ID!r} column",
            {"rows": table.row_count},
        )

    grouped: dict[str, list[FlatRow]] = {}
    for i, row in enumerate(table.rows()):
        cell = row[SUBJECT_ID]
        if not isinstance(cell, SameField):
            raise SchemaIntegrityError(
                "SUBJECT_ID_NOT_SAME",
                "Subject id cell is not a Same value",
                {"row_index": i, "column": SUBJECT_ID, "actual_shape": cell.shape.value},
            )
        grouped.setdefault(cell.value, []).append(row)

    return {subject_id: grouped[subject_id] for subject_id in sorted(grouped)}
