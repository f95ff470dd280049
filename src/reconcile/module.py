from __future__ import annotations

import dataclasses
import logging
from typing import Any

from contracts.errors import PipelineError
from contracts.flat import FlatTable
from contracts.reconciled import (
    ConfidenceFlag,
    ReconciledCell,
    ReconciledLength,
    ReconciledRow,
    ReconciledTable,
    RulerLength,
)

from .config import ReconcileConfig
from .grouping import group_rows
from .rules import reconcile_column

logger = logging.getLogger(__name__)

_RECONCILE_VERSION = "reconcile_v1"


def _append_note(notes: str, extra: str) -> str:
    return f"{notes}; {extra}" if notes else extra


def apply_ruler_scale(cells: dict[str, ReconciledCell]) -> dict[str, ReconciledCell]:
    """
    Convert a subject's plain lengths to real-world units using its ruler.

    Only done when the subject has exactly one usable ruler (flag Ok, non-zero
    factor); with several, each plain length notes the ambiguity instead.
    """

    rulers = [
        (column, cell.value)
        for column, cell in cells.items()
        if isinstance(cell.value, RulerLength) and cell.flag == ConfidenceFlag.OK and cell.value.factor > 0
    ]
    plain = [
        column
        for column, cell in cells.items()
        if isinstance(cell.value, ReconciledLength) and cell.flag == ConfidenceFlag.OK
    ]
    if not rulers or not plain:
        return cells

    out = dict(cells)
    if len(rulers) > 1:
        names = ", ".join(column for column, _ in rulers)
        for column in plain:
            cell = out[column]
            out[column] = dataclasses.replace(
                cell, notes=_append_note(cell.notes, f"not converted: {len(rulers)} scale bars ({names})")
            )
        return out

    ruler_column, ruler = rulers[0]
    for column in plain:
        cell = out[column]
        value = cell.value
        out[column] = dataclasses.replace(
            cell,
            value=dataclasses.replace(value, length=round(value.pixel_length * ruler.factor, 2), units=ruler.units),
            notes=_append_note(cell.notes, f"converted using {ruler_column}"),
        )
    return out


def reconcile_table(table: FlatTable, config: ReconcileConfig | None = None) -> ReconciledTable:
    """
    Reduce every subject's classifications to one consensus row.

    Read-only over `table`: the input is neither mutated nor frozen here.
    The result is a new, separate table with one row per subject in
    ascending subject-id order.
    """

    config = config or ReconcileConfig()
    config.validate()

    columns = table.columns
    groups = group_rows(table)

    rows: list[ReconciledRow] = []
    flags: dict[str, int] = {}
    for subject_id, group in groups.items():
        cells: dict[str, ReconciledCell] = {}
        for column, shape in columns.items():
            try:
                cells[column] = reconcile_column(column, shape, [r[column] for r in group], config)
            except PipelineError as e:
                e.detail.setdefault("subject_id", subject_id)
                raise

        if config.apply_ruler_scale:
            cells = apply_ruler_scale(cells)

        for cell in cells.values():
            flags[cell.flag.value] = flags.get(cell.flag.value, 0) + 1
        logger.debug("subject %s: reconciled %d classifications", subject_id, len(group))
        rows.append(ReconciledRow(subject_id=subject_id, cells=cells))

    meta: dict[str, Any] = {
        "stage": 2,
        "version": _RECONCILE_VERSION,
        "reconcile_config": config.to_dict(),
        "counts": {
            "classifications": table.row_count,
            "subjects": len(rows),
            "columns": len(columns),
        },
        "flags": dict(sorted(flags.items())),
    }

    logger.info(
        "reconciled %d classifications into %d subjects across %d columns",
        table.row_count,
        len(rows),
        len(columns),
    )

    return ReconciledTable(
        workflow_id=table.workflow_id,
        workflow_name=table.workflow_name,
        columns=columns,
        rows=rows,
        meta=meta,
    )
