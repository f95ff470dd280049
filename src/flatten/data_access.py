from __future__ import annotations

import csv
import logging
from pathlib import Path

from .classification import WORKFLOW_ID, WORKFLOW_NAME, ClassificationRecord

logger = logging.getLogger(__name__)


class DataAccessError(Exception):
    pass


def read_classifications_csv(csv_path: Path) -> list[dict[str, str]]:
    """
    Read a classifications export into raw string rows, in file order.
    """

    if not csv_path.is_file():
        raise DataAccessError(f"Classifications CSV not found: {csv_path}")

    # utf-8-sig: exports saved from spreadsheets often carry a BOM.
    with csv_path.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            raise DataAccessError(f"Classifications CSV has no header row: {csv_path}")
        rows = [dict(r) for r in reader]

    logger.debug("read %d raw classification rows from %s", len(rows), csv_path)
    return rows


def select_workflow(rows: list[dict[str, str]], workflow_id: str | None) -> tuple[str, str, list[int]]:
    """
    Decide which workflow to flatten and which rows belong to it.

    Returns (workflow_id, workflow_name, selected row indexes). The name is
    taken from the first selected row.
    """

    if workflow_id is None:
        ids = {r.get(WORKFLOW_ID) for r in rows if r.get(WORKFLOW_ID) not in (None, "")}
        if len(ids) != 1:
            raise DataAccessError(
                f"Expected exactly one workflow in the classifications file, found {len(ids)}; "
                "provide a workflow ID."
            )
        workflow_id = ids.pop()

    selected = [
        i for i, r in enumerate(rows) if r.get(WORKFLOW_ID) is None or r.get(WORKFLOW_ID) == workflow_id
    ]
    if not selected:
        raise DataAccessError(f"No classifications found for workflow {workflow_id!r}")

    workflow_name = rows[selected[0]].get(WORKFLOW_NAME) or ""
    return workflow_id, workflow_name, selected


def load_classification_records(
    csv_path: Path, *, workflow_id: str | None = None
) -> tuple[str, str, list[ClassificationRecord]]:
    rows = read_classifications_csv(csv_path)
    workflow_id, workflow_name, selected = select_workflow(rows, workflow_id)
    records = [ClassificationRecord.from_dict(rows[i], row_index=i) for i in selected]
    if len(records) != len(rows):
        logger.info("kept %d of %d rows for workflow %s", len(records), len(rows), workflow_id)
    return workflow_id, workflow_name, records
