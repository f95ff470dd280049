from __future__ import annotations

import json
import logging
from pathlib import Path

from contracts.flat import FlatTable
from flatten.data_access import DataAccessError

logger = logging.getLogger(__name__)


def load_flat_table_json(json_path: Path) -> FlatTable:
    """
    Read a stage-1 flat JSON artifact back into a frozen FlatTable.

    Schema violations inside a well-formed payload (ragged rows, mixed
    shapes in a column) surface as SchemaIntegrityError from FlatTable.
    """

    if not json_path.is_file():
        raise DataAccessError(f"Flat table JSON not found: {json_path}")

    try:
        raw = json.loads(json_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise DataAccessError(f"Flat table JSON is not valid JSON: {json_path}: {e.msg}") from e
    if not isinstance(raw, dict):
        raise DataAccessError(f"Flat table JSON must hold an object: {json_path}")

    try:
        table = FlatTable.from_dict(raw)
    except (KeyError, TypeError, ValueError) as e:
        raise DataAccessError(f"Flat table JSON is malformed: {json_path}: {e!r}") from e

    table.freeze()
    logger.debug("loaded flat table with %d rows and %d columns from %s", table.row_count, len(table.columns), json_path)
    return table
