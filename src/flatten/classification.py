from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from contracts.errors import ParseError, PipelineError
from contracts.fields import PassthroughField, SameField
from contracts.flat import SUBJECT_ID, FlatRow, FlatTable

from .annotations import json_scalar_text, parse_annotation
from .config import FlattenConfig

logger = logging.getLogger(__name__)

SUBJECT_IDS = "subject_ids"
ANNOTATIONS = "annotations"
METADATA = "metadata"
SUBJECT_DATA = "subject_data"
WORKFLOW_ID = "workflow_id"
WORKFLOW_NAME = "workflow_name"

# Record-level administrative columns carried through unchanged, in output order.
ADMIN_FIELDS = ("classification_id", "user_name", "gold_standard", "expert", "workflow_version")

# Metadata keys carried through unchanged.
METADATA_FIELDS = ("started_at", "finished_at")

# Columns filled from the record itself; subject data may not overwrite them.
RESERVED_COLUMNS = frozenset((SUBJECT_ID, *ADMIN_FIELDS, *METADATA_FIELDS))


@dataclass(frozen=True, slots=True)
class ClassificationRecord:
    """
    One raw classification as exported by the project platform.

    `annotations`, `metadata` and `subject_data` hold either the raw JSON text
    of the export cell or an already-decoded value.
    """

    row_index: int
    subject_ids: str
    annotations: Any
    metadata: Any = ""
    subject_data: Any = ""
    admin: dict[str, str] = field(default_factory=dict)
    workflow_id: str | None = None
    workflow_name: str | None = None

    @staticmethod
    def from_dict(d: dict[str, Any], *, row_index: int) -> "ClassificationRecord":
        for required in (SUBJECT_IDS, ANNOTATIONS):
            if required not in d or d[required] is None:
                raise ParseError(
                    "CLASSIFICATION_MISSING_FIELD",
                    f"Classification is missing the {required!r} field",
                    {"row_index": row_index, "field": required},
                )
        return ClassificationRecord(
            row_index=row_index,
            subject_ids=str(d[SUBJECT_IDS]),
            annotations=d[ANNOTATIONS],
            metadata=d.get(METADATA) or "",
            subject_data=d.get(SUBJECT_DATA) or "",
            admin={k: str(d[k]) for k in ADMIN_FIELDS if d.get(k) is not None},
            workflow_id=(None if d.get(WORKFLOW_ID) is None else str(d[WORKFLOW_ID])),
            workflow_name=(None if d.get(WORKFLOW_NAME) is None else str(d[WORKFLOW_NAME])),
        )


def _decode(raw: Any, *, name: str, row_index: int, empty: Any) -> Any:
    if not isinstance(raw, str):
        return raw
    if raw.strip() == "":
        return empty
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(
            "CLASSIFICATION_INVALID_JSON",
            f"The {name!r} field is not valid JSON: {e.msg}",
            {"row_index": row_index, "field": name, "line": e.lineno, "column": e.colno},
        ) from e


def _expect(value: Any, kind: type, *, name: str, row_index: int) -> Any:
    if not isinstance(value, kind):
        raise ParseError(
            "CLASSIFICATION_BAD_SHAPE",
            f"The {name!r} field must decode to a JSON {'array' if kind is list else 'object'}",
            {"row_index": row_index, "field": name, "actual_type": type(value).__name__},
        )
    return value


def _insert(row: FlatRow, key: str, value: Any, *, row_index: int) -> None:
    if key in row:
        logger.debug("row %d: column %r set twice; keeping the later value", row_index, key)
    row[key] = value


def flatten_classification(record: ClassificationRecord, config: FlattenConfig | None = None) -> FlatRow:
    """
    Build the flat row for one classification.

    Column order within the row: subject_id, annotation fields in tree order,
    administrative fields, metadata timestamps, subject data. A key produced
    twice keeps the later value, except that subject data never replaces the
    subject id, administrative or metadata columns.
    """

    config = config or FlattenConfig()
    row_index = record.row_index

    annotations = _expect(
        _decode(record.annotations, name=ANNOTATIONS, row_index=row_index, empty=[]),
        list,
        name=ANNOTATIONS,
        row_index=row_index,
    )
    metadata = _expect(
        _decode(record.metadata, name=METADATA, row_index=row_index, empty={}),
        dict,
        name=METADATA,
        row_index=row_index,
    )
    subject_data = _expect(
        _decode(record.subject_data, name=SUBJECT_DATA, row_index=row_index, empty={}),
        dict,
        name=SUBJECT_DATA,
        row_index=row_index,
    )

    row: FlatRow = {SUBJECT_ID: SameField(value=record.subject_ids)}

    for task in annotations:
        try:
            pairs = parse_annotation(task, "")
        except PipelineError as e:
            e.detail.setdefault("row_index", row_index)
            raise
        for key, value in pairs:
            _insert(row, key, value, row_index=row_index)

    for name in ADMIN_FIELDS:
        if name in record.admin:
            _insert(row, name, PassthroughField(value=record.admin[name]), row_index=row_index)

    for name in METADATA_FIELDS:
        if name in metadata:
            _insert(row, name, PassthroughField(value=json_scalar_text(metadata[name])), row_index=row_index)

    for entry in subject_data.values():
        if not isinstance(entry, dict):
            continue
        for name, value in entry.items():
            if name in config.ignored_subject_data_keys:
                continue
            if name in RESERVED_COLUMNS:
                logger.debug("row %d: subject data key %r shadows a record column; skipped", row_index, name)
                continue
            text = "" if value is None else json_scalar_text(value)
            _insert(row, str(name), SameField(value=text), row_index=row_index)

    return row


def flatten_classifications(
    records: Iterable[ClassificationRecord],
    *,
    workflow_id: str,
    workflow_name: str,
    config: FlattenConfig | None = None,
) -> FlatTable:
    """
    Flatten every record, strictly in order, into one FlatTable.

    Rows must be added one at a time: a late row may introduce a column that
    pads all earlier rows. The returned table is frozen.
    """

    config = config or FlattenConfig()
    config.validate()

    table = FlatTable(workflow_id=workflow_id, workflow_name=workflow_name)
    for record in records:
        table.add_row(flatten_classification(record, config), row_index=record.row_index)

    table.freeze()
    logger.info(
        "flattened %d classifications into %d columns (workflow %s)",
        table.row_count,
        len(table.columns),
        workflow_id,
    )
    return table
