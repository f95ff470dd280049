"""
Canonical, authoritative pipeline contracts.

These models are the schema boundary between the two stages:
- flatten: classifications export -> FlatTable (one row per classification)
- reconcile: FlatTable -> ReconciledTable (one row per subject)

Stage code should consume/produce these contract objects (not ad-hoc dicts).
"""

from .errors import ParseError, PipelineError, SchemaIntegrityError
from .fields import (
    NULL,
    BoxField,
    FieldShape,
    FieldValue,
    LengthField,
    ListField,
    NullField,
    PassthroughField,
    PointField,
    SameField,
    SelectField,
    TextField,
    field_from_dict,
    round_half_away,
)
from .flat import SUBJECT_ID, FlatRow, FlatTable
from .reconciled import (
    ConfidenceFlag,
    ReconciledCell,
    ReconciledLength,
    ReconciledRow,
    ReconciledTable,
    ReconciledValue,
    RulerLength,
)

__all__ = [
    "NULL",
    "SUBJECT_ID",
    "BoxField",
    "ConfidenceFlag",
    "FieldShape",
    "FieldValue",
    "FlatRow",
    "FlatTable",
    "LengthField",
    "ListField",
    "NullField",
    "ParseError",
    "PassthroughField",
    "PipelineError",
    "PointField",
    "ReconciledCell",
    "ReconciledLength",
    "ReconciledRow",
    "ReconciledTable",
    "ReconciledValue",
    "RulerLength",
    "SameField",
    "SchemaIntegrityError",
    "SelectField",
    "TextField",
    "field_from_dict",
    "round_half_away",
]
