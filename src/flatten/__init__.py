"""
Stage 1: Flattening.

Turns each classification's schema-free annotation tree into one flat row
(column key "<task_id>: <label>" -> typed field value) and accumulates the
rows into a FlatTable whose schema grows as new fields appear.

No consensus, no cross-row inference; one input row becomes one flat row.
"""

from .annotations import column_key, parse_annotation
from .classification import ClassificationRecord, flatten_classification, flatten_classifications
from .config import FlattenConfig
from .data_access import DataAccessError, load_classification_records

__all__ = [
    "ClassificationRecord",
    "DataAccessError",
    "FlattenConfig",
    "column_key",
    "flatten_classification",
    "flatten_classifications",
    "load_classification_records",
    "parse_annotation",
]
