"""
Stage 2: Reconciliation.

Groups flat rows by subject and reduces each (subject, column) pair to one
consensus value with a confidence flag and a human-readable note:
- geometry (box, point, length) is averaged; rulers yield a units-per-pixel factor
- subject-level "same" fields must agree exactly, otherwise the cell is an error
- select, text and list answers are majority-voted, text optionally with fuzzy merging

Read-only pass over a FlatTable; the input is never mutated or frozen.
"""

from .config import ReconcileConfig
from .data_access import load_flat_table_json
from .grouping import group_rows
from .module import apply_ruler_scale, reconcile_table
from .rules import reconcile_column, scale_from_column

__all__ = [
    "ReconcileConfig",
    "apply_ruler_scale",
    "group_rows",
    "load_flat_table_json",
    "reconcile_column",
    "reconcile_table",
    "scale_from_column",
]
