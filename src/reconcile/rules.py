from __future__ import annotations

import re
from collections import Counter
from collections.abc import Hashable
from dataclasses import dataclass

from rapidfuzz import fuzz

from contracts.errors import SchemaIntegrityError
from contracts.fields import (
    NULL,
    BoxField,
    FieldShape,
    FieldValue,
    LengthField,
    ListField,
    PassthroughField,
    PointField,
    SameField,
    SelectField,
    TextField,
    round_half_away,
)
from contracts.reconciled import ConfidenceFlag, ReconciledCell, ReconciledLength, RulerLength

from .config import ReconcileConfig

# A decimal number followed by a metric unit, e.g. "scale bar 5 cm".
SCALE_RE = re.compile(r"(?P<scale>\d+(?:\.\d*)?|\.\d+)\s*(?P<units>mm|cm|dm|m)\b")


def column_label(column: str) -> str:
    """Label half of a "<task_id>: <label>" column key."""
    _, sep, label = column.partition(": ")
    return label if sep else column


def scale_from_column(column: str) -> tuple[float, str] | None:
    m = SCALE_RE.search(column_label(column))
    if m is None:
        return None
    return float(m.group("scale")), m.group("units")


def _records_note(count: int, noun: str) -> str:
    if count == 0:
        return f"There are no {noun} records"
    if count == 1:
        return f"There is 1 {noun} record"
    return f"There are {count} {noun} records"


def check_shapes(column: str, shape: FieldShape, values: list[FieldValue]) -> None:
    for i, v in enumerate(values):
        if v.shape != shape and v.shape != FieldShape.NULL:
            raise SchemaIntegrityError(
                "SCHEMA_SHAPE_MISMATCH",
                f"Column {column!r} is declared {shape.value} but holds a {v.shape.value} value",
                {"column": column, "expected_shape": shape.value, "actual_shape": v.shape.value, "position": i},
            )


def reconcile_boxes(values: list[FieldValue]) -> ReconciledCell:
    boxes = [v for v in values if isinstance(v, BoxField)]
    n = len(boxes)
    if n == 0:
        return ReconciledCell(flag=ConfidenceFlag.EMPTY, value=NULL, notes=_records_note(0, "box"))
    return ReconciledCell(
        flag=ConfidenceFlag.OK,
        value=BoxField(
            left=round_half_away(sum(b.left for b in boxes) / n),
            top=round_half_away(sum(b.top for b in boxes) / n),
            right=round_half_away(sum(b.right for b in boxes) / n),
            bottom=round_half_away(sum(b.bottom for b in boxes) / n),
        ),
        notes=_records_note(n, "box"),
    )


def reconcile_points(values: list[FieldValue]) -> ReconciledCell:
    points = [v for v in values if isinstance(v, PointField)]
    n = len(points)
    if n == 0:
        return ReconciledCell(flag=ConfidenceFlag.EMPTY, value=NULL, notes=_records_note(0, "point"))
    return ReconciledCell(
        flag=ConfidenceFlag.OK,
        value=PointField(
            x=round_half_away(sum(p.x for p in points) / n),
            y=round_half_away(sum(p.y for p in points) / n),
        ),
        notes=_records_note(n, "point"),
    )


def reconcile_lengths(column: str, values: list[FieldValue]) -> ReconciledCell:
    """
    Average the drawn lengths of one column.

    A column whose label declares a real-world distance ("5 cm") is a ruler:
    it yields the units-per-pixel factor used to convert the subject's other
    lengths. Plain lengths leave `length` empty for that later conversion.
    """

    lengths = [v for v in values if isinstance(v, LengthField)]
    n = len(lengths)
    scale = scale_from_column(column)
    if n == 0:
        return ReconciledCell(flag=ConfidenceFlag.EMPTY, value=NULL, notes=_records_note(0, "length"))

    pixel_length = sum(v.pixel_length() for v in lengths) / n
    coords = dict(
        x1=round_half_away(sum(v.x1 for v in lengths) / n),
        y1=round_half_away(sum(v.y1 for v in lengths) / n),
        x2=round_half_away(sum(v.x2 for v in lengths) / n),
        y2=round_half_away(sum(v.y2 for v in lengths) / n),
    )
    notes = _records_note(n, "length")

    if scale is None:
        return ReconciledCell(
            flag=ConfidenceFlag.OK,
            value=ReconciledLength(pixel_length=pixel_length, **coords),
            notes=notes,
        )

    declared, units = scale
    if pixel_length == 0.0:
        return ReconciledCell(
            flag=ConfidenceFlag.ERROR,
            value=RulerLength(pixel_length=0.0, factor=0.0, units=units, **coords),
            notes=f"{notes}; the scale bar has zero pixel length",
        )
    return ReconciledCell(
        flag=ConfidenceFlag.OK,
        value=RulerLength(pixel_length=pixel_length, factor=declared / pixel_length, units=units, **coords),
        notes=notes,
    )


def reconcile_same(values: list[FieldValue]) -> ReconciledCell:
    distinct = sorted({v.value for v in values if isinstance(v, SameField)})
    if not distinct:
        return ReconciledCell(flag=ConfidenceFlag.EMPTY, value=NULL, notes="There are no records")
    if len(distinct) > 1:
        return ReconciledCell(
            flag=ConfidenceFlag.ERROR,
            value=NULL,
            notes=f"Not all values are the same: {', '.join(distinct)}",
        )
    return ReconciledCell(flag=ConfidenceFlag.OK, value=SameField(value=distinct[0]))


def reconcile_passthrough(values: list[FieldValue]) -> ReconciledCell:
    present = [v.value for v in values if isinstance(v, PassthroughField)]
    if not present:
        return ReconciledCell(flag=ConfidenceFlag.EMPTY, value=NULL, notes="There are no records")
    distinct = len(set(present))
    notes = "" if distinct == 1 else f"{distinct} distinct values; kept the first"
    return ReconciledCell(flag=ConfidenceFlag.OK, value=PassthroughField(value=present[0]), notes=notes)


# ----------------------------
# Majority vote (Select / Text / List)
# ----------------------------

_DECISIVE = (ConfidenceFlag.UNANIMOUS, ConfidenceFlag.MAJORITY)


@dataclass(frozen=True, slots=True)
class _Vote:
    flag: ConfidenceFlag
    winner: Hashable | None
    count: int
    leaders: list[Hashable]


def _answer_key(value: FieldValue) -> Hashable | None:
    """Comparable form of one respondent's answer; None means blank."""
    if isinstance(value, (SelectField, TextField)):
        s = value.value.strip()
        return s if s else None
    if isinstance(value, ListField):
        return value.values if value.values else None
    return None


def _vote(answers: list[Hashable]) -> _Vote:
    """
    Tally non-blank answers in arrival order.

    Ties for the plurality go to the answer that arrived first.
    """

    if not answers:
        return _Vote(flag=ConfidenceFlag.ALL_BLANK, winner=None, count=0, leaders=[])
    if len(answers) == 1:
        return _Vote(flag=ConfidenceFlag.ONLY_ONE, winner=answers[0], count=1, leaders=[answers[0]])

    counts = Counter(answers)  # insertion order == first arrival
    top = max(counts.values())
    leaders = [k for k, c in counts.items() if c == top]

    if len(counts) == 1:
        flag = ConfidenceFlag.UNANIMOUS
    elif len(leaders) == 1:
        flag = ConfidenceFlag.MAJORITY
    else:
        flag = ConfidenceFlag.NO_MATCH
    return _Vote(flag=flag, winner=leaders[0], count=top, leaders=leaders)


def _display(key: Hashable) -> str:
    if isinstance(key, tuple):
        return ", ".join(key)
    return str(key)


def _fuzzy_buckets(answers: list[str], config: ReconcileConfig) -> list[str]:
    """
    Map every answer to the first-arrived answer it is similar to.

    Comparison is on lower-cased text; the first answer of each bucket is its
    representative.
    """

    scorer = getattr(fuzz, config.fuzzy_scorer)
    reps: list[str] = []
    mapped: list[str] = []
    for a in answers:
        norm = a.lower()
        for r in reps:
            if scorer(norm, r.lower()) >= config.fuzzy_threshold:
                mapped.append(r)
                break
        else:
            reps.append(a)
            mapped.append(a)
    return mapped


def _bucket_value(answers: list[str], mapped: list[str], rep: str) -> str:
    # Most frequent exact spelling inside the bucket; first arrival on ties.
    members = Counter(a for a, m in zip(answers, mapped) if m == rep)
    top = max(members.values())
    return next(a for a, c in members.items() if c == top)


def _vote_value(shape: FieldShape, winner: Hashable | None) -> FieldValue:
    if shape == FieldShape.LIST:
        return ListField(values=tuple(winner) if winner else ())
    text = "" if winner is None else str(winner)
    return SelectField(value=text) if shape == FieldShape.SELECT else TextField(value=text)


def reconcile_votes(shape: FieldShape, values: list[FieldValue], config: ReconcileConfig) -> ReconciledCell:
    total = len(values)
    answers = [k for k in (_answer_key(v) for v in values) if k is not None]
    vote = _vote(answers)

    if config.enable_fuzzy and shape == FieldShape.TEXT and len(answers) > 1:
        mapped = _fuzzy_buckets([str(a) for a in answers], config)
        fuzzy_vote = _vote(mapped)
        if fuzzy_vote.flag in _DECISIVE:
            value = _bucket_value([str(a) for a in answers], mapped, str(fuzzy_vote.winner))
            if vote.flag not in _DECISIVE or value != vote.winner:
                return ReconciledCell(
                    flag=ConfidenceFlag.FUZZY,
                    value=_vote_value(shape, value),
                    notes=(
                        f"{fuzzy_vote.count} of {total} records match after fuzzy matching "
                        f"({config.fuzzy_scorer} >= {config.fuzzy_threshold:g})"
                    ),
                )

    if vote.flag == ConfidenceFlag.ALL_BLANK:
        notes = "There are no records" if total == 0 else f"All {total} records are blank"
    elif vote.flag == ConfidenceFlag.ONLY_ONE:
        notes = f"Only 1 of {total} records has a value"
    elif vote.flag == ConfidenceFlag.NO_MATCH:
        notes = f"No value has a plurality ({vote.count} each); tied: " + " | ".join(
            _display(k) for k in vote.leaders
        )
    else:
        notes = f"{vote.count} of {total} records match"

    return ReconciledCell(flag=vote.flag, value=_vote_value(shape, vote.winner), notes=notes)


def reconcile_column(
    column: str, shape: FieldShape, values: list[FieldValue], config: ReconcileConfig
) -> ReconciledCell:
    """
    Consensus for one (subject, column) pair.

    `values` holds one entry per classification of the subject, NULL where
    that classification did not answer. Total over any group size, including
    zero.
    """

    check_shapes(column, shape, values)

    if shape == FieldShape.BOX:
        return reconcile_boxes(values)
    if shape == FieldShape.LENGTH:
        return reconcile_lengths(column, values)
    if shape == FieldShape.POINT:
        return reconcile_points(values)
    if shape == FieldShape.SAME:
        return reconcile_same(values)
    if shape == FieldShape.PASSTHROUGH:
        return reconcile_passthrough(values)
    if shape in (FieldShape.SELECT, FieldShape.TEXT, FieldShape.LIST):
        return reconcile_votes(shape, values, config)
    raise SchemaIntegrityError(
        "SCHEMA_UNRECONCILABLE_SHAPE",
        f"Column {column!r} has no reconciliation rule for shape {shape.value}",
        {"column": column, "shape": shape.value},
    )


