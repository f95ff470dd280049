from __future__ import annotations

import json
from typing import Any

from contracts.errors import ParseError
from contracts.fields import (
    BoxField,
    FieldValue,
    LengthField,
    ListField,
    PointField,
    SelectField,
    TextField,
    round_half_away,
)

ParsedField = tuple[str, FieldValue]

_LIST_LABEL_KEYS = ("task_label", "select_label", "tool_label")


def _excerpt(node: Any, limit: int = 200) -> str:
    s = json.dumps(node, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return s if len(s) <= limit else s[: limit - 3] + "..."


def json_scalar_text(value: Any) -> str:
    """
    Text form of a JSON value: strings unquoted, everything else as compact JSON
    (5 -> "5", true -> "true", null -> "null").
    """
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def task_id_for(node: Any, inherited: str) -> str:
    if isinstance(node, dict) and "task" in node:
        return json_scalar_text(node["task"])
    return inherited


def column_key(task_id: str, label: str) -> str:
    return f"{task_id}: {label}"


def _answer_text(node: dict[str, Any]) -> str:
    value = node.get("value")
    return "" if value is None else json_scalar_text(value)


def _coordinate(node: dict[str, Any], key: str, *, task_id: str) -> float:
    raw = node.get(key)
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ParseError(
            "ANNOTATION_BAD_COORDINATE",
            f"Annotation coordinate {key!r} is missing or not a number",
            {"task_id": task_id, "key": key, "node": _excerpt(node)},
        )
    return float(raw)


def _list_label(node: dict[str, Any], *, task_id: str) -> str:
    for key in _LIST_LABEL_KEYS:
        if key in node:
            return json_scalar_text(node[key])
    raise ParseError(
        "ANNOTATION_LIST_WITHOUT_LABEL",
        "List annotation has no task/select/tool label to name its column",
        {"task_id": task_id, "node": _excerpt(node)},
    )


def parse_annotation(node: Any, task_id: str = "") -> list[ParsedField]:
    """
    Flatten one annotation node into (column_key, value) pairs.

    Dispatch order matters because the shapes overlap in their key-presence
    tests; the first match wins:
      1. `value` is an array of strings   -> List (sorted ascending)
      2. `value` is any other array       -> container of subtasks (recurse)
      3. `select_label`                   -> Select
      4. `task_label`                     -> Text
      5. `tool_label` + `width`           -> Box
      6. `tool_label` + `x1`              -> Length
      7. `tool_label` + `x`               -> Point
    Anything else raises ParseError.

    A node's own `task` replaces the inherited task id for itself and its
    descendants; siblings never see each other's task ids.
    """

    if not isinstance(node, dict):
        raise ParseError(
            "ANNOTATION_NOT_AN_OBJECT",
            "Annotation node must be a JSON object",
            {"task_id": task_id, "node": _excerpt(node)},
        )

    task_id = task_id_for(node, task_id)
    value = node.get("value")

    if isinstance(value, list):
        if value and isinstance(value[0], str):
            label = _list_label(node, task_id=task_id)
            return [(column_key(task_id, label), ListField.from_values([json_scalar_text(v) for v in value]))]

        if not value:
            if any(k in node for k in _LIST_LABEL_KEYS):
                # Respondent picked nothing from a multi-select.
                label = _list_label(node, task_id=task_id)
                return [(column_key(task_id, label), ListField(values=()))]
            return []

        out: list[ParsedField] = []
        for child in value:
            out.extend(parse_annotation(child, task_id))
        return out

    if "select_label" in node:
        label = json_scalar_text(node["select_label"])
        return [(column_key(task_id, label), SelectField(value=_answer_text(node)))]

    if "task_label" in node:
        label = json_scalar_text(node["task_label"])
        return [(column_key(task_id, label), TextField(value=_answer_text(node)))]

    if "tool_label" in node:
        label = json_scalar_text(node["tool_label"])
        key = column_key(task_id, label)

        if "width" in node:
            return [
                (
                    key,
                    BoxField.from_xywh(
                        _coordinate(node, "x", task_id=task_id),
                        _coordinate(node, "y", task_id=task_id),
                        _coordinate(node, "width", task_id=task_id),
                        _coordinate(node, "height", task_id=task_id),
                    ),
                )
            ]

        if "x1" in node:
            return [
                (
                    key,
                    LengthField(
                        x1=round_half_away(_coordinate(node, "x1", task_id=task_id)),
                        y1=round_half_away(_coordinate(node, "y1", task_id=task_id)),
                        x2=round_half_away(_coordinate(node, "x2", task_id=task_id)),
                        y2=round_half_away(_coordinate(node, "y2", task_id=task_id)),
                    ),
                )
            ]

        if "x" in node:
            return [
                (
                    key,
                    PointField(
                        x=round_half_away(_coordinate(node, "x", task_id=task_id)),
                        y=round_half_away(_coordinate(node, "y", task_id=task_id)),
                    ),
                )
            ]

    raise ParseError(
        "ANNOTATION_UNKNOWN_SHAPE",
        "Annotation node matches none of the known field shapes",
        {"task_id": task_id, "node": _excerpt(node)},
    )
