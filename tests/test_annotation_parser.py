from __future__ import annotations

import unittest

from contracts.errors import ParseError
from contracts.fields import BoxField, LengthField, ListField, PointField, SelectField, TextField
from flatten.annotations import column_key, parse_annotation


class TestAnnotationParser(unittest.TestCase):
    def test_box_inside_task_container_inherits_task_id(self) -> None:
        node = {
            "task": "T1",
            "value": [{"tool_label": "Specimen", "x": 10.5, "y": 20, "width": 30, "height": 40.4}],
        }
        self.assertEqual(
            parse_annotation(node),
            [("T1: Specimen", BoxField(left=11, top=20, right=41, bottom=60))],
        )

    def test_string_array_becomes_sorted_list(self) -> None:
        node = {"task": "T2", "task_label": "Colors", "value": ["red", "blue", "green"]}
        self.assertEqual(parse_annotation(node), [("T2: Colors", ListField(values=("blue", "green", "red")))])

    def test_select_label_wins_over_task_label(self) -> None:
        node = {"task": "T3", "select_label": "Country", "task_label": "Where?", "value": "USA"}
        self.assertEqual(parse_annotation(node), [("T3: Country", SelectField(value="USA"))])

    def test_text_answers_are_unquoted_and_null_is_blank(self) -> None:
        self.assertEqual(
            parse_annotation({"task": "T4", "task_label": "Notes", "value": None}),
            [("T4: Notes", TextField(value=""))],
        )
        self.assertEqual(
            parse_annotation({"task": 7, "task_label": "Count", "value": 12}),
            [("7: Count", TextField(value="12"))],
        )

    def test_length_and_point_round_half_away_from_zero(self) -> None:
        length = parse_annotation({"tool_label": "wing", "x1": 0, "y1": 0, "x2": 3, "y2": 4}, "T5")
        self.assertEqual(length, [("T5: wing", LengthField(x1=0, y1=0, x2=3, y2=4))])
        self.assertAlmostEqual(length[0][1].pixel_length(), 5.0)

        point = parse_annotation({"tool_label": "eye", "x": 2.5, "y": -2.5}, "T6")
        self.assertEqual(point, [("T6: eye", PointField(x=3, y=-3))])

    def test_siblings_do_not_share_task_ids(self) -> None:
        node = {
            "task": "T0",
            "value": [
                {"task": "T9", "task_label": "first", "value": "x"},
                {"task_label": "second", "value": "y"},
            ],
        }
        keys = [k for k, _ in parse_annotation(node)]
        self.assertEqual(keys, ["T9: first", "T0: second"])

    def test_column_keys_do_not_depend_on_sibling_order(self) -> None:
        first = {"task": "T9", "task_label": "a", "value": "x"}
        second = {"task_label": "b", "value": "y"}
        third = {"task": "T4", "value": [{"tool_label": "eye", "x": 1, "y": 2}]}

        forward = parse_annotation({"task": "T0", "value": [first, second, third]})
        backward = parse_annotation({"task": "T0", "value": [third, second, first]})

        self.assertEqual(sorted(k for k, _ in forward), ["T0: b", "T4: eye", "T9: a"])
        self.assertEqual(dict(forward), dict(backward))

    def test_list_sorting_is_idempotent(self) -> None:
        once = parse_annotation({"task": "T2", "task_label": "Colors", "value": ["red", "blue", "Green"]})
        values = list(once[0][1].values)
        self.assertEqual(values, ["Green", "blue", "red"])

        twice = parse_annotation({"task": "T2", "task_label": "Colors", "value": values})
        self.assertEqual(twice, once)

    def test_empty_value_array(self) -> None:
        self.assertEqual(
            parse_annotation({"task": "T2", "task_label": "Colors", "value": []}),
            [("T2: Colors", ListField(values=()))],
        )
        self.assertEqual(parse_annotation({"task": "T2", "value": []}), [])

    def test_unknown_shape_raises_parse_error(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            parse_annotation({"task": "T1", "foo": 1})
        self.assertEqual(ctx.exception.code, "ANNOTATION_UNKNOWN_SHAPE")
        self.assertEqual(ctx.exception.detail["task_id"], "T1")

        # A tool label without any coordinates is not a drawable shape either.
        with self.assertRaises(ParseError) as ctx:
            parse_annotation({"tool_label": "x"})
        self.assertEqual(ctx.exception.code, "ANNOTATION_UNKNOWN_SHAPE")

    def test_bad_inputs(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            parse_annotation("not an object")
        self.assertEqual(ctx.exception.code, "ANNOTATION_NOT_AN_OBJECT")

        with self.assertRaises(ParseError) as ctx:
            parse_annotation({"tool_label": "eye", "x": "left", "y": 1})
        self.assertEqual(ctx.exception.code, "ANNOTATION_BAD_COORDINATE")

        with self.assertRaises(ParseError) as ctx:
            parse_annotation({"task": "T1", "value": ["a", "b"]})
        self.assertEqual(ctx.exception.code, "ANNOTATION_LIST_WITHOUT_LABEL")

    def test_column_key_format(self) -> None:
        self.assertEqual(column_key("", "Label"), ": Label")
        self.assertEqual(column_key("T1", "Label"), "T1: Label")


if __name__ == "__main__":
    unittest.main()
