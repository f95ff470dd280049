from __future__ import annotations

import json
import unittest

from contracts.errors import ParseError
from contracts.fields import NULL, FieldShape, PassthroughField, SameField, SelectField, TextField
from flatten.classification import ClassificationRecord, flatten_classification, flatten_classifications
from flatten.config import FlattenConfig


def _record(row_index: int, subject: str, annotations: list, **extra) -> ClassificationRecord:
    d = {"subject_ids": subject, "annotations": json.dumps(annotations)}
    d.update(extra)
    return ClassificationRecord.from_dict(d, row_index=row_index)


class TestFlattenClassification(unittest.TestCase):
    def test_row_holds_annotations_admin_metadata_and_subject_data_in_order(self) -> None:
        record = ClassificationRecord.from_dict(
            {
                "subject_ids": "101",
                "annotations": json.dumps([{"task": "T0", "select_label": "Country", "value": "USA"}]),
                "metadata": json.dumps(
                    {"started_at": "2020-01-01T00:00:00Z", "finished_at": "2020-01-01T00:05:00Z", "user_agent": "x"}
                ),
                "subject_data": json.dumps(
                    {"101": {"retired": {"id": 5}, "Filename": "a.jpg", "count": 3, "missing": None}}
                ),
                "classification_id": "9001",
                "user_name": "alice",
                "workflow_version": "1.2",
            },
            row_index=0,
        )
        row = flatten_classification(record)

        self.assertEqual(
            list(row),
            [
                "subject_id",
                "T0: Country",
                "classification_id",
                "user_name",
                "workflow_version",
                "started_at",
                "finished_at",
                "Filename",
                "count",
                "missing",
            ],
        )
        self.assertEqual(row["subject_id"], SameField(value="101"))
        self.assertEqual(row["T0: Country"], SelectField(value="USA"))
        self.assertEqual(row["user_name"], PassthroughField(value="alice"))
        # JSON strings lose their quotes; numbers are stringified.
        self.assertEqual(row["started_at"], PassthroughField(value="2020-01-01T00:00:00Z"))
        self.assertEqual(row["count"], SameField(value="3"))
        self.assertEqual(row["missing"], SameField(value=""))
        self.assertNotIn("retired", row)

    def test_ignored_subject_data_keys_are_configurable(self) -> None:
        record = _record(0, "1", [], subject_data=json.dumps({"1": {"retired": None, "Filename": "a.jpg"}}))
        row = flatten_classification(record, FlattenConfig(ignored_subject_data_keys=("Filename",)))
        self.assertIn("retired", row)
        self.assertNotIn("Filename", row)

    def test_subject_data_cannot_replace_record_columns(self) -> None:
        record = _record(
            0,
            "101",
            [],
            user_name="alice",
            metadata=json.dumps({"started_at": "2020-01-01T00:00:00Z"}),
            subject_data=json.dumps(
                {"101": {"subject_id": "X", "user_name": "bob", "started_at": "never", "Filename": "a.jpg"}}
            ),
        )
        row = flatten_classification(record)

        self.assertEqual(row["subject_id"], SameField(value="101"))
        self.assertEqual(row["user_name"], PassthroughField(value="alice"))
        self.assertEqual(row["started_at"], PassthroughField(value="2020-01-01T00:00:00Z"))
        self.assertEqual(row["Filename"], SameField(value="a.jpg"))

    def test_repeated_key_keeps_later_value(self) -> None:
        record = _record(
            0,
            "1",
            [
                {"task": "T0", "task_label": "Name", "value": "first"},
                {"task": "T0", "task_label": "Name", "value": "second"},
            ],
        )
        self.assertEqual(flatten_classification(record)["T0: Name"], TextField(value="second"))

    def test_invalid_json_names_the_row(self) -> None:
        record = ClassificationRecord.from_dict({"subject_ids": "1", "annotations": "[{"}, row_index=4)
        with self.assertRaises(ParseError) as ctx:
            flatten_classification(record)
        self.assertEqual(ctx.exception.code, "CLASSIFICATION_INVALID_JSON")
        self.assertEqual(ctx.exception.detail["row_index"], 4)
        self.assertEqual(ctx.exception.detail["field"], "annotations")

    def test_wrong_json_type_is_rejected(self) -> None:
        record = ClassificationRecord.from_dict({"subject_ids": "1", "annotations": '{"a": 1}'}, row_index=2)
        with self.assertRaises(ParseError) as ctx:
            flatten_classification(record)
        self.assertEqual(ctx.exception.code, "CLASSIFICATION_BAD_SHAPE")

    def test_unknown_annotation_shape_carries_row_index(self) -> None:
        record = _record(7, "1", [{"task": "T0", "mystery": True}])
        with self.assertRaises(ParseError) as ctx:
            flatten_classification(record)
        self.assertEqual(ctx.exception.code, "ANNOTATION_UNKNOWN_SHAPE")
        self.assertEqual(ctx.exception.detail["row_index"], 7)

    def test_missing_required_field(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            ClassificationRecord.from_dict({"subject_ids": "1"}, row_index=3)
        self.assertEqual(ctx.exception.code, "CLASSIFICATION_MISSING_FIELD")

    def test_blank_json_cells_are_empty_containers(self) -> None:
        record = ClassificationRecord.from_dict(
            {"subject_ids": "1", "annotations": "", "metadata": "", "subject_data": " "}, row_index=0
        )
        self.assertEqual(flatten_classification(record), {"subject_id": SameField(value="1")})

    def test_flatten_classifications_pads_late_columns_and_freezes(self) -> None:
        records = [
            _record(0, "1", [{"task": "T0", "task_label": "Name", "value": "a"}]),
            _record(1, "1", [{"task": "T1", "select_label": "Color", "value": "red"}]),
        ]
        table = flatten_classifications(records, workflow_id="42", workflow_name="Herbarium")

        self.assertTrue(table.frozen)
        self.assertEqual(table.row_count, 2)
        self.assertEqual(table.column_names(), ["subject_id", "T0: Name", "T1: Color"])
        self.assertEqual(table.shape_of("T1: Color"), FieldShape.SELECT)
        self.assertEqual(table.cell(0, "T1: Color"), NULL)
        self.assertEqual(table.cell(1, "T0: Name"), NULL)


if __name__ == "__main__":
    unittest.main()
