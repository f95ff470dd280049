from __future__ import annotations

import csv
import json
import shutil
import unittest
from pathlib import Path

from contracts.fields import SameField, SelectField
from contracts.flat import FlatTable
from flatten.artifacts import write_flat_json_artifact
from flatten.data_access import DataAccessError, load_classification_records, select_workflow
from reconcile.data_access import load_flat_table_json


def _write_csv(path: Path, rows: list[dict[str, str]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8-sig", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0]))
        writer.writeheader()
        writer.writerows(rows)


class TestWorkflowSelection(unittest.TestCase):
    def test_single_workflow_is_picked_implicitly(self) -> None:
        rows = [
            {"workflow_id": "5", "workflow_name": "Labels"},
            {"workflow_id": "5", "workflow_name": "Labels (renamed)"},
        ]
        self.assertEqual(select_workflow(rows, None), ("5", "Labels", [0, 1]))

    def test_multiple_workflows_need_an_id(self) -> None:
        rows = [
            {"workflow_id": "5", "workflow_name": "Labels"},
            {"workflow_id": "6", "workflow_name": "Measurements"},
            {"workflow_id": "6", "workflow_name": "Measurements"},
        ]
        with self.assertRaises(DataAccessError):
            select_workflow(rows, None)
        self.assertEqual(select_workflow(rows, "6"), ("6", "Measurements", [1, 2]))

    def test_unknown_workflow_id(self) -> None:
        with self.assertRaises(DataAccessError):
            select_workflow([{"workflow_id": "5", "workflow_name": "Labels"}], "9")


class TestLoadClassificationRecords(unittest.TestCase):
    def test_records_keep_file_row_indexes(self) -> None:
        repo_root = Path(__file__).resolve().parents[1]
        root = repo_root / "artifacts" / "_test_data_access"
        if root.exists():
            shutil.rmtree(root)
        path = root / "classifications.csv"
        _write_csv(
            path,
            [
                {"workflow_id": "6", "workflow_name": "M", "subject_ids": "1", "annotations": "[]", "user_name": "a"},
                {"workflow_id": "5", "workflow_name": "L", "subject_ids": "2", "annotations": "[]", "user_name": "b"},
                {"workflow_id": "5", "workflow_name": "L", "subject_ids": "3", "annotations": "[]", "user_name": ""},
            ],
        )

        workflow_id, workflow_name, records = load_classification_records(path, workflow_id="5")
        self.assertEqual((workflow_id, workflow_name), ("5", "L"))
        self.assertEqual([r.row_index for r in records], [1, 2])
        self.assertEqual([r.subject_ids for r in records], ["2", "3"])
        self.assertEqual(records[0].admin, {"user_name": "b"})

    def test_missing_file(self) -> None:
        with self.assertRaises(DataAccessError):
            load_classification_records(Path("/nonexistent/classifications.csv"))


class TestLoadFlatTableJson(unittest.TestCase):
    def setUp(self) -> None:
        repo_root = Path(__file__).resolve().parents[1]
        self.root = repo_root / "artifacts" / "_test_flat_json_input"
        if self.root.exists():
            shutil.rmtree(self.root)
        self.root.mkdir(parents=True, exist_ok=True)

    def test_artifact_loads_frozen(self) -> None:
        table = FlatTable(workflow_id="5", workflow_name="L")
        table.add_row({"subject_id": SameField("1"), "T0: Color": SelectField("red")})
        path = self.root / "flat.json"
        write_flat_json_artifact(table=table, out_file=path)

        loaded = load_flat_table_json(path)
        self.assertTrue(loaded.frozen)
        self.assertEqual(loaded.to_dict(), table.to_dict())

    def test_bad_artifacts(self) -> None:
        with self.assertRaises(DataAccessError):
            load_flat_table_json(self.root / "missing.json")

        broken = self.root / "broken.json"
        broken.write_text("{not json", encoding="utf-8")
        with self.assertRaises(DataAccessError):
            load_flat_table_json(broken)

        unknown_shape = self.root / "unknown_shape.json"
        unknown_shape.write_text(
            json.dumps({"workflow_id": "5", "columns": [{"name": "q", "shape": "polygon"}], "rows": []}),
            encoding="utf-8",
        )
        with self.assertRaises(DataAccessError):
            load_flat_table_json(unknown_shape)


if __name__ == "__main__":
    unittest.main()
