from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from contracts.errors import PipelineError

from .artifacts import DEFAULT_LIST_SEPARATOR, write_flat_csv, write_flat_json_artifact
from .classification import flatten_classifications
from .config import FlattenConfig
from .data_access import DataAccessError, load_classification_records

logger = logging.getLogger(__name__)


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="nfn-flatten",
        description="Stage 1: flatten classification annotation trees into one column per annotation field.",
    )
    p.add_argument("classifications", type=Path, help="Classifications export CSV.")
    p.add_argument("--output", required=True, type=Path, help="Path to write the flat (unreconciled) CSV.")
    p.add_argument("--json-output", type=Path, default=None, help="Optional path for the canonical JSON artifact.")
    p.add_argument("--workflow-id", default=None, help="Workflow to flatten; required when the export has several.")
    p.add_argument("--list-separator", default=DEFAULT_LIST_SEPARATOR)
    p.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return p


def _print_summary(summary: dict[str, object]) -> None:
    print(json.dumps(summary, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    args = _build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    config = FlattenConfig(workflow_id=args.workflow_id)
    try:
        config.validate()
        workflow_id, workflow_name, records = load_classification_records(
            args.classifications, workflow_id=config.workflow_id
        )
        table = flatten_classifications(
            records, workflow_id=workflow_id, workflow_name=workflow_name, config=config
        )
    except PipelineError as e:
        logger.error("flattening aborted: %s", e)
        _print_summary({"ok": False, "error": e.to_dict()})
        return 2
    except (DataAccessError, ValueError) as e:
        logger.error("flattening aborted: %s", e)
        _print_summary({"ok": False, "error": {"code": "FLATTEN_INPUT_ERROR", "message": str(e), "detail": {}}})
        return 2

    write_flat_csv(table=table, out_file=args.output, list_separator=args.list_separator)
    if args.json_output is not None:
        write_flat_json_artifact(table=table, out_file=args.json_output)

    _print_summary(
        {
            "ok": True,
            "workflow_id": table.workflow_id,
            "rows": table.row_count,
            "columns": len(table.columns),
        }
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
