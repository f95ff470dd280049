from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from contracts.errors import PipelineError
from flatten.artifacts import DEFAULT_LIST_SEPARATOR, write_flat_csv, write_flat_json_artifact
from flatten.classification import flatten_classifications
from flatten.config import FlattenConfig
from flatten.data_access import DataAccessError, load_classification_records

from .artifacts import write_reconciled_csv, write_reconciled_json_artifact
from .config import FUZZY_SCORERS, ReconcileConfig
from .data_access import load_flat_table_json
from .module import reconcile_table

logger = logging.getLogger(__name__)


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="nfn-reconcile",
        description=(
            "Flatten a classifications export (or load a stage 1 flat JSON artifact) and reduce "
            "the N classifications of each subject to its best-estimate values."
        ),
    )
    p.add_argument("classifications", type=Path, nargs="?", default=None, help="Classifications export CSV.")
    p.add_argument(
        "--flat-input",
        type=Path,
        default=None,
        help="Stage 1 flat JSON artifact to reconcile instead of a classifications CSV.",
    )
    p.add_argument("-u", "--unreconciled", type=Path, default=None, help="Write the flat (unreconciled) CSV here.")
    p.add_argument("-r", "--reconciled", type=Path, default=None, help="Write the reconciled CSV here.")
    p.add_argument("--unreconciled-json", type=Path, default=None, help="Canonical JSON of the flat table.")
    p.add_argument("--reconciled-json", type=Path, default=None, help="Canonical JSON of the reconciled table.")
    p.add_argument("--workflow-id", default=None, help="Workflow to process; required when the export has several.")
    p.add_argument("--fuzzy-threshold", type=float, default=90.0, help="Text similarity (0..100) to merge answers.")
    p.add_argument("--fuzzy-scorer", choices=FUZZY_SCORERS, default="token_sort_ratio")
    # Fuzzy matching and ruler conversion are on by default; provide explicit opt-out flags.
    p.add_argument("--no-fuzzy", action="store_false", dest="enable_fuzzy", default=True)
    p.add_argument("--no-ruler-scale", action="store_false", dest="apply_ruler_scale", default=True)
    p.add_argument("--list-separator", default=DEFAULT_LIST_SEPARATOR)
    p.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return p


def _print_summary(summary: dict[str, object]) -> None:
    print(json.dumps(summary, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    if (args.classifications is None) == (args.flat_input is None):
        parser.error("give exactly one of a classifications CSV or --flat-input")
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    flatten_cfg = FlattenConfig(workflow_id=args.workflow_id)
    reconcile_cfg = ReconcileConfig(
        enable_fuzzy=args.enable_fuzzy,
        fuzzy_threshold=args.fuzzy_threshold,
        fuzzy_scorer=args.fuzzy_scorer,
        apply_ruler_scale=args.apply_ruler_scale,
    )

    # Both tables are built before anything is written: a failed run leaves no partial output.
    try:
        flatten_cfg.validate()
        reconcile_cfg.validate()
        if args.flat_input is not None:
            flat = load_flat_table_json(args.flat_input)
            if flatten_cfg.workflow_id is not None and flatten_cfg.workflow_id != flat.workflow_id:
                raise DataAccessError(
                    f"Flat table is for workflow {flat.workflow_id!r}, not {flatten_cfg.workflow_id!r}"
                )
        else:
            workflow_id, workflow_name, records = load_classification_records(
                args.classifications, workflow_id=flatten_cfg.workflow_id
            )
            flat = flatten_classifications(
                records, workflow_id=workflow_id, workflow_name=workflow_name, config=flatten_cfg
            )
        reconciled = reconcile_table(flat, reconcile_cfg)
    except PipelineError as e:
        logger.error("reconciliation aborted: %s", e)
        _print_summary({"ok": False, "error": e.to_dict()})
        return 2
    except (DataAccessError, ValueError) as e:
        logger.error("reconciliation aborted: %s", e)
        _print_summary({"ok": False, "error": {"code": "RECONCILE_INPUT_ERROR", "message": str(e), "detail": {}}})
        return 2

    if args.unreconciled is not None:
        write_flat_csv(table=flat, out_file=args.unreconciled, list_separator=args.list_separator)
    if args.unreconciled_json is not None:
        write_flat_json_artifact(table=flat, out_file=args.unreconciled_json)
    if args.reconciled is not None:
        write_reconciled_csv(table=reconciled, out_file=args.reconciled, list_separator=args.list_separator)
    if args.reconciled_json is not None:
        write_reconciled_json_artifact(table=reconciled, out_file=args.reconciled_json)

    _print_summary(
        {
            "ok": True,
            "workflow_id": reconciled.workflow_id,
            "classifications": flat.row_count,
            "subjects": len(reconciled.rows),
            "columns": len(reconciled.columns),
            "flags": reconciled.meta["flags"],
        }
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
