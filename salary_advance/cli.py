"""Command line entry point for running import and rating batches

Usage:
    salary-advance init-db
    salary-advance import-customers customers.json
    salary-advance process-transactions transactions.json [--allow-overdraft]
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from salary_advance.config import settings
from salary_advance.dependencies import get_customer_importer, get_pipeline, get_token
from salary_advance.domain.exceptions import (
    BatchEmptyResult,
    InvalidBatchError,
    OperationCancelledError,
)
from salary_advance.infrastructure.database.session import SessionLocal, init_db
from salary_advance.infrastructure.observability.logging import setup_logging
from salary_advance.schemas import audit_entry_to_dict, import_result_to_dict, pipeline_result_to_dict

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_EMPTY = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="salary-advance", description=__doc__.splitlines()[0])
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create missing tables")

    customers = sub.add_parser("import-customers", help="Validate a customer batch")
    customers.add_argument("path", type=Path)

    transactions = sub.add_parser("process-transactions", help="Import transactions, backfill and rate")
    transactions.add_argument("path", type=Path)
    transactions.add_argument(
        "--allow-overdraft",
        action="store_true",
        default=settings.allow_overdraft,
        help="Accept debits that drive a balance negative",
    )

    return parser


def _emit(payload) -> None:
    sys.stdout.write(json.dumps(payload, indent=2) + "\n")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(settings.log_level, settings.service_name)

    if args.command == "init-db":
        init_db()
        return EXIT_OK

    body = args.path.read_bytes()
    db = SessionLocal()
    try:
        if args.command == "import-customers":
            result = get_customer_importer(db).import_batch(
                body, token=get_token(), require_success=settings.require_success
            )
            _emit(import_result_to_dict(result))
        else:
            result = get_pipeline(db).process_batch(
                body, allow_overdraft=args.allow_overdraft, token=get_token()
            )
            _emit(pipeline_result_to_dict(result))
    except BatchEmptyResult as e:
        logging.warning(str(e), extra={"step": "batch_empty", "command": args.command})
        _emit({"error": str(e), "logs": [audit_entry_to_dict(entry) for entry in e.logs]})
        return EXIT_EMPTY
    except (InvalidBatchError, OperationCancelledError) as e:
        logging.error(str(e), extra={"step": "batch_failed", "command": args.command})
        _emit({"error": str(e)})
        return EXIT_FAILED
    finally:
        db.close()

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
