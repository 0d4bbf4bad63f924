"""Command line entry point: load snapshots and print reports as JSON."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date, datetime
from typing import Any, Callable, Dict, Sequence

from dotenv import load_dotenv

from .analytics import ReportService
from .config import get_settings
from .exceptions import ReportError
from .ingestion.load_snapshots import load_snapshots, read_snapshot
from .logging_config import configure_logging
from .persistence import LedgerRepository

logger = logging.getLogger(__name__)

ReportRunner = Callable[[ReportService, argparse.Namespace], Dict[str, Any]]


def _range(args: argparse.Namespace) -> dict[str, Any]:
    return {"date_from": args.date_from, "date_to": args.date_to}


REPORTS: Dict[str, ReportRunner] = {
    "sales": lambda service, args: service.sales_report(
        **_range(args),
        category=args.category,
        product_id=args.product_id,
        aggregation=args.aggregation,
        include_trends=args.include_trends,
    ),
    "sales-by-product": lambda service, args: service.sales_by_product(
        **_range(args), category=args.category
    ),
    "sales-by-category": lambda service, args: service.sales_by_category(**_range(args)),
    "top-products": lambda service, args: service.top_products(
        **_range(args),
        category=args.category,
        limit=args.limit,
        sort_order=args.sort_order,
    ),
    "revenue-distribution": lambda service, args: service.revenue_distribution(
        **_range(args), category=args.category
    ),
    "comparative": lambda service, args: service.comparative_report(
        current_from=args.date_from,
        current_to=args.date_to,
        previous_from=args.previous_from,
        previous_to=args.previous_to,
        category=args.category,
    ),
    "delivery": lambda service, args: service.delivery_report(**_range(args)),
    "batches": lambda service, args: service.batch_report(
        **_range(args), product_id=args.product_id, category=args.category
    ),
    "inventory": lambda service, args: service.inventory_report(
        category=args.category,
        product_id=args.product_id,
        low_stock_only=args.low_stock_only,
        low_stock_threshold=args.low_stock_threshold,
    ),
    "stock-movement": lambda service, args: service.stock_movement_report(
        **_range(args),
        product_id=args.product_id,
        aggregation=args.aggregation or "daily",
    ),
    "batch-aging": lambda service, args: service.batch_aging_report(
        product_id=args.product_id, category=args.category
    ),
    "dashboard": lambda service, args: service.dashboard_summary(
        **_range(args), category=args.category, product_id=args.product_id
    ),
}


def _timestamp(value: str) -> date | datetime:
    """Parse ``YYYY-MM-DD`` as a whole day, anything longer as a timestamp."""

    try:
        if len(value) == 10:
            return date.fromisoformat(value)
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ISO8601 date: {value!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="batch-ledger", description=__doc__)
    parser.add_argument("--db-path", help="Override LEDGER_DB_PATH")
    subparsers = parser.add_subparsers(dest="command", required=True)

    load = subparsers.add_parser("load", help="Store JSON snapshots in the ledger")
    for resource in LedgerRepository.RESOURCES:
        load.add_argument(
            f"--{resource}",
            metavar="FILE",
            help=f"JSON file with {resource} records",
        )
    load.add_argument(
        "--batch-size",
        type=int,
        default=100,
        help="Number of records to persist per transaction",
    )

    report = subparsers.add_parser("report", help="Print a named report as JSON")
    report.add_argument("name", choices=sorted(REPORTS))
    report.add_argument("--from", dest="date_from", type=_timestamp)
    report.add_argument("--to", dest="date_to", type=_timestamp)
    report.add_argument(
        "--previous-from",
        type=_timestamp,
        help="Start of the comparison period (comparative report)",
    )
    report.add_argument(
        "--previous-to",
        type=_timestamp,
        help="End of the comparison period (comparative report)",
    )
    report.add_argument("--category")
    report.add_argument("--product-id")
    report.add_argument(
        "--aggregation", choices=("daily", "weekly", "monthly", "yearly")
    )
    report.add_argument("--include-trends", action="store_true")
    report.add_argument("--limit", type=int)
    report.add_argument("--sort-order", choices=("ASC", "DESC"), default="DESC")
    report.add_argument("--low-stock-only", action="store_true")
    report.add_argument("--low-stock-threshold", type=float)
    return parser


def run(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    repo = LedgerRepository(args.db_path or settings.ledger_db_path)

    if args.command == "load":
        snapshots = {
            resource: read_snapshot(getattr(args, resource))
            for resource in LedgerRepository.RESOURCES
            if getattr(args, resource)
        }
        if not snapshots:
            logger.warning("Nothing to load: pass at least one snapshot file")
            return 1
        totals = load_snapshots(repo, snapshots, batch_size=args.batch_size)
        print(json.dumps(totals, indent=2))
        return 0

    service = ReportService(
        repo,
        low_stock_threshold=settings.low_stock_threshold,
        top_products_limit=settings.top_products_limit,
    )
    try:
        payload = REPORTS[args.name](service, args)
    except ReportError as exc:
        logger.error("Report %s failed: %s", args.name, exc)
        return 2
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))
    return 0


def main() -> None:
    load_dotenv()
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)
    sys.exit(run())


if __name__ == "__main__":
    main()
