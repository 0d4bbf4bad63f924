"""Named report payloads composed from the analytics building blocks.

Every report follows the same ``{"summary": {...}, <detail_key>: [...]}``
shape with models dumped to JSON-ready dictionaries. Nothing is cached
between calls: each report reloads its sales and batches and rebuilds the
sold-per-batch map.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Sequence

from pydantic import BaseModel

from ..exceptions import MissingDateRangeError
from ..persistence import LedgerRepository
from .allocation import find_allocation_mismatches, sold_quantities_by_batch
from .catalog import ProductCatalog
from .inventory import (
    DEFAULT_LOW_STOCK_THRESHOLD,
    build_aging_rows,
    build_batch_rows,
    build_inventory_items,
    summarise_aging,
    summarise_batch_rows,
    summarise_inventory,
)
from .loaders import find_batches, find_product_by_id, find_products, find_sales
from .models import ProductCategory, Sale
from .periods import DateRange, TimeAggregation, parse_aggregation
from .sales_metrics import (
    SortOrder,
    aggregate_by_category,
    aggregate_by_product,
    aggregate_delivery,
    build_time_series,
    compare_metrics,
    compute_metrics,
    rank_top_products,
    revenue_distribution,
    summarise_products,
)
from .stock_movement import reconcile_stock_movements, summarise_movements

logger = logging.getLogger(__name__)

Report = dict[str, Any]
DateBound = date | datetime | None

DEFAULT_TOP_PRODUCTS = 10
DASHBOARD_TOP_PRODUCTS = 5


def _dump(models: Sequence[BaseModel]) -> list[dict[str, Any]]:
    return [model.model_dump(mode="json") for model in models]


def _period_label(value: DateBound) -> str:
    return value.isoformat() if value is not None else "all-time"


class ReportService:
    """Builds report payloads from a :class:`LedgerRepository` snapshot.

    ``now`` fixes the clock used for expiry and aging so results are
    reproducible; it may be a datetime or a callable returning one.
    """

    def __init__(
        self,
        repo: LedgerRepository,
        *,
        now: datetime | Callable[[], datetime] | None = None,
        low_stock_threshold: float = DEFAULT_LOW_STOCK_THRESHOLD,
        top_products_limit: int = DEFAULT_TOP_PRODUCTS,
    ) -> None:
        self.repo = repo
        self._now = now
        self.low_stock_threshold = low_stock_threshold
        self.top_products_limit = top_products_limit

    def now(self) -> datetime:
        if callable(self._now):
            return self._now()
        return self._now or datetime.now(timezone.utc)

    def _catalog(self) -> ProductCatalog:
        return ProductCatalog(
            find_products(self.repo),
            fetcher=lambda product_id: find_product_by_id(self.repo, product_id),
        )

    def _sales(self, date_from: DateBound = None, date_to: DateBound = None) -> list[Sale]:
        return find_sales(self.repo, date_from=date_from, date_to=date_to)

    # -- sales -------------------------------------------------------------

    def sales_report(
        self,
        *,
        date_from: DateBound = None,
        date_to: DateBound = None,
        category: ProductCategory | str | None = None,
        product_id: str | None = None,
        aggregation: TimeAggregation | str | None = None,
        include_trends: bool = False,
    ) -> Report:
        """Headline metrics plus optional time series and trends.

        The time series and trends need both ends of the date range and are
        returned as ``None`` otherwise.
        """

        catalog = self._catalog()
        sales = self._sales(date_from, date_to)
        metrics = compute_metrics(sales, catalog, category=category, product_id=product_id)
        window = DateRange.from_bounds(date_from, date_to)

        time_series = None
        if aggregation and window:
            time_series = _dump(
                build_time_series(
                    sales,
                    catalog,
                    parse_aggregation(aggregation),
                    category=category,
                    product_id=product_id,
                )
            )

        trends = None
        if include_trends and window:
            trends = self._growth(
                window, window.previous(), catalog, category=category, product_id=product_id
            )

        logger.debug("Sales report built from %s sales", len(sales))
        return {
            "summary": metrics.model_dump(mode="json"),
            "time_series": time_series,
            "trends": trends,
        }

    def _growth(
        self,
        current: DateRange,
        previous: DateRange,
        catalog: ProductCatalog,
        *,
        category: ProductCategory | str | None = None,
        product_id: str | None = None,
    ) -> dict[str, Any]:
        current_metrics = compute_metrics(
            self._sales(current.start, current.end),
            catalog,
            category=category,
            product_id=product_id,
        )
        previous_metrics = compute_metrics(
            self._sales(previous.start, previous.end),
            catalog,
            category=category,
            product_id=product_id,
        )
        return compare_metrics(current_metrics, previous_metrics).model_dump(mode="json")

    def sales_by_product(
        self,
        *,
        date_from: DateBound = None,
        date_to: DateBound = None,
        category: ProductCategory | str | None = None,
    ) -> Report:
        rows = aggregate_by_product(
            self._sales(date_from, date_to), self._catalog(), category=category
        )
        return {"summary": summarise_products(rows), "products": _dump(rows)}

    def sales_by_category(
        self, *, date_from: DateBound = None, date_to: DateBound = None
    ) -> Report:
        rows = aggregate_by_category(self._sales(date_from, date_to), self._catalog())
        return {
            "summary": {
                "total_categories": len(rows),
                "total_revenue": sum(row.total_revenue for row in rows),
            },
            "categories": _dump(rows),
        }

    def top_products(
        self,
        *,
        date_from: DateBound = None,
        date_to: DateBound = None,
        category: ProductCategory | str | None = None,
        limit: int | None = None,
        sort_order: SortOrder | str | None = SortOrder.DESC,
    ) -> Report:
        rows = rank_top_products(
            self._sales(date_from, date_to),
            self._catalog(),
            category=category,
            limit=self.top_products_limit if limit is None else limit,
            sort_order=sort_order,
        )
        return {
            "summary": {
                "total_products": len(rows),
                "total_revenue": sum(row.total_revenue for row in rows),
            },
            "period": {"from": _period_label(date_from), "to": _period_label(date_to)},
            "top_products": _dump(rows),
        }

    def revenue_distribution(
        self,
        *,
        date_from: DateBound = None,
        date_to: DateBound = None,
        category: ProductCategory | str | None = None,
    ) -> Report:
        rows = aggregate_by_product(
            self._sales(date_from, date_to), self._catalog(), category=category
        )
        distribution = revenue_distribution(rows)
        return {
            "summary": {
                "total_revenue": sum(row.total_revenue for row in rows),
                "number_of_products": len(distribution),
            },
            "distribution": _dump(distribution),
        }

    def comparative_report(
        self,
        *,
        current_from: date | datetime,
        current_to: date | datetime,
        previous_from: date | datetime,
        previous_to: date | datetime,
        category: ProductCategory | str | None = None,
    ) -> Report:
        """Metrics for two caller-chosen periods and the growth between them."""

        current = DateRange.from_bounds(current_from, current_to)
        previous = DateRange.from_bounds(previous_from, previous_to)
        if current is None or previous is None:
            raise MissingDateRangeError(
                "Both periods need a start and an end for a comparative report"
            )
        catalog = self._catalog()
        current_metrics = compute_metrics(
            self._sales(current.start, current.end), catalog, category=category
        )
        previous_metrics = compute_metrics(
            self._sales(previous.start, previous.end), catalog, category=category
        )
        return {
            "summary": compare_metrics(current_metrics, previous_metrics).model_dump(
                mode="json"
            ),
            "current": current_metrics.model_dump(mode="json"),
            "previous": previous_metrics.model_dump(mode="json"),
        }

    def delivery_report(
        self, *, date_from: DateBound = None, date_to: DateBound = None
    ) -> Report:
        summary, rows = aggregate_delivery(self._sales(date_from, date_to))
        return {"summary": summary, "by_location": _dump(rows)}

    # -- inventory ---------------------------------------------------------

    def batch_report(
        self,
        *,
        date_from: DateBound = None,
        date_to: DateBound = None,
        product_id: str | None = None,
        category: ProductCategory | str | None = None,
    ) -> Report:
        """Production, sold and remaining units per active batch.

        Sold units are lifetime-to-date: the date range narrows the batches,
        never the sales they are reconciled against.
        """

        batches = find_batches(
            self.repo,
            active=True,
            date_from=date_from,
            date_to=date_to,
            product_id=product_id,
            category=category,
        )
        sales = self._sales()
        rows = build_batch_rows(
            batches, sold_quantities_by_batch(sales), self._catalog(), now=self.now()
        )
        return {
            "summary": summarise_batch_rows(rows),
            "batches": _dump(rows),
            "warnings": _dump(find_allocation_mismatches(sales)),
        }

    def inventory_report(
        self,
        *,
        category: ProductCategory | str | None = None,
        product_id: str | None = None,
        low_stock_only: bool = False,
        low_stock_threshold: float | None = None,
    ) -> Report:
        """Gross stock per product; see :func:`build_inventory_items`."""

        batches = find_batches(
            self.repo, active=True, product_id=product_id, category=category
        )
        items = build_inventory_items(
            batches,
            self._catalog(),
            low_stock_threshold=(
                self.low_stock_threshold
                if low_stock_threshold is None
                else low_stock_threshold
            ),
            low_stock_only=low_stock_only,
        )
        return {"summary": summarise_inventory(items), "inventory": _dump(items)}

    def stock_movement_report(
        self,
        *,
        date_from: DateBound = None,
        date_to: DateBound = None,
        product_id: str | None = None,
        aggregation: TimeAggregation | str | None = TimeAggregation.DAILY,
    ) -> Report:
        window = DateRange.from_bounds(date_from, date_to)
        if window is None:
            raise MissingDateRangeError(
                "Date range is required for stock movement report",
                context={"date_from": date_from, "date_to": date_to},
            )
        batches = find_batches(
            self.repo, date_from=date_from, date_to=date_to, product_id=product_id
        )
        sales = self._sales(date_from, date_to)
        movements = reconcile_stock_movements(
            batches, sales, parse_aggregation(aggregation), product_id=product_id
        )
        return {"summary": summarise_movements(movements), "movements": _dump(movements)}

    def batch_aging_report(
        self,
        *,
        product_id: str | None = None,
        category: ProductCategory | str | None = None,
    ) -> Report:
        batches = find_batches(
            self.repo, active=True, product_id=product_id, category=category
        )
        rows = build_aging_rows(
            batches,
            sold_quantities_by_batch(self._sales()),
            self._catalog(),
            now=self.now(),
        )
        return {"summary": summarise_aging(rows), "batches": _dump(rows)}

    # -- dashboard ---------------------------------------------------------

    def dashboard_summary(
        self,
        *,
        date_from: DateBound = None,
        date_to: DateBound = None,
        category: ProductCategory | str | None = None,
        product_id: str | None = None,
    ) -> Report:
        sales = self.sales_report(
            date_from=date_from,
            date_to=date_to,
            category=category,
            product_id=product_id,
            include_trends=True,
        )
        inventory = self.inventory_report(low_stock_threshold=DEFAULT_LOW_STOCK_THRESHOLD)
        production = self.batch_report(
            date_from=date_from,
            date_to=date_to,
            product_id=product_id,
            category=category,
        )
        top = self.top_products(
            date_from=date_from,
            date_to=date_to,
            category=category,
            limit=DASHBOARD_TOP_PRODUCTS,
        )
        return {
            "summary": {
                "sales": sales["summary"],
                "sales_trends": sales["trends"],
                "inventory": inventory["summary"],
                "production": production["summary"],
            },
            "top_products": top["top_products"],
            "timestamp": self.now().isoformat(),
        }


__all__ = ["ReportService", "DEFAULT_TOP_PRODUCTS", "DASHBOARD_TOP_PRODUCTS"]
