"""Revenue, quantity and order metrics over a set of paid sales.

Callers are expected to hand in sales that are already paid and not
deleted; the query boundary (:mod:`batch_ledger.analytics.loaders`) takes care
of that.

Two revenue modes coexist on purpose. Without filters a sale contributes its
recorded ``amount``, which can include delivery fees and discounts. With a
product or category filter, revenue is re-derived from the matching line
items. The two totals for the same sales are therefore not expected to agree
to the cent.
"""
from __future__ import annotations

from collections import OrderedDict, defaultdict
from enum import Enum
from typing import Any, Iterable, Iterator, Sequence

from ..exceptions import InvalidReportParameterError
from .catalog import ProductCatalog
from .models import (
    CategorySales,
    DeliveryLocation,
    GrowthMetrics,
    LineItem,
    PaymentStatus,
    ProductCategory,
    ProductSales,
    RevenueShare,
    Sale,
    SalesMetrics,
    TimeSeriesPoint,
    TopProduct,
)
from .periods import TimeAggregation, date_key


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


def parse_sort_order(value: SortOrder | str | None) -> SortOrder:
    if value is None or value == "":
        return SortOrder.DESC
    if isinstance(value, SortOrder):
        return value
    try:
        return SortOrder(str(value).strip().upper())
    except ValueError as exc:
        raise InvalidReportParameterError(
            f"Unknown sort order {value!r}; expected ASC or DESC"
        ) from exc


def _ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


def line_item_matches(
    item: LineItem,
    catalog: ProductCatalog,
    *,
    category: ProductCategory | str | None = None,
    product_id: str | None = None,
) -> bool:
    if product_id and item.product_id != product_id:
        return False
    if category:
        product = catalog.get(item.product_id)
        if product is None or product.category != category:
            return False
    return True


def _matching_items(
    sale: Sale,
    catalog: ProductCatalog,
    category: ProductCategory | str | None,
    product_id: str | None,
) -> Iterator[LineItem]:
    for item in sale.line_items:
        if line_item_matches(item, catalog, category=category, product_id=product_id):
            yield item


def compute_metrics(
    sales: Sequence[Sale],
    catalog: ProductCatalog,
    *,
    category: ProductCategory | str | None = None,
    product_id: str | None = None,
) -> SalesMetrics:
    """Summarise revenue, order count and units for ``sales``."""

    filtered = bool(category or product_id)
    total_revenue = 0.0
    total_quantity = 0
    for sale in sales:
        if not filtered and sale.amount is not None:
            total_revenue += sale.amount
            total_quantity += sum(item.requested_quantity for item in sale.line_items)
            continue
        for item in _matching_items(sale, catalog, category, product_id):
            total_revenue += item.revenue
            total_quantity += item.requested_quantity

    return SalesMetrics(
        total_revenue=total_revenue,
        total_sales=len(sales),
        average_order_value=_ratio(total_revenue, len(sales)),
        total_quantity_sold=total_quantity,
    )


def build_time_series(
    sales: Iterable[Sale],
    catalog: ProductCatalog,
    aggregation: TimeAggregation,
    *,
    category: ProductCategory | str | None = None,
    product_id: str | None = None,
) -> list[TimeSeriesPoint]:
    """Line-item revenue per date bucket, oldest bucket first.

    The recorded sale ``amount`` is never used here, filtered or not.
    """

    buckets: dict[str, float] = defaultdict(float)
    for sale in sales:
        key = date_key(sale.created_at, aggregation)
        for item in _matching_items(sale, catalog, category, product_id):
            buckets[key] += item.revenue
    return [
        TimeSeriesPoint(date=key, value=value) for key, value in sorted(buckets.items())
    ]


def compare_metrics(current: SalesMetrics, previous: SalesMetrics) -> GrowthMetrics:
    """Absolute and relative change between two periods.

    A previous value of zero yields a growth percentage of 0, even when the
    current period has activity.
    """

    revenue_growth = current.total_revenue - previous.total_revenue
    sales_growth = current.total_sales - previous.total_sales
    aov_growth = current.average_order_value - previous.average_order_value
    return GrowthMetrics(
        revenue_growth=revenue_growth,
        revenue_growth_percentage=_ratio(revenue_growth, previous.total_revenue) * 100,
        sales_growth=sales_growth,
        sales_growth_percentage=_ratio(sales_growth, previous.total_sales) * 100,
        average_order_value_growth=aov_growth,
        average_order_value_growth_percentage=(
            _ratio(aov_growth, previous.average_order_value) * 100
        ),
    )


def aggregate_by_product(
    sales: Iterable[Sale],
    catalog: ProductCatalog,
    *,
    category: ProductCategory | str | None = None,
) -> list[ProductSales]:
    """Per-product totals, highest revenue first.

    ``average_price`` is revenue over units after each accumulation, so it is
    a quantity-weighted price rather than a mean of unit prices. Every
    matching line item counts as one sale of its product.
    """

    rows: OrderedDict[str, ProductSales] = OrderedDict()
    for sale in sales:
        for item in sale.line_items:
            product = catalog.get(item.product_id)
            if product is None or (category and product.category != category):
                continue
            row = rows.get(item.product_id)
            if row is None:
                row = ProductSales(
                    product_id=item.product_id,
                    product_name=product.name,
                    category=product.category,
                )
                rows[item.product_id] = row
            row.total_quantity_sold += item.requested_quantity
            row.total_revenue += item.revenue
            row.number_of_sales += 1
            row.average_price = _ratio(row.total_revenue, row.total_quantity_sold)

    return sorted(rows.values(), key=lambda row: row.total_revenue, reverse=True)


def summarise_products(rows: Sequence[ProductSales]) -> dict[str, Any]:
    total_revenue = sum(row.total_revenue for row in rows)
    return {
        "total_products": len(rows),
        "total_revenue": total_revenue,
        "average_sales_per_product": _ratio(total_revenue, len(rows)),
    }


def aggregate_by_category(
    sales: Iterable[Sale], catalog: ProductCatalog
) -> list[CategorySales]:
    """Per-category totals with each category's share of revenue."""

    rows: OrderedDict[ProductCategory, CategorySales] = OrderedDict()
    total_revenue = 0.0
    for sale in sales:
        for item in sale.line_items:
            product = catalog.get(item.product_id)
            if product is None:
                continue
            total_revenue += item.revenue
            row = rows.get(product.category)
            if row is None:
                row = CategorySales(category=product.category)
                rows[product.category] = row
            row.total_revenue += item.revenue
            row.total_quantity_sold += item.requested_quantity
            row.number_of_sales += 1

    for row in rows.values():
        row.percentage_of_total = _ratio(row.total_revenue, total_revenue) * 100
    return sorted(rows.values(), key=lambda row: row.total_revenue, reverse=True)


def rank_top_products(
    sales: Iterable[Sale],
    catalog: ProductCatalog,
    *,
    category: ProductCategory | str | None = None,
    limit: int = 10,
    sort_order: SortOrder | str | None = SortOrder.DESC,
) -> list[TopProduct]:
    """Products ranked by revenue; ``rank`` is the position after truncation."""

    if limit < 1:
        raise InvalidReportParameterError(f"limit must be at least 1, got {limit}")
    order = parse_sort_order(sort_order)
    rows = aggregate_by_product(sales, catalog, category=category)
    if order is SortOrder.ASC:
        rows = sorted(rows, key=lambda row: row.total_revenue)
    return [
        TopProduct(
            product_id=row.product_id,
            product_name=row.product_name,
            category=row.category,
            total_quantity_sold=row.total_quantity_sold,
            total_revenue=row.total_revenue,
            number_of_sales=row.number_of_sales,
            rank=position,
        )
        for position, row in enumerate(rows[:limit], start=1)
    ]


def revenue_distribution(rows: Sequence[ProductSales]) -> list[RevenueShare]:
    total_revenue = sum(row.total_revenue for row in rows)
    return [
        RevenueShare(
            product_id=row.product_id,
            product_name=row.product_name,
            total_revenue=row.total_revenue,
            percentage_of_total=_ratio(row.total_revenue, total_revenue) * 100,
        )
        for row in rows
    ]


def aggregate_delivery(sales: Sequence[Sale]) -> tuple[dict[str, Any], list[DeliveryLocation]]:
    """Delivery fee totals overall and per customer location."""

    locations: OrderedDict[tuple[str, str], dict[str, Any]] = OrderedDict()
    total_fees = 0.0
    awaiting = 0
    with_delivery = 0
    for sale in sales:
        fee = sale.delivery_fee or 0.0
        has_delivery = fee > 0
        total_fees += fee
        if sale.payment_status == PaymentStatus.AWAITING_DELIVERY:
            awaiting += 1
        if has_delivery:
            with_delivery += 1

        key = (sale.customer_country or "Unknown", sale.customer_region or "")
        bucket = locations.setdefault(
            key, {"orders": 0, "fees": 0.0, "with": 0, "without": 0}
        )
        bucket["orders"] += 1
        bucket["fees"] += fee
        bucket["with" if has_delivery else "without"] += 1

    rows = [
        DeliveryLocation(
            country=country,
            region=region or None,
            total_orders=bucket["orders"],
            total_delivery_fees=bucket["fees"],
            average_delivery_fee=_ratio(bucket["fees"], bucket["with"]),
            orders_with_delivery=bucket["with"],
            orders_without_delivery=bucket["without"],
        )
        for (country, region), bucket in locations.items()
    ]
    rows.sort(key=lambda row: row.total_delivery_fees, reverse=True)

    summary = {
        "total_orders": len(sales),
        "total_delivery_revenue": total_fees,
        "average_delivery_fee": _ratio(total_fees, with_delivery),
        "orders_awaiting_delivery_calc": awaiting,
        "orders_with_delivery": with_delivery,
        "orders_without_delivery": len(sales) - with_delivery,
    }
    return summary, rows


__all__ = [
    "SortOrder",
    "aggregate_by_category",
    "aggregate_by_product",
    "aggregate_delivery",
    "build_time_series",
    "compare_metrics",
    "compute_metrics",
    "line_item_matches",
    "parse_sort_order",
    "rank_top_products",
    "revenue_distribution",
    "summarise_products",
]
