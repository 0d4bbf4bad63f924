"""Batch reconciliation, inventory and sales analytics over the ledger store."""
from __future__ import annotations

from .allocation import (
    find_allocation_mismatches,
    remaining_quantity,
    sold_quantities_by_batch,
    sold_quantity_for_batch,
)
from .catalog import ProductCatalog
from .inventory import (
    build_aging_rows,
    build_batch_rows,
    build_inventory_items,
    classify_expiry,
)
from .loaders import find_batches, find_product_by_id, find_products, find_sales
from .models import (
    AgingStatus,
    Batch,
    BatchAllocation,
    LineItem,
    OrderStatus,
    PaymentStatus,
    Product,
    ProductCategory,
    Sale,
    SalesMetrics,
)
from .periods import DateRange, TimeAggregation, date_key, previous_period
from .reports import ReportService
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
)
from .stock_movement import reconcile_stock_movements

__all__ = [
    "AgingStatus",
    "Batch",
    "BatchAllocation",
    "DateRange",
    "LineItem",
    "OrderStatus",
    "PaymentStatus",
    "Product",
    "ProductCatalog",
    "ProductCategory",
    "ReportService",
    "Sale",
    "SalesMetrics",
    "SortOrder",
    "TimeAggregation",
    "aggregate_by_category",
    "aggregate_by_product",
    "aggregate_delivery",
    "build_aging_rows",
    "build_batch_rows",
    "build_inventory_items",
    "build_time_series",
    "classify_expiry",
    "compare_metrics",
    "compute_metrics",
    "date_key",
    "find_allocation_mismatches",
    "find_batches",
    "find_product_by_id",
    "find_products",
    "find_sales",
    "previous_period",
    "rank_top_products",
    "reconcile_stock_movements",
    "remaining_quantity",
    "revenue_distribution",
    "sold_quantities_by_batch",
    "sold_quantity_for_batch",
]
