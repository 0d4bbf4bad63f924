"""Batch production, current inventory and batch aging read models.

Two stock views live here and must not be merged:

* the batch and aging reports work on *net remaining* units, i.e. produced
  quantity minus what the allocation reconciler says has been sold;
* the inventory report works on *gross stock*, the raw produced quantity of
  every active batch regardless of sales.
"""
from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

from .allocation import remaining_quantity
from .catalog import ProductCatalog
from .models import AgingStatus, Batch, BatchAging, BatchProduction, InventoryItem
from .periods import days_since, days_until

DEFAULT_LOW_STOCK_THRESHOLD = 100
NO_EXPIRY_HORIZON_DAYS = 999_999
CRITICAL_WITHIN_DAYS = 30
AGING_WITHIN_DAYS = 90


def _percentage(part: float, whole: float) -> float:
    if whole == 0:
        return 0.0
    return part / whole * 100


def build_batch_rows(
    batches: Iterable[Batch],
    sold_by_batch: Mapping[str, int],
    catalog: ProductCatalog,
    *,
    now: datetime,
) -> list[BatchProduction]:
    """Per-batch production figures net of reconciled sales."""

    rows: list[BatchProduction] = []
    for batch in batches:
        sold = sold_by_batch.get(batch.id, 0)
        rows.append(
            BatchProduction(
                batch_id=batch.id,
                batch_number=batch.batch_number,
                product_id=batch.product_id,
                product_name=catalog.name_of(batch.product_id),
                production_date=batch.production_date,
                expiry_date=batch.expiry_date,
                initial_quantity=batch.quantity,
                remaining_quantity=remaining_quantity(batch, sold_by_batch),
                sold_quantity=sold,
                sold_percentage=_percentage(sold, batch.quantity),
                # Batches without an expiry date report 0 here, unlike aging.
                days_until_expiry=(
                    days_until(batch.expiry_date, now) if batch.expiry_date else 0
                ),
                is_active=batch.is_active,
            )
        )
    return rows


def summarise_batch_rows(rows: Sequence[BatchProduction]) -> dict[str, Any]:
    total_production = sum(row.initial_quantity for row in rows)
    total_sold = sum(row.sold_quantity for row in rows)
    return {
        "total_batches": len(rows),
        "total_production": total_production,
        "total_sold": total_sold,
        "total_remaining": sum(row.remaining_quantity for row in rows),
        "average_utilization": _percentage(total_sold, total_production),
    }


def build_inventory_items(
    batches: Iterable[Batch],
    catalog: ProductCatalog,
    *,
    low_stock_threshold: float = DEFAULT_LOW_STOCK_THRESHOLD,
    low_stock_only: bool = False,
) -> list[InventoryItem]:
    """Gross stock per product, summed over its active batches.

    Sold units are deliberately not subtracted. Products whose batches are all
    inactive or deleted do not appear at all, and neither do batches of
    products missing from the catalogue.
    """

    by_product: OrderedDict[str, list[Batch]] = OrderedDict()
    for batch in batches:
        if not batch.is_active or batch.is_deleted:
            continue
        by_product.setdefault(batch.product_id, []).append(batch)

    items: list[InventoryItem] = []
    for product_id, active in by_product.items():
        product = catalog.get(product_id)
        if product is None:
            continue
        total_stock = sum(batch.quantity for batch in active)
        is_low_stock = total_stock < low_stock_threshold
        if low_stock_only and not is_low_stock:
            continue
        production_dates = [batch.production_date for batch in active]
        items.append(
            InventoryItem(
                product_id=product.id,
                product_name=product.name,
                category=product.category,
                total_stock=total_stock,
                total_value=total_stock * product.wholesale_price,
                number_of_batches=len(active),
                oldest_batch_date=min(production_dates),
                newest_batch_date=max(production_dates),
                is_low_stock=is_low_stock,
            )
        )
    return items


def summarise_inventory(items: Sequence[InventoryItem]) -> dict[str, Any]:
    return {
        "total_products": len(items),
        "total_stock_quantity": sum(item.total_stock for item in items),
        "total_inventory_value": sum(item.total_value for item in items),
        "low_stock_items": sum(1 for item in items if item.is_low_stock),
    }


def classify_expiry(days_until_expiry: int) -> AgingStatus:
    if days_until_expiry < 0:
        return AgingStatus.EXPIRED
    if days_until_expiry <= CRITICAL_WITHIN_DAYS:
        return AgingStatus.CRITICAL
    if days_until_expiry <= AGING_WITHIN_DAYS:
        return AgingStatus.AGING
    return AgingStatus.FRESH


def build_aging_rows(
    batches: Iterable[Batch],
    sold_by_batch: Mapping[str, int],
    catalog: ProductCatalog,
    *,
    now: datetime,
) -> list[BatchAging]:
    """Active batches with units left, most urgent expiry first."""

    rows: list[BatchAging] = []
    for batch in batches:
        if not batch.is_active or batch.is_deleted:
            continue
        remaining = remaining_quantity(batch, sold_by_batch)
        if remaining <= 0:
            continue
        expiry_in = (
            days_until(batch.expiry_date, now)
            if batch.expiry_date
            else NO_EXPIRY_HORIZON_DAYS
        )
        rows.append(
            BatchAging(
                batch_id=batch.id,
                batch_number=batch.batch_number,
                product_id=batch.product_id,
                product_name=catalog.name_of(batch.product_id),
                production_date=batch.production_date,
                expiry_date=batch.expiry_date,
                days_until_expiry=expiry_in,
                remaining_quantity=remaining,
                age_in_days=days_since(batch.production_date, now),
                status=classify_expiry(expiry_in),
            )
        )
    rows.sort(key=lambda row: row.days_until_expiry)
    return rows


def summarise_aging(rows: Sequence[BatchAging]) -> dict[str, Any]:
    counts = {status: 0 for status in AgingStatus}
    for row in rows:
        counts[row.status] += 1
    return {
        "total_batches": len(rows),
        "fresh_batches": counts[AgingStatus.FRESH],
        "aging_batches": counts[AgingStatus.AGING],
        "critical_batches": counts[AgingStatus.CRITICAL],
        "expired_batches": counts[AgingStatus.EXPIRED],
    }


__all__ = [
    "AGING_WITHIN_DAYS",
    "CRITICAL_WITHIN_DAYS",
    "DEFAULT_LOW_STOCK_THRESHOLD",
    "NO_EXPIRY_HORIZON_DAYS",
    "build_aging_rows",
    "build_batch_rows",
    "build_inventory_items",
    "classify_expiry",
    "summarise_aging",
    "summarise_batch_rows",
    "summarise_inventory",
]
