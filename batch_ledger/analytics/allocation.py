"""Reconciliation of recorded batch allocations against production batches."""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Mapping

from .models import AllocationMismatch, Batch, Sale

logger = logging.getLogger(__name__)


def _reportable(sales: Iterable[Sale]) -> Iterable[Sale]:
    return (sale for sale in sales if sale.is_reportable)


def sold_quantity_for_batch(sales: Iterable[Sale], batch_id: str) -> int:
    """Lifetime units drawn from ``batch_id`` by paid, non-deleted sales."""

    total = 0
    for sale in _reportable(sales):
        for item in sale.line_items:
            for allocation in item.batch_allocations:
                if allocation.batch_id == batch_id:
                    total += allocation.quantity
    return total


def sold_quantities_by_batch(sales: Iterable[Sale]) -> dict[str, int]:
    """Build the units-sold total of every referenced batch in a single pass.

    Equivalent to calling :func:`sold_quantity_for_batch` once per batch, but
    the sales are walked only once per report.
    """

    totals: dict[str, int] = defaultdict(int)
    for sale in _reportable(sales):
        for item in sale.line_items:
            for allocation in item.batch_allocations:
                totals[allocation.batch_id] += allocation.quantity
    return dict(totals)


def remaining_quantity(batch: Batch, sold_by_batch: Mapping[str, int]) -> int:
    """Produced units minus reconciled sold units.

    A negative result means more was allocated than produced. It is logged and
    returned unchanged so the report shows the inconsistency.
    """

    remaining = batch.quantity - sold_by_batch.get(batch.id, 0)
    if remaining < 0:
        logger.warning(
            "Batch %s (%s) is over-allocated: produced %s, allocated %s",
            batch.id,
            batch.batch_number,
            batch.quantity,
            sold_by_batch.get(batch.id, 0),
        )
    return remaining


def find_allocation_mismatches(sales: Iterable[Sale]) -> list[AllocationMismatch]:
    """List line items whose allocations do not sum to the requested quantity."""

    mismatches: list[AllocationMismatch] = []
    for sale in _reportable(sales):
        for index, item in enumerate(sale.line_items):
            allocated = item.allocated_quantity
            if allocated == item.requested_quantity:
                continue
            mismatch = AllocationMismatch(
                sale_id=sale.id,
                line_index=index,
                product_id=item.product_id,
                requested_quantity=item.requested_quantity,
                allocated_quantity=allocated,
            )
            logger.warning(
                "Sale %s line %s (%s): requested %s but allocated %s",
                sale.id,
                index,
                item.product_id,
                item.requested_quantity,
                allocated,
            )
            mismatches.append(mismatch)
    return mismatches


__all__ = [
    "find_allocation_mismatches",
    "remaining_quantity",
    "sold_quantities_by_batch",
    "sold_quantity_for_batch",
]
