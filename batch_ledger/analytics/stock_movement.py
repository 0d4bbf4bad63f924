"""Production vs. consumption ledger bucketed by period."""
from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterable, Sequence

from .models import Batch, Sale, StockMovement
from .periods import TimeAggregation, date_key


def reconcile_stock_movements(
    batches: Iterable[Batch],
    sales: Iterable[Sale],
    aggregation: TimeAggregation,
    *,
    product_id: str | None = None,
) -> list[StockMovement]:
    """Merge batch production and sale consumption into a running ledger.

    The opening balance is 0 at the start of whatever window the inputs cover,
    so ``closing_stock`` is relative to that window, not an absolute level.
    """

    produced: dict[str, int] = defaultdict(int)
    sold: dict[str, int] = defaultdict(int)

    for batch in batches:
        if product_id and batch.product_id != product_id:
            continue
        produced[date_key(batch.production_date, aggregation)] += batch.quantity

    for sale in sales:
        key = date_key(sale.created_at, aggregation)
        for item in sale.line_items:
            if product_id and item.product_id != product_id:
                continue
            sold[key] += item.requested_quantity

    movements: list[StockMovement] = []
    running = 0
    for key in sorted(produced.keys() | sold.keys()):
        net_change = produced.get(key, 0) - sold.get(key, 0)
        running += net_change
        movements.append(
            StockMovement(
                date=key,
                produced=produced.get(key, 0),
                sold=sold.get(key, 0),
                net_change=net_change,
                closing_stock=running,
            )
        )
    return movements


def summarise_movements(movements: Sequence[StockMovement]) -> dict[str, Any]:
    total_produced = sum(movement.produced for movement in movements)
    total_sold = sum(movement.sold for movement in movements)
    return {
        "total_produced": total_produced,
        "total_sold": total_sold,
        "net_change": total_produced - total_sold,
        "current_stock": movements[-1].closing_stock if movements else 0,
    }


__all__ = ["reconcile_stock_movements", "summarise_movements"]
