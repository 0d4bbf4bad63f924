from __future__ import annotations

import logging
import sys
from datetime import date, datetime, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from batch_ledger.analytics import (
    Batch,
    Sale,
    find_allocation_mismatches,
    remaining_quantity,
    sold_quantities_by_batch,
    sold_quantity_for_batch,
)


def _sale(
    sale_id: str,
    lines: list[tuple[str, int, list[tuple[str, int]]]],
    *,
    payment_status: str = "paid",
    deleted: bool = False,
) -> Sale:
    return Sale.model_validate(
        {
            "id": sale_id,
            "payment_status": payment_status,
            "created_at": datetime(2024, 1, 15, 10, tzinfo=timezone.utc),
            "deleted_at": datetime(2024, 1, 20, tzinfo=timezone.utc) if deleted else None,
            "line_items": [
                {
                    "product_id": product_id,
                    "requested_quantity": quantity,
                    "final_price": 10,
                    "batch_allocations": [
                        {"batch_id": batch_id, "quantity": allocated}
                        for batch_id, allocated in allocations
                    ],
                }
                for product_id, quantity, allocations in lines
            ],
        }
    )


def _batch(batch_id: str, quantity: int) -> Batch:
    return Batch(
        id=batch_id,
        product_id="P1",
        batch_number=f"N-{batch_id}",
        quantity=quantity,
        production_date=date(2024, 1, 10),
    )


def test_sold_quantity_sums_allocations_across_sales_and_lines() -> None:
    sales = [
        _sale("S1", [("P1", 30, [("B1", 30)])]),
        _sale("S2", [("P1", 15, [("B1", 5), ("B2", 10)]), ("P1", 4, [("B1", 4)])]),
    ]

    assert sold_quantity_for_batch(sales, "B1") == 39
    assert sold_quantity_for_batch(sales, "B2") == 10
    assert sold_quantity_for_batch(sales, "B3") == 0


def test_sold_quantity_is_independent_of_sale_order() -> None:
    sales = [
        _sale("S1", [("P1", 3, [("B1", 3)])]),
        _sale("S2", [("P1", 7, [("B1", 7)])]),
        _sale("S3", [("P1", 11, [("B1", 11)])]),
    ]

    assert sold_quantities_by_batch(sales) == sold_quantities_by_batch(sales[::-1])
    assert sold_quantities_by_batch(sales) == {"B1": 21}


def test_unpaid_and_deleted_sales_do_not_reduce_stock() -> None:
    sales = [
        _sale("S1", [("P1", 30, [("B1", 30)])]),
        _sale("S2", [("P1", 10, [("B1", 10)])], payment_status="pending_payment"),
        _sale("S3", [("P1", 5, [("B1", 5)])], deleted=True),
        _sale("S4", [("P1", 2, [("B1", 2)])], payment_status="refunded"),
    ]

    assert sold_quantity_for_batch(sales, "B1") == 30
    assert sold_quantities_by_batch(sales) == {"B1": 30}


def test_remaining_quantity_can_go_negative_and_is_logged(caplog) -> None:
    batch = _batch("B1", 20)
    sold = sold_quantities_by_batch([_sale("S1", [("P1", 25, [("B1", 25)])])])

    with caplog.at_level(logging.WARNING):
        assert remaining_quantity(batch, sold) == -5

    assert "over-allocated" in caplog.text


def test_remaining_quantity_defaults_to_produced_without_sales() -> None:
    assert remaining_quantity(_batch("B9", 40), {}) == 40


def test_find_allocation_mismatches_lists_inconsistent_lines() -> None:
    sales = [
        _sale("S1", [("P1", 30, [("B1", 30)])]),
        _sale("S2", [("P1", 10, [("B1", 4)]), ("P2", 2, [])]),
        _sale("S3", [("P1", 10, [("B1", 1)])], payment_status="pending_payment"),
    ]

    mismatches = find_allocation_mismatches(sales)

    assert [(m.sale_id, m.line_index) for m in mismatches] == [("S2", 0), ("S2", 1)]
    assert mismatches[0].difference == -6
    assert mismatches[1].allocated_quantity == 0
