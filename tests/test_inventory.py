from __future__ import annotations

import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from batch_ledger.analytics import (
    AgingStatus,
    Batch,
    Product,
    ProductCatalog,
    Sale,
    build_aging_rows,
    build_batch_rows,
    build_inventory_items,
    classify_expiry,
    sold_quantities_by_batch,
)
from batch_ledger.analytics.inventory import (
    NO_EXPIRY_HORIZON_DAYS,
    summarise_aging,
    summarise_batch_rows,
    summarise_inventory,
)

NOW = datetime(2024, 2, 1, tzinfo=timezone.utc)


@pytest.fixture()
def catalog() -> ProductCatalog:
    return ProductCatalog(
        [
            Product(id="P1", name="Raw Shea Butter", category="shea_butter", wholesale_price=5),
            Product(id="P2", name="Black Soap", category="black_soap", wholesale_price=2),
        ]
    )


def _batch(batch_id: str, product_id: str, quantity: int, **extra) -> Batch:
    data = {
        "id": batch_id,
        "product_id": product_id,
        "batch_number": f"N-{batch_id}",
        "quantity": quantity,
        "production_date": date(2024, 1, 10),
    }
    data.update(extra)
    return Batch.model_validate(data)


def _paid_sale(batch_id: str, quantity: int) -> Sale:
    return Sale.model_validate(
        {
            "id": f"S-{batch_id}",
            "payment_status": "paid",
            "created_at": datetime(2024, 1, 15, 10, tzinfo=timezone.utc),
            "line_items": [
                {
                    "product_id": "P1",
                    "requested_quantity": quantity,
                    "final_price": 10,
                    "batch_allocations": [{"batch_id": batch_id, "quantity": quantity}],
                }
            ],
        }
    )


def test_batch_rows_are_net_of_reconciled_sales(catalog: ProductCatalog) -> None:
    batch = _batch("B1", "P1", 100)
    sold = sold_quantities_by_batch([_paid_sale("B1", 30)])

    rows = build_batch_rows([batch], sold, catalog, now=NOW)

    assert len(rows) == 1
    row = rows[0]
    assert row.sold_quantity == 30
    assert row.remaining_quantity == 70
    assert row.sold_percentage == pytest.approx(30.0)
    assert row.product_name == "Raw Shea Butter"
    assert row.days_until_expiry == 0


def test_batch_rows_count_days_until_expiry(catalog: ProductCatalog) -> None:
    batch = _batch("B1", "P1", 10, expiry_date=date(2024, 3, 1))

    rows = build_batch_rows([batch], {}, catalog, now=NOW)

    assert rows[0].days_until_expiry == 29


def test_batch_summary_handles_zero_production(catalog: ProductCatalog) -> None:
    rows = build_batch_rows([_batch("B0", "P1", 0)], {}, catalog, now=NOW)

    assert rows[0].sold_percentage == 0
    summary = summarise_batch_rows(rows)
    assert summary["average_utilization"] == 0
    assert summary["total_batches"] == 1


def test_inventory_uses_gross_stock(catalog: ProductCatalog) -> None:
    batches = [_batch("B1", "P1", 100)]
    # A paid sale exists, but gross stock ignores it.
    sold = sold_quantities_by_batch([_paid_sale("B1", 30)])
    assert sold == {"B1": 30}

    items = build_inventory_items(batches, catalog)

    assert len(items) == 1
    assert items[0].total_stock == 100
    assert items[0].total_value == pytest.approx(500.0)
    assert items[0].is_low_stock is False


def test_inventory_groups_active_batches_and_skips_unknown_products(
    catalog: ProductCatalog,
) -> None:
    batches = [
        _batch("B1", "P1", 60, production_date=date(2024, 1, 5)),
        _batch("B2", "P1", 20, production_date=date(2024, 1, 20)),
        _batch("B3", "P1", 500, is_active=False),
        _batch("B4", "P2", 300),
        _batch("B5", "GHOST", 40),
    ]

    items = build_inventory_items(batches, catalog, low_stock_threshold=100)

    assert [item.product_id for item in items] == ["P1", "P2"]
    first = items[0]
    assert first.total_stock == 80
    assert first.number_of_batches == 2
    assert first.oldest_batch_date == date(2024, 1, 5)
    assert first.newest_batch_date == date(2024, 1, 20)
    assert first.is_low_stock is True
    assert items[1].is_low_stock is False

    low_only = build_inventory_items(batches, catalog, low_stock_only=True)
    assert [item.product_id for item in low_only] == ["P1"]

    summary = summarise_inventory(items)
    assert summary["total_products"] == 2
    assert summary["total_stock_quantity"] == 380
    assert summary["total_inventory_value"] == pytest.approx(80 * 5 + 300 * 2)
    assert summary["low_stock_items"] == 1


@pytest.mark.parametrize(
    ("days", "expected"),
    [
        (-1, AgingStatus.EXPIRED),
        (0, AgingStatus.CRITICAL),
        (30, AgingStatus.CRITICAL),
        (31, AgingStatus.AGING),
        (90, AgingStatus.AGING),
        (91, AgingStatus.FRESH),
    ],
)
def test_classify_expiry_thresholds(days: int, expected: AgingStatus) -> None:
    assert classify_expiry(days) is expected


def test_aging_rows_sort_by_urgency_and_skip_empty_batches(catalog: ProductCatalog) -> None:
    batches = [
        _batch("FRESH", "P1", 10),
        _batch("SOON", "P1", 10, expiry_date=date(2024, 2, 11)),
        _batch("GONE", "P2", 10, expiry_date=date(2024, 1, 20)),
        _batch("SOLD", "P1", 30, expiry_date=date(2024, 2, 5)),
        _batch("OFF", "P1", 10, expiry_date=date(2024, 2, 2), is_active=False),
    ]
    sold = sold_quantities_by_batch([_paid_sale("SOLD", 30)])

    rows = build_aging_rows(batches, sold, catalog, now=NOW)

    assert [row.batch_id for row in rows] == ["GONE", "SOON", "FRESH"]
    assert [row.status for row in rows] == [
        AgingStatus.EXPIRED,
        AgingStatus.CRITICAL,
        AgingStatus.FRESH,
    ]
    assert rows[-1].days_until_expiry == NO_EXPIRY_HORIZON_DAYS
    assert rows[0].age_in_days == 22

    summary = summarise_aging(rows)
    assert summary == {
        "total_batches": 3,
        "fresh_batches": 1,
        "aging_batches": 0,
        "critical_batches": 1,
        "expired_batches": 1,
    }
