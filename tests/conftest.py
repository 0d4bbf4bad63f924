from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from batch_ledger.persistence import LedgerRepository

FIXED_NOW = datetime(2024, 2, 1, tzinfo=timezone.utc)


def _iso(dt: datetime) -> str:
    return dt.replace(tzinfo=timezone.utc).isoformat()


@pytest.fixture()
def ledger_repo(tmp_path: Path) -> LedgerRepository:
    """Two products, two batches and a mix of paid and unpaid sales.

    Storefront exports use camelCase keys, so half the records do too.
    """

    repo = LedgerRepository(tmp_path / "ledger.db")
    repo.upsert_records(
        "products",
        [
            {
                "id": "P1",
                "name": "Raw Shea Butter",
                "category": "shea_butter",
                "wholesalePrice": "5.00",
                "retailPrice": "12.00",
            },
            {
                "id": "P2",
                "name": "Black Soap",
                "category": "black_soap",
                "wholesale_price": 2,
                "retail_price": 4,
            },
            {
                "id": "P3",
                "name": "Discontinued Oil",
                "category": "essential_oils",
                "wholesale_price": 9,
                "deletedAt": _iso(datetime(2023, 12, 1)),
            },
        ],
    )
    repo.upsert_records(
        "batches",
        [
            {
                "id": "B1",
                "product": {"id": "P1"},
                "batchNumber": "SB-2024-001",
                "quantity": 100,
                "productionDate": "2024-01-10",
                "expiryDate": "2024-03-01",
                "isActive": True,
            },
            {
                "id": "B2",
                "product_id": "P2",
                "batch_number": "BS-2024-001",
                "quantity": 50,
                "production_date": "2024-01-12",
                "is_active": True,
            },
        ],
    )
    repo.upsert_records(
        "sales",
        [
            {
                "id": "S1",
                "paymentStatus": "paid",
                "orderStatus": "delivered",
                "amount": "300",
                "deliveryFee": "0",
                "createdAt": _iso(datetime(2024, 1, 15, 10)),
                "customer": {"id": "C1", "country": "Ghana", "region": "Ashanti"},
                "lineItems": [
                    {
                        "productId": "P1",
                        "requestedQuantity": 30,
                        "finalPrice": "10",
                        "batchAllocations": [{"batchId": "B1", "quantity": 30}],
                    }
                ],
            },
            {
                "id": "S2",
                "payment_status": "pending_payment",
                "amount": 100,
                "created_at": _iso(datetime(2024, 1, 15, 12)),
                "line_items": [
                    {
                        "product_id": "P1",
                        "requested_quantity": 10,
                        "final_price": 10,
                        "batch_allocations": [{"batch_id": "B1", "quantity": 10}],
                    }
                ],
            },
            {
                "id": "S3",
                "payment_status": "paid",
                "amount": 100,
                "delivery_fee": 12.5,
                "created_at": _iso(datetime(2024, 1, 16, 9)),
                "customer_country": "Ghana",
                "customer_region": "Volta",
                "line_items": [
                    {
                        "product_id": "P2",
                        "requested_quantity": 20,
                        "final_price": 5,
                        "batch_allocations": [{"batch_id": "B2", "quantity": 20}],
                    }
                ],
            },
            {
                "id": "S4",
                "payment_status": "paid",
                "amount": 40,
                "created_at": _iso(datetime(2024, 1, 17, 9)),
                "deleted_at": _iso(datetime(2024, 1, 18, 9)),
                "line_items": [
                    {
                        "product_id": "P1",
                        "requested_quantity": 4,
                        "final_price": 10,
                        "batch_allocations": [{"batch_id": "B1", "quantity": 4}],
                    }
                ],
            },
        ],
    )
    return repo
