from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from batch_ledger.analytics import ReportService
from batch_ledger.persistence import LedgerRepository
from batch_ledger.web.app import app, get_report_service, get_repository

NOW = datetime(2024, 2, 1, tzinfo=timezone.utc)


@pytest.fixture()
def client(ledger_repo: LedgerRepository) -> TestClient:
    get_repository.cache_clear()
    app.dependency_overrides[get_repository] = lambda: ledger_repo
    app.dependency_overrides[get_report_service] = lambda: ReportService(
        ledger_repo, now=NOW
    )
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()
    get_repository.cache_clear()


def test_batches_endpoint_returns_reconciled_rows(client: TestClient) -> None:
    response = client.get("/reports/batches")

    assert response.status_code == 200
    payload = response.json()
    assert payload["summary"]["total_sold"] == 50
    assert payload["batches"][0]["remaining_quantity"] == 70


def test_sales_endpoint_with_time_series(client: TestClient) -> None:
    response = client.get(
        "/reports/sales",
        params={
            "from_date": "2024-01-01T00:00:00",
            "to_date": "2024-01-31T23:59:59",
            "aggregation": "weekly",
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["time_series"] == [{"date": "2024-01-14", "value": 400.0}]
    assert payload["trends"] is None


def test_inventory_endpoint_filters_by_category(client: TestClient) -> None:
    response = client.get("/reports/inventory", params={"category": "black_soap"})

    assert response.status_code == 200
    assert [item["product_id"] for item in response.json()["inventory"]] == ["P2"]


def test_unknown_category_is_rejected(client: TestClient) -> None:
    response = client.get("/reports/inventory", params={"category": "candles"})

    assert response.status_code == 422


def test_stock_movement_without_dates_is_not_found(client: TestClient) -> None:
    response = client.get("/reports/stock-movement")

    assert response.status_code == 404
    assert "Date range is required" in response.json()["detail"]


def test_reversed_date_range_is_bad_request(client: TestClient) -> None:
    response = client.get(
        "/reports/stock-movement",
        params={
            "from_date": "2024-02-01T00:00:00",
            "to_date": "2024-01-01T00:00:00",
        },
    )

    assert response.status_code == 400


def test_top_products_and_comparative(client: TestClient) -> None:
    top = client.get("/reports/sales/top-products", params={"limit": 1})
    comparative = client.get(
        "/reports/sales/comparative",
        params={
            "current_from_date": "2024-01-01T00:00:00",
            "current_to_date": "2024-01-31T23:59:59",
            "previous_from_date": "2023-12-01T00:00:00",
            "previous_to_date": "2023-12-31T23:59:59",
        },
    )

    assert top.status_code == 200
    assert top.json()["top_products"][0]["product_id"] == "P1"
    assert comparative.status_code == 200
    assert comparative.json()["summary"]["revenue_growth_percentage"] == 0


def test_dashboard_pdf_is_generated(client: TestClient) -> None:
    response = client.get("/reports/dashboard.pdf")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/pdf")
    assert "dashboard-20240201.pdf" in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")


def test_overview_counts_stored_records(client: TestClient) -> None:
    response = client.get("/api/overview")

    assert response.status_code == 200
    counts = {item["resource"]: item["count"] for item in response.json()["resources"]}
    assert counts == {"products": 3, "batches": 2, "sales": 4}
