from __future__ import annotations

import json
from pathlib import Path

import pytest

from batch_ledger.cli import run
from batch_ledger.ingestion.load_snapshots import read_snapshot


def _write(path: Path, payload: object) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


@pytest.fixture()
def snapshots(tmp_path: Path) -> dict[str, Path]:
    return {
        "products": _write(
            tmp_path / "products.json",
            [{"id": "P1", "name": "Raw Shea Butter", "category": "shea_butter", "wholesale_price": 5}],
        ),
        "batches": _write(
            tmp_path / "batches.json",
            {
                "data": [
                    {
                        "id": "B1",
                        "product_id": "P1",
                        "batch_number": "SB-1",
                        "quantity": 40,
                        "production_date": "2024-01-10",
                    }
                ]
            },
        ),
    }


def test_read_snapshot_rejects_unwrapped_objects(tmp_path: Path) -> None:
    path = _write(tmp_path / "odd.json", {"unexpected": {"id": "x"}})

    with pytest.raises(ValueError):
        read_snapshot(path)


def test_load_then_report(tmp_path: Path, snapshots: dict[str, Path], capsys) -> None:
    db_path = str(tmp_path / "cli.db")

    exit_code = run(
        [
            "--db-path",
            db_path,
            "load",
            "--products",
            str(snapshots["products"]),
            "--batches",
            str(snapshots["batches"]),
        ]
    )
    assert exit_code == 0
    assert json.loads(capsys.readouterr().out) == {"products": 1, "batches": 1}

    exit_code = run(["--db-path", db_path, "report", "inventory"])
    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["inventory"][0]["total_stock"] == 40
    assert payload["inventory"][0]["is_low_stock"] is True


def test_report_errors_exit_with_status_two(tmp_path: Path, capsys) -> None:
    exit_code = run(["--db-path", str(tmp_path / "cli.db"), "report", "stock-movement"])

    assert exit_code == 2
    assert capsys.readouterr().out == ""


def test_date_only_bounds_cover_the_whole_day(tmp_path: Path, capsys) -> None:
    db_path = str(tmp_path / "cli.db")
    sales = _write(
        tmp_path / "sales.json",
        [
            {
                "id": "S1",
                "payment_status": "paid",
                "amount": 50,
                "created_at": "2024-01-15T18:30:00+00:00",
                "line_items": [
                    {"product_id": "P1", "requested_quantity": 5, "final_price": 10}
                ],
            }
        ],
    )
    assert run(["--db-path", db_path, "load", "--sales", str(sales)]) == 0
    capsys.readouterr()

    exit_code = run(
        ["--db-path", db_path, "report", "sales", "--from", "2024-01-15", "--to", "2024-01-15"]
    )

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out)["summary"]["total_sales"] == 1
