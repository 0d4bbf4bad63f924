"""SQLite storage for the raw product, batch and sale records."""
from __future__ import annotations

import json
import logging
import sqlite3
from collections import OrderedDict
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator, Sequence

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS products (
    id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    stored_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS batches (
    id TEXT PRIMARY KEY,
    product_id TEXT,
    production_date TEXT,
    data TEXT NOT NULL,
    stored_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_batches_product ON batches (product_id);

CREATE TABLE IF NOT EXISTS sales (
    id TEXT PRIMARY KEY,
    created_at TEXT,
    data TEXT NOT NULL,
    stored_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sales_created_at ON sales (created_at);
"""


class LedgerRepository:
    """SQLite-backed store of JSON payloads, one table per resource.

    Records are kept as delivered by the sales and production workflows; the
    analytics loaders are responsible for validating and filtering them.
    """

    RESOURCES = ("products", "batches", "sales")

    # Extra columns copied out of the payload so rows can be ordered cheaply.
    INDEXED_FIELDS: dict[str, tuple[str, ...]] = {
        "products": (),
        "batches": ("product_id", "production_date"),
        "sales": ("created_at",),
    }

    ORDER_BY: dict[str, str] = {
        "products": "id",
        "batches": "production_date, id",
        "sales": "created_at, id",
    }

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connection() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _validate_resource(self, resource: str) -> str:
        if resource not in self.RESOURCES:
            raise ValueError(f"Unknown resource: {resource}")
        return resource

    def upsert_records(self, resource: str, records: Iterable[dict[str, Any]]) -> int:
        """Insert or replace ``records``; returns how many were stored.

        Records without a usable ``id`` are skipped and counted in a warning.
        """

        table = self._validate_resource(resource)
        indexed = self.INDEXED_FIELDS[table]
        columns = ("id", *indexed, "data", "stored_at")
        placeholders = ", ".join("?" for _ in columns)
        updates = ", ".join(f"{column}=excluded.{column}" for column in columns[1:])
        now = datetime.now(timezone.utc).isoformat()

        rows = 0
        skipped = 0
        with self._connection() as conn:
            for record in records:
                raw_id = record.get("id")
                record_id = str(raw_id).strip() if raw_id is not None else ""
                if not record_id:
                    skipped += 1
                    if logger.isEnabledFor(logging.DEBUG):
                        logger.debug(
                            "Skipping %s record without id. Keys present: %s",
                            resource,
                            sorted(record.keys()),
                        )
                    continue
                values = [record_id]
                for field in indexed:
                    value = _indexed_value(record, field)
                    values.append(str(value) if value is not None else None)
                values.append(json.dumps(record, ensure_ascii=False, default=str))
                values.append(now)
                conn.execute(
                    f"""
                    INSERT INTO {table} ({", ".join(columns)})
                    VALUES ({placeholders})
                    ON CONFLICT(id) DO UPDATE SET {updates}
                    """,
                    values,
                )
                rows += 1
        if skipped:
            logger.warning(
                "Skipped %s %s records without an id. Enable DEBUG for details.",
                skipped,
                resource,
            )
        return rows

    def iter_records(self, resource: str) -> Iterator[dict[str, Any]]:
        """Yield every stored payload of ``resource`` in a stable order."""

        table = self._validate_resource(resource)
        with self._connection() as conn:
            rows = conn.execute(
                f"SELECT id, data FROM {table} ORDER BY {self.ORDER_BY[table]}"
            ).fetchall()
        for row in rows:
            payload = json.loads(row["data"]) if row["data"] else {}
            payload.setdefault("id", row["id"])
            yield payload

    def get_record(self, resource: str, record_id: str) -> dict[str, Any] | None:
        """Return a single stored payload by id."""

        table = self._validate_resource(resource)
        record_id = record_id.strip()
        if not record_id:
            return None

        with self._connection() as conn:
            row = conn.execute(
                f"SELECT id, data FROM {table} WHERE id = ? LIMIT 1",
                (record_id,),
            ).fetchone()

        if not row:
            return None
        payload = json.loads(row["data"]) if row["data"] else {}
        payload.setdefault("id", row["id"])
        return payload

    def get_resource_overview(self) -> OrderedDict[str, dict[str, Any]]:
        """Record count and most recent store time per resource."""

        overview: OrderedDict[str, dict[str, Any]] = OrderedDict()
        with self._connection() as conn:
            for resource in self.RESOURCES:
                row = conn.execute(
                    f"""
                    SELECT COUNT(*) AS count, MAX(stored_at) AS last_stored
                    FROM {resource}
                    """
                ).fetchone()
                overview[resource] = {
                    "count": int(row["count"]) if row and row["count"] is not None else 0,
                    "last_stored": row["last_stored"] if row else None,
                }
        return overview


def _indexed_value(record: dict[str, Any], field: str) -> Any:
    """Read ``field`` from a snake_case or camelCase payload."""

    if field in record:
        return record[field]
    head, *rest = field.split("_")
    value = record.get(head + "".join(part.title() for part in rest))
    if value is None and field == "product_id":
        nested = record.get("product")
        if isinstance(nested, dict):
            value = nested.get("id")
    return value


def chunked(iterable: Iterable[dict], size: int) -> Iterator[Sequence[dict]]:
    batch = []
    for item in iterable:
        batch.append(item)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


__all__ = ["LedgerRepository", "SCHEMA", "chunked"]
