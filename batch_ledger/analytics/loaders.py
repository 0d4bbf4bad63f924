"""Conversion of stored raw records into validated analytics models.

Records may come from the storefront API (camelCase keys, nested ``product``
and ``customer`` objects) or from our own snapshots (snake_case). Both shapes
are accepted. A record that still fails validation is skipped with a warning
so that one malformed row does not take a whole report down.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable, Iterator, Sequence, TypeVar

from pydantic import BaseModel, ValidationError

from ..persistence import LedgerRepository
from .models import Batch, PaymentStatus, Product, ProductCategory, Sale
from .periods import DateRange

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_MISSING = object()


def _first_present(source: dict, keys: Sequence[str], default: Any = None) -> Any:
    for key in keys:
        value = source.get(key, _MISSING)
        if value is not _MISSING and value is not None:
            return value
    return default


def _nested_id(source: dict, flat_keys: Sequence[str], nested_key: str) -> Any:
    value = _first_present(source, flat_keys)
    if value is not None:
        return value
    nested = source.get(nested_key)
    if isinstance(nested, dict):
        return nested.get("id")
    return None


def _parse_float(value: object, default: float | None = None) -> float | None:
    if value is None or value == "":
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def _normalise_product(record: dict) -> dict[str, Any]:
    return {
        "id": record.get("id"),
        "name": _first_present(record, ("name", "product_name"), ""),
        "category": record.get("category"),
        "wholesale_price": _parse_float(
            _first_present(record, ("wholesale_price", "wholesalePrice", "wholesale")), 0.0
        ),
        "retail_price": _parse_float(
            _first_present(record, ("retail_price", "retailPrice", "retail")), 0.0
        ),
        "deleted_at": _first_present(record, ("deleted_at", "deletedAt")),
    }


def _normalise_batch(record: dict) -> dict[str, Any]:
    return {
        "id": record.get("id"),
        "product_id": _nested_id(record, ("product_id", "productId"), "product"),
        "batch_number": _first_present(record, ("batch_number", "batchNumber")),
        "quantity": record.get("quantity"),
        "production_date": _first_present(record, ("production_date", "productionDate")),
        "expiry_date": _first_present(record, ("expiry_date", "expiryDate")),
        "is_active": _first_present(record, ("is_active", "isActive"), True),
        "deleted_at": _first_present(record, ("deleted_at", "deletedAt")),
    }


def _normalise_line_item(item: dict) -> dict[str, Any]:
    allocations = _first_present(item, ("batch_allocations", "batchAllocations"), [])
    return {
        "product_id": _first_present(item, ("product_id", "productId")),
        "requested_quantity": _first_present(
            item, ("requested_quantity", "requestedQuantity", "quantity")
        ),
        "final_price": _parse_float(
            _first_present(item, ("final_price", "finalPrice", "price"))
        ),
        "batch_allocations": [
            {
                "batch_id": _first_present(allocation, ("batch_id", "batchId")),
                "quantity": allocation.get("quantity"),
            }
            for allocation in allocations
            if isinstance(allocation, dict)
        ],
    }


def _normalise_sale(record: dict) -> dict[str, Any]:
    customer = record.get("customer") if isinstance(record.get("customer"), dict) else {}
    line_items = _first_present(record, ("line_items", "lineItems"), [])
    return {
        "id": record.get("id"),
        "customer_id": _nested_id(record, ("customer_id", "customerId"), "customer"),
        "payment_status": _first_present(record, ("payment_status", "paymentStatus")),
        "order_status": _first_present(record, ("order_status", "orderStatus"), "pending"),
        "amount": _parse_float(record.get("amount")),
        "delivery_fee": _parse_float(_first_present(record, ("delivery_fee", "deliveryFee"))),
        "created_at": _first_present(record, ("created_at", "createdAt")),
        "deleted_at": _first_present(record, ("deleted_at", "deletedAt")),
        "line_items": [
            _normalise_line_item(item) for item in line_items if isinstance(item, dict)
        ],
        "customer_country": _first_present(
            record, ("customer_country",), customer.get("country")
        ),
        "customer_region": _first_present(
            record, ("customer_region",), customer.get("region")
        ),
    }


def _iter_models(
    repo: LedgerRepository,
    resource: str,
    model: type[ModelT],
    normalise: Callable[[dict], dict[str, Any]],
) -> Iterator[ModelT]:
    for record in repo.iter_records(resource):
        try:
            yield model.model_validate(normalise(record))
        except ValidationError as exc:
            logger.warning(
                "Skipping invalid %s record %s: %s",
                resource,
                record.get("id"),
                "; ".join(
                    f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                    for error in exc.errors()
                ),
            )


def parse_product(record: dict) -> Product:
    return Product.model_validate(_normalise_product(record))


def find_product_by_id(repo: LedgerRepository, product_id: str) -> Product | None:
    """Return the non-deleted product with ``product_id``, if any."""

    record = repo.get_record("products", product_id)
    if record is None:
        return None
    try:
        product = parse_product(record)
    except ValidationError:
        logger.warning("Stored product %s is invalid and will be ignored", product_id)
        return None
    return None if product.is_deleted else product


def find_products(repo: LedgerRepository) -> list[Product]:
    """All non-deleted products."""

    return [
        product
        for product in _iter_models(repo, "products", Product, _normalise_product)
        if not product.is_deleted
    ]


def find_sales(
    repo: LedgerRepository,
    *,
    date_from: date | datetime | None = None,
    date_to: date | datetime | None = None,
    product_id: str | None = None,
) -> list[Sale]:
    """Paid, non-deleted sales, optionally within an inclusive date range.

    The range only applies when both ends are given. ``product_id`` keeps
    sales with at least one line item for that product.
    """

    window = DateRange.from_bounds(date_from, date_to)
    sales: list[Sale] = []
    for sale in _iter_models(repo, "sales", Sale, _normalise_sale):
        if sale.payment_status != PaymentStatus.PAID or sale.is_deleted:
            continue
        if window and not window.contains(sale.created_at):
            continue
        if product_id and not any(
            item.product_id == product_id for item in sale.line_items
        ):
            continue
        sales.append(sale)
    return sales


def find_batches(
    repo: LedgerRepository,
    *,
    active: bool | None = None,
    date_from: date | datetime | None = None,
    date_to: date | datetime | None = None,
    product_id: str | None = None,
    category: ProductCategory | str | None = None,
) -> list[Batch]:
    """Non-deleted batches filtered by activity, production date and product."""

    window = DateRange.from_bounds(date_from, date_to)
    category_by_product: dict[str, ProductCategory | None] = {}

    def _category_of(batch_product_id: str) -> ProductCategory | None:
        if batch_product_id not in category_by_product:
            product = find_product_by_id(repo, batch_product_id)
            category_by_product[batch_product_id] = product.category if product else None
        return category_by_product[batch_product_id]

    batches: list[Batch] = []
    for batch in _iter_models(repo, "batches", Batch, _normalise_batch):
        if batch.is_deleted:
            continue
        if active is not None and batch.is_active != active:
            continue
        if window and not window.contains(batch.production_date):
            continue
        if product_id and batch.product_id != product_id:
            continue
        if category and _category_of(batch.product_id) != category:
            continue
        batches.append(batch)
    return batches


__all__ = [
    "find_batches",
    "find_product_by_id",
    "find_products",
    "find_sales",
    "parse_product",
]
