"""Data models consumed and produced by the analytics modules."""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProductCategory(str, Enum):
    SHEA_BUTTER = "shea_butter"
    BLACK_SOAP = "black_soap"
    COSMETICS = "cosmetics"
    SHEA_SOAP = "shea_soap"
    POWDERED_SOAP = "powdered_soap"
    DAWADAWA = "dawadawa"
    ESSENTIAL_OILS = "essential_oils"
    HAIR_OIL = "hair_oil"
    GRAINS = "grains"


class PaymentStatus(str, Enum):
    INVOICE_REQUESTED = "invoice_requested"
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    AWAITING_DELIVERY = "awaiting_delivery"
    REFUNDED = "refunded"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PACKAGING = "packaging"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Product(BaseModel):
    """A catalogue entry. Read-only from the reporting side."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Product identifier")
    name: str = Field("", description="Display name")
    category: ProductCategory = Field(..., description="Product category")
    wholesale_price: float = Field(0.0, ge=0, description="Wholesale unit price")
    retail_price: float = Field(0.0, ge=0, description="Retail unit price")
    deleted_at: datetime | None = Field(None, description="Soft-delete timestamp")

    @field_validator("id", mode="before")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip() if isinstance(value, str) else value

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class Batch(BaseModel):
    """A production run of a single product.

    ``quantity`` is the produced amount and never changes after creation;
    corrections are recorded as separate adjustment batches.
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Batch identifier")
    product_id: str = Field(..., description="Product produced in the batch")
    batch_number: str = Field(..., description="Human readable, unique batch number")
    quantity: int = Field(..., ge=0, description="Produced units")
    production_date: date = Field(..., description="Day the batch was produced")
    expiry_date: date | None = Field(None, description="Best-before date, if any")
    is_active: bool = Field(True, description="Whether the batch is still sellable")
    deleted_at: datetime | None = Field(None, description="Soft-delete timestamp")

    @field_validator("id", "product_id", "batch_number", mode="before")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip() if isinstance(value, str) else value

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class BatchAllocation(BaseModel):
    """Quantity a line item drew from a specific batch."""

    model_config = ConfigDict(extra="ignore")

    batch_id: str
    quantity: int = Field(..., ge=0)

    @field_validator("batch_id", mode="before")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip() if isinstance(value, str) else value


class LineItem(BaseModel):
    """A product line embedded in a sale."""

    model_config = ConfigDict(extra="ignore")

    product_id: str
    requested_quantity: int = Field(..., gt=0)
    final_price: float = Field(..., ge=0, description="Unit price actually charged")
    batch_allocations: list[BatchAllocation] = Field(default_factory=list)

    @field_validator("product_id", mode="before")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip() if isinstance(value, str) else value

    @property
    def revenue(self) -> float:
        return self.final_price * self.requested_quantity

    @property
    def allocated_quantity(self) -> int:
        return sum(allocation.quantity for allocation in self.batch_allocations)


class Sale(BaseModel):
    """A customer order together with its line items."""

    model_config = ConfigDict(extra="ignore")

    id: str
    customer_id: str | None = None
    payment_status: PaymentStatus
    order_status: OrderStatus = OrderStatus.PENDING
    amount: float | None = Field(
        None, description="Recorded order total, including fees and discounts"
    )
    delivery_fee: float | None = None
    created_at: datetime
    deleted_at: datetime | None = None
    line_items: list[LineItem] = Field(default_factory=list)
    customer_country: str | None = None
    customer_region: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip() if isinstance(value, str) else value

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_reportable(self) -> bool:
        """Only paid, non-deleted sales count as sales in reports."""

        return self.payment_status == PaymentStatus.PAID and not self.is_deleted


class SalesMetrics(BaseModel):
    total_revenue: float = 0.0
    total_sales: int = 0
    average_order_value: float = 0.0
    total_quantity_sold: int = 0


class GrowthMetrics(BaseModel):
    revenue_growth: float = 0.0
    revenue_growth_percentage: float = 0.0
    sales_growth: int = 0
    sales_growth_percentage: float = 0.0
    average_order_value_growth: float = 0.0
    average_order_value_growth_percentage: float = 0.0


class TimeSeriesPoint(BaseModel):
    date: str
    value: float


class ProductSales(BaseModel):
    product_id: str
    product_name: str
    category: ProductCategory
    total_quantity_sold: int = 0
    total_revenue: float = 0.0
    number_of_sales: int = 0
    average_price: float = 0.0


class CategorySales(BaseModel):
    category: ProductCategory
    total_revenue: float = 0.0
    total_quantity_sold: int = 0
    number_of_sales: int = 0
    percentage_of_total: float = 0.0


class TopProduct(BaseModel):
    product_id: str
    product_name: str
    category: ProductCategory
    total_quantity_sold: int
    total_revenue: float
    number_of_sales: int
    rank: int


class RevenueShare(BaseModel):
    product_id: str
    product_name: str
    total_revenue: float
    percentage_of_total: float


class BatchProduction(BaseModel):
    batch_id: str
    batch_number: str
    product_id: str
    product_name: str | None
    production_date: date
    expiry_date: date | None
    initial_quantity: int
    remaining_quantity: int
    sold_quantity: int
    sold_percentage: float
    days_until_expiry: int
    is_active: bool


class InventoryItem(BaseModel):
    product_id: str
    product_name: str
    category: ProductCategory
    total_stock: int
    total_value: float
    number_of_batches: int
    oldest_batch_date: date
    newest_batch_date: date
    is_low_stock: bool


class AgingStatus(str, Enum):
    FRESH = "fresh"
    AGING = "aging"
    CRITICAL = "critical"
    EXPIRED = "expired"


class BatchAging(BaseModel):
    batch_id: str
    batch_number: str
    product_id: str
    product_name: str | None
    production_date: date
    expiry_date: date | None
    days_until_expiry: int
    remaining_quantity: int
    age_in_days: int
    status: AgingStatus


class StockMovement(BaseModel):
    date: str
    produced: int = 0
    sold: int = 0
    net_change: int = 0
    closing_stock: int = 0


class AllocationMismatch(BaseModel):
    """A line item whose batch allocations do not add up to its quantity."""

    sale_id: str
    line_index: int
    product_id: str
    requested_quantity: int
    allocated_quantity: int

    @property
    def difference(self) -> int:
        return self.allocated_quantity - self.requested_quantity


class DeliveryLocation(BaseModel):
    country: str
    region: str | None
    total_orders: int
    total_delivery_fees: float
    average_delivery_fee: float
    orders_with_delivery: int
    orders_without_delivery: int


__all__ = [
    "AgingStatus",
    "AllocationMismatch",
    "Batch",
    "BatchAging",
    "BatchAllocation",
    "BatchProduction",
    "CategorySales",
    "DeliveryLocation",
    "GrowthMetrics",
    "InventoryItem",
    "LineItem",
    "OrderStatus",
    "PaymentStatus",
    "Product",
    "ProductCategory",
    "ProductSales",
    "RevenueShare",
    "Sale",
    "SalesMetrics",
    "StockMovement",
    "TimeSeriesPoint",
    "TopProduct",
]
