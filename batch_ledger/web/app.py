"""FastAPI application exposing the ledger reports as JSON and PDF."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache
from io import BytesIO
from typing import Any, AsyncIterator

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..analytics import ProductCategory, ReportService, SortOrder, TimeAggregation
from ..config import get_settings
from ..exceptions import InvalidReportParameterError, MissingDateRangeError, ReportError
from ..logging_config import configure_logging
from ..persistence import LedgerRepository

load_dotenv()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)
    logger.debug("Logging configured for the reports API")
    yield


app = FastAPI(
    title="Batch Ledger Reports",
    description="Sales, batch and inventory reports reconciled from recorded allocations.",
    version="0.1.0",
    lifespan=lifespan,
)


def _format_metric(value: Any, *, decimals: int = 2) -> str:
    """Format metric values for the PDF tables."""

    if value is None:
        return "N/A"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float):
        return f"{value:,.{decimals}f}"
    if isinstance(value, int):
        return f"{value:,}"
    return str(value)


@lru_cache(maxsize=1)
def get_repository() -> LedgerRepository:
    """Initialise (and cache) the repository at the configured DB path."""

    return LedgerRepository(get_settings().ledger_db_path)


def get_report_service(
    repo: LedgerRepository = Depends(get_repository),
) -> ReportService:
    settings = get_settings()
    return ReportService(
        repo,
        low_stock_threshold=settings.low_stock_threshold,
        top_products_limit=settings.top_products_limit,
    )


@app.exception_handler(MissingDateRangeError)
async def _missing_range(_: Request, exc: MissingDateRangeError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": exc.detail})


@app.exception_handler(InvalidReportParameterError)
async def _invalid_parameter(_: Request, exc: InvalidReportParameterError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": exc.detail})


@app.exception_handler(ReportError)
async def _report_error(_: Request, exc: ReportError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": exc.detail})


@app.get("/reports/sales")
def sales_report(
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    category: ProductCategory | None = None,
    product_id: str | None = None,
    aggregation: TimeAggregation | None = None,
    include_trends: bool = False,
    service: ReportService = Depends(get_report_service),
) -> dict[str, Any]:
    """Revenue, order count and AOV with optional time series and trends."""

    return service.sales_report(
        date_from=from_date,
        date_to=to_date,
        category=category,
        product_id=product_id,
        aggregation=aggregation,
        include_trends=include_trends,
    )


@app.get("/reports/sales/by-product")
def sales_by_product(
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    category: ProductCategory | None = None,
    service: ReportService = Depends(get_report_service),
) -> dict[str, Any]:
    return service.sales_by_product(date_from=from_date, date_to=to_date, category=category)


@app.get("/reports/sales/by-category")
def sales_by_category(
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    service: ReportService = Depends(get_report_service),
) -> dict[str, Any]:
    return service.sales_by_category(date_from=from_date, date_to=to_date)


@app.get("/reports/sales/top-products")
def top_products(
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    category: ProductCategory | None = None,
    limit: int | None = Query(default=None, ge=1, le=100),
    sort_order: SortOrder = SortOrder.DESC,
    service: ReportService = Depends(get_report_service),
) -> dict[str, Any]:
    return service.top_products(
        date_from=from_date,
        date_to=to_date,
        category=category,
        limit=limit,
        sort_order=sort_order,
    )


@app.get("/reports/sales/revenue-distribution")
def revenue_distribution(
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    category: ProductCategory | None = None,
    service: ReportService = Depends(get_report_service),
) -> dict[str, Any]:
    return service.revenue_distribution(
        date_from=from_date, date_to=to_date, category=category
    )


@app.get("/reports/sales/comparative")
def comparative_report(
    current_from_date: datetime,
    current_to_date: datetime,
    previous_from_date: datetime,
    previous_to_date: datetime,
    category: ProductCategory | None = None,
    service: ReportService = Depends(get_report_service),
) -> dict[str, Any]:
    return service.comparative_report(
        current_from=current_from_date,
        current_to=current_to_date,
        previous_from=previous_from_date,
        previous_to=previous_to_date,
        category=category,
    )


@app.get("/reports/delivery")
def delivery_report(
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    service: ReportService = Depends(get_report_service),
) -> dict[str, Any]:
    return service.delivery_report(date_from=from_date, date_to=to_date)


@app.get("/reports/batches")
def batch_report(
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    product_id: str | None = None,
    category: ProductCategory | None = None,
    service: ReportService = Depends(get_report_service),
) -> dict[str, Any]:
    return service.batch_report(
        date_from=from_date, date_to=to_date, product_id=product_id, category=category
    )


@app.get("/reports/inventory")
def inventory_report(
    category: ProductCategory | None = None,
    product_id: str | None = None,
    low_stock_only: bool = False,
    low_stock_threshold: float | None = Query(default=None, ge=0),
    service: ReportService = Depends(get_report_service),
) -> dict[str, Any]:
    return service.inventory_report(
        category=category,
        product_id=product_id,
        low_stock_only=low_stock_only,
        low_stock_threshold=low_stock_threshold,
    )


@app.get("/reports/stock-movement")
def stock_movement_report(
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    product_id: str | None = None,
    aggregation: TimeAggregation = TimeAggregation.DAILY,
    service: ReportService = Depends(get_report_service),
) -> dict[str, Any]:
    return service.stock_movement_report(
        date_from=from_date,
        date_to=to_date,
        product_id=product_id,
        aggregation=aggregation,
    )


@app.get("/reports/batch-aging")
def batch_aging_report(
    product_id: str | None = None,
    category: ProductCategory | None = None,
    service: ReportService = Depends(get_report_service),
) -> dict[str, Any]:
    return service.batch_aging_report(product_id=product_id, category=category)


@app.get("/reports/dashboard")
def dashboard_summary(
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    category: ProductCategory | None = None,
    product_id: str | None = None,
    service: ReportService = Depends(get_report_service),
) -> dict[str, Any]:
    return service.dashboard_summary(
        date_from=from_date, date_to=to_date, category=category, product_id=product_id
    )


def _build_pdf_table(data: list[list[str]], *, header: bool = True) -> Table:
    table = Table(data, hAlign="LEFT")
    style = [
        ("ALIGN", (0, 0), (-1, -1), "LEFT"),
        ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#d7deea")),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
    ]
    if header and data:
        style.extend(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#8a5a19")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ]
        )
    table.setStyle(TableStyle(style))
    return table


_SECTION_ROWS: tuple[tuple[str, str, tuple[tuple[str, str, int], ...]], ...] = (
    (
        "sales",
        "Sales",
        (
            ("Total revenue", "total_revenue", 2),
            ("Paid orders", "total_sales", 0),
            ("Average order value", "average_order_value", 2),
            ("Units sold", "total_quantity_sold", 0),
        ),
    ),
    (
        "inventory",
        "Inventory (gross stock)",
        (
            ("Products in stock", "total_products", 0),
            ("Units in active batches", "total_stock_quantity", 0),
            ("Inventory value (wholesale)", "total_inventory_value", 2),
            ("Low stock products", "low_stock_items", 0),
        ),
    ),
    (
        "production",
        "Production",
        (
            ("Batches", "total_batches", 0),
            ("Units produced", "total_production", 0),
            ("Units sold from batches", "total_sold", 0),
            ("Units remaining", "total_remaining", 0),
            ("Average utilisation (%)", "average_utilization", 2),
        ),
    ),
)


def build_dashboard_pdf(report: dict[str, Any]) -> BytesIO:
    buffer = BytesIO()
    document = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        leftMargin=40,
        rightMargin=40,
        topMargin=60,
        bottomMargin=36,
    )
    styles = getSampleStyleSheet()
    story: list[Any] = [
        Paragraph("Dashboard summary", styles["Title"]),
        Paragraph(f"Generated: {report.get('timestamp', '-')}", styles["BodyText"]),
        Spacer(1, 12),
    ]

    summary = report.get("summary", {})
    for key, title, fields in _SECTION_ROWS:
        section = summary.get(key) or {}
        story.append(Paragraph(title, styles["Heading2"]))
        rows = [["Metric", "Value"]]
        for label, field, decimals in fields:
            rows.append([label, _format_metric(section.get(field), decimals=decimals)])
        story.append(_build_pdf_table(rows))
        story.append(Spacer(1, 12))

    trends = summary.get("sales_trends")
    if trends:
        story.append(Paragraph("Growth vs. previous period", styles["Heading2"]))
        story.append(
            _build_pdf_table(
                [
                    ["Metric", "Change", "Change (%)"],
                    [
                        "Revenue",
                        _format_metric(trends.get("revenue_growth")),
                        _format_metric(trends.get("revenue_growth_percentage")),
                    ],
                    [
                        "Orders",
                        _format_metric(trends.get("sales_growth"), decimals=0),
                        _format_metric(trends.get("sales_growth_percentage")),
                    ],
                    [
                        "Average order value",
                        _format_metric(trends.get("average_order_value_growth")),
                        _format_metric(trends.get("average_order_value_growth_percentage")),
                    ],
                ]
            )
        )
        story.append(Spacer(1, 12))

    top = report.get("top_products") or []
    if top:
        story.append(Paragraph("Top products", styles["Heading2"]))
        rows = [["#", "Product", "Units", "Revenue"]]
        for product in top:
            rows.append(
                [
                    str(product.get("rank")),
                    product.get("product_name") or product.get("product_id", "-"),
                    _format_metric(product.get("total_quantity_sold"), decimals=0),
                    _format_metric(product.get("total_revenue")),
                ]
            )
        story.append(_build_pdf_table(rows))

    document.build(story)
    buffer.seek(0)
    return buffer


@app.get("/reports/dashboard.pdf")
def dashboard_pdf(
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    category: ProductCategory | None = None,
    service: ReportService = Depends(get_report_service),
) -> StreamingResponse:
    report = service.dashboard_summary(
        date_from=from_date, date_to=to_date, category=category
    )
    filename = f"dashboard-{service.now():%Y%m%d}.pdf"
    return StreamingResponse(
        build_dashboard_pdf(report),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/overview")
def api_overview(repo: LedgerRepository = Depends(get_repository)) -> dict[str, Any]:
    """Record counts per stored resource."""

    overview = repo.get_resource_overview()
    return {
        "resources": [{"resource": slug, **data} for slug, data in overview.items()]
    }
