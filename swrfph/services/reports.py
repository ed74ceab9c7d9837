"""
Report templates, report definitions and report execution.

A report config looks like::

    {
        "data_source": "orders",                  # orders | users | medicines | analytics
        "filters": {"date_range": {"start": "2026-01-01", "end": "2026-12-31"},
                    "status": ["DELIVERED"], "category": ["Antibiotics"],
                    "user_id": "...", "role": "PROVIDER", "low_stock": true},
        "fields": ["id", "total_price"],
        "group_by": ["status"],
        "aggregations": [{"field": "total_price", "operation": "sum"}],
        "sorting": [{"field": "total_price_sum", "direction": "desc"}],
    }

Rows are pulled with the ORM and shaped with pandas; the frame is then
written as JSON, CSV, Excel (openpyxl) or PDF (fpdf2).
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pandas as pd
from fpdf import FPDF
from fpdf.enums import XPos, YPos
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from swrfph.app.core.config import Settings
from swrfph.app.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from swrfph.app.core.permissions import is_admin
from swrfph.app.db.models.models_v1 import Medicine, Order, Report, ReportExecution, ReportTemplate, User
from swrfph.app.db.models.core_types import OrderStatus, ReportFormat, ReportStatus, Role

logger = logging.getLogger(__name__)

SOURCE_COLUMNS = {
    "orders": ["id", "status", "total_price", "created_at", "updated_at", "user_name", "user_email", "item_count"],
    "users": ["id", "name", "email", "role", "created_at", "updated_at"],
    "medicines": ["id", "name", "description", "category", "price", "quantity", "created_at", "updated_at"],
    "analytics": ["total_orders", "total_users", "total_revenue", "low_stock_count", "generated_at"],
}

AGGREGATIONS = {"sum": "sum", "count": "count", "avg": "mean", "min": "min", "max": "max"}

FILE_EXTENSIONS = {
    ReportFormat.json: ".json",
    ReportFormat.csv: ".csv",
    ReportFormat.excel: ".xlsx",
    ReportFormat.pdf: ".pdf",
}

PDF_MAX_ROWS = 50
PDF_CELL_CHARS = 20
LOW_STOCK_QUANTITY = 50

PREBUILT_TEMPLATES = [
    {
        "id": "sales-summary",
        "name": "Sales Summary Report",
        "description": "Delivered orders grouped by status with revenue totals",
        "category": "Sales",
        "is_public": True,
        "config": {
            "data_source": "orders",
            "filters": {"status": ["DELIVERED"]},
            "fields": ["id", "total_price", "created_at", "user_name"],
            "group_by": ["status"],
            "aggregations": [
                {"field": "total_price", "operation": "sum"},
                {"field": "id", "operation": "count"},
            ],
        },
    },
    {
        "id": "inventory-status",
        "name": "Inventory Status Report",
        "description": "Current inventory levels and low stock alerts",
        "category": "Inventory",
        "is_public": True,
        "config": {
            "data_source": "medicines",
            "filters": {"low_stock": True},
            "fields": ["name", "category", "quantity", "price"],
            "sorting": [{"field": "quantity", "direction": "asc"}],
        },
    },
    {
        "id": "user-activity",
        "name": "User Activity Report",
        "description": "User registrations per role",
        "category": "Users",
        "is_public": True,
        "config": {
            "data_source": "users",
            "filters": {},
            "fields": ["name", "email", "role", "created_at"],
            "group_by": ["role"],
            "aggregations": [{"field": "id", "operation": "count"}],
        },
    },
    {
        "id": "financial-summary",
        "name": "Financial Summary Report",
        "description": "Order, user and revenue totals",
        "category": "Financial",
        "is_public": True,
        "config": {
            "data_source": "analytics",
            "filters": {},
            "fields": ["total_orders", "total_revenue", "total_users", "low_stock_count"],
        },
    },
]


# ---------- config ----------
def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Reject configs that could never execute; returns the config unchanged."""
    if not isinstance(config, dict):
        raise ValidationError("Report config must be an object")

    source = config.get("data_source")
    if source not in SOURCE_COLUMNS:
        raise ValidationError(f"Unknown data source: {source}", allowed=sorted(SOURCE_COLUMNS))

    columns = SOURCE_COLUMNS[source]
    unknown = [f for f in config.get("fields") or [] if f not in columns]
    unknown += [g for g in config.get("group_by") or [] if g not in columns]
    for agg in config.get("aggregations") or []:
        if agg.get("field") not in columns:
            unknown.append(agg.get("field"))
        if agg.get("operation") not in AGGREGATIONS:
            raise ValidationError(f"Unknown aggregation: {agg.get('operation')}", allowed=sorted(AGGREGATIONS))
    if unknown:
        raise ValidationError(f"Unknown fields for {source}: {', '.join(map(str, unknown))}")

    for sort in config.get("sorting") or []:
        if sort.get("direction", "asc") not in ("asc", "desc"):
            raise ValidationError("Sort direction must be 'asc' or 'desc'")
    return config


def _date_range(filters: dict) -> tuple[datetime | None, datetime | None]:
    date_range = filters.get("date_range") or {}
    try:
        start = datetime.fromisoformat(date_range["start"]) if date_range.get("start") else None
        end = datetime.fromisoformat(date_range["end"]) if date_range.get("end") else None
    except (TypeError, ValueError) as exc:
        raise ValidationError("date_range must hold ISO dates") from exc
    return start, end


# ---------- rows ----------
def _orders_rows(db: Session, filters: dict) -> list[dict]:
    stmt = select(Order).options(selectinload(Order.user), selectinload(Order.items))
    start, end = _date_range(filters)
    if start:
        stmt = stmt.where(Order.created_at >= start)
    if end:
        stmt = stmt.where(Order.created_at <= end)
    if filters.get("status"):
        try:
            statuses = [OrderStatus(s) for s in filters["status"]]
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        stmt = stmt.where(Order.status.in_(statuses))
    if filters.get("user_id"):
        stmt = stmt.where(Order.user_id == filters["user_id"])

    return [
        {
            "id": o.id,
            "status": o.status.value,
            "total_price": float(o.total_price),
            "created_at": o.created_at,
            "updated_at": o.updated_at,
            "user_name": o.user.name,
            "user_email": o.user.email,
            "item_count": len(o.items),
        }
        for o in db.execute(stmt.order_by(Order.created_at)).scalars()
    ]


def _users_rows(db: Session, filters: dict) -> list[dict]:
    stmt = select(User)
    start, end = _date_range(filters)
    if start:
        stmt = stmt.where(User.created_at >= start)
    if end:
        stmt = stmt.where(User.created_at <= end)
    if filters.get("role"):
        try:
            stmt = stmt.where(User.role == Role(filters["role"]))
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

    return [
        {
            "id": u.id,
            "name": u.name,
            "email": u.email,
            "role": u.role.value,
            "created_at": u.created_at,
            "updated_at": u.updated_at,
        }
        for u in db.execute(stmt.order_by(User.created_at)).scalars()
    ]


def _medicines_rows(db: Session, filters: dict) -> list[dict]:
    stmt = select(Medicine)
    if filters.get("category"):
        stmt = stmt.where(Medicine.category.in_(list(filters["category"])))
    if filters.get("low_stock"):
        stmt = stmt.where(Medicine.quantity < LOW_STOCK_QUANTITY)

    return [
        {
            "id": m.id,
            "name": m.name,
            "description": m.description,
            "category": m.category,
            "price": float(m.price),
            "quantity": m.quantity,
            "created_at": m.created_at,
            "updated_at": m.updated_at,
        }
        for m in db.execute(stmt.order_by(Medicine.name)).scalars()
    ]


def _analytics_rows(db: Session, filters: dict) -> list[dict]:
    revenue = db.execute(
        select(func.coalesce(func.sum(Order.total_price), 0)).where(Order.status == OrderStatus.delivered)
    ).scalar_one()
    return [
        {
            "total_orders": int(db.execute(select(func.count(Order.id))).scalar_one()),
            "total_users": int(db.execute(select(func.count(User.id))).scalar_one()),
            "total_revenue": float(revenue or 0),
            "low_stock_count": int(
                db.execute(select(func.count(Medicine.id)).where(Medicine.quantity < LOW_STOCK_QUANTITY)).scalar_one()
            ),
            "generated_at": datetime.utcnow(),
        }
    ]


ROW_BUILDERS = {
    "orders": _orders_rows,
    "users": _users_rows,
    "medicines": _medicines_rows,
    "analytics": _analytics_rows,
}


def build_frame(db: Session, config: dict[str, Any]) -> pd.DataFrame:
    validate_config(config)
    source = config["data_source"]
    rows = ROW_BUILDERS[source](db, config.get("filters") or {})
    df = pd.DataFrame(rows, columns=SOURCE_COLUMNS[source])

    group_by = list(config.get("group_by") or [])
    aggregations = config.get("aggregations") or []
    if group_by and aggregations:
        named = {
            f"{agg['field']}_{agg['operation']}": (agg["field"], AGGREGATIONS[agg["operation"]])
            for agg in aggregations
        }
        df = df.groupby(group_by, dropna=False).agg(**named).reset_index()
    elif config.get("fields"):
        df = df[list(config["fields"])]

    sorting = [s for s in config.get("sorting") or [] if s.get("field") in df.columns]
    if sorting:
        df = df.sort_values(
            by=[s["field"] for s in sorting],
            ascending=[s.get("direction", "asc") == "asc" for s in sorting],
        )
    return df.reset_index(drop=True)


# ---------- files ----------
def _latin1(value: Any) -> str:
    # core PDF fonts only cover latin-1
    return str(value).encode("latin-1", "replace").decode("latin-1")


def _write_excel(df: pd.DataFrame, path: Path) -> None:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Report")
        sheet = writer.sheets["Report"]
        for cell in sheet[1]:
            cell.font = Font(bold=True)
            cell.fill = PatternFill(fill_type="solid", fgColor="FFE0E0E0")
        for i in range(1, len(df.columns) + 1):
            sheet.column_dimensions[get_column_letter(i)].width = 15


def _write_pdf(df: pd.DataFrame, path: Path, title: str) -> None:
    pdf = FPDF(orientation="L")
    pdf.add_page()
    pdf.set_font("Helvetica", "B", 16)
    pdf.cell(0, 10, _latin1(title), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font("Helvetica", size=10)
    pdf.cell(0, 8, f"Generated: {datetime.utcnow():%Y-%m-%d %H:%M} UTC", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(4)

    if df.empty:
        pdf.cell(0, 8, "No data available", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    else:
        col_w = (pdf.w - pdf.l_margin - pdf.r_margin) / len(df.columns)
        pdf.set_font("Helvetica", "B", 9)
        for col in df.columns:
            pdf.cell(col_w, 7, _latin1(col)[:PDF_CELL_CHARS], border=1)
        pdf.ln()

        pdf.set_font("Helvetica", size=9)
        for row in df.head(PDF_MAX_ROWS).itertuples(index=False):
            for value in row:
                text = "" if pd.isna(value) else _latin1(value)
                pdf.cell(col_w, 6, text[:PDF_CELL_CHARS], border=1)
            pdf.ln()

        if len(df) > PDF_MAX_ROWS:
            pdf.ln(2)
            pdf.cell(0, 6, f"... and {len(df) - PDF_MAX_ROWS} more rows", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.output(str(path))


def write_report_file(df: pd.DataFrame, fmt: ReportFormat, name: str, reports_dir: Path) -> Path:
    reports_dir.mkdir(parents=True, exist_ok=True)
    stem = re.sub(r"[^A-Za-z0-9]", "_", name) or "report"
    path = reports_dir / f"{stem}_{datetime.utcnow():%Y%m%dT%H%M%S%f}{FILE_EXTENSIONS[fmt]}"

    if fmt == ReportFormat.json:
        df.to_json(path, orient="records", date_format="iso", indent=2)
    elif fmt == ReportFormat.csv:
        df.to_csv(path, index=False)
    elif fmt == ReportFormat.excel:
        _write_excel(df, path)
    elif fmt == ReportFormat.pdf:
        _write_pdf(df, path, name)
    else:
        raise ValidationError(f"Unsupported format: {fmt}")
    return path


# ---------- templates ----------
def create_template(
    db: Session,
    *,
    user_id: str,
    name: str,
    category: str,
    config: dict[str, Any],
    description: str | None = None,
    is_public: bool = False,
) -> ReportTemplate:
    template = ReportTemplate(
        name=name,
        description=description,
        category=category,
        is_public=is_public,
        created_by=user_id,
        config=validate_config(config),
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


def list_templates(db: Session, *, user_id: str, category: str | None = None) -> list[ReportTemplate]:
    stmt = (
        select(ReportTemplate)
        .where(or_(ReportTemplate.created_by == user_id, ReportTemplate.is_public.is_(True)))
        .order_by(ReportTemplate.created_at.desc(), ReportTemplate.id)
    )
    if category:
        stmt = stmt.where(ReportTemplate.category == category)
    return list(db.execute(stmt).scalars().all())


def get_template(db: Session, template_id: str, *, user_id: str) -> ReportTemplate:
    template = db.get(ReportTemplate, template_id)
    if not template or (template.created_by != user_id and not template.is_public):
        raise NotFoundError("ReportTemplate", template_id)
    return template


def _owned_template(db: Session, template_id: str, user_id: str) -> ReportTemplate:
    template = get_template(db, template_id, user_id=user_id)
    if template.created_by != user_id:
        raise PermissionDeniedError("Only the creator can change this template", template_id=template_id)
    return template


def update_template(db: Session, template_id: str, *, user_id: str, **changes) -> ReportTemplate:
    template = _owned_template(db, template_id, user_id)
    if changes.get("config") is not None:
        validate_config(changes["config"])
    for field, value in changes.items():
        if value is not None:
            setattr(template, field, value)
    db.commit()
    db.refresh(template)
    return template


def delete_template(db: Session, template_id: str, *, user_id: str) -> None:
    template = _owned_template(db, template_id, user_id)
    db.delete(template)
    db.commit()


# ---------- reports ----------
def create_report(
    db: Session,
    *,
    user_id: str,
    name: str,
    format: ReportFormat,
    config: dict[str, Any] | None = None,
    description: str | None = None,
    template_id: str | None = None,
    scheduled_at: datetime | None = None,
) -> Report:
    if template_id:
        template = get_template(db, template_id, user_id=user_id)
        config = config or template.config
    if not config:
        raise ValidationError("A report needs a config or a template")

    report = Report(
        name=name,
        description=description,
        template_id=template_id,
        created_by=user_id,
        config=validate_config(config),
        format=format,
        status=ReportStatus.pending,
        scheduled_at=scheduled_at,
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    return report


def list_reports(db: Session, *, user: User, status: ReportStatus | None = None) -> list[Report]:
    stmt = select(Report).order_by(Report.created_at.desc(), Report.id)
    if not is_admin(user.role):
        stmt = stmt.where(Report.created_by == user.id)
    if status:
        stmt = stmt.where(Report.status == status)
    return list(db.execute(stmt).scalars().all())


def get_report(db: Session, report_id: str, *, user: User) -> Report:
    report = db.execute(
        select(Report).options(selectinload(Report.executions)).where(Report.id == report_id)
    ).scalar_one_or_none()
    if not report or (report.created_by != user.id and not is_admin(user.role)):
        raise NotFoundError("Report", report_id)
    return report


def execute_report(db: Session, report_id: str, *, user: User, settings: Settings) -> dict:
    """
    Generate the report file now.

    The execution row is committed before any work starts so a failure is
    still recorded; the error is re-raised after marking both rows FAILED.
    """
    report = get_report(db, report_id, user=user)

    execution = ReportExecution(report_id=report.id, status=ReportStatus.processing)
    db.add(execution)
    report.status = ReportStatus.processing
    db.commit()

    try:
        df = build_frame(db, report.config)
        path = write_report_file(df, report.format, report.name, Path(settings.reports_dir))
    except Exception as exc:
        db.rollback()
        now = datetime.utcnow()
        message = getattr(exc, "message", None) or str(exc)
        for row in (execution, report):
            row.status = ReportStatus.failed
            row.completed_at = now
            row.error_message = message
        db.commit()
        logger.exception("Report %s execution failed", report_id)
        raise

    now = datetime.utcnow()
    size = path.stat().st_size
    for row in (execution, report):
        row.status = ReportStatus.completed
        row.completed_at = now
        row.file_path = str(path)
        row.file_size = size
        row.error_message = None
    report.expires_at = now + timedelta(days=settings.report_ttl_days)
    db.commit()

    logger.info("Report %s executed: %s (%d bytes, %d rows)", report_id, path.name, size, len(df))
    return {"success": True, "file_path": str(path), "file_size": size, "rows": len(df)}


def report_file(db: Session, report_id: str, *, user: User) -> tuple[Path, str]:
    """Path and download name of a generated report file."""
    report = get_report(db, report_id, user=user)
    if not report.file_path or not Path(report.file_path).exists():
        raise NotFoundError("ReportFile", report_id)

    path = Path(report.file_path)
    return path, f"{report.name}{path.suffix}"


def delete_report(db: Session, report_id: str, *, user: User) -> None:
    report = get_report(db, report_id, user=user)
    if report.created_by != user.id:
        raise PermissionDeniedError("Only the creator can delete this report", report_id=report_id)

    if report.file_path:
        Path(report.file_path).unlink(missing_ok=True)
    db.delete(report)
    db.commit()
    logger.info("Report %s deleted", report_id)


def cleanup_expired_files(db: Session) -> int:
    now = datetime.utcnow()
    expired = (
        db.execute(select(Report).where(Report.expires_at < now).where(Report.file_path.is_not(None)))
        .scalars()
        .all()
    )
    for report in expired:
        Path(report.file_path).unlink(missing_ok=True)
        report.file_path = None
        report.file_size = None
    db.commit()

    logger.info("Removed %d expired report files", len(expired))
    return len(expired)
