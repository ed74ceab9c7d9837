import json
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from openpyxl import load_workbook

from swrfph.app.core.errors import PermissionDeniedError, ValidationError
from swrfph.app.db.models.models_v1 import Report
from swrfph.app.db.models.core_types import OrderStatus, ReportFormat, ReportStatus
from swrfph.services import orders, reports


@pytest.fixture
def sales(db_session, provider, make_medicine):
    para = make_medicine("Paracetamol", price="2.00", quantity=100)
    first = orders.place_order(db_session, user_id=provider.id, items=[(para.id, 5)])
    orders.place_order(db_session, user_id=provider.id, items=[(para.id, 2)])
    third = orders.place_order(db_session, user_id=provider.id, items=[(para.id, 1)])
    orders.update_order_status(db_session, first.id, OrderStatus.delivered)
    orders.update_order_status(db_session, third.id, OrderStatus.delivered)
    return para


# ---------- config and frames ----------
@pytest.mark.parametrize(
    "config",
    [
        {"data_source": "invoices"},
        {"data_source": "orders", "fields": ["password_hash"]},
        {"data_source": "orders", "group_by": ["nope"]},
        {"data_source": "orders", "group_by": ["status"], "aggregations": [{"field": "id", "operation": "median"}]},
        {"data_source": "orders", "sorting": [{"field": "id", "direction": "sideways"}]},
    ],
)
def test_invalid_configs_are_rejected(config):
    with pytest.raises(ValidationError):
        reports.validate_config(config)


def test_prebuilt_templates_are_valid():
    for template in reports.PREBUILT_TEMPLATES:
        reports.validate_config(template["config"])


def test_grouped_orders_frame(db_session, sales):
    df = reports.build_frame(
        db_session,
        {
            "data_source": "orders",
            "group_by": ["status"],
            "aggregations": [
                {"field": "total_price", "operation": "sum"},
                {"field": "id", "operation": "count"},
            ],
            "sorting": [{"field": "total_price_sum", "direction": "desc"}],
        },
    )

    assert list(df.columns) == ["status", "total_price_sum", "id_count"]
    assert df.to_dict("records") == [
        {"status": "DELIVERED", "total_price_sum": 12.0, "id_count": 2},
        {"status": "PENDING", "total_price_sum": 4.0, "id_count": 1},
    ]


def test_field_selection_and_filters(db_session, make_medicine):
    make_medicine("Low", quantity=3, category="A")
    make_medicine("Plenty", quantity=300, category="A")
    make_medicine("Other", quantity=1, category="B")

    df = reports.build_frame(
        db_session,
        {
            "data_source": "medicines",
            "filters": {"low_stock": True, "category": ["A"]},
            "fields": ["name", "quantity"],
        },
    )

    assert df.to_dict("records") == [{"name": "Low", "quantity": 3}]


def test_analytics_source_is_single_row(db_session, sales, provider):
    df = reports.build_frame(db_session, {"data_source": "analytics", "fields": ["total_orders", "total_revenue"]})

    assert df.to_dict("records") == [{"total_orders": 3, "total_revenue": 12.0}]


def test_bad_date_range_is_a_validation_error(db_session):
    with pytest.raises(ValidationError):
        reports.build_frame(db_session, {"data_source": "users", "filters": {"date_range": {"start": "yesterday"}}})


# ---------- files ----------
@pytest.mark.parametrize("fmt", list(ReportFormat))
def test_every_format_writes_a_file(db_session, sales, tmp_path, fmt):
    df = reports.build_frame(db_session, {"data_source": "orders", "fields": ["id", "status", "total_price", "created_at"]})

    path = reports.write_report_file(df, fmt, "Sales / Q1", tmp_path)

    assert path.exists()
    assert path.suffix == reports.FILE_EXTENSIONS[fmt]
    assert "/" not in path.name and " " not in path.name


def test_json_and_excel_contents(db_session, sales, tmp_path):
    df = reports.build_frame(db_session, {"data_source": "orders", "fields": ["status", "total_price"]})

    data = json.loads(reports.write_report_file(df, ReportFormat.json, "sales", tmp_path).read_text())
    assert sorted(r["total_price"] for r in data) == [2.0, 4.0, 10.0]

    sheet = load_workbook(reports.write_report_file(df, ReportFormat.excel, "sales", tmp_path)).active
    assert [c.value for c in sheet[1]] == ["status", "total_price"]
    assert sheet["A1"].font.bold
    assert sheet.max_row == 4


def test_pdf_truncates_long_reports(db_session, tmp_path, make_medicine):
    for i in range(reports.PDF_MAX_ROWS + 5):
        make_medicine(f"Medicine {i:03d}")
    df = reports.build_frame(db_session, {"data_source": "medicines", "fields": ["name", "price"]})

    path = reports.write_report_file(df, ReportFormat.pdf, "Catalog", tmp_path)

    assert path.read_bytes().startswith(b"%PDF")


# ---------- templates ----------
def test_template_visibility_and_ownership(db_session, provider, make_user):
    other = make_user("other@test.local")
    private = reports.create_template(
        db_session, user_id=provider.id, name="Mine", category="Sales", config={"data_source": "orders"}
    )
    public = reports.create_template(
        db_session,
        user_id=other.id,
        name="Shared",
        category="Inventory",
        config={"data_source": "medicines"},
        is_public=True,
    )

    assert {t.id for t in reports.list_templates(db_session, user_id=provider.id)} == {private.id, public.id}
    assert [t.id for t in reports.list_templates(db_session, user_id=other.id)] == [public.id]
    assert [t.id for t in reports.list_templates(db_session, user_id=provider.id, category="Sales")] == [private.id]

    with pytest.raises(PermissionDeniedError):
        reports.update_template(db_session, public.id, user_id=provider.id, name="Hijacked")
    with pytest.raises(PermissionDeniedError):
        reports.delete_template(db_session, public.id, user_id=provider.id)


# ---------- execution ----------
def test_execute_report_records_completed_execution(db_session, settings, sales, provider):
    report = reports.create_report(
        db_session,
        user_id=provider.id,
        name="Orders",
        format=ReportFormat.csv,
        config={"data_source": "orders", "fields": ["id", "total_price"]},
    )

    result = reports.execute_report(db_session, report.id, user=provider, settings=settings)

    assert result["success"] is True
    assert result["rows"] == 3
    assert Path(result["file_path"]).parent == Path(settings.reports_dir)
    refreshed = reports.get_report(db_session, report.id, user=provider)
    assert refreshed.status == ReportStatus.completed
    assert refreshed.expires_at > datetime.utcnow() + timedelta(days=settings.report_ttl_days - 1)
    assert [e.status for e in refreshed.executions] == [ReportStatus.completed]


def test_failed_execution_is_recorded(db_session, settings, provider):
    report = reports.create_report(
        db_session,
        user_id=provider.id,
        name="Broken",
        format=ReportFormat.json,
        config={"data_source": "orders", "filters": {"status": ["LOST"]}},
    )

    with pytest.raises(ValidationError):
        reports.execute_report(db_session, report.id, user=provider, settings=settings)

    refreshed = reports.get_report(db_session, report.id, user=provider)
    assert refreshed.status == ReportStatus.failed
    assert refreshed.error_message
    assert refreshed.executions[0].status == ReportStatus.failed


def test_report_needs_config_or_template(db_session, provider):
    with pytest.raises(ValidationError):
        reports.create_report(db_session, user_id=provider.id, name="Empty", format=ReportFormat.csv)


def test_cleanup_removes_only_expired_files(db_session, settings, sales, provider):
    config = {"data_source": "orders", "fields": ["id"]}
    old = reports.create_report(db_session, user_id=provider.id, name="Old", format=ReportFormat.csv, config=config)
    new = reports.create_report(db_session, user_id=provider.id, name="New", format=ReportFormat.csv, config=config)
    old_path = Path(reports.execute_report(db_session, old.id, user=provider, settings=settings)["file_path"])
    new_path = Path(reports.execute_report(db_session, new.id, user=provider, settings=settings)["file_path"])

    db_session.get(Report, old.id).expires_at = datetime.utcnow() - timedelta(hours=1)
    db_session.commit()

    assert reports.cleanup_expired_files(db_session) == 1
    assert not old_path.exists()
    assert new_path.exists()


# ---------- API ----------
def test_report_api_flow(client, provider_headers, admin_headers, make_user, auth_headers, sales):
    assert client.get("/v1/reports/templates/prebuilt", headers=provider_headers).json()[0]["id"] == "sales-summary"

    r = client.post(
        "/v1/reports",
        headers=provider_headers,
        json={"name": "Stock", "format": "JSON", "config": {"data_source": "medicines", "fields": ["name", "quantity"]}},
    )
    assert r.status_code == 201, r.text
    report_id = r.json()["id"]

    r = client.post(f"/v1/reports/{report_id}/execute", headers=provider_headers)
    assert r.status_code == 200, r.text
    assert r.json()["rows"] == 1

    r = client.get(f"/v1/reports/{report_id}/download", headers=provider_headers)
    assert r.status_code == 200
    assert r.json() == [{"name": "Paracetamol", "quantity": 92}]

    detail = client.get(f"/v1/reports/{report_id}", headers=provider_headers).json()
    assert detail["status"] == "COMPLETED"
    assert len(detail["executions"]) == 1

    stranger = auth_headers(make_user("stranger@test.local"))
    assert client.get(f"/v1/reports/{report_id}", headers=stranger).status_code == 404
    assert client.get(f"/v1/reports/{report_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/v1/reports/{report_id}", headers=admin_headers).status_code == 403

    assert client.post("/v1/reports/cleanup", headers=provider_headers).status_code == 403
    assert client.post("/v1/reports/cleanup", headers=admin_headers).json()["count"] == 0

    assert client.delete(f"/v1/reports/{report_id}", headers=provider_headers).status_code == 204
    assert client.get("/v1/reports", headers=provider_headers).json() == []


def test_invalid_report_config_is_400(client, provider_headers):
    r = client.post(
        "/v1/reports",
        headers=provider_headers,
        json={"name": "Bad", "format": "CSV", "config": {"data_source": "secrets"}},
    )
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "validation_error"
