import asyncio
import uuid

import pytest
from sqlalchemy import select

from swrfph.app.api.audit_middleware import resource_for, severity_for
from swrfph.app.db.models.models_v1 import AuditLog, SecurityEvent
from swrfph.app.db.models.core_types import AuditAction, AuditSeverity
from swrfph.services import audit


def _logs(db_session):
    db_session.expire_all()
    return db_session.execute(select(AuditLog).order_by(AuditLog.created_at)).scalars().all()


def _events(db_session):
    db_session.expire_all()
    return db_session.execute(select(SecurityEvent)).scalars().all()


# ---------- middleware helpers ----------
def test_resource_for_maps_first_segment_and_finds_ids():
    oid = str(uuid.uuid4())
    assert resource_for(f"/v1/orders/{oid}/status") == ("Order", oid)
    assert resource_for("/v1/order-templates") == ("OrderTemplate", None)
    assert resource_for("/v1/settings/org_name") == ("Setting", None)
    assert resource_for("/v1/widgets/42") == ("Widgets", "42")
    assert resource_for("/") == ("Unknown", None)


@pytest.mark.parametrize(
    "action,status,expected",
    [
        (AuditAction.read, 200, AuditSeverity.low),
        (AuditAction.update, 200, AuditSeverity.low),
        (AuditAction.create, 201, AuditSeverity.medium),
        (AuditAction.delete, 204, AuditSeverity.medium),
        (AuditAction.read, 404, AuditSeverity.medium),
        (AuditAction.read, 503, AuditSeverity.high),
    ],
)
def test_severity_for(action, status, expected):
    assert severity_for(action, status) == expected


# ---------- middleware ----------
def test_successful_write_is_audited(client, admin, admin_headers, db_session):
    r = client.post("/v1/medicines", headers=admin_headers, json={"name": "Paracetamol", "price": 1, "quantity": 1})
    assert r.status_code == 201

    [log] = _logs(db_session)
    assert log.action == AuditAction.create
    assert log.resource == "Medicine"
    assert log.user_id == admin.id
    assert log.severity == AuditSeverity.medium
    assert log.details["status_code"] == 201
    assert "duration_ms" in log.details


def test_forbidden_request_leaves_security_event(client, provider, provider_headers, db_session):
    assert client.get("/v1/users", headers=provider_headers).status_code == 403

    [log] = _logs(db_session)
    assert log.severity == AuditSeverity.medium
    [event] = _events(db_session)
    assert event.event_type == audit.FORBIDDEN_ACCESS
    assert event.severity == AuditSeverity.high
    assert event.user_id == provider.id


def test_anonymous_request_leaves_unauthorized_event(client, db_session):
    assert client.get("/v1/orders").status_code == 401

    [event] = _events(db_session)
    assert event.event_type == audit.UNAUTHORIZED_ACCESS
    assert event.user_id is None


def test_audit_write_runs_off_the_event_loop(client, admin_headers, db_session, monkeypatch):
    seen = []
    record = audit.record_audit_log

    def tracking(*args, **kwargs):
        try:
            asyncio.get_running_loop()
            seen.append("loop")
        except RuntimeError:
            seen.append("worker")
        return record(*args, **kwargs)

    monkeypatch.setattr(audit, "record_audit_log", tracking)

    client.get("/v1/users", headers=admin_headers)

    assert seen == ["worker"]
    assert len(_logs(db_session)) == 1


def test_skipped_paths_are_not_audited(client, admin_headers, db_session):
    client.get("/health")
    client.get("/v1/audit/logs", headers=admin_headers)

    assert _logs(db_session) == []


# ---------- admin API ----------
def test_audit_log_listing_and_stats(client, admin_headers, provider_headers, db_session):
    audit.record_audit_log(
        db_session, action=AuditAction.delete, resource="Medicine", description="Removed stock", severity=AuditSeverity.critical
    )
    audit.record_audit_log(db_session, action=AuditAction.read, resource="Order", description="Viewed order")
    db_session.commit()

    assert client.get("/v1/audit/logs", headers=provider_headers).status_code == 403

    page = client.get("/v1/audit/logs", headers=admin_headers, params={"severity": "CRITICAL"}).json()
    assert [log["description"] for log in page["data"]] == ["Removed stock"]

    page = client.get("/v1/audit/logs", headers=admin_headers, params={"search": "viewed"}).json()
    assert page["pagination"]["total"] == 1

    stats = client.get("/v1/audit/logs/stats", headers=admin_headers).json()
    # audit endpoints are never audited themselves, the 403 above included
    assert stats["critical_logs"] == 1
    assert stats["low_logs"] == 1
    assert stats["total_logs"] == 2


def test_manual_audit_entry(client, admin, admin_headers):
    r = client.post(
        "/v1/audit/logs",
        headers=admin_headers,
        json={"action": "UPDATE", "resource": "Setting", "description": "Rotated keys", "severity": "HIGH"},
    )
    assert r.status_code == 201
    assert r.json()["user_id"] == admin.id
    assert r.json()["severity"] == "HIGH"


def test_resolve_security_event(client, admin, admin_headers, db_session):
    event = audit.record_security_event(db_session, event_type="SUSPICIOUS_ACTIVITY", description="odd")
    db_session.commit()

    stats = client.get("/v1/audit/security-events/stats", headers=admin_headers).json()
    assert stats["unresolved_events"] == 1

    r = client.patch(f"/v1/audit/security-events/{event.id}/resolve", headers=admin_headers)
    assert r.json()["resolved"] is True
    assert r.json()["resolved_by"] == admin.id

    listing = client.get("/v1/audit/security-events", headers=admin_headers, params={"resolved": False}).json()
    assert listing["data"] == []
    assert client.patch("/v1/audit/security-events/missing/resolve", headers=admin_headers).status_code == 404
