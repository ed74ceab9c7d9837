from datetime import date

from swrfph.app.db.models.models_v1 import Notification
from swrfph.app.db.models.core_types import NotificationType


def _order(client, headers, medicine_id, quantity=1):
    r = client.post("/v1/orders", headers=headers, json={"items": [{"medicine_id": medicine_id, "quantity": quantity}]})
    assert r.status_code == 201, r.text
    return r.json()


# ---------- notifications ----------
def test_provider_sees_own_and_system_notifications(
    client, db_session, admin_headers, provider, provider_headers, make_user
):
    other = make_user("other@test.local")
    db_session.add_all(
        [
            Notification(user_id=provider.id, event="Mine", details="for me", type=NotificationType.order),
            Notification(user_id=other.id, event="Theirs", details="not for me", type=NotificationType.order),
        ]
    )
    db_session.commit()
    r = client.post(
        "/v1/notifications",
        headers=admin_headers,
        json={"event": "Maintenance", "details": "Down tonight", "type": "SYSTEM"},
    )
    assert r.status_code == 201
    assert r.json()["user_id"] is None

    body = client.get("/v1/notifications", headers=provider_headers).json()
    assert sorted(n["event"] for n in body["data"]) == ["Maintenance", "Mine"]
    assert body["stats"]["total"] == 2
    assert body["stats"]["unread"] == 2
    assert body["stats"]["by_type"] == {"ORDER": 1, "SYSTEM": 1}

    assert client.get("/v1/notifications", headers=admin_headers).json()["pagination"]["total"] == 3


def test_provider_cannot_create_system_notifications(client, provider_headers):
    r = client.post("/v1/notifications", headers=provider_headers, json={"event": "x", "details": "y"})
    assert r.status_code == 403


def test_mark_read_and_delete_rules(client, db_session, admin_headers, provider, provider_headers, make_user):
    other = make_user("other@test.local")
    mine = Notification(user_id=provider.id, event="Mine", details="d", type=NotificationType.order)
    theirs = Notification(user_id=other.id, event="Theirs", details="d", type=NotificationType.order)
    system = Notification(user_id=None, event="System", details="d", type=NotificationType.system)
    db_session.add_all([mine, theirs, system])
    db_session.commit()

    r = client.patch(f"/v1/notifications/{mine.id}/read", headers=provider_headers)
    assert r.json()["is_read"] is True
    assert client.patch(f"/v1/notifications/{theirs.id}/read", headers=provider_headers).status_code == 404

    # system notices are listed to providers but their read flag is shared
    assert client.patch(f"/v1/notifications/{system.id}/read", headers=provider_headers).status_code == 404
    assert client.delete(f"/v1/notifications/{system.id}", headers=provider_headers).status_code == 404
    assert client.delete(f"/v1/notifications/{mine.id}", headers=provider_headers).status_code == 204

    stats = client.get("/v1/notifications/stats", headers=admin_headers).json()
    assert stats == {"total": 2, "unread": 2, "by_type": {"ORDER": 1, "SYSTEM": 1}}

    assert client.patch(f"/v1/notifications/{system.id}/read", headers=admin_headers).json()["is_read"] is True


def test_mark_all_read_only_touches_own(client, db_session, provider, provider_headers, make_user):
    other = make_user("other@test.local")
    db_session.add_all(
        [
            Notification(user_id=provider.id, event="a", details="d", type=NotificationType.order),
            Notification(user_id=provider.id, event="b", details="d", type=NotificationType.order),
            Notification(user_id=other.id, event="c", details="d", type=NotificationType.order),
        ]
    )
    db_session.commit()

    assert client.patch("/v1/notifications/read-all", headers=provider_headers).json() == {"updated": 2}
    stats = client.get("/v1/notifications/stats", headers=provider_headers).json()
    assert stats["unread"] == 0


# ---------- settings ----------
def test_settings_crud_and_groups(client, admin_headers, provider_headers):
    r = client.post(
        "/v1/settings",
        headers=admin_headers,
        json={"key": "backup_hour", "value": "2", "category": "BACKUP"},
    )
    assert r.status_code == 201
    assert client.post(
        "/v1/settings", headers=admin_headers, json={"key": "backup_hour", "value": "3"}
    ).status_code == 409

    assert client.get("/v1/settings/backup_hour", headers=provider_headers).json()["value"] == "2"
    assert client.patch(
        "/v1/settings/backup_hour", headers=provider_headers, json={"value": "4"}
    ).status_code == 403

    r = client.put(
        "/v1/settings/notifications",
        headers=admin_headers,
        json={"email_alerts": True, "sms_alerts": False},
    )
    assert {s["key"]: s["value"] for s in r.json()} == {"email_alerts": "true", "sms_alerts": "false"}

    r = client.put("/v1/settings/organization", headers=admin_headers, json={"org_name": "Central"})
    assert [s["key"] for s in r.json()] == ["org_name"]
    by_category = client.get("/v1/settings", headers=admin_headers, params={"category": "ORGANIZATION"}).json()
    assert [s["value"] for s in by_category] == ["Central"]

    assert client.delete("/v1/settings/backup_hour", headers=admin_headers).status_code == 204
    assert client.get("/v1/settings/backup_hour", headers=admin_headers).status_code == 404


# ---------- invoices ----------
def test_invoice_lifecycle_and_scoping(
    client, admin_headers, provider_headers, make_user, auth_headers, make_medicine
):
    para = make_medicine("Paracetamol", price="4.00")
    order = _order(client, provider_headers, para.id, 5)
    payload = {
        "order_id": order["id"],
        "customer_name": "Clinic",
        "customer_email": "billing@clinic.org",
        "billing_address": "1 Main St",
        "amount": 20.0,
        "tax": 2.0,
        "total_amount": 22.0,
        "due_date": date(2026, 12, 31).isoformat(),
    }

    assert client.post("/v1/invoices", headers=provider_headers, json=payload).status_code == 403
    r = client.post("/v1/invoices", headers=admin_headers, json=payload)
    assert r.status_code == 201, r.text
    invoice = r.json()
    assert invoice["invoice_number"] == "INV-001"
    assert invoice["status"] == "PENDING"

    assert client.get(f"/v1/invoices/{invoice['id']}", headers=provider_headers).status_code == 200
    assert client.get(f"/v1/invoices/order/{order['id']}", headers=provider_headers).json()["id"] == invoice["id"]

    stranger = auth_headers(make_user("stranger@test.local"))
    assert client.get(f"/v1/invoices/{invoice['id']}", headers=stranger).status_code == 404

    r = client.patch(f"/v1/invoices/{invoice['id']}/status", headers=admin_headers, json={"status": "PAID"})
    assert r.json()["status"] == "PAID"

    second = client.post("/v1/invoices", headers=admin_headers, json=payload).json()
    assert second["invoice_number"] == "INV-002"


def test_invoice_for_missing_order_is_404(client, admin_headers):
    payload = {
        "order_id": "missing",
        "customer_name": "Clinic",
        "customer_email": "billing@clinic.org",
        "billing_address": "1 Main St",
        "amount": 1,
        "total_amount": 1,
        "due_date": "2026-12-31",
    }
    assert client.post("/v1/invoices", headers=admin_headers, json=payload).status_code == 404


# ---------- order templates ----------
def test_template_roundtrip_and_order_from_template(client, provider_headers, make_user, auth_headers, make_medicine):
    para = make_medicine("Paracetamol", price="2.00", quantity=10)
    amox = make_medicine("Amoxicillin", price="5.00", quantity=10)

    r = client.post(
        "/v1/order-templates",
        headers=provider_headers,
        json={
            "name": "Weekly",
            "items": [
                {"medicine_id": para.id, "quantity": 2},
                {"medicine_id": amox.id, "quantity": 1},
                {"medicine_id": para.id, "quantity": 1},
            ],
        },
    )
    assert r.status_code == 201, r.text
    template = r.json()
    assert {i["medicine_name"]: i["quantity"] for i in template["items"]} == {"Paracetamol": 3, "Amoxicillin": 1}

    other = auth_headers(make_user("other@test.local"))
    assert client.get(f"/v1/order-templates/{template['id']}", headers=other).status_code == 404
    assert client.get("/v1/order-templates", headers=other).json() == []

    r = client.put(
        f"/v1/order-templates/{template['id']}",
        headers=provider_headers,
        json={"items": [{"medicine_id": amox.id, "quantity": 4}]},
    )
    assert [(i["medicine_id"], i["quantity"]) for i in r.json()["items"]] == [(amox.id, 4)]
    assert r.json()["name"] == "Weekly"

    r = client.post(f"/v1/order-templates/{template['id']}/create-order", headers=provider_headers)
    assert r.status_code == 201, r.text
    assert r.json()["total_price"] == 20.0
    assert client.get(f"/v1/medicines/{amox.id}").json()["quantity"] == 6

    assert client.delete(f"/v1/order-templates/{template['id']}", headers=provider_headers).status_code == 204


def test_template_order_respects_stock(client, provider_headers, make_medicine):
    para = make_medicine("Paracetamol", quantity=1)
    template = client.post(
        "/v1/order-templates",
        headers=provider_headers,
        json={"name": "Too much", "items": [{"medicine_id": para.id, "quantity": 5}]},
    ).json()

    r = client.post(f"/v1/order-templates/{template['id']}/create-order", headers=provider_headers)
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "insufficient_stock"
