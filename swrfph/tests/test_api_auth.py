from sqlalchemy import select

from swrfph.app.db.models.models_v1 import AuditLog, SecurityEvent, User
from swrfph.app.db.models.core_types import AuditAction, Role
from swrfph.services import audit

PASSWORD = "secret-pass-1"


def _login(client, email, password=PASSWORD):
    return client.post("/v1/auth/login", json={"email": email, "password": password})


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/v1/health").status_code == 404


def test_register_creates_provider_and_returns_tokens(client, db_session):
    r = client.post(
        "/v1/auth/register",
        json={"email": "New@Clinic.org", "name": "New Clinic", "password": "longenough"},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"] and body["refresh_token"]

    user = db_session.execute(select(User).where(User.email == "new@clinic.org")).scalar_one()
    assert user.role == Role.provider

    profile = client.get("/v1/auth/profile", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert profile.json()["email"] == "new@clinic.org"
    assert "password_hash" not in profile.json()


def test_register_duplicate_email_conflicts(client, provider):
    r = client.post(
        "/v1/auth/register",
        json={"email": provider.email, "name": "Dup", "password": "longenough"},
    )
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "conflict"


def test_register_short_password_is_rejected(client):
    r = client.post("/v1/auth/register", json={"email": "a@b.c", "name": "A", "password": "short"})
    assert r.status_code == 422


def test_login_success_writes_login_audit(client, provider, db_session):
    r = _login(client, provider.email)
    assert r.status_code == 200, r.text

    logs = db_session.execute(select(AuditLog).where(AuditLog.action == AuditAction.login)).scalars().all()
    assert [log.user_id for log in logs] == [provider.id]


def test_login_failure_records_audit_and_security_event(client, provider, db_session):
    r = _login(client, provider.email, "wrong-password")
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "Invalid credentials"

    failed = db_session.execute(select(AuditLog).where(AuditLog.action == AuditAction.login_failed)).scalars().all()
    assert len(failed) == 1
    events = db_session.execute(select(SecurityEvent)).scalars().all()
    assert [e.event_type for e in events] == [audit.FAILED_LOGIN_ATTEMPT]


def test_unknown_email_gets_same_answer(client):
    r = _login(client, "nobody@test.local")
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "Invalid credentials"


def test_refresh_then_logout_invalidates_refresh_token(client, provider):
    tokens = _login(client, provider.email).json()

    r = client.post("/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 200
    assert r.json()["access_token"]

    headers = {"Authorization": f"Bearer {tokens['access_token']}"}
    assert client.post("/v1/auth/logout", headers=headers).status_code == 200

    r = client.post("/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert r.status_code == 401


def test_access_token_cannot_be_used_as_refresh_token(client, provider):
    tokens = _login(client, provider.email).json()

    r = client.post("/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert r.status_code == 401


def test_missing_or_garbage_token_is_unauthorized(client):
    assert client.get("/v1/auth/profile").status_code == 401
    r = client.get("/v1/auth/profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    assert r.headers["www-authenticate"] == "Bearer"


def test_password_reset_flow(client, provider, db_session):
    r = client.post("/v1/auth/forgot-password", json={"email": provider.email})
    assert r.status_code == 200

    db_session.expire_all()
    token = db_session.get(User, provider.id).reset_token
    assert token

    r = client.post("/v1/auth/reset-password", json={"token": token, "new_password": "brand-new-pass"})
    assert r.status_code == 200

    assert _login(client, provider.email, PASSWORD).status_code == 401
    assert _login(client, provider.email, "brand-new-pass").status_code == 200

    # tokens are single use
    r = client.post("/v1/auth/reset-password", json={"token": token, "new_password": "another-pass"})
    assert r.status_code == 400


def test_forgot_password_does_not_reveal_unknown_email(client, provider):
    known = client.post("/v1/auth/forgot-password", json={"email": provider.email}).json()
    unknown = client.post("/v1/auth/forgot-password", json={"email": "nobody@test.local"}).json()
    assert known == unknown
