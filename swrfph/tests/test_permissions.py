import pytest
from sqlalchemy import func, select

from swrfph.app.core.permissions import ROLE_CAPABILITIES, Capability, has_capability, is_admin
from swrfph.app.db.models.core_types import Role
from swrfph.app.db.seed import run_seed
from swrfph.app.db.models.models_v1 import Medicine, Setting, User


@pytest.mark.parametrize(
    "capability",
    [Capability.manage_users, Capability.manage_inventory, Capability.view_audit, Capability.maintain_reports],
)
def test_admin_only_capabilities(capability):
    assert has_capability(Role.admin, capability)
    assert not has_capability(Role.provider, capability)


def test_only_providers_place_orders():
    assert has_capability(Role.provider, Capability.place_orders)
    assert not has_capability(Role.admin, Capability.place_orders)


def test_every_role_has_a_capability_set():
    assert set(ROLE_CAPABILITIES) == set(Role)


def test_unknown_or_missing_role_has_nothing():
    assert not has_capability(None, Capability.read_settings)
    assert not has_capability("SUPERUSER", Capability.read_settings)
    assert has_capability("PROVIDER", Capability.read_settings)


def test_is_admin():
    assert is_admin(Role.admin)
    assert not is_admin(Role.provider)


def test_seed_is_idempotent(db_session):
    run_seed(db_session)
    run_seed(db_session)

    counts = {
        model.__name__: db_session.execute(select(func.count()).select_from(model)).scalar_one()
        for model in (User, Medicine, Setting)
    }
    assert counts["User"] == 2
    assert counts["Medicine"] > 0
    assert counts["Setting"] > 0
    roles = set(db_session.execute(select(User.role)).scalars())
    assert roles == {Role.admin, Role.provider}
