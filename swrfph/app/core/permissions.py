"""Role to capability table.

Every protected endpoint declares the capability it needs; roles never get
compared directly outside of this module.
"""

from __future__ import annotations

import enum

from swrfph.app.db.models.core_types import Role


class Capability(str, enum.Enum):
    manage_users = "MANAGE_USERS"
    manage_inventory = "MANAGE_INVENTORY"
    place_orders = "PLACE_ORDERS"
    manage_orders = "MANAGE_ORDERS"
    view_all_orders = "VIEW_ALL_ORDERS"
    view_order_stats = "VIEW_ORDER_STATS"
    use_order_templates = "USE_ORDER_TEMPLATES"
    read_notifications = "READ_NOTIFICATIONS"
    manage_notifications = "MANAGE_NOTIFICATIONS"
    view_audit = "VIEW_AUDIT"
    manage_settings = "MANAGE_SETTINGS"
    read_settings = "READ_SETTINGS"
    manage_invoices = "MANAGE_INVOICES"
    read_invoices = "READ_INVOICES"
    view_analytics = "VIEW_ANALYTICS"
    view_own_analytics = "VIEW_OWN_ANALYTICS"
    view_dashboard = "VIEW_DASHBOARD"
    view_admin_dashboard = "VIEW_ADMIN_DASHBOARD"
    run_reports = "RUN_REPORTS"
    maintain_reports = "MAINTAIN_REPORTS"


_SHARED = frozenset(
    {
        Capability.view_order_stats,
        Capability.use_order_templates,
        Capability.read_notifications,
        Capability.read_settings,
        Capability.read_invoices,
        Capability.view_own_analytics,
        Capability.view_dashboard,
        Capability.run_reports,
    }
)

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.admin: _SHARED
    | {
        Capability.manage_users,
        Capability.manage_inventory,
        Capability.manage_orders,
        Capability.view_all_orders,
        Capability.manage_notifications,
        Capability.view_audit,
        Capability.manage_settings,
        Capability.manage_invoices,
        Capability.view_analytics,
        Capability.view_admin_dashboard,
        Capability.maintain_reports,
    },
    Role.provider: _SHARED | {Capability.place_orders},
}


def has_capability(role: Role | str | None, capability: Capability) -> bool:
    if role is None:
        return False
    try:
        role = Role(role)
    except ValueError:
        return False
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def is_admin(role: Role | str | None) -> bool:
    # admins see every user's data in scoped listings
    return has_capability(role, Capability.view_all_orders)
