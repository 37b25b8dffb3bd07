"""Granular permission system for ClinicDesk RBAC.

Design:
  - Each role has a set of DEFAULT permissions (defined here, not in DB).
  - Administrators can grant/revoke individual permissions per user via
    `User.custom_permissions` (a JSON dict of {perm: True/False} overrides).
  - `resolve_permissions(role, custom_permissions)` computes the effective
    permission set, which is embedded in the access token.

Permission naming: `<resource>.<action>`
"""

from __future__ import annotations


ALL_PERMISSIONS: set[str] = {
    # User administration
    "users.read",
    "users.write",

    # Clinic settings (tax rate, currency, address)
    "clinic.read",
    "clinic.write",

    # Clients (patients)
    "client.read",
    "client.write",

    # Service catalogue
    "product.read",
    "product.write",

    # Scheduling
    "appointment.read",
    "appointment.write",

    # Billing
    "order.read",
    "order.write",
    "payment.read",
    "payment.write",

    # Reports & audit
    "reports.read",
    "activity.read",
}


ROLE_DEFAULTS: dict[str, set[str]] = {
    "administrator": ALL_PERMISSIONS.copy(),

    "practitioner": {
        "clinic.read",
        "client.read", "client.write",
        "product.read",
        "appointment.read", "appointment.write",
        "order.read", "order.write",
        "payment.read",
    },

    "front_desk": {
        "clinic.read",
        "client.read", "client.write",
        "product.read",
        "appointment.read", "appointment.write",
        "order.read", "order.write",
        "payment.read", "payment.write",
    },
}


def resolve_permissions(
    role: str,
    custom_overrides: dict[str, bool] | None = None,
) -> list[str]:
    """Compute effective permissions for a user.

    1. Start with the role's defaults.
    2. Apply custom_overrides: {perm: True} adds, {perm: False} removes.
    3. Return a sorted list (for stable token claims).
    """
    base = ROLE_DEFAULTS.get(role, set()).copy()

    if custom_overrides:
        for perm, granted in custom_overrides.items():
            if perm not in ALL_PERMISSIONS:
                continue
            if granted:
                base.add(perm)
            else:
                base.discard(perm)

    return sorted(base)


def has_permission(user_permissions: list[str] | set[str], required: str) -> bool:
    return required in user_permissions
