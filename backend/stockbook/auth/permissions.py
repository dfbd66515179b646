"""Permission system for Stockbook RBAC.

Design:
  - Each role has a set of DEFAULT permissions (defined here, not in DB).
  - `User.custom_permissions` holds {perm: True/False} overrides.
  - `resolve_permissions(role, custom_permissions)` computes the effective set.
  - A token may carry a precomputed `permissions` claim; otherwise the
    set is resolved from the user row on each request.

Permission naming: `<resource>.<action>`
"""

from __future__ import annotations


# ── All known permissions ───────────────────────────────────

ALL_PERMISSIONS: set[str] = {
    # Invoices
    "invoice.read",
    "invoice.write",          # create / edit
    "invoice.delete",

    # Payments against invoices
    "payment.write",
    "payment.revert",

    # Stock ledger
    "stock.read",
    "stock.write",

    # Reports, dashboard, sync verification
    "reports.read",

    # Warranty lookup
    "warranty.read",

    # Cross-client administration
    "clients.manage",
}


# ── Role → default permissions ──────────────────────────────

ROLE_DEFAULTS: dict[str, set[str]] = {
    "super_admin": ALL_PERMISSIONS.copy(),

    "admin": ALL_PERMISSIONS - {"clients.manage"},

    "manager": {
        "invoice.read", "invoice.write",
        "payment.write",
        "stock.read", "stock.write",
        "reports.read",
        "warranty.read",
    },

    "cashier": {
        "invoice.read", "invoice.write",
        "payment.write",
        "stock.read",
        "warranty.read",
    },
}


# ── Resolution ──────────────────────────────────────────────

def resolve_permissions(
    role: str,
    custom_overrides: dict[str, bool] | None = None,
) -> list[str]:
    """Compute effective permissions for a user.

    1. Start with the role's defaults.
    2. Apply custom_overrides: {perm: True} adds, {perm: False} removes.
    3. Return a sorted list (for stable JWT claims).
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
    """Check whether a permission set satisfies a requirement."""
    return "*" in user_permissions or required in user_permissions
