from __future__ import annotations

from typing import Any, Iterable, Set


class Roles:
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    COMPANY_ADMIN = "COMPANY_ADMIN"
    LOCATION_ADMIN = "LOCATION_ADMIN"
    SITE_ADMIN = "SITE_ADMIN"
    FINANCE_ADMIN = "FINANCE_ADMIN"
    VENDOR = "VENDOR"
    EMPLOYEE = "EMPLOYEE"


ALL_ROLES: Set[str] = {
    Roles.SUPER_ADMIN,
    Roles.ADMIN,
    Roles.COMPANY_ADMIN,
    Roles.LOCATION_ADMIN,
    Roles.SITE_ADMIN,
    Roles.FINANCE_ADMIN,
    Roles.VENDOR,
    Roles.EMPLOYEE,
}

# Roles allowed to reject even when no workflow is configured
DIRECT_REJECT_ROLES: Set[str] = {
    Roles.COMPANY_ADMIN,
    Roles.LOCATION_ADMIN,
    Roles.SITE_ADMIN,
    Roles.ADMIN,
    Roles.SUPER_ADMIN,
}


def role_of(user: Any) -> str:
    if not user:
        return ""
    return str(getattr(user, "role", "") or "").strip().upper()


def is_super_admin(user: Any) -> bool:
    return role_of(user) == Roles.SUPER_ADMIN


def has_role(user: Any, roles: Iterable[str]) -> bool:
    """
    Super admin passes every check.
    """
    r = role_of(user)
    if r == Roles.SUPER_ADMIN:
        return True
    return r in {x.upper() for x in roles}
