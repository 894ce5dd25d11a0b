# app/api/deps.py
from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.core.rbac import Roles, has_role, role_of
from app.db.session import get_db
from app.models.user import User
from app.utils.jwt import decode_token

__all__ = [
    "get_db",
    "current_user",
    "require_roles",
    "company_scope",
    "require_company",
    "require_vendor",
]


# =========================================================
# AUTH HELPERS
# =========================================================
def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def current_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    raw = _extract_bearer(authorization)
    if not raw:
        raise HTTPException(status_code=401, detail="Missing token")

    payload = decode_token(raw)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid token")

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    user: Optional[User] = db.query(User).filter(User.email == email).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User inactive")
    return user


def require_roles(*roles: str) -> Callable[..., User]:
    """
    Dependency factory: Depends(require_roles("COMPANY_ADMIN")).
    SUPER_ADMIN always passes.
    """

    def _dep(user: User = Depends(current_user)) -> User:
        if not has_role(user, roles):
            raise HTTPException(status_code=403, detail="Not permitted")
        return user

    return _dep


# =========================================================
# SCOPE HELPERS
# =========================================================
def company_scope(user: User, company_id: Optional[int] = None) -> int:
    """
    Company the request acts on. Super admins may pass ?company_id=,
    everybody else is pinned to their own company.
    """
    if role_of(user) == Roles.SUPER_ADMIN:
        cid = company_id or user.company_id
        if not cid:
            raise HTTPException(status_code=400, detail="company_id is required")
        return cid
    if not user.company_id:
        raise HTTPException(status_code=403, detail="User is not linked to a company")
    if company_id and company_id != user.company_id:
        raise HTTPException(status_code=403, detail="Not permitted for this company")
    return user.company_id


def require_company(user: User = Depends(current_user)) -> User:
    if not user.company_id and role_of(user) != Roles.SUPER_ADMIN:
        raise HTTPException(status_code=403, detail="User is not linked to a company")
    return user


def require_vendor(user: User = Depends(current_user)) -> User:
    if role_of(user) != Roles.VENDOR or not user.vendor_id:
        raise HTTPException(status_code=403, detail="Vendor access only")
    return user
