# app/api/routes_auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import current_user, get_db
from app.core.security import verify_password
from app.models.user import User
from app.schemas.auth import LoginIn, MeOut, TokenOut
from app.utils.jwt import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    email = payload.email.lower().strip()
    user = db.query(User).filter(User.email == email).first()

    if not user or not verify_password(payload.password, user.password_hash):
        logger.warning("Failed login for %s", email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User inactive")

    token = create_access_token(user.email, user.company_id, user.role)
    logger.info("User %s logged in (%s)", user.id, user.role)
    return TokenOut(access_token=token, role=user.role, company_id=user.company_id)


@router.get("/me", response_model=MeOut)
def me(user: User = Depends(current_user)):
    return MeOut(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        company_id=user.company_id,
        vendor_id=user.vendor_id,
        employee_id=user.employee_id,
    )
