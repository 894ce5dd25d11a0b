# app/utils/jwt.py
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError

from app.core.config import settings


def _create_token(
    *,
    subject: str,
    company_id: Optional[int],
    role: str,
    expires_delta: timedelta,
) -> str:
    now = datetime.utcnow()
    payload = {
        "sub": subject,  # user email
        "cid": company_id,  # company id (None for super admin)
        "role": role,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def create_access_token(subject: str, company_id: Optional[int], role: str) -> str:
    return _create_token(
        subject=subject,
        company_id=company_id,
        role=role,
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def decode_token(raw_token: str) -> Optional[dict]:
    """
    Returns the claims, or None when the token is invalid / expired.
    """
    try:
        return jwt.decode(raw_token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError:
        return None
