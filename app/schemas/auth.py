# app/schemas/auth.py
from pydantic import BaseModel, EmailStr
from typing import Optional


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str
    company_id: Optional[int] = None


class MeOut(BaseModel):
    id: int
    name: str
    email: str
    role: str
    company_id: Optional[int] = None
    vendor_id: Optional[int] = None
    employee_id: Optional[int] = None
