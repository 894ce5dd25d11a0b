# FILE: app/schemas/employee.py
from __future__ import annotations

from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.utils.validators import is_valid_phone, normalize_phone


class EmployeeCreate(BaseModel):
    employee_code: str = Field(min_length=1, max_length=50)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = ""
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    gender: Literal["male", "female"] = "male"
    designation: str = ""
    address: str = ""
    location_id: Optional[int] = None
    dispatch_preference: Literal["OFFICE", "HOME"] = "OFFICE"

    eligibility_shirt: int = Field(default=0, ge=0)
    eligibility_pant: int = Field(default=0, ge=0)
    eligibility_shoe: int = Field(default=0, ge=0)
    eligibility_jacket: int = Field(default=0, ge=0)

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        p = normalize_phone(v)
        if not is_valid_phone(p):
            raise ValueError("Invalid phone number")
        return p


class EmployeeOut(BaseModel):
    id: int
    company_id: int
    location_id: Optional[int] = None
    employee_code: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    gender: str
    designation: str
    dispatch_preference: str
    status: str

    eligibility_shirt: int
    eligibility_pant: int
    eligibility_shoe: int
    eligibility_jacket: int
    consumed_shirt: int
    consumed_pant: int
    consumed_shoe: int
    consumed_jacket: int

    model_config = ConfigDict(from_attributes=True)


class EligibilityOut(BaseModel):
    employee_id: int
    remaining: Dict[str, int]
