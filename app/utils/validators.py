# FILE: app/utils/validators.py
from __future__ import annotations

import re
from typing import Optional

_PHONE_CHARS = re.compile(r"[^\d+]")
_E164 = re.compile(r"^\+\d{10,15}$")
_PINCODE = re.compile(r"^[1-9]\d{5}$")
_ENTITY_ID = re.compile(r"^[A-Za-z0-9_-]{1,50}$")


def normalize_phone(phone: Optional[str]) -> str:
    """
    Normalize an Indian mobile number to +91XXXXXXXXXX.

    "098765 43210" -> "+919876543210"
    "919876543210" -> "+919876543210"
    "+1 415 555 0100" -> "+14155550100" (already has a country code)
    """
    cleaned = _PHONE_CHARS.sub("", phone or "")
    if not cleaned:
        return ""
    if cleaned.startswith("+"):
        return cleaned

    if cleaned.startswith("0"):
        cleaned = cleaned[1:]

    if len(cleaned) == 10:
        return f"+91{cleaned}"
    if len(cleaned) == 12 and cleaned.startswith("91"):
        return f"+{cleaned}"
    return cleaned


def is_valid_phone(phone: Optional[str]) -> bool:
    return bool(_E164.match(normalize_phone(phone)))


def is_valid_pincode(pincode: Optional[str]) -> bool:
    return bool(_PINCODE.match((pincode or "").strip()))


def is_valid_entity_id(value: Optional[str]) -> bool:
    return bool(_ENTITY_ID.match(value or ""))
