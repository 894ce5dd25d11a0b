# FILE: app/utils/ids.py
from __future__ import annotations

import secrets
import string
import time
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

_ALPHABET = string.digits + string.ascii_uppercase


def to_base36(n: int) -> str:
    if n < 0:
        raise ValueError("base36 of negative number")
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_ALPHABET[r])
    return "".join(reversed(out))


def random_suffix(length: int = 6) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_audit_id(prefix: str) -> str:
    """
    PREFIX-<base36 epoch ms>-<6 random>, always upper case.
    e.g. APR-MB2K1Z9C-4QX7PL
    """
    ms = int(time.time() * 1000)
    return f"{prefix}-{to_base36(ms)}-{random_suffix(6)}".upper()


def generate_shipment_id(prefix: str = "SHM") -> str:
    # SHM + 8 base36 chars + 4 random -> 15 chars max
    ms = int(time.time() * 1000)
    return f"{prefix}{to_base36(ms)[-8:]}{random_suffix(4)}"[:15].upper()


def next_daily_number(
    db: Session,
    column: Any,
    prefix: str,
    *,
    on: Optional[datetime] = None,
    width: int = 3,
) -> str:
    """
    PREFIX + YYYYMMDD + running sequence for that day.
    e.g. GRN20261019001
    """
    day = (on or datetime.utcnow()).strftime("%Y%m%d")
    head = f"{prefix}{day}"
    last = db.query(func.max(column)).filter(column.like(f"{head}%")).scalar()
    seq = 1
    if last:
        tail = str(last)[len(head):]
        if tail.isdigit():
            seq = int(tail) + 1
    return f"{head}{seq:0{width}d}"
