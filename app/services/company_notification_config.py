# FILE: app/services/company_notification_config.py
"""
Company-level notification settings.

A company without a config row gets the system defaults: every event
enabled, stock templates, default branding, no quiet hours.
"""
from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.notification import CompanyNotificationConfig, NotificationEvent

logger = logging.getLogger(__name__)

EVENT_CONFIG_FIELDS = ("is_enabled", "custom_subject", "custom_body")


def get_company_config(db: Session, company_id: Optional[int]) -> Optional[CompanyNotificationConfig]:
    if not company_id:
        return None
    return (
        db.query(CompanyNotificationConfig)
        .filter(CompanyNotificationConfig.company_id == company_id)
        .first()
    )


def event_config(
    config: Optional[CompanyNotificationConfig], event_code: str
) -> Optional[Dict[str, Any]]:
    if config is None:
        return None
    code = (event_code or "").upper()
    for ec in config.event_configs or []:
        if str(ec.get("event_code") or "").upper() == code:
            return ec
    return None


def is_event_enabled(config: Optional[CompanyNotificationConfig], event_code: str) -> bool:
    if config is None:
        return True
    if not config.notifications_enabled:
        return False
    ec = event_config(config, event_code)
    return True if ec is None else bool(ec.get("is_enabled", True))


def template_override(
    config: Optional[CompanyNotificationConfig], event_code: str
) -> Tuple[Optional[str], Optional[str]]:
    """(subject, body) the company replaced; None where the stock template applies."""
    ec = event_config(config, event_code)
    if not ec:
        return None, None
    return ec.get("custom_subject") or None, ec.get("custom_body") or None


def branding(config: Optional[CompanyNotificationConfig]) -> Dict[str, str]:
    return {
        "brand_name": (config.brand_name if config else None) or settings.PROJECT_NAME,
        "brand_color": (config.brand_color if config else None) or settings.NOTIFICATION_BRAND_COLOR,
    }


# -------------------------
# Quiet hours
# -------------------------
def _hhmm(value: Optional[str]) -> Optional[time]:
    try:
        hh, mm = (value or "").split(":")
        return time(int(hh), int(mm))
    except ValueError:
        return None


def _zone(name: Optional[str]):
    try:
        return ZoneInfo(name or settings.NOTIFICATION_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown quiet hours timezone %r; using UTC", name)
        return timezone.utc


def quiet_hours_end(
    config: Optional[CompanyNotificationConfig], now: datetime
) -> Optional[datetime]:
    """
    When `now` (naive UTC) falls inside the company's quiet hours, the
    naive UTC moment they end. None outside quiet hours.
    """
    if config is None or not config.quiet_hours_enabled:
        return None
    start, end = _hhmm(config.quiet_hours_start), _hhmm(config.quiet_hours_end)
    if start is None or end is None or start == end:
        return None

    local = now.replace(tzinfo=timezone.utc).astimezone(_zone(config.quiet_hours_timezone))
    current = local.time().replace(tzinfo=None)
    if start < end:
        inside = start <= current < end
    else:
        inside = current >= start or current < end
    if not inside:
        return None

    ends = local.replace(hour=end.hour, minute=end.minute, second=0, microsecond=0)
    if ends <= local:
        ends += timedelta(days=1)
    return ends.astimezone(timezone.utc).replace(tzinfo=None)


# -------------------------
# Writes
# -------------------------
def upsert_company_config(
    db: Session, company_id: int, data: Dict[str, Any], user_id: Optional[int] = None
) -> CompanyNotificationConfig:
    config = get_company_config(db, company_id)
    if config is None:
        config = CompanyNotificationConfig(company_id=company_id, event_configs=[])
        db.add(config)
    for k, v in data.items():
        setattr(config, k, v)
    config.updated_by = user_id
    db.commit()
    db.refresh(config)
    return config


def set_event_config(
    db: Session,
    company_id: int,
    event_code: str,
    data: Dict[str, Any],
    user_id: Optional[int] = None,
) -> CompanyNotificationConfig:
    config = get_company_config(db, company_id)
    if config is None:
        config = CompanyNotificationConfig(company_id=company_id, event_configs=[])
        db.add(config)

    code = event_code.upper()
    # reassign so the JSON column is flagged dirty
    entries = [dict(ec) for ec in (config.event_configs or [])]
    entry = next((ec for ec in entries if str(ec.get("event_code")).upper() == code), None)
    if entry is None:
        entry = {"event_code": code, "is_enabled": True}
        entries.append(entry)
    for k in EVENT_CONFIG_FIELDS:
        if k in data:
            entry[k] = data[k]
    config.event_configs = entries
    config.updated_by = user_id
    db.commit()
    db.refresh(config)
    logger.info("Company %s notification event %s updated: %s", company_id, code, data)
    return config


def list_event_configs(db: Session, company_id: int) -> List[Dict[str, Any]]:
    """Every active event with the company's overrides applied."""
    config = get_company_config(db, company_id)
    events = (
        db.query(NotificationEvent)
        .filter(NotificationEvent.is_active.is_(True))
        .order_by(NotificationEvent.event_code.asc())
        .all()
    )
    out = []
    for ev in events:
        ec = event_config(config, ev.event_code) or {}
        out.append({
            "event_code": ev.event_code,
            "description": ev.description,
            "is_enabled": is_event_enabled(config, ev.event_code),
            "has_custom_template": bool(ec.get("custom_subject") or ec.get("custom_body")),
            "custom_subject": ec.get("custom_subject"),
            "custom_body": ec.get("custom_body"),
        })
    return out
