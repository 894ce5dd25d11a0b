import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    *,
    user_id: Optional[int],
    action: str,  # "CREATE" | "UPDATE" | "DELETE" | "APPROVE" | "REJECT"
    table_name: str,
    record_id: Any,
    company_id: Optional[int] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> None:
    """
    Persist one audit event. Failure never breaks the caller's request.
    """
    try:
        log = AuditLog(
            company_id=company_id,
            user_id=user_id,
            action=action,
            table_name=table_name,
            record_id=str(record_id),
            old_values=old_values,
            new_values=new_values,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(log)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to log audit for %s/%s", table_name, record_id)
