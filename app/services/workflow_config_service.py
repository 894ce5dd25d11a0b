# FILE: app/services/workflow_config_service.py
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.workflow import WorkflowConfiguration
from app.schemas.workflow_config import WorkflowConfigCreate, WorkflowConfigUpdate
from app.services.audit_logger import log_audit

logger = logging.getLogger(__name__)

TABLE = "workflow_configurations"


def _snapshot(row: WorkflowConfiguration) -> dict:
    return {
        "config_id": row.config_id,
        "entity_type": row.entity_type,
        "workflow_name": row.workflow_name,
        "stages": row.stages,
        "version": row.version,
        "is_active": row.is_active,
    }


def _deactivate_others(db: Session, row: WorkflowConfiguration) -> int:
    others = (
        db.query(WorkflowConfiguration)
        .filter(
            WorkflowConfiguration.company_id == row.company_id,
            WorkflowConfiguration.entity_type == row.entity_type,
            WorkflowConfiguration.is_active.is_(True),
            WorkflowConfiguration.id != row.id,
        )
        .all()
    )
    for o in others:
        o.is_active = False
    return len(others)


def list_configs(
    db: Session, company_id: int, *, entity_type: Optional[str] = None
) -> List[WorkflowConfiguration]:
    q = db.query(WorkflowConfiguration).filter(WorkflowConfiguration.company_id == company_id)
    if entity_type:
        q = q.filter(WorkflowConfiguration.entity_type == entity_type.upper())
    return q.order_by(
        WorkflowConfiguration.entity_type.asc(), WorkflowConfiguration.id.desc()
    ).all()


def get_config_or_404(db: Session, company_id: int, config_id: str) -> WorkflowConfiguration:
    row = (
        db.query(WorkflowConfiguration)
        .filter(
            WorkflowConfiguration.company_id == company_id,
            WorkflowConfiguration.config_id == config_id,
        )
        .first()
    )
    if not row:
        raise HTTPException(status_code=404, detail="Workflow configuration not found")
    return row


def create_config(
    db: Session, *, company_id: int, payload: WorkflowConfigCreate, user_id: Optional[int]
) -> WorkflowConfiguration:
    exists = (
        db.query(WorkflowConfiguration.id)
        .filter(WorkflowConfiguration.config_id == payload.config_id)
        .first()
    )
    if exists:
        raise HTTPException(status_code=409, detail="config_id already exists")

    row = WorkflowConfiguration(
        config_id=payload.config_id,
        company_id=company_id,
        entity_type=payload.entity_type,
        workflow_name=payload.workflow_name,
        description=payload.description,
        stages=[s.model_dump() for s in payload.stages],
        status_on_submission=payload.status_on_submission,
        status_on_approval=payload.status_on_approval,
        status_on_rejection=payload.status_on_rejection,
        rejection_config=payload.rejection_config.model_dump()
        if payload.rejection_config else None,
        version=1,
        is_active=payload.is_active,
        created_by=user_id,
        updated_by=user_id,
    )
    db.add(row)
    db.flush()
    if row.is_active:
        _deactivate_others(db, row)
    db.commit()
    db.refresh(row)

    log_audit(db, user_id=user_id, action="CREATE", table_name=TABLE,
              record_id=row.config_id, company_id=company_id, new_values=_snapshot(row))
    logger.info("Workflow config %s created for company %s (%s)",
                row.config_id, company_id, row.entity_type)
    return row


def update_config(
    db: Session,
    row: WorkflowConfiguration,
    payload: WorkflowConfigUpdate,
    *,
    user_id: Optional[int],
) -> WorkflowConfiguration:
    old = _snapshot(row)
    data = payload.model_dump(exclude_unset=True)

    if "stages" in data and payload.stages is not None:
        row.stages = [s.model_dump() for s in payload.stages]
    if "rejection_config" in data:
        row.rejection_config = payload.rejection_config.model_dump() \
            if payload.rejection_config else None
    for field in ("workflow_name", "description", "status_on_submission",
                  "status_on_approval", "status_on_rejection"):
        if field in data:
            setattr(row, field, data[field])

    row.version = int(row.version or 1) + 1
    row.updated_by = user_id
    db.commit()
    db.refresh(row)

    log_audit(db, user_id=user_id, action="UPDATE", table_name=TABLE,
              record_id=row.config_id, company_id=row.company_id,
              old_values=old, new_values=_snapshot(row))
    logger.info("Workflow config %s updated to v%s", row.config_id, row.version)
    return row


def activate_config(
    db: Session, row: WorkflowConfiguration, *, user_id: Optional[int]
) -> WorkflowConfiguration:
    row.is_active = True
    row.updated_by = user_id
    n = _deactivate_others(db, row)
    db.commit()
    db.refresh(row)

    log_audit(db, user_id=user_id, action="UPDATE", table_name=TABLE,
              record_id=row.config_id, company_id=row.company_id,
              new_values={"is_active": True, "deactivated": n})
    logger.info("Workflow config %s activated (%s others deactivated)", row.config_id, n)
    return row
