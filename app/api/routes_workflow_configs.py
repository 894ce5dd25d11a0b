# FILE: app/api/routes_workflow_configs.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import company_scope, get_db, require_roles
from app.core.rbac import Roles
from app.models.user import User
from app.schemas.workflow_config import (
    WorkflowConfigCreate,
    WorkflowConfigOut,
    WorkflowConfigUpdate,
)
from app.services import workflow_config_service as svc

router = APIRouter()

_admin = require_roles(Roles.COMPANY_ADMIN)


@router.get("", response_model=List[WorkflowConfigOut])
def list_workflow_configs(
    company_id: Optional[int] = Query(None),
    entity_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(_admin),
):
    return svc.list_configs(db, company_scope(user, company_id), entity_type=entity_type)


@router.post("", response_model=WorkflowConfigOut, status_code=201)
def create_workflow_config(
    payload: WorkflowConfigCreate,
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(_admin),
):
    return svc.create_config(db, company_id=company_scope(user, company_id),
                             payload=payload, user_id=user.id)


@router.get("/{config_id}", response_model=WorkflowConfigOut)
def get_workflow_config(
    config_id: str,
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(_admin),
):
    return svc.get_config_or_404(db, company_scope(user, company_id), config_id)


@router.put("/{config_id}", response_model=WorkflowConfigOut)
def update_workflow_config(
    config_id: str,
    payload: WorkflowConfigUpdate,
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(_admin),
):
    row = svc.get_config_or_404(db, company_scope(user, company_id), config_id)
    return svc.update_config(db, row, payload, user_id=user.id)


@router.post("/{config_id}/activate", response_model=WorkflowConfigOut)
def activate_workflow_config(
    config_id: str,
    company_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(_admin),
):
    row = svc.get_config_or_404(db, company_scope(user, company_id), config_id)
    return svc.activate_config(db, row, user_id=user.id)
