# app/workflow/engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.rbac import DIRECT_REJECT_ROLES, Roles, role_of
from app.models.workflow import (
    WorkflowApprovalAudit,
    WorkflowConfiguration,
    WorkflowRejection,
)
from app.utils.ids import generate_audit_id
from app.workflow.config import (
    EffectiveRejectionConfig,
    WorkflowConfigData,
    WorkflowStage,
    get_active_config_row,
    get_effective_rejection_config,
    load_config,
    system_default_rejection_config,
)
from app.workflow.errors import WorkflowError, WorkflowErrorCode
from app.workflow.repository import (
    EntityRepository,
    WorkflowEntity,
    WorkflowStateUpdate,
    get_repository,
)

logger = logging.getLogger(__name__)

NO_WORKFLOW_CONFIG_ID = "NO_WORKFLOW"
DIRECT_REJECTION_STAGE = WorkflowStage.model_construct(
    stage_key="DIRECT_REJECTION",
    stage_name="Direct Rejection (No Workflow)",
    order=1,
    allowed_roles=["COMPANY_ADMIN", "LOCATION_ADMIN", "SITE_ADMIN", "SUPER_ADMIN"],
    can_approve=True,
    can_reject=True,
    is_terminal=False,
    is_optional=False,
    rejection_config=None,
)

COMPLETED_STATUSES = {"APPROVED", "COMPLETED", "CLOSED", "DELIVERED"}


@dataclass
class WorkflowActor:
    user_id: int
    role: str
    company_id: Optional[int]
    name: Optional[str] = None
    employee_id: Optional[int] = None
    vendor_id: Optional[int] = None


def actor_from_user(user: Any) -> WorkflowActor:
    return WorkflowActor(
        user_id=int(user.id),
        role=role_of(user),
        company_id=getattr(user, "company_id", None),
        name=getattr(user, "name", None),
        employee_id=getattr(user, "employee_id", None),
        vendor_id=getattr(user, "vendor_id", None),
    )


@dataclass
class ApprovalResult:
    entity_id: str
    entity_type: str
    previous_stage: str
    previous_status: str
    new_stage: Optional[str]
    new_status: str
    is_terminal: bool
    audit_id: str
    approved_by: int
    approved_at: datetime


@dataclass
class RejectionResult:
    entity_id: str
    entity_type: str
    previous_stage: str
    previous_status: str
    new_status: str
    rejection_id: str
    reason_code: str
    is_terminal: bool
    rejection_config: EffectiveRejectionConfig
    notify_roles: List[str]
    visible_to_roles: List[str]
    resubmission_strategy: str
    allow_resubmission: bool
    rejected_by: int
    rejected_at: datetime


@dataclass
class WorkflowState:
    entity: Optional[WorkflowEntity]
    config: Optional[WorkflowConfigData]
    current_stage: Optional[WorkflowStage]
    next_stage: Optional[WorkflowStage]
    is_terminal: bool


@dataclass
class _StageCheck:
    stage: WorkflowStage
    config: Optional[WorkflowConfigData]


# -------------------------
# Config / entity loading
# -------------------------
def get_active_workflow(
    db: Session, company_id: int, entity_type: str
) -> Optional[WorkflowConfigData]:
    row = get_active_config_row(db, company_id, entity_type)
    if row is None:
        return None
    try:
        return load_config(row)
    except ValidationError as e:
        raise WorkflowError(
            WorkflowErrorCode.WORKFLOW_INVALID,
            f"Workflow configuration {row.config_id} is invalid",
            {"errors": e.errors(include_url=False)},
        )


def _require_workflow(db: Session, company_id: int, entity_type: str) -> WorkflowConfigData:
    config = get_active_workflow(db, company_id, entity_type)
    if config is not None:
        return config

    has_inactive = (
        db.query(WorkflowConfiguration.id)
        .filter(
            WorkflowConfiguration.company_id == company_id,
            WorkflowConfiguration.entity_type == entity_type,
        )
        .first()
    )
    if has_inactive:
        raise WorkflowError(
            WorkflowErrorCode.WORKFLOW_INACTIVE,
            f"Workflow for {entity_type} is currently inactive",
        )
    raise WorkflowError(
        WorkflowErrorCode.WORKFLOW_NOT_FOUND,
        f"No active workflow found for {entity_type} in company {company_id}",
    )


def actor_can_access(entity: WorkflowEntity, actor: WorkflowActor) -> bool:
    """
    SUPER_ADMIN sees everything, vendors see their own entities, everyone
    else sees their company's. An actor with neither scope sees nothing.
    """
    if actor.role == Roles.SUPER_ADMIN:
        return True
    if actor.role == Roles.VENDOR:
        return actor.vendor_id is not None and entity.vendor_id == actor.vendor_id
    return actor.company_id is not None and entity.company_id == actor.company_id


def find_scoped_entity(
    db: Session, repo: EntityRepository, entity_id: str, actor: WorkflowActor
) -> Optional[WorkflowEntity]:
    entity = repo.find_by_id(db, entity_id)
    if entity is None or not actor_can_access(entity, actor):
        return None
    return entity


def _load_entity(
    db: Session, repo: EntityRepository, entity_id: str, actor: WorkflowActor
) -> WorkflowEntity:
    # out-of-scope ids get the same error as missing ones
    entity = find_scoped_entity(db, repo, entity_id, actor)
    if entity is None:
        raise WorkflowError(
            WorkflowErrorCode.ENTITY_NOT_FOUND,
            f"{repo.entity_type} with ID {entity_id} not found",
        )
    return entity


def _check_not_finished(entity: WorkflowEntity) -> None:
    status = (entity.status or "").upper()
    if "REJECTED" in status or status == "CANCELLED":
        raise WorkflowError(
            WorkflowErrorCode.ALREADY_REJECTED,
            f"{entity.entity_type} {entity.id} has already been rejected",
            {"status": entity.status},
        )
    if status in COMPLETED_STATUSES:
        raise WorkflowError(
            WorkflowErrorCode.ALREADY_APPROVED,
            f"{entity.entity_type} {entity.id} is already fully approved",
            {"status": entity.status},
        )


def _resolve_stage_key(
    entity: WorkflowEntity, config: WorkflowConfigData, *, for_reject: bool
) -> str:
    if entity.current_stage:
        return entity.current_stage

    status = (entity.status or "").upper()
    markers = ("PENDING", "AWAITING", "RAISED") if for_reject else ("PENDING", "AWAITING")
    if any(m in status for m in markers):
        return config.first_stage().stage_key

    raise WorkflowError(
        WorkflowErrorCode.NO_CURRENT_STAGE,
        f"Entity has no current workflow stage. Status: {entity.status}",
    )


# -------------------------
# Permission checks
# -------------------------
def _validate_approval(
    db: Session, entity: WorkflowEntity, actor: WorkflowActor
) -> _StageCheck:
    _check_not_finished(entity)
    config = _require_workflow(db, entity.company_id, entity.entity_type)

    stage_key = _resolve_stage_key(entity, config, for_reject=False)
    stage = config.stage_by_key(stage_key)
    if stage is None:
        raise WorkflowError(
            WorkflowErrorCode.STAGE_NOT_FOUND,
            f"Stage {stage_key} not found in workflow configuration",
        )
    if not stage.can_approve:
        raise WorkflowError(
            WorkflowErrorCode.APPROVE_NOT_ALLOWED,
            f"Stage {stage_key} does not allow approval action",
        )
    if actor.role not in stage.allowed_roles:
        raise WorkflowError(
            WorkflowErrorCode.ROLE_NOT_ALLOWED,
            f"Role {actor.role} is not allowed to approve at stage {stage_key}. "
            f"Allowed roles: {', '.join(stage.allowed_roles)}",
            {"allowed_roles": stage.allowed_roles},
        )
    return _StageCheck(stage=stage, config=config)


def _validate_rejection(
    db: Session, entity: WorkflowEntity, actor: WorkflowActor
) -> _StageCheck:
    _check_not_finished(entity)
    config = get_active_workflow(db, entity.company_id, entity.entity_type)

    if config is None:
        # no workflow configured: admins may still reject directly
        if actor.role in DIRECT_REJECT_ROLES:
            logger.info(
                "No workflow config for %s in company %s, direct rejection by %s",
                entity.entity_type, entity.company_id, actor.role,
            )
            return _StageCheck(stage=DIRECT_REJECTION_STAGE, config=None)
        raise WorkflowError(
            WorkflowErrorCode.WORKFLOW_NOT_FOUND,
            f"No active workflow found for {entity.entity_type} in company {entity.company_id}",
        )

    stage_key = _resolve_stage_key(entity, config, for_reject=True)
    stage = config.stage_by_key(stage_key)
    if stage is None:
        raise WorkflowError(
            WorkflowErrorCode.STAGE_NOT_FOUND,
            f"Stage {stage_key} not found in workflow configuration",
        )
    if not stage.can_reject:
        raise WorkflowError(
            WorkflowErrorCode.REJECT_NOT_ALLOWED,
            f"Stage {stage_key} does not allow rejection action",
        )
    if actor.role not in stage.allowed_roles:
        raise WorkflowError(
            WorkflowErrorCode.ROLE_NOT_ALLOWED,
            f"Role {actor.role} is not allowed to reject at stage {stage_key}. "
            f"Allowed roles: {', '.join(stage.allowed_roles)}",
            {"allowed_roles": stage.allowed_roles},
        )
    return _StageCheck(stage=stage, config=config)


def _validate_rejection_input(
    stage: WorkflowStage,
    rc: EffectiveRejectionConfig,
    reason_code: Optional[str],
    remarks: Optional[str],
) -> None:
    if rc.is_reason_code_mandatory and not (reason_code or "").strip():
        raise WorkflowError(
            WorkflowErrorCode.INVALID_STATE,
            "Rejection reason code is required",
            {"field": "reason_code"},
        )
    if rc.is_remarks_mandatory and not (remarks or "").strip():
        raise WorkflowError(
            WorkflowErrorCode.INVALID_STATE,
            f'Rejection remarks are required at stage "{stage.stage_name}"',
            {"field": "remarks"},
        )
    if remarks and len(remarks) > rc.max_remarks_length:
        raise WorkflowError(
            WorkflowErrorCode.INVALID_STATE,
            f"Rejection remarks exceed maximum length of {rc.max_remarks_length} characters",
            {"field": "remarks", "max_length": rc.max_remarks_length},
        )
    if rc.allowed_reason_codes and reason_code not in rc.allowed_reason_codes:
        raise WorkflowError(
            WorkflowErrorCode.INVALID_STATE,
            f'Reason code "{reason_code}" is not allowed at this stage. '
            f"Allowed: {', '.join(rc.allowed_reason_codes)}",
            {"field": "reason_code", "allowed": rc.allowed_reason_codes},
        )


def _rejected_status(
    config: Optional[WorkflowConfigData], stage: WorkflowStage, rc: EffectiveRejectionConfig
) -> str:
    # an explicit stage-level rejected_status beats the workflow map
    stage_override = stage.rejection_config.rejected_status if stage.rejection_config else None
    if stage_override:
        return stage_override
    if config is not None and config.status_on_rejection.get(stage.stage_key):
        return config.status_on_rejection[stage.stage_key]
    return rc.rejected_status or "REJECTED"


# -------------------------
# Public operations
# -------------------------
def approve_entity(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
    actor: WorkflowActor,
    remarks: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> ApprovalResult:
    repo = get_repository(entity_type)
    entity = _load_entity(db, repo, entity_id, actor)
    check = _validate_approval(db, entity, actor)
    config = check.config
    stage = check.stage
    if config is None:
        raise WorkflowError(
            WorkflowErrorCode.WORKFLOW_NOT_FOUND,
            f"No active workflow found for {entity.entity_type} in company {entity.company_id}",
        )

    next_stage = config.next_stage(stage.stage_key)
    is_terminal = stage.is_terminal or next_stage is None

    if is_terminal:
        new_status = config.status_on_approval.get(stage.stage_key) or "APPROVED"
        new_stage = None
    else:
        new_status = (config.status_on_approval.get(stage.stage_key)
                      or f"PENDING_{next_stage.stage_key}")
        new_stage = next_stage.stage_key

    now = datetime.utcnow()
    previous_status = entity.status
    snapshot = repo.snapshot(entity)

    try:
        repo.update_workflow_state(
            db,
            entity,
            WorkflowStateUpdate(
                status=new_status,
                current_stage=new_stage,
                updated_by=actor.user_id,
                updated_at=now,
                approved_stage=stage.stage_key,
            ),
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Workflow update failed for %s %s", entity_type, entity_id)
        raise WorkflowError(
            WorkflowErrorCode.ENTITY_UPDATE_FAILED,
            f"Failed to update {entity_type} {entity_id}",
        )

    audit_id = generate_audit_id("APR")
    try:
        db.add(WorkflowApprovalAudit(
            audit_id=audit_id,
            company_id=entity.company_id,
            entity_type=entity_type,
            entity_id=entity.id,
            workflow_config_id=config.config_id,
            workflow_version=config.version,
            from_stage=stage.stage_key,
            to_stage=new_stage,
            action="APPROVE",
            approved_by=actor.user_id,
            approved_by_role=actor.role,
            approved_by_name=actor.name,
            previous_status=previous_status,
            new_status=new_status,
            remarks=remarks,
            entity_snapshot=snapshot,
            metadata_json=metadata or None,
            approved_at=now,
        ))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Approval audit failed for %s %s", entity_type, entity_id)
        raise WorkflowError(
            WorkflowErrorCode.AUDIT_FAILED,
            f"Failed to record approval audit for {entity_type} {entity_id}",
        )

    logger.info(
        "%s %s approved at %s by %s (%s): %s -> %s",
        entity_type, entity.id, stage.stage_key, actor.user_id, actor.role,
        previous_status, new_status,
    )
    return ApprovalResult(
        entity_id=entity.id,
        entity_type=entity_type,
        previous_stage=stage.stage_key,
        previous_status=previous_status,
        new_stage=new_stage,
        new_status=new_status,
        is_terminal=is_terminal,
        audit_id=audit_id,
        approved_by=actor.user_id,
        approved_at=now,
    )


def reject_entity(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
    actor: WorkflowActor,
    reason_code: str,
    reason_label: Optional[str] = None,
    remarks: Optional[str] = None,
    action: str = "REJECT",
    metadata: Optional[Dict[str, Any]] = None,
) -> RejectionResult:
    repo = get_repository(entity_type)
    entity = _load_entity(db, repo, entity_id, actor)
    check = _validate_rejection(db, entity, actor)
    config = check.config
    stage = check.stage

    rc = (get_effective_rejection_config(config, stage.stage_key)
          if config is not None else system_default_rejection_config())
    _validate_rejection_input(stage, rc, reason_code, remarks)

    new_status = _rejected_status(config, stage, rc)
    is_terminal = rc.is_terminal_on_reject
    if is_terminal or stage.stage_key == DIRECT_REJECTION_STAGE.stage_key:
        new_stage = None
    else:
        new_stage = stage.stage_key

    now = datetime.utcnow()
    previous_status = entity.status
    snapshot = repo.snapshot(entity)

    try:
        repo.update_workflow_state(
            db,
            entity,
            WorkflowStateUpdate(
                status=new_status,
                current_stage=new_stage,
                updated_by=actor.user_id,
                updated_at=now,
                rejection_reason=reason_label or reason_code,
                rejection_remarks=remarks,
            ),
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Workflow update failed for %s %s", entity_type, entity_id)
        raise WorkflowError(
            WorkflowErrorCode.ENTITY_UPDATE_FAILED,
            f"Failed to update {entity_type} {entity_id}",
        )

    rejection_id = generate_audit_id("REJ")
    meta = dict(metadata or {})
    meta["rejection_config"] = {
        "is_terminal_on_reject": rc.is_terminal_on_reject,
        "is_remarks_mandatory": rc.is_remarks_mandatory,
        "resubmission_strategy": rc.resubmission_strategy,
    }
    try:
        db.add(WorkflowRejection(
            rejection_id=rejection_id,
            company_id=entity.company_id,
            entity_type=entity_type,
            entity_id=entity.id,
            workflow_config_id=config.config_id if config else NO_WORKFLOW_CONFIG_ID,
            workflow_stage=stage.stage_key,
            workflow_version=config.version if config else 0,
            action=action or "REJECT",
            reason_code=reason_code,
            reason_label=reason_label,
            remarks=remarks,
            rejected_by=actor.user_id,
            rejected_by_role=actor.role,
            rejected_by_name=actor.name,
            previous_status=previous_status,
            previous_stage=stage.stage_key,
            new_status=new_status,
            entity_snapshot=snapshot,
            metadata_json=meta,
            rejected_at=now,
        ))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Rejection record failed for %s %s", entity_type, entity_id)
        raise WorkflowError(
            WorkflowErrorCode.AUDIT_FAILED,
            f"Failed to record rejection for {entity_type} {entity_id}",
        )

    logger.info(
        "%s %s rejected at %s by %s (%s) reason=%s: %s -> %s",
        entity_type, entity.id, stage.stage_key, actor.user_id, actor.role,
        reason_code, previous_status, new_status,
    )
    return RejectionResult(
        entity_id=entity.id,
        entity_type=entity_type,
        previous_stage=stage.stage_key,
        previous_status=previous_status,
        new_status=new_status,
        rejection_id=rejection_id,
        reason_code=reason_code,
        is_terminal=is_terminal,
        rejection_config=rc,
        notify_roles=list(rc.notify_roles_on_reject),
        visible_to_roles=list(rc.visible_to_roles_after_reject),
        resubmission_strategy=rc.resubmission_strategy,
        allow_resubmission=rc.allow_resubmission,
        rejected_by=actor.user_id,
        rejected_at=now,
    )


def can_user_approve(
    db: Session, *, entity_type: str, entity_id: str, actor: WorkflowActor
) -> Tuple[bool, Optional[str]]:
    repo = get_repository(entity_type)
    try:
        entity = _load_entity(db, repo, entity_id, actor)
        _validate_approval(db, entity, actor)
    except WorkflowError as e:
        return False, e.message
    return True, None


def can_user_reject(
    db: Session, *, entity_type: str, entity_id: str, actor: WorkflowActor
) -> Tuple[bool, Optional[str]]:
    repo = get_repository(entity_type)
    try:
        entity = _load_entity(db, repo, entity_id, actor)
        _validate_rejection(db, entity, actor)
    except WorkflowError as e:
        return False, e.message
    return True, None


def get_workflow_state(
    db: Session, *, entity_type: str, entity_id: str, actor: WorkflowActor
) -> WorkflowState:
    repo = get_repository(entity_type)
    entity = find_scoped_entity(db, repo, entity_id, actor)
    if entity is None:
        return WorkflowState(None, None, None, None, False)

    config = get_active_workflow(db, entity.company_id, entity_type)
    if config is None:
        return WorkflowState(entity, None, None, None, False)

    if entity.current_stage:
        current = config.stage_by_key(entity.current_stage)
    else:
        current = config.first_stage()
    next_stage = config.next_stage(current.stage_key) if current else None
    is_terminal = bool(current and current.is_terminal)
    return WorkflowState(entity, config, current, next_stage, is_terminal)


def initialize_workflow(
    db: Session,
    entity_type: str,
    row: Any,
    *,
    company_id: int,
    user_id: Optional[int] = None,
) -> bool:
    """
    Put a freshly created entity on the first stage of its workflow.
    Returns False when no workflow is active. Does not commit.
    """
    config = get_active_workflow(db, company_id, entity_type)
    if config is None:
        logger.info("No active %s workflow for company %s; skipping init", entity_type, company_id)
        return False

    repo = get_repository(entity_type)
    first = config.first_stage()
    status = config.status_on_submission or f"PENDING_{first.stage_key}"
    try:
        repo.update_workflow_state(
            db,
            repo.to_entity(row),
            WorkflowStateUpdate(
                status=status,
                current_stage=first.stage_key,
                updated_by=user_id,
            ),
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to initialize workflow for %s", entity_type)
        raise WorkflowError(
            WorkflowErrorCode.ENTITY_UPDATE_FAILED,
            f"Failed to initialize workflow for {getattr(row, repo.number_attr, '?')}",
        )
    return True
