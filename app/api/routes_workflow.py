# FILE: app/api/routes_workflow.py
"""
Generic approve / reject / actions / ui-rules endpoints.

Responses use the workflow envelope:
  {"success": true, "data": ..., "timestamp": ...}
  {"success": false, "error": {"code", "message", "details"}, "timestamp": ...}
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import current_user, get_db
from app.models.user import User
from app.services.order_service import on_order_fully_approved
from app.workflow.api_types import (
    ApiError,
    ApiErrorCode,
    ActionsFlags,
    ApproveResponseData,
    GetActionsResponseData,
    RejectResponseData,
    WorkflowInfo,
    error_response,
    log_workflow_api_action,
    response_for_exception,
    success_response,
    validate_approve_request,
    validate_get_actions_request,
    validate_reject_request,
)
from app.workflow.engine import (
    WorkflowActor,
    actor_from_user,
    approve_entity,
    can_user_approve,
    can_user_reject,
    get_workflow_state,
    reject_entity,
)
from app.workflow.errors import WorkflowError, WorkflowErrorCode
from app.workflow.notification_events import (
    build_approval_payload,
    build_rejection_payload,
    dispatch_workflow_notifications,
    recipient_roles,
    rejection_recipient_roles,
)
from app.workflow.repository import get_repository
from app.workflow.ui_rules import evaluate_ui_rules

logger = logging.getLogger(__name__)

router = APIRouter()


def workflow_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    """current_user, with auth failures mapped to API_E00x codes."""
    try:
        return current_user(authorization=authorization, db=db)
    except HTTPException as e:
        if e.status_code == 403:
            raise ApiError(ApiErrorCode.FORBIDDEN, str(e.detail))
        if authorization:
            raise ApiError(ApiErrorCode.INVALID_TOKEN, str(e.detail))
        raise ApiError(ApiErrorCode.UNAUTHORIZED, "Authentication required")


def _ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _log(
    action: str,
    request: Request,
    actor: WorkflowActor,
    started: float,
    *,
    entity_type: Optional[str],
    entity_id: Optional[str],
    error: Optional[Exception] = None,
    payload: Optional[Dict[str, Any]] = None,
    data: Optional[Dict[str, Any]] = None,
) -> None:
    code = getattr(getattr(error, "code", None), "value", None) if error else None
    log_workflow_api_action(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        company_id=actor.company_id,
        user_id=actor.user_id,
        user_role=actor.role,
        success=error is None,
        duration_ms=_ms(started),
        request=request,
        error_code=code,
        error_message=str(getattr(error, "message", error)) if error else None,
        request_payload=payload,
        response_data=data,
    )


def _notify(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
    payload: Dict[str, Any],
    actor: WorkflowActor,
    default_roles: List[str],
    stage_key: Optional[str],
    next_stage_key: Optional[str] = None,
) -> int:
    """
    Queue workflow event notifications. A failure here is logged and
    never undoes the committed transition.
    """
    try:
        queued = dispatch_workflow_notifications(
            db,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload,
            actor=actor,
            default_roles=default_roles,
            stage_key=stage_key,
            next_stage_key=next_stage_key,
        )
        db.commit()
        return queued
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to queue %s for %s %s",
                         payload.get("event_code"), entity_type, entity_id)
        return 0


def _after_order_approved(db: Session, order_id: str) -> None:
    """PO generation runs after the approval commit; a failure is logged only."""
    try:
        order = get_repository("ORDER").find_row(db, order_id)
        if order is not None:
            on_order_fully_approved(db, order)
    except Exception:
        db.rollback()
        logger.exception("Post-approval processing failed for order %s", order_id)


def _internal_error(e: Exception):
    if isinstance(e, SQLAlchemyError):
        return error_response(ApiErrorCode.DATABASE_ERROR.value, "Database error", status_code=500)
    return error_response(ApiErrorCode.INTERNAL_ERROR.value, "An unexpected error occurred",
                          status_code=500)


# -------------------------
# POST /workflow/approve
# -------------------------
@router.post("/approve")
def approve(
    request: Request,
    body: Optional[Dict[str, Any]] = Body(None),
    db: Session = Depends(get_db),
    user: User = Depends(workflow_user),
):
    started = time.perf_counter()
    actor = actor_from_user(user)
    body = body or {}
    entity_type, entity_id = body.get("entity_type"), body.get("entity_id")

    try:
        req = validate_approve_request(body)
        entity_type, entity_id = req.entity_type, req.entity_id
        result = approve_entity(
            db,
            entity_type=req.entity_type,
            entity_id=req.entity_id,
            actor=actor,
            remarks=req.remarks,
            metadata={"source": "api", "user_agent": request.headers.get("user-agent")},
        )
    except (ApiError, WorkflowError) as e:
        _log("APPROVE", request, actor, started, entity_type=entity_type,
             entity_id=entity_id, error=e, payload=body)
        return response_for_exception(e)
    except Exception as e:
        logger.exception("Approve failed for %s %s", entity_type, entity_id)
        _log("APPROVE", request, actor, started, entity_type=entity_type,
             entity_id=entity_id, error=e, payload=body)
        return _internal_error(e)

    if result.is_terminal and result.entity_type == "ORDER":
        _after_order_approved(db, result.entity_id)

    event = build_approval_payload(result, actor, remarks=req.remarks)
    _notify(
        db,
        entity_type=result.entity_type,
        entity_id=result.entity_id,
        payload=event,
        actor=actor,
        default_roles=recipient_roles(is_terminal=result.is_terminal),
        stage_key=result.previous_stage,
        next_stage_key=result.new_stage,
    )

    data = ApproveResponseData(
        entity_id=result.entity_id,
        entity_type=result.entity_type,
        previous_stage=result.previous_stage,
        new_stage=result.new_stage,
        previous_status=result.previous_status,
        new_status=result.new_status,
        is_fully_approved=result.is_terminal,
        audit_id=result.audit_id,
        approved_at=result.approved_at,
    ).model_dump(mode="json")
    _log("APPROVE", request, actor, started, entity_type=entity_type,
         entity_id=entity_id, payload=body, data=data)
    return success_response(data)


# -------------------------
# POST /workflow/reject
# -------------------------
@router.post("/reject")
def reject(
    request: Request,
    body: Optional[Dict[str, Any]] = Body(None),
    db: Session = Depends(get_db),
    user: User = Depends(workflow_user),
):
    started = time.perf_counter()
    actor = actor_from_user(user)
    body = body or {}
    entity_type, entity_id = body.get("entity_type"), body.get("entity_id")

    try:
        req = validate_reject_request(body)
        entity_type, entity_id = req.entity_type, req.entity_id
        result = reject_entity(
            db,
            entity_type=req.entity_type,
            entity_id=req.entity_id,
            actor=actor,
            reason_code=req.reason_code,
            reason_label=req.reason_label,
            remarks=req.remarks,
            action=req.action,
            metadata={"source": "api", "user_agent": request.headers.get("user-agent")},
        )
    except (ApiError, WorkflowError) as e:
        _log("REJECT", request, actor, started, entity_type=entity_type,
             entity_id=entity_id, error=e, payload=body)
        return response_for_exception(e)
    except Exception as e:
        logger.exception("Reject failed for %s %s", entity_type, entity_id)
        _log("REJECT", request, actor, started, entity_type=entity_type,
             entity_id=entity_id, error=e, payload=body)
        return _internal_error(e)

    event = build_rejection_payload(result, actor, reason_label=req.reason_label,
                                    remarks=req.remarks)
    _notify(
        db,
        entity_type=result.entity_type,
        entity_id=result.entity_id,
        payload=event,
        actor=actor,
        default_roles=rejection_recipient_roles(result),
        stage_key=result.previous_stage,
    )

    data = RejectResponseData(
        entity_id=result.entity_id,
        entity_type=result.entity_type,
        stage=result.previous_stage,
        previous_status=result.previous_status,
        new_status=result.new_status,
        reason_code=result.reason_code,
        rejection_id=result.rejection_id,
        rejected_at=result.rejected_at,
        resubmission_strategy=result.resubmission_strategy,
        allow_resubmission=result.allow_resubmission,
    ).model_dump(mode="json")
    _log("REJECT", request, actor, started, entity_type=entity_type,
         entity_id=entity_id, payload=body, data=data)
    return success_response(data)


# -------------------------
# GET /workflow/actions
# -------------------------
@router.get("/actions")
def get_actions(
    request: Request,
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(workflow_user),
):
    started = time.perf_counter()
    actor = actor_from_user(user)
    query = {"entity_type": entity_type, "entity_id": entity_id}

    try:
        req = validate_get_actions_request(query)
        state = get_workflow_state(db, entity_type=req.entity_type,
                                   entity_id=req.entity_id, actor=actor)
        if state.entity is None:
            raise WorkflowError(WorkflowErrorCode.ENTITY_NOT_FOUND,
                                f"{req.entity_type} {req.entity_id} not found",
                                {"entity_type": req.entity_type, "entity_id": req.entity_id})

        approve_ok, approve_reason = can_user_approve(
            db, entity_type=req.entity_type, entity_id=req.entity_id, actor=actor)
        reject_ok, reject_reason = can_user_reject(
            db, entity_type=req.entity_type, entity_id=req.entity_id, actor=actor)
    except (ApiError, WorkflowError) as e:
        _log("GET_ACTIONS", request, actor, started, entity_type=entity_type,
             entity_id=entity_id, error=e, payload=query)
        return response_for_exception(e)
    except Exception as e:
        logger.exception("Get actions failed for %s %s", entity_type, entity_id)
        _log("GET_ACTIONS", request, actor, started, entity_type=entity_type,
             entity_id=entity_id, error=e, payload=query)
        return _internal_error(e)

    info = None
    if state.config is not None:
        current = state.current_stage
        info = WorkflowInfo(
            workflow_name=state.config.workflow_name,
            total_stages=len(state.config.stages),
            current_stage_order=current.order if current else 0,
            is_terminal=state.is_terminal,
            next_stage_name=state.next_stage.stage_name if state.next_stage else None,
            allowed_roles=list(current.allowed_roles) if current else [],
        )

    data = GetActionsResponseData(
        entity_id=state.entity.id,
        entity_type=req.entity_type,
        current_stage=state.entity.current_stage,
        current_stage_name=state.current_stage.stage_name if state.current_stage else None,
        current_status=state.entity.status,
        actions=ActionsFlags(
            can_approve=approve_ok,
            can_reject=reject_ok,
            approve_disabled_reason=approve_reason,
            reject_disabled_reason=reject_reason,
        ),
        workflow_info=info,
    ).model_dump(mode="json")
    _log("GET_ACTIONS", request, actor, started, entity_type=entity_type,
         entity_id=entity_id, payload=query)
    return success_response(data)


# -------------------------
# GET /workflow/ui-rules
# -------------------------
@router.get("/ui-rules")
def get_ui_rules(
    request: Request,
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(workflow_user),
):
    started = time.perf_counter()
    actor = actor_from_user(user)
    query = {"entity_type": entity_type, "entity_id": entity_id}

    try:
        req = validate_get_actions_request(query)
        result = evaluate_ui_rules(db, entity_type=req.entity_type,
                                   entity_id=req.entity_id, actor=actor)
    except (ApiError, WorkflowError) as e:
        _log("GET_UI_RULES", request, actor, started, entity_type=entity_type,
             entity_id=entity_id, error=e, payload=query)
        return response_for_exception(e)

    _log("GET_UI_RULES", request, actor, started, entity_type=entity_type,
         entity_id=entity_id, payload=query)
    return success_response(result.model_dump(mode="json"))
