# app/workflow/api_types.py
from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.utils.validators import is_valid_entity_id
from app.workflow.errors import WorkflowError
from app.workflow.repository import has_repository, registered_entity_types

logger = logging.getLogger("app.workflow.api")

REJECTION_ACTIONS = ("REJECT", "SEND_BACK", "CANCEL", "HOLD")


class ApiErrorCode(str, Enum):
    UNAUTHORIZED = "API_E001"
    FORBIDDEN = "API_E002"
    INVALID_TOKEN = "API_E003"

    VALIDATION_ERROR = "API_E010"
    MISSING_REQUIRED_FIELD = "API_E011"
    INVALID_ENTITY_TYPE = "API_E012"
    INVALID_ENTITY_ID = "API_E013"
    INVALID_REASON_CODE = "API_E014"

    ENTITY_NOT_FOUND = "API_E020"
    WORKFLOW_NOT_FOUND = "API_E021"

    ACTION_NOT_ALLOWED = "API_E030"
    INVALID_STAGE = "API_E031"
    ROLE_NOT_PERMITTED = "API_E032"
    ALREADY_PROCESSED = "API_E033"

    INTERNAL_ERROR = "API_E500"
    DATABASE_ERROR = "API_E501"


API_ERROR_HTTP_STATUS: Dict[ApiErrorCode, int] = {
    ApiErrorCode.UNAUTHORIZED: 401,
    ApiErrorCode.FORBIDDEN: 403,
    ApiErrorCode.INVALID_TOKEN: 401,
    ApiErrorCode.VALIDATION_ERROR: 400,
    ApiErrorCode.MISSING_REQUIRED_FIELD: 400,
    ApiErrorCode.INVALID_ENTITY_TYPE: 400,
    ApiErrorCode.INVALID_ENTITY_ID: 400,
    ApiErrorCode.INVALID_REASON_CODE: 400,
    ApiErrorCode.ENTITY_NOT_FOUND: 404,
    ApiErrorCode.WORKFLOW_NOT_FOUND: 404,
    ApiErrorCode.ACTION_NOT_ALLOWED: 422,
    ApiErrorCode.INVALID_STAGE: 422,
    ApiErrorCode.ROLE_NOT_PERMITTED: 403,
    ApiErrorCode.ALREADY_PROCESSED: 422,
    ApiErrorCode.INTERNAL_ERROR: 500,
    ApiErrorCode.DATABASE_ERROR: 500,
}


class ApiError(Exception):
    def __init__(
        self,
        code: ApiErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    @property
    def http_status(self) -> int:
        return API_ERROR_HTTP_STATUS.get(self.code, 500)


# -------------------------
# Requests
# -------------------------
class ApproveRequest(BaseModel):
    entity_type: str
    entity_id: str
    remarks: Optional[str] = None


class RejectRequest(BaseModel):
    entity_type: str
    entity_id: str
    reason_code: str
    reason_label: Optional[str] = None
    remarks: Optional[str] = None
    action: str = "REJECT"


class GetActionsRequest(BaseModel):
    entity_type: str
    entity_id: str


def _validation_error(errors: List[str], code: ApiErrorCode) -> ApiError:
    return ApiError(code, errors[0], {"errors": errors})


def _check_entity(
    body: Dict[str, Any], errors: List[str], codes: List[ApiErrorCode], suffix: str = ""
) -> None:
    entity_type = body.get("entity_type")
    entity_id = body.get("entity_id")

    if not entity_type:
        errors.append(f"entity_type{suffix} is required")
        codes.append(ApiErrorCode.MISSING_REQUIRED_FIELD)
    elif not isinstance(entity_type, str) or not has_repository(entity_type):
        supported = ", ".join(registered_entity_types())
        errors.append(f"Invalid entity_type: {entity_type}. Supported: {supported}")
        codes.append(ApiErrorCode.INVALID_ENTITY_TYPE)

    if not entity_id:
        errors.append(f"entity_id{suffix} is required")
        codes.append(ApiErrorCode.MISSING_REQUIRED_FIELD)
    elif not isinstance(entity_id, str) or not is_valid_entity_id(entity_id):
        errors.append("Invalid entity_id format")
        codes.append(ApiErrorCode.INVALID_ENTITY_ID)


def validate_approve_request(body: Any) -> ApproveRequest:
    if not isinstance(body, dict):
        raise ApiError(ApiErrorCode.VALIDATION_ERROR, "Request body is required")

    errors: List[str] = []
    codes: List[ApiErrorCode] = []
    _check_entity(body, errors, codes)

    remarks = body.get("remarks")
    if remarks is not None and not isinstance(remarks, str):
        errors.append("remarks must be a string")
        codes.append(ApiErrorCode.VALIDATION_ERROR)

    if errors:
        raise _validation_error(errors, codes[0])

    return ApproveRequest(
        entity_type=body["entity_type"].upper(),
        entity_id=body["entity_id"],
        remarks=remarks,
    )


def validate_reject_request(body: Any) -> RejectRequest:
    if not isinstance(body, dict):
        raise ApiError(ApiErrorCode.VALIDATION_ERROR, "Request body is required")

    errors: List[str] = []
    codes: List[ApiErrorCode] = []
    _check_entity(body, errors, codes)

    reason_code = body.get("reason_code")
    if not reason_code:
        errors.append("reason_code is required for rejection")
        codes.append(ApiErrorCode.MISSING_REQUIRED_FIELD)
    elif not isinstance(reason_code, str) or len(reason_code) > 50:
        errors.append("Invalid reason_code format")
        codes.append(ApiErrorCode.INVALID_REASON_CODE)

    for name in ("reason_label", "remarks"):
        value = body.get(name)
        if value is not None and not isinstance(value, str):
            errors.append(f"{name} must be a string")
            codes.append(ApiErrorCode.VALIDATION_ERROR)

    action = body.get("action")
    if action is not None and action not in REJECTION_ACTIONS:
        errors.append(f"Invalid action: {action}. Supported: {', '.join(REJECTION_ACTIONS)}")
        codes.append(ApiErrorCode.VALIDATION_ERROR)

    if errors:
        raise _validation_error(errors, codes[0])

    return RejectRequest(
        entity_type=body["entity_type"].upper(),
        entity_id=body["entity_id"],
        reason_code=reason_code,
        reason_label=body.get("reason_label"),
        remarks=body.get("remarks"),
        action=action or "REJECT",
    )


def validate_get_actions_request(query: Dict[str, Any]) -> GetActionsRequest:
    errors: List[str] = []
    codes: List[ApiErrorCode] = []
    _check_entity(query or {}, errors, codes, suffix=" query param")
    if errors:
        raise _validation_error(errors, codes[0])
    return GetActionsRequest(
        entity_type=query["entity_type"].upper(),
        entity_id=query["entity_id"],
    )


# -------------------------
# Responses
# -------------------------
class ApproveResponseData(BaseModel):
    entity_id: str
    entity_type: str
    action: str = "APPROVED"
    previous_stage: str
    new_stage: Optional[str] = None
    previous_status: str
    new_status: str
    is_fully_approved: bool
    audit_id: str
    approved_at: datetime


class RejectResponseData(BaseModel):
    entity_id: str
    entity_type: str
    action: str = "REJECTED"
    stage: str
    previous_status: str
    new_status: str
    reason_code: str
    rejection_id: str
    rejected_at: datetime
    resubmission_strategy: str
    allow_resubmission: bool


class ActionsFlags(BaseModel):
    can_approve: bool
    can_reject: bool
    approve_disabled_reason: Optional[str] = None
    reject_disabled_reason: Optional[str] = None


class WorkflowInfo(BaseModel):
    workflow_name: str
    total_stages: int
    current_stage_order: int
    is_terminal: bool
    next_stage_name: Optional[str] = None
    allowed_roles: List[str] = []


class GetActionsResponseData(BaseModel):
    entity_id: str
    entity_type: str
    current_stage: Optional[str] = None
    current_stage_name: Optional[str] = None
    current_status: str
    actions: ActionsFlags
    workflow_info: Optional[WorkflowInfo] = None


def _now_iso() -> str:
    return datetime.utcnow().isoformat() + "Z"


def success_response(data: Any, status_code: int = 200) -> JSONResponse:
    payload = {"success": True, "data": data, "timestamp": _now_iso()}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def error_response(
    code: str,
    message: str,
    *,
    status_code: int,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    payload = {
        "success": False,
        "error": {"code": code, "message": message, "details": details},
        "timestamp": _now_iso(),
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def response_for_exception(exc: Union[ApiError, WorkflowError]) -> JSONResponse:
    return error_response(
        exc.code.value,
        exc.message,
        status_code=exc.http_status,
        details=exc.details or None,
    )


# -------------------------
# API audit log
# -------------------------
def client_ip(request: Request) -> Optional[str]:
    fwd = request.headers.get("x-forwarded-for")
    if fwd:
        return fwd.split(",")[0].strip()
    real = request.headers.get("x-real-ip")
    if real:
        return real.strip()
    return request.client.host if request.client else None


def log_workflow_api_action(
    *,
    action: str,
    entity_type: Optional[str],
    entity_id: Optional[str],
    company_id: Optional[int],
    user_id: Optional[int],
    user_role: Optional[str],
    success: bool,
    duration_ms: int,
    request: Optional[Request] = None,
    error_code: Optional[str] = None,
    error_message: Optional[str] = None,
    request_payload: Optional[Dict[str, Any]] = None,
    response_data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    One structured line per workflow API call.
    info on success, warning on failure.
    """
    entry = {
        "timestamp": _now_iso(),
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "company_id": company_id,
        "user_id": user_id,
        "user_role": user_role,
        "success": success,
        "error_code": error_code,
        "error_message": error_message,
        "request_payload": request_payload,
        "response_data": response_data,
        "duration_ms": duration_ms,
        "client_ip": client_ip(request) if request is not None else None,
        "user_agent": request.headers.get("user-agent") if request is not None else None,
    }
    level = logging.INFO if success else logging.WARNING
    logger.log(level, "[WORKFLOW-API] [%s] %s", action, entry)
    return entry
