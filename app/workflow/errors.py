# app/workflow/errors.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class WorkflowErrorCode(str, Enum):
    ENTITY_NOT_FOUND = "WF_E001"
    ENTITY_UPDATE_FAILED = "WF_E002"

    WORKFLOW_NOT_FOUND = "WF_E010"
    WORKFLOW_INACTIVE = "WF_E011"
    WORKFLOW_INVALID = "WF_E012"

    STAGE_NOT_FOUND = "WF_E020"
    STAGE_MISMATCH = "WF_E021"
    NO_CURRENT_STAGE = "WF_E022"

    ROLE_NOT_ALLOWED = "WF_E030"
    APPROVE_NOT_ALLOWED = "WF_E031"
    REJECT_NOT_ALLOWED = "WF_E032"

    ALREADY_APPROVED = "WF_E040"
    ALREADY_REJECTED = "WF_E041"
    INVALID_STATE = "WF_E042"

    AUDIT_FAILED = "WF_E050"

    UNKNOWN = "WF_E999"


WORKFLOW_ERROR_HTTP_STATUS: Dict[WorkflowErrorCode, int] = {
    WorkflowErrorCode.ENTITY_NOT_FOUND: 404,
    WorkflowErrorCode.WORKFLOW_NOT_FOUND: 404,

    WorkflowErrorCode.ENTITY_UPDATE_FAILED: 500,
    WorkflowErrorCode.WORKFLOW_INVALID: 500,
    WorkflowErrorCode.AUDIT_FAILED: 500,
    WorkflowErrorCode.UNKNOWN: 500,

    WorkflowErrorCode.WORKFLOW_INACTIVE: 422,
    WorkflowErrorCode.STAGE_NOT_FOUND: 422,
    WorkflowErrorCode.STAGE_MISMATCH: 422,
    WorkflowErrorCode.NO_CURRENT_STAGE: 422,
    WorkflowErrorCode.ALREADY_APPROVED: 422,
    WorkflowErrorCode.ALREADY_REJECTED: 422,
    WorkflowErrorCode.INVALID_STATE: 422,

    WorkflowErrorCode.ROLE_NOT_ALLOWED: 403,
    WorkflowErrorCode.APPROVE_NOT_ALLOWED: 403,
    WorkflowErrorCode.REJECT_NOT_ALLOWED: 403,
}


class WorkflowError(RuntimeError):
    """Raised by the workflow engine; carries a stable WF_Exxx code."""

    def __init__(
        self,
        code: WorkflowErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    @property
    def http_status(self) -> int:
        return WORKFLOW_ERROR_HTTP_STATUS.get(self.code, 500)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details or None,
        }
