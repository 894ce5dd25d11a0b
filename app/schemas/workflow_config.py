# FILE: app/schemas/workflow_config.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.workflow.config import (
    ENTITY_TYPES,
    GlobalRejectionConfig,
    WorkflowStage,
    validate_stages,
)


class WorkflowConfigCreate(BaseModel):
    config_id: str = Field(pattern=r"^[A-Za-z0-9_-]{1,50}$")
    entity_type: str
    workflow_name: str = Field(min_length=1, max_length=200)
    description: str = ""
    stages: List[WorkflowStage]
    status_on_submission: Optional[str] = None
    status_on_approval: Dict[str, str] = Field(default_factory=dict)
    status_on_rejection: Dict[str, str] = Field(default_factory=dict)
    rejection_config: Optional[GlobalRejectionConfig] = None
    is_active: bool = True

    @field_validator("entity_type")
    @classmethod
    def _entity_type(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if v not in ENTITY_TYPES:
            raise ValueError(f"entity_type must be one of {', '.join(ENTITY_TYPES)}")
        return v

    @model_validator(mode="after")
    def _stages(self) -> "WorkflowConfigCreate":
        validate_stages(self.stages)
        return self


class WorkflowConfigUpdate(BaseModel):
    workflow_name: Optional[str] = None
    description: Optional[str] = None
    stages: Optional[List[WorkflowStage]] = None
    status_on_submission: Optional[str] = None
    status_on_approval: Optional[Dict[str, str]] = None
    status_on_rejection: Optional[Dict[str, str]] = None
    rejection_config: Optional[GlobalRejectionConfig] = None

    @field_validator("stages")
    @classmethod
    def _stages(cls, v: Optional[List[WorkflowStage]]) -> Optional[List[WorkflowStage]]:
        if v is not None:
            validate_stages(v)
        return v


class WorkflowConfigOut(BaseModel):
    id: int
    config_id: str
    company_id: int
    entity_type: str
    workflow_name: str
    description: str
    stages: List[Dict[str, Any]]
    status_on_submission: Optional[str] = None
    status_on_approval: Optional[Dict[str, str]] = None
    status_on_rejection: Optional[Dict[str, str]] = None
    rejection_config: Optional[Dict[str, Any]] = None
    version: int
    is_active: bool
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
