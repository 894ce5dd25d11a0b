# app/workflow/config.py
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlalchemy.orm import Session

from app.models.workflow import WorkflowConfiguration

ENTITY_TYPES = ("ORDER", "GRN", "INVOICE", "PURCHASE_ORDER", "RETURN_REQUEST")

STAGE_KEYS = (
    "LOCATION_APPROVAL",
    "COMPANY_APPROVAL",
    "FINANCE_APPROVAL",
    "VENDOR_ACKNOWLEDGMENT",
    "GRN_RAISED",
    "GRN_COMPANY_APPROVAL",
    "INVOICE_RAISED",
    "INVOICE_COMPANY_APPROVAL",
    "INVOICE_FINANCE_APPROVAL",
    "INITIAL_SUBMISSION",
    "MANAGER_APPROVAL",
    "FINAL_APPROVAL",
)

WORKFLOW_ROLES = (
    "LOCATION_ADMIN",
    "SITE_ADMIN",
    "COMPANY_ADMIN",
    "FINANCE_ADMIN",
    "VENDOR",
    "SUPER_ADMIN",
    "EMPLOYEE",
)

RESUBMISSION_NEW_ENTITY = "NEW_ENTITY"
RESUBMISSION_SAME_ENTITY = "SAME_ENTITY"

_CONFIG_ID = re.compile(r"^[A-Za-z0-9_-]{1,50}$")


# -------------------------
# Rejection config
# -------------------------
class StageRejectionConfig(BaseModel):
    """Per-stage overrides; None means "inherit"."""
    model_config = ConfigDict(extra="ignore")

    is_terminal_on_reject: Optional[bool] = None
    stop_further_stages_on_reject: Optional[bool] = None
    is_reason_code_mandatory: Optional[bool] = None
    is_remarks_mandatory: Optional[bool] = None
    max_remarks_length: Optional[int] = Field(default=None, ge=1)
    allowed_reason_codes: Optional[List[str]] = None
    notify_roles_on_reject: Optional[List[str]] = None
    notify_requestor: Optional[bool] = None
    exclude_from_notification: Optional[List[str]] = None
    allow_override_roles: Optional[List[str]] = None
    visible_to_roles_after_reject: Optional[List[str]] = None
    hidden_from_roles_after_reject: Optional[List[str]] = None
    resubmission_strategy: Optional[str] = None
    allow_resubmission: Optional[bool] = None
    resubmission_allowed_roles: Optional[List[str]] = None
    rejected_status: Optional[str] = None
    require_approval_for_override: Optional[bool] = None

    @field_validator("resubmission_strategy")
    @classmethod
    def _strategy(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if v not in {RESUBMISSION_NEW_ENTITY, RESUBMISSION_SAME_ENTITY}:
            raise ValueError("resubmission_strategy must be NEW_ENTITY or SAME_ENTITY")
        return v


class EffectiveRejectionConfig(BaseModel):
    is_terminal_on_reject: bool = True
    stop_further_stages_on_reject: bool = True
    is_reason_code_mandatory: bool = True
    is_remarks_mandatory: bool = False
    max_remarks_length: int = 2000
    allowed_reason_codes: Optional[List[str]] = None
    notify_roles_on_reject: List[str] = Field(default_factory=lambda: ["REQUESTOR"])
    notify_requestor: bool = True
    exclude_from_notification: List[str] = Field(default_factory=list)
    allow_override_roles: List[str] = Field(default_factory=list)
    visible_to_roles_after_reject: List[str] = Field(
        default_factory=lambda: ["REQUESTOR", "COMPANY_ADMIN"])
    hidden_from_roles_after_reject: List[str] = Field(default_factory=list)
    resubmission_strategy: str = RESUBMISSION_NEW_ENTITY
    allow_resubmission: bool = True
    resubmission_allowed_roles: List[str] = Field(default_factory=lambda: ["REQUESTOR"])
    rejected_status: str = "REJECTED"
    require_approval_for_override: bool = True


class GlobalRejectionConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    default_is_terminal_on_reject: Optional[bool] = None
    default_is_remarks_mandatory: Optional[bool] = None
    default_resubmission_strategy: Optional[str] = None
    default_notify_roles_on_reject: Optional[List[str]] = None
    default_visible_to_roles_after_reject: Optional[List[str]] = None
    default_allow_resubmission: Optional[bool] = None


def system_default_rejection_config() -> EffectiveRejectionConfig:
    return EffectiveRejectionConfig()


# -------------------------
# Stages / configuration
# -------------------------
class WorkflowStage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    stage_key: str
    stage_name: str
    order: int = Field(ge=1)
    allowed_roles: List[str] = Field(min_length=1)
    can_approve: bool = True
    can_reject: bool = True
    is_terminal: bool = False
    is_optional: bool = False
    rejection_config: Optional[StageRejectionConfig] = None

    @field_validator("stage_key")
    @classmethod
    def _stage_key(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if v not in STAGE_KEYS:
            raise ValueError(f"Unknown stage_key {v!r}")
        return v

    @field_validator("allowed_roles")
    @classmethod
    def _roles(cls, v: List[str]) -> List[str]:
        out = [r.strip().upper() for r in v if r and r.strip()]
        bad = [r for r in out if r not in WORKFLOW_ROLES]
        if bad:
            raise ValueError(f"Unknown roles: {', '.join(bad)}")
        if not out:
            raise ValueError("allowed_roles must not be empty")
        return out


class WorkflowConfigData(BaseModel):
    """Validated, typed view of a WorkflowConfiguration row."""
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    config_id: str
    company_id: int
    entity_type: str
    workflow_name: str
    description: str = ""
    stages: List[WorkflowStage]
    status_on_submission: Optional[str] = None
    status_on_approval: Dict[str, str] = Field(default_factory=dict)
    status_on_rejection: Dict[str, str] = Field(default_factory=dict)
    rejection_config: Optional[GlobalRejectionConfig] = None
    version: int = 1
    is_active: bool = True

    @field_validator("config_id")
    @classmethod
    def _config_id(cls, v: str) -> str:
        if not _CONFIG_ID.match(v or ""):
            raise ValueError("config_id must match ^[A-Za-z0-9_-]{1,50}$")
        return v

    @field_validator("entity_type")
    @classmethod
    def _entity_type(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if v not in ENTITY_TYPES:
            raise ValueError(f"Unsupported entity_type {v!r}")
        return v

    @field_validator("status_on_approval", "status_on_rejection", mode="before")
    @classmethod
    def _none_to_dict(cls, v: Any) -> Any:
        return v or {}

    @model_validator(mode="after")
    def _check_stages(self) -> "WorkflowConfigData":
        validate_stages(self.stages)
        return self

    # ---- stage helpers ----
    def sorted_stages(self) -> List[WorkflowStage]:
        return sorted(self.stages, key=lambda s: s.order)

    def first_stage(self) -> WorkflowStage:
        return self.sorted_stages()[0]

    def stage_by_key(self, stage_key: Optional[str]) -> Optional[WorkflowStage]:
        if not stage_key:
            return None
        return next((s for s in self.stages if s.stage_key == stage_key), None)

    def next_stage(self, stage_key: str) -> Optional[WorkflowStage]:
        ordered = self.sorted_stages()
        for idx, s in enumerate(ordered):
            if s.stage_key == stage_key:
                return ordered[idx + 1] if idx + 1 < len(ordered) else None
        return None

    def is_terminal(self, stage_key: str) -> bool:
        stage = self.stage_by_key(stage_key)
        if stage is None:
            return False
        return stage.is_terminal or self.next_stage(stage_key) is None

def validate_stages(stages: List[WorkflowStage]) -> None:
    if not stages:
        raise ValueError("Workflow must have at least one stage")

    terminals = [s for s in stages if s.is_terminal]
    if len(terminals) != 1:
        raise ValueError("Workflow must have exactly one terminal stage")

    orders = [s.order for s in stages]
    if len(orders) != len(set(orders)):
        raise ValueError("Stage orders must be unique")

    keys = [s.stage_key for s in stages]
    if len(keys) != len(set(keys)):
        raise ValueError("Stage keys must be unique")


def load_config(row: WorkflowConfiguration) -> WorkflowConfigData:
    """
    Raises pydantic.ValidationError when the stored JSON is malformed.
    """
    return WorkflowConfigData.model_validate(row)


def get_active_config_row(
    db: Session, company_id: int, entity_type: str
) -> Optional[WorkflowConfiguration]:
    return (
        db.query(WorkflowConfiguration)
        .filter(
            WorkflowConfiguration.company_id == company_id,
            WorkflowConfiguration.entity_type == entity_type,
            WorkflowConfiguration.is_active.is_(True),
        )
        .order_by(WorkflowConfiguration.version.desc())
        .first()
    )


# -------------------------
# Rejection config merge
# -------------------------
def get_effective_rejection_config(
    config: Optional[WorkflowConfigData], stage_key: Optional[str]
) -> EffectiveRejectionConfig:
    """
    system defaults <- workflow global defaults <- stage overrides.
    Only non-null values override.
    """
    effective = system_default_rejection_config().model_dump()
    if config is None:
        return EffectiveRejectionConfig(**effective)

    g = config.rejection_config
    if g is not None:
        mapping = {
            "default_is_terminal_on_reject": "is_terminal_on_reject",
            "default_is_remarks_mandatory": "is_remarks_mandatory",
            "default_resubmission_strategy": "resubmission_strategy",
            "default_notify_roles_on_reject": "notify_roles_on_reject",
            "default_visible_to_roles_after_reject": "visible_to_roles_after_reject",
            "default_allow_resubmission": "allow_resubmission",
        }
        for src, dst in mapping.items():
            value = getattr(g, src)
            if value is not None:
                effective[dst] = value

    stage = config.stage_by_key(stage_key)
    if stage is not None and stage.rejection_config is not None:
        for key, value in stage.rejection_config.model_dump().items():
            if value is not None:
                effective[key] = value

    return EffectiveRejectionConfig(**effective)
