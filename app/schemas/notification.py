# FILE: app/schemas/notification.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


class NotificationEventOut(BaseModel):
    id: int
    event_code: str
    description: str
    default_priority: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class NotificationTemplateCreate(BaseModel):
    event_code: str
    template_name: str = Field(min_length=1, max_length=200)
    subject_template: str = Field(min_length=1, max_length=500)
    body_template: str = Field(min_length=1)
    language: str = "en"
    is_active: bool = True


class NotificationTemplateUpdate(BaseModel):
    template_name: Optional[str] = None
    subject_template: Optional[str] = None
    body_template: Optional[str] = None
    language: Optional[str] = None
    is_active: Optional[bool] = None


class NotificationTemplateOut(BaseModel):
    id: int
    event_id: int
    template_name: str
    subject_template: str
    body_template: str
    language: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationLogOut(BaseModel):
    id: int
    log_id: str
    queue_id: Optional[int] = None
    company_id: Optional[int] = None
    event_code: str
    recipient_email: str
    recipient_type: str
    subject: str
    status: str
    error_message: Optional[str] = None
    provider_message_id: Optional[str] = None
    sent_at: datetime

    model_config = ConfigDict(from_attributes=True)


class QueueRunOut(BaseModel):
    processed: int = 0
    sent: int = 0
    failed: int = 0
    retried: int = 0
    skipped: int = 0


class OrderNotificationSend(BaseModel):
    # STATUS / PO / DELIVERED
    kind: str = "STATUS"

    @field_validator("kind")
    @classmethod
    def _kind(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if v not in {"STATUS", "PO", "DELIVERED"}:
            raise ValueError("kind must be STATUS, PO or DELIVERED")
        return v


class NotificationSendOut(BaseModel):
    log_id: str
    status: str
    subject: str
    provider_message_id: Optional[str] = None
    error: Optional[str] = None


# -------------------------
# Company notification config
# -------------------------
class CompanyNotificationConfigUpdate(BaseModel):
    notifications_enabled: Optional[bool] = None
    brand_name: Optional[str] = Field(default=None, max_length=120)
    brand_color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    quiet_hours_enabled: Optional[bool] = None
    quiet_hours_start: Optional[str] = Field(default=None, pattern=_HHMM)
    quiet_hours_end: Optional[str] = Field(default=None, pattern=_HHMM)
    quiet_hours_timezone: Optional[str] = Field(default=None, max_length=60)


class CompanyNotificationConfigOut(BaseModel):
    company_id: int
    notifications_enabled: bool
    event_configs: List[Dict[str, Any]] = []
    brand_name: Optional[str] = None
    brand_color: Optional[str] = None
    quiet_hours_enabled: bool
    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None
    quiet_hours_timezone: str

    model_config = ConfigDict(from_attributes=True)

    @field_validator("event_configs", mode="before")
    @classmethod
    def _none_to_list(cls, v: Any) -> Any:
        return v or []


class EventConfigUpdate(BaseModel):
    is_enabled: Optional[bool] = None
    custom_subject: Optional[str] = Field(default=None, max_length=500)
    custom_body: Optional[str] = None


class CompanyEventConfigOut(BaseModel):
    event_code: str
    description: str
    is_enabled: bool
    has_custom_template: bool
    custom_subject: Optional[str] = None
    custom_body: Optional[str] = None


# -------------------------
# Workflow notification mappings
# -------------------------
class WorkflowNotificationMappingCreate(BaseModel):
    mapping_id: str = Field(pattern=r"^[A-Za-z0-9_-]{1,50}$")
    entity_type: str = "*"
    event_code: str
    stage_key: Optional[str] = Field(default=None, max_length=50)
    recipient_resolvers: List[str] = Field(min_length=1)
    custom_recipients: List[str] = []
    exclude_action_performer: bool = False
    template_event_code: Optional[str] = None
    conditions: Optional[Dict[str, List[str]]] = None
    priority: int = Field(default=0, ge=0, le=100)
    is_active: bool = True
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("entity_type", "event_code")
    @classmethod
    def _upper(cls, v: str) -> str:
        return (v or "").strip().upper()


class WorkflowNotificationMappingUpdate(BaseModel):
    stage_key: Optional[str] = Field(default=None, max_length=50)
    recipient_resolvers: Optional[List[str]] = Field(default=None, min_length=1)
    custom_recipients: Optional[List[str]] = None
    exclude_action_performer: Optional[bool] = None
    template_event_code: Optional[str] = None
    conditions: Optional[Dict[str, List[str]]] = None
    priority: Optional[int] = Field(default=None, ge=0, le=100)
    is_active: Optional[bool] = None
    description: Optional[str] = Field(default=None, max_length=500)


class WorkflowNotificationMappingOut(BaseModel):
    id: int
    mapping_id: str
    company_id: Optional[int] = None
    entity_type: str
    event_code: str
    stage_key: Optional[str] = None
    recipient_resolvers: List[str]
    custom_recipients: Optional[List[str]] = None
    exclude_action_performer: bool
    template_event_code: Optional[str] = None
    conditions: Optional[Dict[str, Any]] = None
    priority: int
    is_active: bool
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
