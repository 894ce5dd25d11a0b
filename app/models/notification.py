# FILE: app/models/notification.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, Text, JSON, Index
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class NotificationEvent(Base):
    __tablename__ = "notification_events"

    id = Column(Integer, primary_key=True, index=True)
    event_code = Column(String(60), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=False, default="")
    default_priority = Column(String(10), nullable=False, default="MEDIUM")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    templates = relationship("NotificationTemplate", back_populates="event")


class NotificationTemplate(Base):
    __tablename__ = "notification_templates"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("notification_events.id"), nullable=False, index=True)

    template_name = Column(String(200), nullable=False)
    # "{{placeholder}}" syntax
    subject_template = Column(String(500), nullable=False)
    body_template = Column(Text, nullable=False)
    language = Column(String(10), nullable=False, default="en")

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    event = relationship("NotificationEvent", back_populates="templates")


class NotificationQueue(Base):
    __tablename__ = "notification_queue"
    __table_args__ = (
        Index("ix_notif_queue_due", "status", "next_attempt_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)
    event_code = Column(String(60), nullable=False)
    recipient_email = Column(String(191), nullable=False)
    recipient_type = Column(String(30), nullable=False, default="EMPLOYEE")
    context = Column(JSON, nullable=True)

    # PENDING / PROCESSING / SENT / FAILED
    status = Column(String(20), nullable=False, default="PENDING")
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    next_attempt_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_error = Column(String(1000), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class NotificationLog(Base):
    __tablename__ = "notification_logs"
    __table_args__ = (
        Index("ix_notif_log_dup", "event_id", "recipient_email", "status", "sent_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # NOTIF-<base36>-<rand> correlation id
    log_id = Column(String(60), unique=True, nullable=False, index=True)
    queue_id = Column(Integer, ForeignKey("notification_queue.id"), nullable=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)
    event_id = Column(Integer, ForeignKey("notification_events.id"), nullable=True)
    event_code = Column(String(60), nullable=False)

    recipient_email = Column(String(191), nullable=False)
    recipient_type = Column(String(30), nullable=False)
    subject = Column(String(500), nullable=False, default="")

    # SENT / FAILED / REJECTED
    status = Column(String(20), nullable=False)
    error_message = Column(String(1000), nullable=True)
    provider_message_id = Column(String(200), nullable=True)

    sent_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CompanyNotificationConfig(Base):
    """Per-company switches, template overrides, branding and quiet hours."""
    __tablename__ = "company_notification_configs"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), unique=True, nullable=False, index=True)

    notifications_enabled = Column(Boolean, nullable=False, default=True)
    # [{"event_code", "is_enabled", "custom_subject", "custom_body"}]
    event_configs = Column(JSON, nullable=True)

    brand_name = Column(String(120), nullable=True)
    brand_color = Column(String(20), nullable=True)

    quiet_hours_enabled = Column(Boolean, nullable=False, default=False)
    # "HH:MM" in quiet_hours_timezone; start > end spans midnight
    quiet_hours_start = Column(String(5), nullable=True)
    quiet_hours_end = Column(String(5), nullable=True)
    quiet_hours_timezone = Column(String(60), nullable=False, default="Asia/Kolkata")

    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class WorkflowNotificationMapping(Base):
    """
    Workflow event -> who gets notified and with which template.
    company_id NULL is the global default; any company row for the same
    event replaces the global ones.
    """
    __tablename__ = "workflow_notification_mappings"
    __table_args__ = (
        Index("ix_wf_notif_map_lookup", "event_code", "entity_type", "is_active"),
    )

    id = Column(Integer, primary_key=True, index=True)
    mapping_id = Column(String(50), unique=True, nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=True, index=True)

    # ORDER / GRN / INVOICE or "*"
    entity_type = Column(String(30), nullable=False, default="*")
    event_code = Column(String(60), nullable=False)
    # NULL = every stage
    stage_key = Column(String(50), nullable=True)

    recipient_resolvers = Column(JSON, nullable=False)
    custom_recipients = Column(JSON, nullable=True)
    exclude_action_performer = Column(Boolean, nullable=False, default=False)
    # NULL = use the workflow event's own template
    template_event_code = Column(String(60), nullable=True)
    # {"entity_statuses": [...], "roles": [...]}
    conditions = Column(JSON, nullable=True)

    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    description = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
