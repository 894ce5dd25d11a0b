# FILE: app/models/workflow.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, Text, JSON, Index
)

from app.db.base import Base


class WorkflowConfiguration(Base):
    """
    Approval chain for one entity type of one company.

    stages is a list of dicts:
      {stage_key, stage_name, order, allowed_roles, can_approve, can_reject,
       is_terminal, is_optional, rejection_config}
    """
    __tablename__ = "workflow_configurations"
    __table_args__ = (
        Index("ix_wf_config_company_entity", "company_id", "entity_type", "is_active"),
    )

    id = Column(Integer, primary_key=True, index=True)
    config_id = Column(String(50), unique=True, nullable=False, index=True)

    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    # ORDER / GRN / INVOICE / PURCHASE_ORDER / RETURN_REQUEST
    entity_type = Column(String(30), nullable=False)

    workflow_name = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=False, default="")

    stages = Column(JSON, nullable=False)

    status_on_submission = Column(String(60), nullable=True)
    status_on_approval = Column(JSON, nullable=True)   # stage_key -> status
    status_on_rejection = Column(JSON, nullable=True)  # stage_key -> status

    rejection_config = Column(JSON, nullable=True)     # global defaults

    version = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)

    created_by = Column(Integer, nullable=True)
    updated_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class WorkflowApprovalAudit(Base):
    __tablename__ = "workflow_approval_audits"
    __table_args__ = (
        Index("ix_wf_approval_entity", "entity_type", "entity_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    audit_id = Column(String(50), unique=True, nullable=False, index=True)

    company_id = Column(Integer, nullable=False, index=True)
    entity_type = Column(String(30), nullable=False)
    entity_id = Column(String(50), nullable=False)

    workflow_config_id = Column(String(50), nullable=False)
    workflow_version = Column(Integer, nullable=False)

    from_stage = Column(String(60), nullable=False)
    to_stage = Column(String(60), nullable=True)  # null when terminal
    # APPROVE / AUTO_APPROVE / SKIP_STAGE / ESCALATE
    action = Column(String(20), nullable=False, default="APPROVE")

    approved_by = Column(Integer, nullable=False)
    approved_by_role = Column(String(30), nullable=False)
    approved_by_name = Column(String(120), nullable=True)

    previous_status = Column(String(60), nullable=False)
    new_status = Column(String(60), nullable=False)
    remarks = Column(Text, nullable=True)

    entity_snapshot = Column(JSON, nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)

    approved_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class WorkflowRejection(Base):
    __tablename__ = "workflow_rejections"
    __table_args__ = (
        Index("ix_wf_rejection_entity", "entity_type", "entity_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    rejection_id = Column(String(50), unique=True, nullable=False, index=True)

    company_id = Column(Integer, nullable=False, index=True)
    entity_type = Column(String(30), nullable=False)
    entity_id = Column(String(50), nullable=False)

    workflow_config_id = Column(String(50), nullable=True)
    workflow_stage = Column(String(60), nullable=False)
    workflow_version = Column(Integer, nullable=True)

    # REJECT / SEND_BACK / CANCEL / HOLD
    action = Column(String(20), nullable=False, default="REJECT")
    reason_code = Column(String(50), nullable=False)
    reason_label = Column(String(200), nullable=True)
    remarks = Column(Text, nullable=True)

    rejected_by = Column(Integer, nullable=False)
    rejected_by_role = Column(String(30), nullable=False)
    rejected_by_name = Column(String(120), nullable=True)

    previous_status = Column(String(60), nullable=False)
    previous_stage = Column(String(60), nullable=True)
    new_status = Column(String(60), nullable=False)

    entity_snapshot = Column(JSON, nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)

    rejected_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
