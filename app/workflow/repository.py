# app/workflow/repository.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple, Type

from sqlalchemy.orm import Session

from app.models.grn import GRN
from app.models.invoice import Invoice
from app.models.order import Order, OrderStatus
from app.workflow.errors import WorkflowError, WorkflowErrorCode


@dataclass
class WorkflowEntity:
    """Entity-agnostic view the engine and UI rules work on."""
    id: str
    entity_type: str
    company_id: int
    status: str
    current_stage: Optional[str]
    created_by: Optional[int]
    owner_employee_id: Optional[int]
    raw: Any = field(repr=False)
    vendor_id: Optional[int] = None


@dataclass
class WorkflowStateUpdate:
    status: str
    current_stage: Optional[str]
    updated_by: Optional[int]
    updated_at: datetime = field(default_factory=datetime.utcnow)
    # set on approval
    approved_stage: Optional[str] = None
    # set on rejection
    rejection_reason: Optional[str] = None
    rejection_remarks: Optional[str] = None


class EntityRepository:
    entity_type: str = ""
    model: Type[Any]
    number_attr: str = ""

    # unified status -> legacy column values
    legacy_status_map: Dict[str, Dict[str, str]] = {}

    # stage key -> attribute names to stamp (by, at)
    stage_approval_fields: Dict[str, Tuple[str, str]] = {}

    # -------- lookup --------
    def find_by_id(self, db: Session, entity_id: str) -> Optional[WorkflowEntity]:
        row = self.find_row(db, entity_id)
        return self.to_entity(row) if row is not None else None

    def find_row(self, db: Session, entity_id: str) -> Optional[Any]:
        key = (entity_id or "").strip()
        if not key:
            return None
        row = (
            db.query(self.model)
            .filter(getattr(self.model, self.number_attr) == key)
            .first()
        )
        if row is None and key.isdigit():
            row = db.get(self.model, int(key))
        return row

    def to_entity(self, row: Any) -> WorkflowEntity:
        return WorkflowEntity(
            id=str(getattr(row, self.number_attr)),
            entity_type=self.entity_type,
            company_id=row.company_id,
            status=self.current_status(row),
            current_stage=row.current_stage,
            created_by=getattr(row, "created_by", None),
            owner_employee_id=getattr(row, "employee_id", None),
            raw=row,
            vendor_id=getattr(row, "vendor_id", None),
        )

    def current_status(self, row: Any) -> str:
        return str(row.unified_status or "")

    # -------- mutation --------
    def update_workflow_state(
        self, db: Session, entity: WorkflowEntity, update: WorkflowStateUpdate
    ) -> WorkflowEntity:
        row = entity.raw
        row.unified_status = update.status
        row.unified_status_updated_at = update.updated_at
        row.unified_status_updated_by = update.updated_by
        row.current_stage = update.current_stage

        for attr, value in self.legacy_status_map.get(update.status, {}).items():
            setattr(row, attr, value)

        if update.approved_stage:
            self.apply_approval_fields(row, update)

        if update.rejection_reason is not None:
            row.rejection_reason = update.rejection_reason
            row.rejection_remarks = update.rejection_remarks
            row.rejected_by = update.updated_by
            row.rejected_at = update.updated_at

        db.add(row)
        db.flush()
        return self.to_entity(row)

    def apply_approval_fields(self, row: Any, update: WorkflowStateUpdate) -> None:
        fields = self.stage_approval_fields.get(update.approved_stage or "")
        if fields:
            by_attr, at_attr = fields
            setattr(row, by_attr, update.updated_by)
            setattr(row, at_attr, update.updated_at)

    def snapshot(self, entity: WorkflowEntity) -> Dict[str, Any]:
        return {}


class OrderRepository(EntityRepository):
    entity_type = "ORDER"
    model = Order
    number_attr = "order_number"

    legacy_status_map = {
        "PENDING_LOCATION_APPROVAL": {"status": OrderStatus.AWAITING_APPROVAL},
        "PENDING_COMPANY_APPROVAL": {"status": OrderStatus.AWAITING_APPROVAL},
        "APPROVED": {"status": OrderStatus.AWAITING_FULFILMENT},
        "REJECTED": {"status": OrderStatus.AWAITING_APPROVAL},
        "IN_FULFILMENT": {"status": OrderStatus.AWAITING_FULFILMENT},
        "DISPATCHED": {"status": OrderStatus.DISPATCHED},
        "DELIVERED": {"status": OrderStatus.DELIVERED},
    }

    stage_approval_fields = {
        "LOCATION_APPROVAL": ("site_admin_approved_by", "site_admin_approved_at"),
        "SITE_ADMIN_APPROVAL": ("site_admin_approved_by", "site_admin_approved_at"),
        "COMPANY_APPROVAL": ("company_admin_approved_by", "company_admin_approved_at"),
    }

    def find_row(self, db: Session, entity_id: str) -> Optional[Order]:
        row = super().find_row(db, entity_id)
        if row is None and entity_id:
            row = db.query(Order).filter(Order.pr_number == entity_id.strip()).first()
        return row

    def current_status(self, row: Order) -> str:
        return str(row.unified_status or row.status or "")

    def snapshot(self, entity: WorkflowEntity) -> Dict[str, Any]:
        o: Order = entity.raw
        emp = o.employee
        return {
            "employee_id": o.employee_id,
            "employee_name": emp.full_name if emp else None,
            "pr_number": o.pr_number,
            "total_amount": float(o.total or 0),
            "item_count": len(o.items or []),
            "vendor_id": o.vendor_id,
            "order_date": o.created_at.isoformat() if o.created_at else None,
        }


class GRNRepository(EntityRepository):
    entity_type = "GRN"
    model = GRN
    number_attr = "grn_number"

    legacy_status_map = {
        "RAISED": {"status": "CREATED", "grn_status": "RAISED"},
        "PENDING_APPROVAL": {"status": "CREATED", "grn_status": "RAISED"},
        "APPROVED": {"status": "ACKNOWLEDGED", "grn_status": "APPROVED"},
        "REJECTED": {"status": "CREATED", "grn_status": "RAISED"},
        "INVOICED": {"status": "INVOICED", "grn_status": "APPROVED"},
        "CLOSED": {"status": "CLOSED", "grn_status": "APPROVED"},
    }

    def current_status(self, row: GRN) -> str:
        return str(row.unified_status or row.grn_status or "")

    def apply_approval_fields(self, row: GRN, update: WorkflowStateUpdate) -> None:
        if update.approved_stage == "GRN_COMPANY_APPROVAL":
            row.approved_by = update.updated_by
            row.approved_at = update.updated_at
            row.grn_acknowledged_by_company = True
            row.grn_acknowledged_by = update.updated_by
            row.grn_acknowledged_date = update.updated_at

    def snapshot(self, entity: WorkflowEntity) -> Dict[str, Any]:
        g: GRN = entity.raw
        return {
            "grn_number": g.grn_number,
            "po_number": g.po_number,
            "vendor_id": g.vendor_id,
            "item_count": len(g.items or []),
            "created_by": g.created_by,
        }


class InvoiceRepository(EntityRepository):
    entity_type = "INVOICE"
    model = Invoice
    number_attr = "invoice_number"

    legacy_status_map = {
        "RAISED": {"invoice_status": "RAISED"},
        "PENDING_APPROVAL": {"invoice_status": "RAISED"},
        "APPROVED": {"invoice_status": "APPROVED"},
        "REJECTED": {"invoice_status": "REJECTED"},
        "PAID": {"invoice_status": "APPROVED"},
    }

    stage_approval_fields = {
        "INVOICE_COMPANY_APPROVAL": ("approved_by", "approved_at"),
        "INVOICE_FINANCE_APPROVAL": ("approved_by", "approved_at"),
    }

    def current_status(self, row: Invoice) -> str:
        return str(row.unified_status or row.invoice_status or "")

    def snapshot(self, entity: WorkflowEntity) -> Dict[str, Any]:
        i: Invoice = entity.raw
        return {
            "invoice_number": i.invoice_number,
            "vendor_invoice_number": i.vendor_invoice_number,
            "invoice_amount": float(i.invoice_amount or 0),
            "vendor_id": i.vendor_id,
            "grn_number": i.grn_number,
            "po_number": i.po_number,
        }


# -------------------------
# Registry
# -------------------------
_REPOSITORIES: Dict[str, Callable[[], EntityRepository]] = {
    "ORDER": OrderRepository,
    "GRN": GRNRepository,
    "INVOICE": InvoiceRepository,
}


def get_repository(entity_type: str) -> EntityRepository:
    factory = _REPOSITORIES.get((entity_type or "").strip().upper())
    if factory is None:
        raise WorkflowError(
            WorkflowErrorCode.WORKFLOW_INVALID,
            f"No repository registered for entity type {entity_type}",
            {"entity_type": entity_type},
        )
    return factory()


def has_repository(entity_type: str) -> bool:
    return (entity_type or "").strip().upper() in _REPOSITORIES


def registered_entity_types() -> Tuple[str, ...]:
    return tuple(_REPOSITORIES)
