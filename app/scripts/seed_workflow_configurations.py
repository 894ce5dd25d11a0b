# FILE: app/scripts/seed_workflow_configurations.py
"""
Seed default workflow configurations for every company (or one).

  python -m app.scripts.seed_workflow_configurations
  python -m app.scripts.seed_workflow_configurations --company-id 3 --single-stage
"""
from __future__ import annotations

import argparse
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.company import Company
from app.models.workflow import WorkflowConfiguration


def _stage(key: str, name: str, order: int, roles: List[str], terminal: bool) -> Dict[str, Any]:
    return {
        "stage_key": key,
        "stage_name": name,
        "order": order,
        "allowed_roles": roles,
        "can_approve": True,
        "can_reject": True,
        "is_terminal": terminal,
        "is_optional": False,
    }


def order_two_stage(company: Company) -> Dict[str, Any]:
    return {
        "config_id": f"WF-ORDER-{company.code}-2STAGE",
        "entity_type": "ORDER",
        "workflow_name": "Two-Stage Order Approval",
        "stages": [
            _stage("LOCATION_APPROVAL", "Location Admin Approval", 1,
                   ["LOCATION_ADMIN", "SITE_ADMIN"], False),
            _stage("COMPANY_APPROVAL", "Company Admin Approval", 2,
                   ["COMPANY_ADMIN", "SUPER_ADMIN"], True),
        ],
        "status_on_approval": {"COMPANY_APPROVAL": "APPROVED"},
        "status_on_rejection": {"LOCATION_APPROVAL": "REJECTED", "COMPANY_APPROVAL": "REJECTED"},
    }


def order_single_stage(company: Company) -> Dict[str, Any]:
    return {
        "config_id": f"WF-ORDER-{company.code}-1STAGE",
        "entity_type": "ORDER",
        "workflow_name": "Single-Stage Order Approval",
        "stages": [
            _stage("COMPANY_APPROVAL", "Company Admin Approval", 1,
                   ["COMPANY_ADMIN", "SUPER_ADMIN", "LOCATION_ADMIN"], True),
        ],
        "status_on_approval": {"COMPANY_APPROVAL": "APPROVED"},
        "status_on_rejection": {"COMPANY_APPROVAL": "REJECTED"},
    }


def grn_workflow(company: Company) -> Dict[str, Any]:
    return {
        "config_id": f"WF-GRN-{company.code}",
        "entity_type": "GRN",
        "workflow_name": "GRN Approval",
        "stages": [
            _stage("GRN_COMPANY_APPROVAL", "Company Admin Approval", 1,
                   ["COMPANY_ADMIN", "SUPER_ADMIN"], True),
        ],
        "status_on_submission": "RAISED",
        "status_on_approval": {"GRN_COMPANY_APPROVAL": "APPROVED"},
        "status_on_rejection": {"GRN_COMPANY_APPROVAL": "REJECTED"},
    }


def invoice_workflow(company: Company) -> Dict[str, Any]:
    return {
        "config_id": f"WF-INVOICE-{company.code}",
        "entity_type": "INVOICE",
        "workflow_name": "Invoice Approval",
        "stages": [
            _stage("INVOICE_COMPANY_APPROVAL", "Company Admin Approval", 1,
                   ["COMPANY_ADMIN", "SUPER_ADMIN", "FINANCE_ADMIN"], True),
        ],
        "status_on_submission": "RAISED",
        "status_on_approval": {"INVOICE_COMPANY_APPROVAL": "APPROVED"},
        "status_on_rejection": {"INVOICE_COMPANY_APPROVAL": "REJECTED"},
    }


def seed_company(db: Session, company: Company, *, single_stage: bool = False) -> Dict[str, int]:
    """Adds a config per entity type unless an active one already exists."""
    stats = {"created": 0, "skipped": 0}
    order = order_single_stage(company) if single_stage else order_two_stage(company)

    for data in (order, grn_workflow(company), invoice_workflow(company)):
        exists = (
            db.query(WorkflowConfiguration.id)
            .filter(
                WorkflowConfiguration.company_id == company.id,
                WorkflowConfiguration.entity_type == data["entity_type"],
                WorkflowConfiguration.is_active.is_(True),
            )
            .first()
        )
        if exists:
            stats["skipped"] += 1
            continue
        db.add(WorkflowConfiguration(
            company_id=company.id,
            description="Seeded default",
            version=1,
            is_active=True,
            **data,
        ))
        stats["created"] += 1
    db.commit()
    return stats


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Seed default workflow configurations.")
    parser.add_argument("--company-id", type=int, default=None)
    parser.add_argument("--single-stage", action="store_true",
                        help="Company admin only ORDER approval.")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        q = db.query(Company)
        if args.company_id:
            q = q.filter(Company.id == args.company_id)
        companies = q.all()
        print(f"Found {len(companies)} companies")
        for c in companies:
            stats = seed_company(db, c, single_stage=args.single_stage)
            print(f"  {c.code}: created={stats['created']} skipped={stats['skipped']}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
