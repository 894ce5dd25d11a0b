import os

# settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("WHATSAPP_VERIFY_TOKEN", "verify-me")
os.environ["WHATSAPP_API_URL"] = ""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models.company import Company, Location
from app.models.employee import Employee
from app.models.product import Product
from app.models.user import User
from app.models.vendor import Vendor
from app.scripts.seed_notification_templates import seed_notifications
from app.scripts.seed_workflow_configurations import seed_company
from app.utils.jwt import create_access_token


@pytest.fixture()
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def client(db):
    def _override():
        yield db

    app.dependency_overrides[get_db] = _override
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _user(db, name, email, role, company_id=None, **extra):
    u = User(
        name=name,
        email=email,
        password_hash="not-used",
        role=role,
        company_id=company_id,
        is_active=True,
        **extra,
    )
    db.add(u)
    db.flush()
    return u


@pytest.fixture()
def world(db):
    """One company with a location, vendor, catalogue, employee and a user per role."""
    company = Company(code="ACME", name="Acme Industries", enable_pr_po_workflow=True)
    db.add(company)
    db.flush()

    location = Location(company_id=company.id, name="Chennai Plant", address="12 Mount Road",
                        city="Chennai", state="Tamil Nadu", pincode="600002")
    vendor = Vendor(code="UNIFAB", name="Unifab Garments", email="orders@unifab.test")
    db.add_all([location, vendor])
    db.flush()

    employee = Employee(
        company_id=company.id,
        location_id=location.id,
        employee_code="E1001",
        first_name="Asha",
        last_name="Kumar",
        email="asha@acme.test",
        phone="+919876543210",
        gender="male",
        designation="Technician",
        address="4 Lake View Street, Chennai",
        eligibility_shirt=2,
        eligibility_pant=2,
        eligibility_shoe=1,
        eligibility_jacket=0,
    )
    db.add(employee)
    db.flush()

    shirt = Product(company_id=company.id, vendor_id=vendor.id, sku="SH-01", name="Work Shirt",
                    category="shirt", gender="male", sizes="S,M,L,XL", price=500)
    pant = Product(company_id=company.id, vendor_id=vendor.id, sku="PT-01", name="Work Pant",
                   category="pant", gender="unisex", sizes="30,32,34", price=700)
    shoe = Product(company_id=company.id, vendor_id=vendor.id, sku="SO-01", name="Safety Shoe",
                   category="shoe", gender="unisex", sizes="8,9,10", price=1200)
    blouse = Product(company_id=company.id, vendor_id=vendor.id, sku="BL-01", name="Blouse",
                     category="shirt", gender="female", sizes="S,M", price=450)
    db.add_all([shirt, pant, shoe, blouse])
    db.flush()

    users = SimpleNamespace(
        super_admin=_user(db, "Root", "root@uniform.test", "SUPER_ADMIN"),
        company_admin=_user(db, "Carol Admin", "admin@acme.test", "COMPANY_ADMIN", company.id),
        location_admin=_user(db, "Lakshmi Site", "site@acme.test", "LOCATION_ADMIN", company.id),
        finance_admin=_user(db, "Farid Finance", "finance@acme.test", "FINANCE_ADMIN", company.id),
        employee=_user(db, "Asha Kumar", "asha.user@acme.test", "EMPLOYEE", company.id,
                       employee_id=employee.id),
        vendor=_user(db, "Unifab Desk", "desk@unifab.test", "VENDOR", None, vendor_id=vendor.id),
    )
    db.commit()

    return SimpleNamespace(
        company=company,
        location=location,
        vendor=vendor,
        employee=employee,
        products=SimpleNamespace(shirt=shirt, pant=pant, shoe=shoe, blouse=blouse),
        users=users,
    )


@pytest.fixture()
def workflows(db, world):
    seed_company(db, world.company)
    return world


@pytest.fixture()
def notifications(db):
    return seed_notifications(db)


@pytest.fixture()
def sent_emails(monkeypatch):
    sent = []

    def _fake_send(to_email, subject, body, **kwargs):
        sent.append({"to": to_email, "subject": subject, "body": body, "html": kwargs.get("html")})
        return f"<msg-{len(sent)}@uniform.test>"

    monkeypatch.setattr("app.services.notification_service.send_email", _fake_send)
    return sent


def auth(user):
    token = create_access_token(user.email, user.company_id, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def headers():
    return auth
